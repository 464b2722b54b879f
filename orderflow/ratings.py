"""
Restaurant rating aggregation.

Ratings are derived from the Review table on demand rather than stored on
the restaurant, so the review side calls recompute_rating after it writes.
"""
from sqlQueries import get_review_stats


def recompute_rating(conn, rtr_id: int):
    """
    Compute a restaurant's average rating and review count.

    Args:
        conn (sqlite3.Connection): Active database connection.
        rtr_id (int): Restaurant ID.

    Returns:
        tuple: (rating rounded to one decimal, review count); (0.0, 0) with no reviews.

    Example:
        >>> recompute_rating(conn, 1)
        (4.3, 3)
    """
    avg, count = get_review_stats(conn, rtr_id)
    if not count or avg is None:
        return 0.0, 0
    return round(float(avg) * 10.0) / 10.0, int(count)
