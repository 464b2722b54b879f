from ratings import recompute_rating
from sqlQueries import execute_query


def _review(conn, rtr_id, usr_id, rating):
    execute_query(conn, 'INSERT INTO "Review" (rtr_id, usr_id, rating, comment) VALUES (?, ?, ?, ?)',
                  (rtr_id, usr_id, rating, "ok"))


def test_no_reviews(conn, seed_minimal_data):
    assert recompute_rating(conn, seed_minimal_data["rtr_id"]) == (0.0, 0)


def test_average_rounded_to_one_decimal(conn, seed_minimal_data):
    data = seed_minimal_data
    for rating in (5, 4, 4):
        _review(conn, data["rtr_id"], data["users"]["customer"], rating)
    assert recompute_rating(conn, data["rtr_id"]) == (4.3, 3)


def test_reviews_of_other_restaurants_ignored(conn, seed_minimal_data):
    data = seed_minimal_data
    _review(conn, data["rtr_id"], data["users"]["customer"], 2)
    _review(conn, data["rtr_id_2"], data["users"]["customer"], 5)
    assert recompute_rating(conn, data["rtr_id"]) == (2.0, 1)
    assert recompute_rating(conn, data["rtr_id_2"]) == (5.0, 1)


def test_rating_endpoint(client, seed_minimal_data, temp_db_path):
    resp = client.get(f"/restaurants/{seed_minimal_data['rtr_id']}/rating")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "rtr_id": seed_minimal_data["rtr_id"], "rating": 0.0, "review_count": 0}

    assert client.get("/restaurants/9999/rating").status_code == 404
