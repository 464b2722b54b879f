import logging
import sqlite3

from models import Order, OrderLine

logger = logging.getLogger(__name__)


def create_connection(db_file: str):
    """
    Create and return a connection to the specified SQLite database.
    Args:
        db_file (str): Path to the SQLite database file.
    Returns:
        sqlite3.Connection | None: Connection object if successful, None otherwise.
    """
    conn = None
    try:
        conn = sqlite3.connect(db_file)
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error:
        logger.exception("Could not open database %s", db_file)
    return conn


def close_connection(conn):
    """
    Close an existing SQLite database connection.
    Args:
        conn (sqlite3.Connection): Connection object to close.
    Returns:
        None
    """
    if conn:
        conn.close()


def execute_query(conn, query: str, params=(), strict=False):
    """
    Execute a single SQL query with optional parameters.
    Args:
        conn (sqlite3.Connection): Active database connection.
        query (str): SQL query string to execute.
        params (tuple, optional): Parameters to safely substitute into the query.
        strict (bool, optional): Re-raise sqlite errors after logging them
                                 instead of returning None.
    Returns:
        sqlite3.Cursor | None: Cursor object if successful, None if an error occurred.
    """
    try:
        cur = conn.cursor()
        cur.execute(query, params)
        conn.commit()
        return cur
    except sqlite3.Error:
        logger.exception("Query failed: %s", query.strip().splitlines()[0])
        if strict:
            raise
        return None


def fetch_all(conn, query: str, params=(), strict=False):
    """
    Execute a query and return all fetched rows.
    Args:
        conn (sqlite3.Connection): Active database connection.
        query (str): SQL query string to execute.
        params (tuple, optional): Parameters to safely substitute into the query.
        strict (bool, optional): Re-raise sqlite errors instead of returning [].
    Returns:
        list: A list of result rows (each as a tuple). Empty list if no results or on failure.
    """
    cur = execute_query(conn, query, params, strict=strict)
    if cur:
        return cur.fetchall()
    return []


def fetch_one(conn, query: str, params=(), strict=False):
    """
    Execute a query and return the first result row.
    Args:
        conn (sqlite3.Connection): Active database connection.
        query (str): SQL query string to execute.
        params (tuple, optional): Parameters to safely substitute into the query.
        strict (bool, optional): Re-raise sqlite errors instead of returning None.
    Returns:
        tuple | None: The first row as a tuple, or None if no result or on failure.
    """
    cur = execute_query(conn, query, params, strict=strict)
    if cur:
        return cur.fetchone()
    return None


# ============================================================================
# Identity Lookups
# ============================================================================

def get_user_by_email(conn, email: str):
    """
    Fetch the credentials row used to log a user in.

    Returns:
        tuple | None: (usr_id, name, email, password_HS, role) or None.
    """
    return fetch_one(conn, '''
        SELECT usr_id, name, email, password_HS, role
        FROM "User"
        WHERE email = ?
    ''', (email,), strict=True)


# ============================================================================
# Catalog Lookups
# ============================================================================

def get_restaurant(conn, rtr_id: int):
    """
    Fetch the restaurant fields the order lifecycle depends on.

    Args:
        conn (sqlite3.Connection): Active database connection.
        rtr_id (int): Restaurant ID.

    Returns:
        tuple | None: (rtr_id, owner_id, name, delivery_fee_cents),
                      or None if the restaurant does not exist.
    """
    return fetch_one(conn, '''
        SELECT rtr_id, owner_id, name, delivery_fee
        FROM "Restaurant"
        WHERE rtr_id = ?
    ''', (rtr_id,), strict=True)


def get_menu_items(conn, rtr_id: int, itm_ids):
    """
    Look up current price and availability for menu items of one restaurant.

    Items that exist but belong to a different restaurant are not returned.

    Args:
        conn (sqlite3.Connection): Active database connection.
        rtr_id (int): Restaurant the items must belong to.
        itm_ids (iterable[int]): Menu item IDs to resolve.

    Returns:
        dict: itm_id -> {"name", "price_cents", "available"}. Missing IDs are absent.

    Example:
        >>> items = get_menu_items(conn, 1, [3, 4])
        >>> items[3]["price_cents"]
        28000
    """
    ids = sorted({int(i) for i in itm_ids})
    if not ids:
        return {}
    qmarks = ",".join(["?"] * len(ids))
    rows = fetch_all(conn, f'''
        SELECT itm_id, name, price, instock
        FROM "MenuItem"
        WHERE rtr_id = ? AND itm_id IN ({qmarks})
    ''', (rtr_id, *ids), strict=True)
    return {
        row[0]: {"name": row[1], "price_cents": row[2] or 0, "available": bool(row[3])}
        for row in rows
    }


# ============================================================================
# Order Store
# ============================================================================

_ORDER_COLUMNS = '''
    o.ord_id, o.usr_id, o.rtr_id, o.status, o.delivery_address, o.subtotal,
    o.delivery_fee, o.payment_method, o.payment_done, o.special_instructions,
    o.dlv_agent_id, o.created_at, o.updated_at, u.name, r.name
'''


def _row_to_order(row, lines):
    return Order(
        ord_id=row[0],
        usr_id=row[1],
        rtr_id=row[2],
        status=row[3],
        delivery_address=row[4],
        subtotal_cents=row[5],
        delivery_fee_cents=row[6],
        payment_method=row[7],
        payment_done=bool(row[8]),
        special_instructions=row[9],
        dlv_agent_id=row[10],
        created_at=row[11],
        updated_at=row[12],
        customer_name=row[13] or "",
        restaurant_name=row[14] or "",
        lines=lines,
    )


def _fetch_lines(conn, ord_ids):
    """Fetch the lines of several orders at once, keyed by ord_id, in placement order."""
    if not ord_ids:
        return {}
    qmarks = ",".join(["?"] * len(ord_ids))
    rows = fetch_all(conn, f'''
        SELECT oi.ord_id, oi.line_id, oi.itm_id, oi.quantity, oi.unit_price, m.name
        FROM "OrderItem" oi
        LEFT JOIN "MenuItem" m ON m.itm_id = oi.itm_id
        WHERE oi.ord_id IN ({qmarks})
        ORDER BY oi.ord_id, oi.position
    ''', tuple(ord_ids), strict=True)
    lines = {}
    for ord_id, line_id, itm_id, quantity, unit_price, name in rows:
        lines.setdefault(ord_id, []).append(OrderLine(
            itm_id=itm_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            name=name or "",
            line_id=line_id,
        ))
    return lines


def insert_order(conn, order):
    """
    Persist an order header and all of its lines in a single transaction.

    Either the header and every line are committed together or nothing is
    written; a failure part-way rolls the transaction back and re-raises.

    Args:
        conn (sqlite3.Connection): Active database connection.
        order (Order): Fully priced order without an ord_id.

    Returns:
        int: The ord_id of the new order.
    """
    try:
        with conn:
            cur = conn.execute('''
                INSERT INTO "Order" (usr_id, rtr_id, status, delivery_address, subtotal,
                                     delivery_fee, payment_method, payment_done,
                                     special_instructions, dlv_agent_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (order.usr_id, order.rtr_id, order.status, order.delivery_address,
                  order.subtotal_cents, order.delivery_fee_cents, order.payment_method,
                  int(order.payment_done), order.special_instructions, order.dlv_agent_id,
                  order.created_at, order.updated_at))
            ord_id = cur.lastrowid
            conn.executemany('''
                INSERT INTO "OrderItem" (ord_id, position, itm_id, quantity, unit_price)
                VALUES (?, ?, ?, ?, ?)
            ''', [(ord_id, pos, line.itm_id, line.quantity, line.unit_price_cents)
                  for pos, line in enumerate(order.lines)])
    except sqlite3.Error:
        logger.exception("Order insert rolled back for customer %s", order.usr_id)
        raise
    return ord_id


def get_order(conn, ord_id: int):
    """
    Fetch one order with its lines.

    Returns:
        Order | None: The order, or None if it does not exist.

    Raises:
        sqlite3.Error: the lookup itself failed; a failure is never reported as a missing order.
    """
    row = fetch_one(conn, f'''
        SELECT {_ORDER_COLUMNS}
        FROM "Order" o
        LEFT JOIN "User" u ON u.usr_id = o.usr_id
        LEFT JOIN "Restaurant" r ON r.rtr_id = o.rtr_id
        WHERE o.ord_id = ?
    ''', (ord_id,), strict=True)
    if not row:
        return None
    return _row_to_order(row, _fetch_lines(conn, [row[0]]).get(row[0], []))


def query_orders(conn, usr_id=None, rtr_id=None, dlv_agent_id=None, status=None):
    """
    Fetch orders matching every given filter, newest first.

    Args:
        conn (sqlite3.Connection): Active database connection.
        usr_id (int, optional): Only orders placed by this customer.
        rtr_id (int, optional): Only orders placed at this restaurant.
        dlv_agent_id (int, optional): Only orders dispatched to this agent.
        status (str, optional): Only orders currently in this status.

    Returns:
        list[Order]: Matching orders ordered by creation time descending.
    """
    clauses, params = [], []
    for column, value in (("o.usr_id", usr_id), ("o.rtr_id", rtr_id),
                          ("o.dlv_agent_id", dlv_agent_id), ("o.status", status)):
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = fetch_all(conn, f'''
        SELECT {_ORDER_COLUMNS}
        FROM "Order" o
        LEFT JOIN "User" u ON u.usr_id = o.usr_id
        LEFT JOIN "Restaurant" r ON r.rtr_id = o.rtr_id
        {where}
        ORDER BY o.created_at DESC, o.ord_id DESC
    ''', tuple(params), strict=True)
    lines = _fetch_lines(conn, [row[0] for row in rows])
    return [_row_to_order(row, lines.get(row[0], [])) for row in rows]


def get_orders_by_customer(conn, usr_id: int, status=None):
    return query_orders(conn, usr_id=usr_id, status=status)


def get_orders_by_restaurant(conn, rtr_id: int, status=None):
    return query_orders(conn, rtr_id=rtr_id, status=status)


def get_orders_by_agent(conn, dlv_agent_id: int, status=None):
    return query_orders(conn, dlv_agent_id=dlv_agent_id, status=status)


def get_orders_by_status(conn, status: str):
    return query_orders(conn, status=status)


def get_all_orders(conn):
    return query_orders(conn)


def update_order_status(conn, ord_id: int, expected_status: str, new_status: str,
                        updated_at: str, dlv_agent_id=None):
    """
    Move an order to new_status only if it is still in expected_status.

    The WHERE clause on the current status makes the write a compare-and-set:
    a concurrent update that already moved the order leaves this one with
    no matching row, so a change based on a stale read is never applied.
    dlv_agent_id is written only when given; an existing agent is kept otherwise.

    Args:
        conn (sqlite3.Connection): Active database connection.
        ord_id (int): Order to update.
        expected_status (str): Status the caller read before deciding.
        new_status (str): Status to move to.
        updated_at (str): ISO timestamp of the mutation.
        dlv_agent_id (int, optional): Agent to attach.

    Returns:
        bool: True if the row was updated, False if the status had changed.
    """
    with conn:
        cur = conn.execute('''
            UPDATE "Order"
            SET status = ?,
                dlv_agent_id = COALESCE(?, dlv_agent_id),
                updated_at = ?
            WHERE ord_id = ? AND status = ?
        ''', (new_status, dlv_agent_id, updated_at, ord_id, expected_status))
    return cur.rowcount == 1


def mark_payment_done(conn, ord_id: int, updated_at: str):
    """
    Flag an order as paid unless it is already paid or cancelled.

    Returns:
        bool: True if the flag was set by this call.
    """
    with conn:
        cur = conn.execute('''
            UPDATE "Order"
            SET payment_done = 1,
                updated_at = ?
            WHERE ord_id = ? AND payment_done = 0 AND status != 'CANCELLED'
        ''', (updated_at, ord_id))
    return cur.rowcount == 1


# ============================================================================
# Review Lookups
# ============================================================================

def get_review_stats(conn, rtr_id: int):
    """
    Aggregate the ratings left for a restaurant.

    Returns:
        tuple: (average rating or None, number of reviews)
    """
    row = fetch_one(conn, 'SELECT AVG(rating), COUNT(*) FROM "Review" WHERE rtr_id = ?', (rtr_id,),
                    strict=True)
    if not row:
        return None, 0
    return row[0], row[1] or 0
