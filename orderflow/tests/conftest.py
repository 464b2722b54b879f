"""
Shared fixtures: a migrated temporary SQLite database per test, seeded
users for every role, two restaurants with menus, and a Flask test client
pointed at that database.
"""
import os
import sys

import pytest
from werkzeug.security import generate_password_hash

# Make the flat application modules importable (models, sqlQueries, ...)
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from migrations.create_order_tables import apply_schema  # noqa: E402
from sqlQueries import create_connection, close_connection, execute_query, fetch_one  # noqa: E402
import order_service  # noqa: E402

PASSWORD = "secret123"

USERS = {
    # key: (name, email, role)
    "customer": ("John Doe", "john@smith.com", "CUSTOMER"),
    "other_customer": ("Jane Roe", "jane@roe.com", "CUSTOMER"),
    "owner": ("Olive Owner", "owner@food.com", "RESTAURANT_OWNER"),
    "other_owner": ("Otto Owner", "otto@food.com", "RESTAURANT_OWNER"),
    "agent": ("Andy Agent", "agent@food.com", "DELIVERY_AGENT"),
    "other_agent": ("Ada Agent", "ada@food.com", "DELIVERY_AGENT"),
    "admin": ("Admin", "admin@food.com", "ADMIN"),
}


@pytest.fixture
def temp_db_path(tmp_path):
    """Path to a fresh database with the full schema applied."""
    db_path = str(tmp_path / "orderflow_test.db")
    conn = create_connection(db_path)
    try:
        apply_schema(conn)
    finally:
        close_connection(conn)
    return db_path


@pytest.fixture
def seed_minimal_data(temp_db_path):
    """
    Seed one user per key in USERS plus two restaurants.

    Returns a dict with:
    - users: key -> usr_id
    - rtr_id: "Spice Garden" (owner, delivery fee $25.00)
    - rtr_id_2: "Taco Stand" (other_owner, no delivery fee)
    - itm_chicken ($280.00), itm_naan ($60.00), itm_sold_out: items of rtr_id
    - itm_taco ($5.00): item of rtr_id_2
    """
    password_hash = generate_password_hash(PASSWORD)
    conn = create_connection(temp_db_path)
    try:
        users = {}
        for key, (name, email, role) in USERS.items():
            cur = execute_query(conn, '''
                INSERT INTO "User" (name, email, password_HS, role)
                VALUES (?, ?, ?, ?)
            ''', (name, email, password_hash, role))
            users[key] = cur.lastrowid

        rtr_id = execute_query(conn, '''
            INSERT INTO "Restaurant" (owner_id, name, delivery_fee) VALUES (?, 'Spice Garden', 2500)
        ''', (users["owner"],)).lastrowid
        rtr_id_2 = execute_query(conn, '''
            INSERT INTO "Restaurant" (owner_id, name, delivery_fee) VALUES (?, 'Taco Stand', 0)
        ''', (users["other_owner"],)).lastrowid

        def add_item(rtr, name, price, instock=1):
            return execute_query(conn, '''
                INSERT INTO "MenuItem" (rtr_id, name, price, instock) VALUES (?, ?, ?, ?)
            ''', (rtr, name, price, instock)).lastrowid

        data = {
            "users": users,
            "rtr_id": rtr_id,
            "rtr_id_2": rtr_id_2,
            "itm_chicken": add_item(rtr_id, "Butter Chicken", 28000),
            "itm_naan": add_item(rtr_id, "Garlic Naan", 6000),
            "itm_sold_out": add_item(rtr_id, "Seasonal Thali", 15000, instock=0),
            "itm_taco": add_item(rtr_id_2, "Taco", 500),
        }
    finally:
        close_connection(conn)
    return data


@pytest.fixture
def conn(temp_db_path):
    connection = create_connection(temp_db_path)
    yield connection
    close_connection(connection)


@pytest.fixture
def make_order(conn, seed_minimal_data):
    """
    Factory placing a Butter Chicken + 2 Naan order, optionally forced into a
    status (and agent) directly in the database for test setup.
    """
    def _make(customer="customer", status=None, agent=None):
        order = order_service.place_order(
            conn,
            customer_id=seed_minimal_data["users"][customer],
            rtr_id=seed_minimal_data["rtr_id"],
            delivery_address="123 Main St",
            lines=[(seed_minimal_data["itm_chicken"], 1), (seed_minimal_data["itm_naan"], 2)],
        )
        if status:
            agent_id = seed_minimal_data["users"][agent] if agent else None
            execute_query(conn, 'UPDATE "Order" SET status = ?, dlv_agent_id = ? WHERE ord_id = ?',
                          (status, agent_id, order.ord_id))
        return order.ord_id
    return _make


@pytest.fixture
def app(temp_db_path):
    from Flask_app import app as flask_app
    flask_app.config.update(TESTING=True, DB_PATH=temp_db_path, ORDER_READ_POLICY="authenticated")
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_as(client, seed_minimal_data):
    """Put the given seeded user in the test client's session."""
    def _login(key):
        with client.session_transaction() as sess:
            sess["usr_id"] = seed_minimal_data["users"][key]
            sess["role"] = USERS[key][2]
        return seed_minimal_data["users"][key]
    return _login


@pytest.fixture
def order_row(temp_db_path):
    """Read (status, dlv_agent_id, payment_done) of an order straight from the database."""
    def _row(ord_id):
        conn = create_connection(temp_db_path)
        try:
            return fetch_one(conn, 'SELECT status, dlv_agent_id, payment_done FROM "Order" WHERE ord_id = ?', (ord_id,))
        finally:
            close_connection(conn)
    return _row
