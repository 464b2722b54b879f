"""
Integration tests for GET /orders and GET /orders/<id>.
"""
from sqlQueries import create_connection, close_connection, execute_query


def _ids(response):
    assert response.status_code == 200, response.get_json()
    return [o["id"] for o in response.get_json()["orders"]]


def test_customer_lists_own_orders_newest_first(client, seed_minimal_data, login_as, make_order):
    first = make_order()
    second = make_order()
    make_order(customer="other_customer")

    login_as("customer")
    assert _ids(client.get("/orders", query_string={"scope": "mine"})) == [second, first]
    # mine is the default scope
    assert _ids(client.get("/orders")) == [second, first]


def test_status_filter(client, seed_minimal_data, login_as, make_order):
    pending = make_order()
    make_order(status="CONFIRMED")
    login_as("customer")
    assert _ids(client.get("/orders", query_string={"scope": "mine", "status": "PENDING"})) == [pending]
    assert client.get("/orders", query_string={"status": "LOST"}).status_code == 400


def test_owner_lists_own_restaurant(client, seed_minimal_data, login_as, make_order):
    a = make_order()
    b = make_order(customer="other_customer")
    login_as("owner")
    scope = f"restaurant:{seed_minimal_data['rtr_id']}"
    assert _ids(client.get("/orders", query_string={"scope": scope})) == [b, a]


def test_owner_cannot_list_other_restaurant(client, seed_minimal_data, login_as, make_order):
    make_order()
    login_as("other_owner")
    response = client.get("/orders", query_string={"scope": f"restaurant:{seed_minimal_data['rtr_id']}"})
    assert response.status_code == 403


def test_restaurant_scope_unknown_restaurant(client, seed_minimal_data, login_as):
    login_as("admin")
    assert client.get("/orders", query_string={"scope": "restaurant:9999"}).status_code == 404


def test_agent_lists_assigned_orders(client, seed_minimal_data, login_as, make_order):
    mine = make_order(status="OUT_FOR_DELIVERY", agent="agent")
    make_order(status="OUT_FOR_DELIVERY", agent="other_agent")
    make_order(status="PREPARING")
    login_as("agent")
    assert _ids(client.get("/orders", query_string={"scope": "agent"})) == [mine]


def test_all_scope_is_admin_only(client, seed_minimal_data, login_as, make_order):
    ids = [make_order(), make_order(customer="other_customer")]
    login_as("admin")
    assert _ids(client.get("/orders", query_string={"scope": "all"})) == list(reversed(ids))

    login_as("customer")
    assert client.get("/orders", query_string={"scope": "all"}).status_code == 403


def test_customer_cannot_use_agent_scope(client, seed_minimal_data, login_as):
    login_as("customer")
    assert client.get("/orders", query_string={"scope": "agent"}).status_code == 403


def test_invalid_scope(client, seed_minimal_data, login_as):
    login_as("admin")
    assert client.get("/orders", query_string={"scope": "everything"}).status_code == 400
    assert client.get("/orders", query_string={"scope": "restaurant:abc"}).status_code == 400


def test_get_order_by_id(client, seed_minimal_data, login_as, make_order):
    ord_id = make_order()
    login_as("customer")
    response = client.get(f"/orders/{ord_id}")
    assert response.status_code == 200
    order = response.get_json()["order"]
    assert order["id"] == ord_id
    assert order["total_amount"] == 425.0
    assert order["restaurant_name"] == "Spice Garden"


def test_get_missing_order(client, seed_minimal_data, login_as):
    login_as("customer")
    assert client.get("/orders/99999").status_code == 404


def test_database_failure_is_a_server_error(client, temp_db_path, seed_minimal_data, login_as):
    conn = create_connection(temp_db_path)
    try:
        execute_query(conn, 'DROP TABLE "OrderItem"')
        execute_query(conn, 'DROP TABLE "Order"')
    finally:
        close_connection(conn)

    login_as("customer")
    response = client.get("/orders/1")
    assert response.status_code == 500
    assert response.get_json() == {"ok": False, "error": "Internal server error"}


def test_any_authenticated_caller_reads_by_default(client, seed_minimal_data, login_as, make_order):
    ord_id = make_order()
    login_as("other_customer")
    assert client.get(f"/orders/{ord_id}").status_code == 200


def test_participants_read_policy(app, client, seed_minimal_data, login_as, make_order):
    app.config["ORDER_READ_POLICY"] = "participants"
    ord_id = make_order()

    login_as("other_customer")
    assert client.get(f"/orders/{ord_id}").status_code == 403
    login_as("other_owner")
    assert client.get(f"/orders/{ord_id}").status_code == 403
    for who in ("customer", "owner", "admin"):
        login_as(who)
        assert client.get(f"/orders/{ord_id}").status_code == 200


def test_get_order_requires_login(client, seed_minimal_data, make_order):
    ord_id = make_order()
    assert client.get(f"/orders/{ord_id}").status_code == 401
