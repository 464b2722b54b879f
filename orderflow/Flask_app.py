import argparse
import logging
from datetime import timedelta

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import order_service
from authorization import check_read_policy
from config import Config
from errors import InvalidRequest, OrderError, Unauthorized
from identity import authenticate, current_identity, forget, login_required, remember
from models import Role
from ratings import recompute_rating
from sqlQueries import create_connection, close_connection, get_restaurant

app = Flask(__name__)
app.config.from_object(Config)
app.config["ORDER_READ_POLICY"] = check_read_policy(app.config["ORDER_READ_POLICY"])
app.permanent_session_lifetime = timedelta(minutes=app.config["SESSION_MINUTES"])

# ---------------------- Helpers ----------------------

def _connect():
    """
    Open a connection to the configured database.
    Returns:
        sqlite3.Connection: A new connection; callers close it in a finally block.
    """
    return create_connection(app.config["DB_PATH"])


def _json_payload():
    """
    Parse the JSON body of the current request.
    Returns:
        dict: The decoded body.
    Raises:
        InvalidRequest: the body is missing or not a JSON object.
    """
    if not request.is_json:
        raise InvalidRequest("Request must be JSON")
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequest("Request must be a JSON object")
    return payload


def _order_response(order, status=200):
    return jsonify({"ok": True, "order": order.to_dict()}), status


# ---------------------- Error handling ----------------------

@app.errorhandler(OrderError)
def handle_order_error(e):
    """Render any lifecycle failure as {'ok': False, 'error': ...} with its status code."""
    return jsonify(e.to_dict()), e.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"ok": False, "error": e.description}), e.code
    app.logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"ok": False, "error": "Internal server error"}), 500


# ---------------------- Session ----------------------

@app.route('/login', methods=['POST'])
def login():
    """
    Authenticate user credentials and start a session.

    Accepts JSON {"email", "password"} or the equivalent form fields.

    Returns:
        Response: JSON {'ok', 'usr_id', 'role'} on success, 401 on bad credentials.
    """
    data = request.get_json(silent=True) if request.is_json else request.form
    if not hasattr(data, "get"):
        data = {}
    conn = _connect()
    try:
        user = authenticate(conn, data.get("email"), data.get("password"))
    finally:
        close_connection(conn)

    if not user:
        app.logger.warning("Failed login for %s", data.get("email"))
        return jsonify({"ok": False, "error": "Invalid credentials"}), 401
    remember(user)
    return jsonify({"ok": True, "usr_id": user[0], "role": user[3]})


@app.route('/logout', methods=['POST'])
def logout():
    """Clear the user session."""
    forget()
    return jsonify({"ok": True})


# ---------------------- Orders ----------------------

@app.route('/orders', methods=['POST'])
@login_required
def place_order():
    """
    Place an order containing one or more items of a single restaurant.

    Request Body:
        {
            "restaurant_id": int,
            "delivery_address": str,
            "payment_method": str,          (optional, default "CASH")
            "special_instructions": str,    (optional)
            "items": [{"menu_item_id": int, "quantity": int}, ...]
        }

    Returns:
        Response: 201 with the stored order, or an error per the order error taxonomy.
    """
    actor = current_identity()
    if actor.role != Role.CUSTOMER:
        raise Unauthorized("only customers can place orders")

    payload = _json_payload()
    rtr_id = payload.get("restaurant_id")
    if not isinstance(rtr_id, int) or isinstance(rtr_id, bool) or rtr_id <= 0:
        raise InvalidRequest("Invalid restaurant ID")

    conn = _connect()
    try:
        order = order_service.place_order(
            conn,
            customer_id=actor.usr_id,
            rtr_id=rtr_id,
            delivery_address=payload.get("delivery_address"),
            payment_method=payload.get("payment_method"),
            special_instructions=payload.get("special_instructions"),
            lines=payload.get("items") or payload.get("lines") or [],
        )
    finally:
        close_connection(conn)
    return _order_response(order, 201)


@app.route('/orders', methods=['GET'])
@login_required
def list_orders():
    """
    List orders newest first.

    Query parameters:
        scope: mine | agent | all | restaurant:<rtr_id>   (default: mine)
        status: optional status name filter
    """
    actor = current_identity()
    scope, rtr_id = order_service.parse_scope(request.args.get("scope", "mine"))
    status = request.args.get("status") or None

    conn = _connect()
    try:
        orders = order_service.list_orders(conn, scope, actor.usr_id, actor.role,
                                           rtr_id=rtr_id, status=status)
    finally:
        close_connection(conn)
    return jsonify({"ok": True, "orders": [o.to_dict() for o in orders]})


@app.route('/orders/<int:ord_id>', methods=['GET'])
@login_required
def get_order(ord_id: int):
    actor = current_identity()
    conn = _connect()
    try:
        order = order_service.get_order(conn, ord_id, actor.usr_id, actor.role,
                                        read_policy=app.config["ORDER_READ_POLICY"])
    finally:
        close_connection(conn)
    return _order_response(order)


@app.route('/orders/<int:ord_id>/status', methods=['PATCH'])
@login_required
def update_order_status(ord_id: int):
    """
    Move an order to the status given in the `status` query parameter.

    Returns:
        Response: The updated order; 400 for an illegal transition, 403 when
        the caller may not apply it, 404 for an unknown order, 409 when the
        order changed concurrently.
    """
    actor = current_identity()
    new_status = (request.args.get("status") or "").strip().upper()
    if not new_status:
        raise InvalidRequest("Missing status parameter")

    conn = _connect()
    try:
        order = order_service.update_status(conn, ord_id, new_status, actor.usr_id, actor.role)
    finally:
        close_connection(conn)
    return _order_response(order)


@app.route('/orders/<int:ord_id>/cancel', methods=['PATCH'])
@login_required
def cancel_order(ord_id: int):
    actor = current_identity()
    if actor.role != Role.CUSTOMER:
        raise Unauthorized("only customers can cancel orders")

    conn = _connect()
    try:
        order = order_service.cancel_order(conn, ord_id, actor.usr_id)
    finally:
        close_connection(conn)
    return _order_response(order)


@app.route('/orders/<int:ord_id>/payment', methods=['PATCH'])
@login_required
def settle_payment(ord_id: int):
    actor = current_identity()
    conn = _connect()
    try:
        order = order_service.settle_payment(conn, ord_id, actor.usr_id, actor.role)
    finally:
        close_connection(conn)
    return _order_response(order)


# ---------------------- Restaurants ----------------------

@app.route('/restaurants/<int:rtr_id>/rating')
def restaurant_rating(rtr_id: int):
    """
    Report a restaurant's rating as recomputed from its reviews.
    Returns:
        Response: JSON {'ok', 'rtr_id', 'rating', 'review_count'} or 404.
    """
    conn = _connect()
    try:
        if not get_restaurant(conn, rtr_id):
            return jsonify({"ok": False, "error": "Restaurant not found"}), 404
        rating, review_count = recompute_rating(conn, rtr_id)
    finally:
        close_connection(conn)
    return jsonify({"ok": True, "rtr_id": rtr_id, "rating": rating, "review_count": review_count})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Flask App for Food Ordering")
    parser.add_argument('--host', type=str, default='127.0.0.1', help='Host to run the Flask app on')
    parser.add_argument('--port', type=int, default=5000, help='Port to run the Flask app on')
    return parser.parse_args()


if __name__ == '__main__':
    """
    DB column names:

    User: usr_id,name,email,password_HS,phone,address,role,created_at
    Restaurant: rtr_id,owner_id,name,description,address,phone,cuisine,delivery_fee
    MenuItem: itm_id,rtr_id,name,description,price,instock
    Order: ord_id,usr_id,rtr_id,status,delivery_address,subtotal,delivery_fee,payment_method,
           payment_done,special_instructions,dlv_agent_id,created_at,updated_at
    OrderItem: line_id,ord_id,position,itm_id,quantity,unit_price
    Review: rev_id,rtr_id,usr_id,rating,comment,created_at
    """
    logging.basicConfig(level=app.config["LOG_LEVEL"],
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args()
    app.run(host=args.host, port=args.port, debug=True)
