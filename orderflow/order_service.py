"""
Order lifecycle operations: placement, status transitions, cancellation,
payment settlement and scoped retrieval.

All functions take an open sqlite3 connection as their first argument and
raise an OrderError subclass on failure. None of them retry; the caller
decides what to do with a failure.
"""
import logging
from datetime import datetime, timezone

import sqlQueries as store
from authorization import (
    READ_ANY_AUTHENTICATED, SCOPE_AGENT, SCOPE_ALL, SCOPE_MINE, SCOPE_RESTAURANT,
    can_cancel, can_list_scope, can_settle_payment, can_transition, can_view_order,
)
from errors import InvalidRequest, InvalidTransition, NotFound, StaleOrderStatus
from models import Identity, Order, OrderLine, OrderStatus, Role

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "CASH"
MAX_LINE_QUANTITY = 999


def _now() -> str:
    """Current UTC time as an ISO-8601 string (sortable as text)."""
    return datetime.now(timezone.utc).isoformat()


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_text(value, field):
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{field} must be a string")
    return value.strip() or None


def _parse_lines(lines):
    """
    Normalize requested lines to (itm_id, quantity) integer pairs.

    Args:
        lines (list): (itm_id, quantity) pairs or dicts with
                      menu_item_id/itm_id and quantity keys.

    Returns:
        list[tuple[int, int]]: The lines in request order.

    Raises:
        InvalidRequest: lines is not a non-empty list, an id is missing, or a
                        quantity is not an integer between 1 and MAX_LINE_QUANTITY.
    """
    if not isinstance(lines, (list, tuple)):
        raise InvalidRequest("Items must be a list")
    if not lines:
        raise InvalidRequest("Order must contain at least one item")

    parsed = []
    for raw in lines:
        if isinstance(raw, dict):
            itm_id = raw.get("menu_item_id", raw.get("itm_id"))
            quantity = raw.get("quantity")
        elif isinstance(raw, (list, tuple)) and len(raw) == 2:
            itm_id, quantity = raw
        else:
            raise InvalidRequest("Each item needs a menu item id and a quantity")

        # JSON integers only; floats and numeric strings are rejected
        if not _is_int(itm_id) or not _is_int(quantity):
            raise InvalidRequest("Each item needs an integer menu item id and quantity")
        if quantity <= 0:
            raise InvalidRequest(f"Quantity for item {itm_id} must be positive")
        if quantity > MAX_LINE_QUANTITY:
            raise InvalidRequest(f"Quantity for item {itm_id} cannot exceed {MAX_LINE_QUANTITY}")
        parsed.append((itm_id, quantity))
    return parsed


def _restaurant_owner(conn, rtr_id):
    restaurant = store.get_restaurant(conn, rtr_id)
    return restaurant[1] if restaurant else None


def _load_order(conn, ord_id):
    order = store.get_order(conn, ord_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def place_order(conn, customer_id, rtr_id, delivery_address, payment_method=None,
                special_instructions=None, lines=None):
    """
    Validate an order request against the catalog, price it and persist it.

    Unit prices are copied from the catalog into the order lines, and the
    delivery fee comes from the restaurant, never from the request. The
    header and all lines are written in one transaction.

    Args:
        conn (sqlite3.Connection): Active database connection.
        customer_id (int): The ordering customer.
        rtr_id (int): The restaurant ordered from.
        delivery_address (str): Non-blank delivery address.
        payment_method (str, optional): Defaults to "CASH".
        special_instructions (str, optional): Free text for the restaurant.
        lines (list): (menu item id, quantity) pairs, non-empty.

    Returns:
        Order: The stored order, status PENDING and payment not done.

    Raises:
        InvalidRequest: empty lines, non-positive quantity, blank address,
                        or an item the restaurant has marked unavailable.
        NotFound: unknown restaurant, or an item not on its menu.
    """
    parsed = _parse_lines(lines)
    address = _optional_text(delivery_address, "Delivery address")
    payment_method = _optional_text(payment_method, "Payment method")
    special_instructions = _optional_text(special_instructions, "Special instructions")
    if not address:
        raise InvalidRequest("Delivery address is required")

    restaurant = store.get_restaurant(conn, rtr_id)
    if not restaurant:
        raise NotFound("Restaurant not found")
    _, _, restaurant_name, delivery_fee_cents = restaurant

    catalog = store.get_menu_items(conn, rtr_id, [itm_id for itm_id, _ in parsed])
    order_lines = []
    for itm_id, quantity in parsed:
        item = catalog.get(itm_id)
        if item is None:
            raise NotFound(f"Menu item {itm_id} not found")
        if not item["available"]:
            raise InvalidRequest(f"Menu item {itm_id} is not available")
        order_lines.append(OrderLine(
            itm_id=itm_id,
            quantity=quantity,
            unit_price_cents=item["price_cents"],
            name=item["name"],
        ))

    placed_at = _now()
    order = Order(
        ord_id=None,
        usr_id=customer_id,
        rtr_id=rtr_id,
        delivery_address=address,
        subtotal_cents=sum(line.subtotal_cents for line in order_lines),
        delivery_fee_cents=delivery_fee_cents or 0,
        lines=order_lines,
        status=OrderStatus.PENDING,
        payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
        payment_done=False,
        special_instructions=special_instructions,
        created_at=placed_at,
        updated_at=placed_at,
        restaurant_name=restaurant_name,
    )

    ord_id = store.insert_order(conn, order)
    logger.info("Order %s placed by customer %s at restaurant %s: %d line(s), total %.2f",
                ord_id, customer_id, rtr_id, len(order_lines), order.total_amount)
    return store.get_order(conn, ord_id)


def _apply_transition(conn, order, new_status, actor):
    # dispatch is the only path that attaches an agent
    dlv_agent_id = actor.usr_id if new_status == OrderStatus.OUT_FOR_DELIVERY else None
    if not store.update_order_status(conn, order.ord_id, order.status, new_status, _now(),
                                     dlv_agent_id=dlv_agent_id):
        raise StaleOrderStatus(f"Order {order.ord_id} changed status concurrently; reload and retry")
    logger.info("Order %s moved %s -> %s by user %s (%s)",
                order.ord_id, order.status, new_status, actor.usr_id, actor.role)
    return store.get_order(conn, order.ord_id)


def update_status(conn, ord_id, new_status, actor_id, actor_role):
    """
    Move an order along the status workflow on behalf of an actor.

    Args:
        conn (sqlite3.Connection): Active database connection.
        ord_id (int): Order to update.
        new_status (str): Target status name.
        actor_id (int): The acting user.
        actor_role (str): The acting user's role.

    Returns:
        Order: The updated order.

    Raises:
        InvalidRequest: new_status is not a status name.
        NotFound: the order does not exist.
        InvalidTransition: new_status is not reachable from the current status.
        Unauthorized: the actor may not apply this transition to this order.
        StaleOrderStatus: another update won the race.
    """
    if not OrderStatus.is_valid_status(new_status):
        raise InvalidRequest(f"Invalid status: {new_status}")

    order = _load_order(conn, ord_id)
    if not OrderStatus.is_valid_transition(order.status, new_status):
        raise InvalidTransition(f"Invalid transition from {order.status} to {new_status}")

    actor = Identity(actor_id, actor_role)
    can_transition(order, new_status, actor, _restaurant_owner(conn, order.rtr_id)).require(actor)
    return _apply_transition(conn, order, new_status, actor)


def cancel_order(conn, ord_id, customer_id):
    """
    Cancel a PENDING order on behalf of the customer who placed it.

    Raises:
        NotFound: the order does not exist.
        Unauthorized: customer_id did not place the order.
        InvalidTransition: the order is not PENDING (including already cancelled).
    """
    order = _load_order(conn, ord_id)
    actor = Identity(customer_id, Role.CUSTOMER)
    can_cancel(order, actor).require(actor)
    if order.status != OrderStatus.PENDING:
        raise InvalidTransition(f"Cannot cancel order in {order.status} state")
    return _apply_transition(conn, order, OrderStatus.CANCELLED, actor)


def settle_payment(conn, ord_id, actor_id, actor_role):
    """Mark an order as paid. Cancelled and already-paid orders are rejected."""
    order = _load_order(conn, ord_id)
    actor = Identity(actor_id, actor_role)
    can_settle_payment(order, actor).require(actor)
    if order.status == OrderStatus.CANCELLED:
        raise InvalidTransition("Cannot settle payment of a cancelled order")
    if order.payment_done:
        raise InvalidTransition("Order is already paid")
    if not store.mark_payment_done(conn, ord_id, _now()):
        raise StaleOrderStatus(f"Order {ord_id} changed concurrently; reload and retry")
    logger.info("Payment settled for order %s by user %s (%s)", ord_id, actor_id, actor_role)
    return store.get_order(conn, ord_id)


def get_order(conn, ord_id, actor_id, actor_role, read_policy=READ_ANY_AUTHENTICATED):
    """
    Fetch one order, subject to the configured single-order read policy.

    Raises:
        NotFound: the order does not exist.
        Unauthorized: the policy does not let this actor read it.
    """
    order = _load_order(conn, ord_id)
    actor = Identity(actor_id, actor_role)
    can_view_order(order, actor, _restaurant_owner(conn, order.rtr_id), read_policy).require(actor)
    return order


def parse_scope(raw):
    """
    Parse a listing scope string.

    Args:
        raw (str): 'mine', 'agent', 'all' or 'restaurant:<id>'.

    Returns:
        tuple: (scope, rtr_id or None)

    Example:
        >>> parse_scope("restaurant:7")
        ('restaurant', 7)
    """
    scope = (raw or "").strip().lower()
    if scope in (SCOPE_MINE, SCOPE_AGENT, SCOPE_ALL):
        return scope, None
    if scope.startswith(SCOPE_RESTAURANT + ":"):
        try:
            return SCOPE_RESTAURANT, int(scope.split(":", 1)[1])
        except ValueError:
            pass
    raise InvalidRequest(f"Invalid scope: {raw}")


def list_orders(conn, scope, actor_id, actor_role, rtr_id=None, status=None):
    """
    List orders visible in a scope, newest first.

    Args:
        conn (sqlite3.Connection): Active database connection.
        scope (str): 'mine', 'restaurant', 'agent' or 'all'.
        actor_id (int): The caller.
        actor_role (str): The caller's role.
        rtr_id (int, optional): Restaurant for the 'restaurant' scope.
        status (str, optional): Only orders currently in this status.

    Returns:
        list[Order]

    Raises:
        InvalidRequest: unknown status name.
        NotFound: the restaurant of a 'restaurant' scope does not exist.
        Unauthorized: the actor may not list this scope.
    """
    if status is not None and not OrderStatus.is_valid_status(status):
        raise InvalidRequest(f"Invalid status: {status}")

    actor = Identity(actor_id, actor_role)
    if scope == SCOPE_RESTAURANT:
        restaurant = store.get_restaurant(conn, rtr_id)
        if not restaurant:
            raise NotFound("Restaurant not found")
        can_list_scope(scope, actor, restaurant_owner_id=restaurant[1]).require(actor)
        return store.get_orders_by_restaurant(conn, rtr_id, status=status)

    can_list_scope(scope, actor).require(actor)
    if scope == SCOPE_MINE:
        return store.get_orders_by_customer(conn, actor_id, status=status)
    if scope == SCOPE_AGENT:
        return store.get_orders_by_agent(conn, actor_id, status=status)
    if status is not None:
        return store.get_orders_by_status(conn, status)
    return store.get_all_orders(conn)
