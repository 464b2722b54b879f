"""
Capability checks for reading and mutating orders.

Every check returns an AccessDecision instead of raising, so callers can
inspect the outcome; `require()` turns a denial into Unauthorized.

Rules:
    ADMIN             - every order, every legal transition
    CUSTOMER          - own orders only; may cancel own PENDING orders
    RESTAURANT_OWNER  - orders of restaurants they own
    DELIVERY_AGENT    - orders dispatched to them; may dispatch PREPARING orders
"""
import logging
from dataclasses import dataclass

from errors import Unauthorized
from models import OrderStatus, Role

logger = logging.getLogger(__name__)

# Single-order read policies
READ_ANY_AUTHENTICATED = 'authenticated'
READ_PARTICIPANTS = 'participants'
READ_POLICIES = (READ_ANY_AUTHENTICATED, READ_PARTICIPANTS)

# Listing scopes
SCOPE_MINE = 'mine'
SCOPE_RESTAURANT = 'restaurant'
SCOPE_AGENT = 'agent'
SCOPE_ALL = 'all'


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""

    def __bool__(self):
        return self.allowed

    def require(self, actor=None):
        """Raise Unauthorized when the decision is a denial."""
        if not self.allowed:
            if actor is not None:
                logger.warning("Access denied for user %s (%s): %s", actor.usr_id, actor.role, self.reason)
            raise Unauthorized(self.reason)
        return self


ALLOW = AccessDecision(True)


def deny(reason):
    return AccessDecision(False, reason)


def check_read_policy(policy):
    """
    Normalize a configured single-order read policy.

    Raises:
        ValueError: policy is not one of READ_POLICIES.
    """
    normalized = (policy or "").strip().lower()
    if normalized not in READ_POLICIES:
        raise ValueError(f"ORDER_READ_POLICY must be one of {', '.join(READ_POLICIES)}, got {policy!r}")
    return normalized


def _is_participant(order, actor, restaurant_owner_id):
    if actor.role == Role.ADMIN:
        return True
    if actor.role == Role.CUSTOMER:
        return order.usr_id == actor.usr_id
    if actor.role == Role.RESTAURANT_OWNER:
        return restaurant_owner_id == actor.usr_id
    if actor.role == Role.DELIVERY_AGENT:
        return order.dlv_agent_id == actor.usr_id
    return False


def can_view_order(order, actor, restaurant_owner_id, policy=READ_ANY_AUTHENTICATED):
    """
    Decide whether actor may fetch a single order by id.

    Under the 'authenticated' policy any logged-in caller may read any order
    (shareable tracking). Under 'participants' only the customer, the
    restaurant's owner, the assigned agent or an admin may read it.
    """
    if actor is None:
        return deny("authentication required")
    if policy == READ_ANY_AUTHENTICATED:
        return ALLOW
    if _is_participant(order, actor, restaurant_owner_id):
        return ALLOW
    return deny("not allowed to view this order")


def can_list_scope(scope, actor, restaurant_owner_id=None):
    """
    Decide whether actor may list orders in the given scope.

    Args:
        scope (str): One of 'mine', 'restaurant', 'agent', 'all'.
        actor (Identity): The caller.
        restaurant_owner_id (int, optional): Owner of the restaurant for the
            'restaurant' scope.

    Returns:
        AccessDecision
    """
    if actor.role == Role.ADMIN:
        return ALLOW
    if scope == SCOPE_MINE:
        if actor.role == Role.CUSTOMER:
            return ALLOW
        return deny("only customers have their own orders")
    if scope == SCOPE_RESTAURANT:
        if actor.role == Role.RESTAURANT_OWNER and restaurant_owner_id == actor.usr_id:
            return ALLOW
        return deny("not the owner of this restaurant")
    if scope == SCOPE_AGENT:
        if actor.role == Role.DELIVERY_AGENT:
            return ALLOW
        return deny("only delivery agents have assigned orders")
    if scope == SCOPE_ALL:
        return deny("only administrators can list all orders")
    return deny(f"unknown scope: {scope}")


def can_transition(order, new_status, actor, restaurant_owner_id):
    """
    Decide whether actor may move order to new_status.

    The transition itself must already be known to be legal; this only
    checks that the actor's role is one the workflow table names for it
    and that the actor has the required tie to the order.
    """
    roles = OrderStatus.roles_for(order.status, new_status)
    if actor.role not in roles:
        return deny(f"role {actor.role} cannot move an order from {order.status} to {new_status}")

    if actor.role == Role.ADMIN:
        return ALLOW
    if actor.role == Role.RESTAURANT_OWNER:
        if restaurant_owner_id == actor.usr_id:
            return ALLOW
        return deny("not the owner of this order's restaurant")
    if actor.role == Role.CUSTOMER:
        if order.usr_id == actor.usr_id:
            return ALLOW
        return deny("not the customer who placed this order")
    if actor.role == Role.DELIVERY_AGENT:
        if new_status == OrderStatus.OUT_FOR_DELIVERY:
            # Claim on dispatch: an agent becomes assigned by taking a PREPARING
            # order out for delivery, so an unassigned order is open to any agent.
            # Every later agent step needs the assignment made here.
            if order.dlv_agent_id in (None, actor.usr_id):
                return ALLOW
            return deny("order is already assigned to another agent")
        if order.dlv_agent_id == actor.usr_id:
            return ALLOW
        return deny("order is not assigned to this agent")
    return deny(f"unknown role: {actor.role}")


def can_cancel(order, actor):
    if actor.role == Role.CUSTOMER and order.usr_id == actor.usr_id:
        return ALLOW
    return deny("only the customer who placed the order can cancel it")


def can_settle_payment(order, actor):
    if actor.role == Role.ADMIN:
        return ALLOW
    if actor.role == Role.CUSTOMER and order.usr_id == actor.usr_id:
        return ALLOW
    return deny("only the ordering customer or an administrator can settle payment")
