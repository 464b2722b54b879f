"""
Data models for the food ordering backend.

This module contains the order status workflow, the actor roles, and the
record classes for orders and their lines. Money is held in integer cents
and only converted to dollars for presentation.
"""
from collections import namedtuple
from dataclasses import dataclass, field
from typing import List, Optional


# Authenticated caller: who is acting, and with which role
Identity = namedtuple("Identity", ["usr_id", "role"])


def _money(x: float) -> float:
    """
    Safely round a numeric value to two decimal places.
    Args:
        x (float): The numeric amount to round.
    Returns:
        float: The amount rounded to two decimals, or 0.0 on failure.
    """
    try:
        return round(float(x) + 1e-9, 2)
    except (TypeError, ValueError):
        return 0.0


def _cents_to_dollars(cents) -> float:
    """
    Convert an amount in cents to dollars with two-decimal precision.
    Args:
        cents (int | float | None): The value in cents to convert.
    Returns:
        float: The dollar value rounded to two decimals.
    """
    return _money((cents or 0) / 100.0)


def _dollars_to_cents(dollars) -> int:
    """Convert a dollar amount to whole cents."""
    return int(round(float(dollars or 0) * 100))


class Role:
    """
    Roles an authenticated identity can carry.

    Attributes:
        CUSTOMER (str): Places, tracks and cancels their own orders
        RESTAURANT_OWNER (str): Fulfills orders of the restaurants they own
        DELIVERY_AGENT (str): Delivers orders dispatched to them
        ADMIN (str): Unrestricted access
    """

    CUSTOMER = 'CUSTOMER'
    RESTAURANT_OWNER = 'RESTAURANT_OWNER'
    DELIVERY_AGENT = 'DELIVERY_AGENT'
    ADMIN = 'ADMIN'

    ALL = [CUSTOMER, RESTAURANT_OWNER, DELIVERY_AGENT, ADMIN]

    @classmethod
    def is_valid_role(cls, role):
        return role in cls.ALL


class OrderStatus:
    """
    Represents valid order statuses and transitions.

    This class defines the allowed order statuses and, for each status, the
    set of (next status, role) pairs that may move an order forward. The
    table is consulted before any mutation is applied.

    Status Flow:
        PENDING -> CONFIRMED -> PREPARING -> OUT_FOR_DELIVERY -> DELIVERED
        PENDING -> CANCELLED

    Attributes:
        PENDING (str): Initial status when an order is placed
        CONFIRMED (str): Restaurant accepted the order
        PREPARING (str): Restaurant is preparing the order
        OUT_FOR_DELIVERY (str): Order has been dispatched to an agent
        DELIVERED (str): Final status when the order is completed
        CANCELLED (str): Final status when the customer cancelled
        VALID_STATUSES (list): List of all valid status values
        TERMINAL_STATUSES (set): Statuses with no outgoing transition
        TRANSITIONS (dict): Maps current status -> set of (new status, role)
    """

    # Status constants
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    PREPARING = 'PREPARING'
    OUT_FOR_DELIVERY = 'OUT_FOR_DELIVERY'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'

    # List of all valid statuses, in workflow order
    VALID_STATUSES = [PENDING, CONFIRMED, PREPARING, OUT_FOR_DELIVERY, DELIVERED, CANCELLED]

    TERMINAL_STATUSES = {DELIVERED, CANCELLED}

    # Status transition rules
    # Maps current status -> set of (allowed next status, role permitted to apply it)
    TRANSITIONS = {
        PENDING: {
            (CONFIRMED, Role.RESTAURANT_OWNER),
            (CONFIRMED, Role.ADMIN),
            (CANCELLED, Role.CUSTOMER),
            (CANCELLED, Role.ADMIN),
        },
        CONFIRMED: {
            (PREPARING, Role.RESTAURANT_OWNER),
            (PREPARING, Role.ADMIN),
        },
        PREPARING: {
            (OUT_FOR_DELIVERY, Role.RESTAURANT_OWNER),
            (OUT_FOR_DELIVERY, Role.DELIVERY_AGENT),
            (OUT_FOR_DELIVERY, Role.ADMIN),
        },
        OUT_FOR_DELIVERY: {
            (DELIVERED, Role.DELIVERY_AGENT),
            (DELIVERED, Role.ADMIN),
        },
        DELIVERED: set(),
        CANCELLED: set(),
    }

    @classmethod
    def is_valid_status(cls, status):
        """
        Check if a status value is valid.

        Args:
            status (str): The status value to validate

        Returns:
            bool: True if the status is in the allowed set, False otherwise

        Example:
            >>> OrderStatus.is_valid_status('PENDING')
            True
            >>> OrderStatus.is_valid_status('Cooking')
            False
        """
        return status in cls.VALID_STATUSES

    @classmethod
    def is_terminal(cls, status):
        return status in cls.TERMINAL_STATUSES

    @classmethod
    def next_statuses(cls, current_status):
        """
        Statuses reachable in one step from current_status, by any role.

        Args:
            current_status (str): The current order status

        Returns:
            set: Reachable statuses (empty for terminal or unknown statuses)
        """
        return {new for new, _ in cls.TRANSITIONS.get(current_status, set())}

    @classmethod
    def is_valid_transition(cls, current_status, new_status):
        """
        Check if a status transition is allowed for at least one role.

        Args:
            current_status (str): The current order status
            new_status (str): The proposed new status

        Returns:
            bool: True if the transition is in the workflow, False otherwise

        Example:
            >>> OrderStatus.is_valid_transition('PENDING', 'CONFIRMED')
            True
            >>> OrderStatus.is_valid_transition('DELIVERED', 'PREPARING')
            False
            >>> OrderStatus.is_valid_transition('PREPARING', 'DELIVERED')
            False
        """
        return new_status in cls.next_statuses(current_status)

    @classmethod
    def roles_for(cls, current_status, new_status):
        """
        Roles permitted to move an order from current_status to new_status.

        Args:
            current_status (str): The current order status
            new_status (str): The proposed new status

        Returns:
            set: Role names; empty when the transition is not in the workflow
        """
        return {role for new, role in cls.TRANSITIONS.get(current_status, set()) if new == new_status}


@dataclass
class OrderLine:
    """
    One menu item and quantity within an order.

    The unit price is a snapshot taken when the order was placed; later
    catalog price changes never reach it.
    """

    itm_id: int
    quantity: int
    unit_price_cents: int
    name: str = ""
    line_id: Optional[int] = None

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self):
        return {
            "line_id": self.line_id,
            "itm_id": self.itm_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": _cents_to_dollars(self.unit_price_cents),
            "subtotal": _cents_to_dollars(self.subtotal_cents),
        }


@dataclass
class Order:
    """
    An order placed by a customer at one restaurant.

    subtotal_cents always equals the sum of the line subtotals and the total
    is derived from subtotal and delivery fee, never stored independently.
    dlv_agent_id stays None until the order is dispatched.
    """

    ord_id: Optional[int]
    usr_id: int
    rtr_id: int
    delivery_address: str
    subtotal_cents: int
    delivery_fee_cents: int
    lines: List[OrderLine] = field(default_factory=list)
    status: str = OrderStatus.PENDING
    payment_method: str = "CASH"
    payment_done: bool = False
    special_instructions: Optional[str] = None
    dlv_agent_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    customer_name: str = ""
    restaurant_name: str = ""

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.delivery_fee_cents

    @property
    def subtotal(self) -> float:
        return _cents_to_dollars(self.subtotal_cents)

    @property
    def delivery_fee(self) -> float:
        return _cents_to_dollars(self.delivery_fee_cents)

    @property
    def total_amount(self) -> float:
        return _cents_to_dollars(self.total_cents)

    def to_dict(self):
        """
        Build the JSON representation returned by the HTTP layer.
        Returns:
            dict: Order fields with money in dollars and status as its literal name.
        """
        return {
            "id": self.ord_id,
            "customer_id": self.usr_id,
            "customer_name": self.customer_name,
            "restaurant_id": self.rtr_id,
            "restaurant_name": self.restaurant_name,
            "items": [line.to_dict() for line in self.lines],
            "status": self.status,
            "delivery_address": self.delivery_address,
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "payment_done": self.payment_done,
            "special_instructions": self.special_instructions,
            "delivery_agent_id": self.dlv_agent_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
