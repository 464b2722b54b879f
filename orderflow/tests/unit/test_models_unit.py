from models import Order, OrderLine, OrderStatus, Role


def test_order_status_constants():
    """Ensure constants haven't drifted from the transmitted names."""
    assert OrderStatus.PENDING == 'PENDING'
    assert OrderStatus.CONFIRMED == 'CONFIRMED'
    assert OrderStatus.PREPARING == 'PREPARING'
    assert OrderStatus.OUT_FOR_DELIVERY == 'OUT_FOR_DELIVERY'
    assert OrderStatus.DELIVERED == 'DELIVERED'
    assert OrderStatus.CANCELLED == 'CANCELLED'


def test_is_valid_status():
    assert OrderStatus.is_valid_status('PENDING') is True
    assert OrderStatus.is_valid_status('CANCELLED') is True
    assert OrderStatus.is_valid_status('Cooking') is False
    assert OrderStatus.is_valid_status('') is False
    assert OrderStatus.is_valid_status(None) is False


def test_every_status_has_a_transition_entry():
    assert set(OrderStatus.TRANSITIONS) == set(OrderStatus.VALID_STATUSES)


def test_forward_transitions():
    """Test the workflow steps are allowed."""
    assert OrderStatus.is_valid_transition(OrderStatus.PENDING, OrderStatus.CONFIRMED) is True
    assert OrderStatus.is_valid_transition(OrderStatus.PENDING, OrderStatus.CANCELLED) is True
    assert OrderStatus.is_valid_transition(OrderStatus.CONFIRMED, OrderStatus.PREPARING) is True
    assert OrderStatus.is_valid_transition(OrderStatus.PREPARING, OrderStatus.OUT_FOR_DELIVERY) is True
    assert OrderStatus.is_valid_transition(OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED) is True


def test_skipping_steps_is_blocked():
    # Preparing -> Delivered must pass through OUT_FOR_DELIVERY
    assert OrderStatus.is_valid_transition(OrderStatus.PREPARING, OrderStatus.DELIVERED) is False
    assert OrderStatus.is_valid_transition(OrderStatus.PENDING, OrderStatus.PREPARING) is False


def test_cancel_only_from_pending():
    for status in OrderStatus.VALID_STATUSES:
        expected = status == OrderStatus.PENDING
        assert OrderStatus.is_valid_transition(status, OrderStatus.CANCELLED) is expected


def test_terminal_statuses_have_no_exit():
    for terminal in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        assert OrderStatus.is_terminal(terminal)
        assert OrderStatus.next_statuses(terminal) == set()
        for status in OrderStatus.VALID_STATUSES:
            assert OrderStatus.is_valid_transition(terminal, status) is False


def test_invalid_transition_unknown_status():
    assert OrderStatus.is_valid_transition('AlienStatus', OrderStatus.PENDING) is False
    assert OrderStatus.is_valid_transition(OrderStatus.PENDING, 'AlienStatus') is False


def test_roles_for_transitions():
    assert OrderStatus.roles_for(OrderStatus.PENDING, OrderStatus.CONFIRMED) == {Role.RESTAURANT_OWNER, Role.ADMIN}
    assert Role.CUSTOMER in OrderStatus.roles_for(OrderStatus.PENDING, OrderStatus.CANCELLED)
    assert Role.DELIVERY_AGENT in OrderStatus.roles_for(OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED)
    assert Role.RESTAURANT_OWNER not in OrderStatus.roles_for(OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED)
    assert OrderStatus.roles_for(OrderStatus.DELIVERED, OrderStatus.PENDING) == set()


def test_order_money_properties():
    """Fee 25.00, lines 280 x 1 and 60 x 2 -> subtotal 400, total 425."""
    lines = [OrderLine(itm_id=1, quantity=1, unit_price_cents=28000),
             OrderLine(itm_id=2, quantity=2, unit_price_cents=6000)]
    order = Order(ord_id=None, usr_id=1, rtr_id=1, delivery_address="x",
                  subtotal_cents=sum(l.subtotal_cents for l in lines),
                  delivery_fee_cents=2500, lines=lines)
    assert lines[1].subtotal_cents == 12000
    assert order.subtotal == 400.0
    assert order.delivery_fee == 25.0
    assert order.total_amount == 425.0
    assert order.total_cents == order.subtotal_cents + order.delivery_fee_cents


def test_order_to_dict_shape():
    order = Order(ord_id=7, usr_id=1, rtr_id=2, delivery_address="x",
                  subtotal_cents=500, delivery_fee_cents=0,
                  lines=[OrderLine(itm_id=3, quantity=1, unit_price_cents=500, name="Taco")])
    data = order.to_dict()
    assert data["id"] == 7
    assert data["status"] == "PENDING"
    assert data["payment_done"] is False
    assert data["delivery_agent_id"] is None
    assert data["items"] == [{"line_id": None, "itm_id": 3, "name": "Taco", "quantity": 1,
                              "unit_price": 5.0, "subtotal": 5.0}]
