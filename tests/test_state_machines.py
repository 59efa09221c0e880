"""
Order lifecycle transitions and the payment status lattice
"""

import pytest

from storefront.api.v1.orders.state_machine import OrderStateMachine
from storefront.api.v1.payments.state_machine import PaymentStateMachine
from storefront.models import OrderStatus, PaymentStatus


class TestOrderStateMachine:
    @pytest.fixture()
    def machine(self):
        return OrderStateMachine()

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        ],
    )
    def test_allowed(self, machine, current, target):
        assert machine.can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.CONFIRMED, OrderStatus.PENDING),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.CONFIRMED),
        ],
    )
    def test_rejected(self, machine, current, target):
        assert not machine.can_transition(current, target)

    def test_terminal_states(self, machine):
        assert machine.is_terminal_state(OrderStatus.DELIVERED)
        assert machine.is_terminal_state(OrderStatus.CANCELLED)
        assert not machine.is_terminal_state(OrderStatus.PENDING)

    def test_cancellable(self, machine):
        assert machine.is_cancellable(OrderStatus.PROCESSING)
        assert not machine.is_cancellable(OrderStatus.SHIPPED)


class TestPaymentStateMachine:
    def test_ranks_are_ordered(self):
        ordered = sorted(PaymentStatus, key=PaymentStateMachine.rank)

        assert ordered == [
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.AUTHORIZED,
            PaymentStatus.CAPTURED,
        ]

    def test_never_moves_down(self):
        below_failed = PaymentStateMachine.statuses_below(PaymentStatus.FAILED)

        assert PaymentStatus.AUTHORIZED not in below_failed
        assert PaymentStatus.CAPTURED not in below_failed
        assert PaymentStatus.CAPTURED not in PaymentStateMachine.statuses_below(PaymentStatus.CAPTURED)

    def test_capture_after_failure(self):
        assert PaymentStatus.FAILED in PaymentStateMachine.statuses_below(PaymentStatus.CAPTURED)

    def test_statuses_below(self):
        assert PaymentStateMachine.statuses_below(PaymentStatus.FAILED) == [PaymentStatus.PENDING]
        assert set(PaymentStateMachine.statuses_below(PaymentStatus.CAPTURED)) == {
            PaymentStatus.PENDING,
            PaymentStatus.FAILED,
            PaymentStatus.AUTHORIZED,
        }

    def test_only_capture_is_terminal(self):
        assert PaymentStateMachine.is_terminal_state(PaymentStatus.CAPTURED)
        assert not PaymentStateMachine.is_terminal_state(PaymentStatus.FAILED)
