"""
Order state machine for managing order status transitions
"""

from typing import Dict, List, Set
from storefront.models.order import OrderStatus

class OrderStateMachine:
    """
    Manages valid order lifecycle transitions
    """

    def __init__(self):
        self.transitions: Dict[OrderStatus, Set[OrderStatus]] = {
            OrderStatus.PENDING: {
                OrderStatus.CONFIRMED,
                OrderStatus.CANCELLED
            },
            OrderStatus.CONFIRMED: {
                OrderStatus.PROCESSING,
                OrderStatus.CANCELLED
            },
            OrderStatus.PROCESSING: {
                OrderStatus.SHIPPED,
                OrderStatus.CANCELLED
            },
            OrderStatus.SHIPPED: {
                OrderStatus.DELIVERED
            },
            OrderStatus.DELIVERED: set(),
            OrderStatus.CANCELLED: set()
        }

    def can_transition(
        self,
        current_status: OrderStatus,
        new_status: OrderStatus
    ) -> bool:
        """
        Check if transition is valid

        Args:
            current_status: Current order status
            new_status: Desired new status

        Returns:
            True if transition is allowed
        """
        return new_status in self.transitions.get(current_status, set())

    def get_valid_transitions(self, current_status: OrderStatus) -> List[OrderStatus]:
        return sorted(self.transitions.get(current_status, set()), key=lambda s: s.value)

    def is_terminal_state(self, status: OrderStatus) -> bool:
        return len(self.transitions.get(status, set())) == 0

    def is_cancellable(self, status: OrderStatus) -> bool:
        return OrderStatus.CANCELLED in self.transitions.get(status, set())
