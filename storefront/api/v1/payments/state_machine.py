"""
Payment status lattice

The verify endpoint and the webhook both move the same payment record.
Each status has a rank and a record only ever moves to a higher rank, so
the two paths converge whatever order they run in.
"""

from typing import Dict, List
from storefront.models.payment import PaymentStatus

class PaymentStateMachine:
    """Monotonic payment status ordering"""

    RANKS: Dict[PaymentStatus, int] = {
        PaymentStatus.PENDING: 0,
        PaymentStatus.FAILED: 1,
        PaymentStatus.AUTHORIZED: 2,
        PaymentStatus.CAPTURED: 3,
    }

    @classmethod
    def rank(cls, status: PaymentStatus) -> int:
        return cls.RANKS[PaymentStatus(status)]

    @classmethod
    def statuses_below(cls, target: PaymentStatus) -> List[PaymentStatus]:
        """
        Statuses a record may currently hold to be advanced to target

        A later successful attempt may still capture after a failure, but a
        failure never pulls back an authorized or captured payment.
        """
        target_rank = cls.rank(target)
        return [status for status, rank in cls.RANKS.items() if rank < target_rank]

    @classmethod
    def is_terminal_state(cls, status: PaymentStatus) -> bool:
        return PaymentStatus(status) is PaymentStatus.CAPTURED
