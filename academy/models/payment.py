from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

PaymentStatus = Literal["pending", "completed", "failed", "refunded"]


@dataclass(frozen=True, slots=True)
class Payment:
    """A payment record written by the checkout flow.

    Only ``completed`` payments count as revenue.  ``amount`` is the stored
    numeric value; no currency conversion is applied anywhere.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    amount: float
    status: PaymentStatus
    created_at: datetime

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        amount: float,
        status: PaymentStatus = "completed",
        created_at: datetime | None = None,
    ) -> Payment:
        return Payment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            amount=amount,
            status=status,
            created_at=created_at or datetime.now(UTC),
        )
