"""PostgreSQL implementation of PaymentRepo."""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import PaymentRow
from academy.models.payment import Payment


class PgPaymentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_completed(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[Payment]:
        if not course_ids:
            return []
        stmt = select(PaymentRow).where(
            PaymentRow.status == "completed",
            PaymentRow.course_id.in_(list(course_ids)),
        )
        if since is not None:
            stmt = stmt.where(PaymentRow.created_at >= since)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_payment(r) for r in rows]

    async def add(self, payment: Payment) -> None:
        self._session.add(
            PaymentRow(
                id=payment.id,
                student_id=payment.student_id,
                course_id=payment.course_id,
                amount=payment.amount,
                status=payment.status,
                created_at=payment.created_at,
            )
        )
        await self._session.flush()


def _row_to_payment(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        amount=row.amount,
        status=row.status,  # type: ignore[arg-type]
        created_at=row.created_at,
    )
