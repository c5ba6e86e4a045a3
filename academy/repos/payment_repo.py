from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from typing import Protocol
from uuid import UUID

from academy.models.payment import Payment


class PaymentRepo(Protocol):
    async def list_completed(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[Payment]: ...
    async def add(self, payment: Payment) -> None: ...


class InMemoryPaymentRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, Payment] = {}

    async def list_completed(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[Payment]:
        return [
            p
            for p in self._store.values()
            if p.status == "completed"
            and p.course_id in course_ids
            and (since is None or p.created_at >= since)
        ]

    async def add(self, payment: Payment) -> None:
        self._store[payment.id] = payment
