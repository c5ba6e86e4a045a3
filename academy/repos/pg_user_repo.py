"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import UserRow
from academy.models.user import User


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(UserRow).where(UserRow.id == user_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def add(self, user: User) -> None:
        try:
            async with self._session.begin_nested():
                self._session.add(
                    UserRow(id=user.id, email=user.email, name=user.name, role=user.role)
                )
        except IntegrityError as exc:
            raise ValueError("email already exists") from exc


def _row_to_user(row: UserRow) -> User:
    return User(id=row.id, email=row.email, name=row.name or "", role=row.role)  # type: ignore[arg-type]
