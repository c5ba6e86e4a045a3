from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

Role = Literal["student", "instructor", "admin"]

ROLES: tuple[Role, ...] = ("student", "instructor", "admin")


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""
    role: Role = "student"

    @staticmethod
    def new(*, email: str, name: str = "", role: Role = "student") -> User:
        return User(id=uuid4(), email=email.strip().lower(), name=name, role=role)
