from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from academy.models.user import Role


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system and
    handed to every service call that needs an actor.

        user_id: subject from the JWT
        role: platform role (student|instructor|admin)
    """

    user_id: UUID
    role: Role

    def is_admin(self) -> bool:
        return self.role == "admin"
