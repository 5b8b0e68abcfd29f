from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from photoshelf.core.errors import Unauthorized


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of an operation, passed explicitly into every service call."""

    user_id: UUID
    email: str

    def require_owner(self, owner_id: UUID) -> None:
        if self.user_id != owner_id:
            raise Unauthorized("Caller is not the owner of this resource")
