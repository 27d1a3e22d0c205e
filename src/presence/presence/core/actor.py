from __future__ import annotations

from dataclasses import dataclass

from .enums import ELEVATED_ROLES, Role


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller."""

    user_id: int
    org_id: int
    role: Role = Role.STAFF

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES
