from __future__ import annotations

from typing import Protocol, Sequence

from .model import WorkLocation


class WorkLocationRepository(Protocol):
    def list_for_user(self, *, user_id: int, org_id: int) -> Sequence[WorkLocation]:
        """Active locations assigned to the user; the organization's active
        locations when the user has no explicit assignment."""

        raise NotImplementedError
