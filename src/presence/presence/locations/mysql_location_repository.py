from __future__ import annotations

from typing import Sequence

from ..core.constants import DEFAULT_LOCATION_RADIUS_M
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import WorkLocation
from .repository import WorkLocationRepository


class MySQLWorkLocationRepository(WorkLocationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_user(self, *, user_id: int, org_id: int) -> Sequence[WorkLocation]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT l.location_id, l.org_id, l.location_name, l.address,
                       l.latitude, l.longitude, l.radius, l.is_active
                FROM work_locations l
                JOIN user_work_locations ul ON ul.location_id = l.location_id
                WHERE ul.user_id=%s AND l.org_id=%s AND l.is_active=1
                ORDER BY l.location_id
                """,
                (int(user_id), int(org_id)),
            )
            rows = fetchall(cur)
            if not rows:
                cur.execute(
                    """
                    SELECT location_id, org_id, location_name, address,
                           latitude, longitude, radius, is_active
                    FROM work_locations
                    WHERE org_id=%s AND is_active=1
                    ORDER BY location_id
                    """,
                    (int(org_id),),
                )
                rows = fetchall(cur)
            return [
                WorkLocation(
                    location_id=int(r["location_id"]),
                    org_id=int(r["org_id"]),
                    location_name=r["location_name"],
                    address=r.get("address"),
                    latitude=float(r["latitude"]),
                    longitude=float(r["longitude"]),
                    radius_m=float(r.get("radius") or DEFAULT_LOCATION_RADIUS_M),
                    is_active=bool(r.get("is_active", 1)),
                )
                for r in rows
            ]
