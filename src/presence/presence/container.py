from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .corrections.mysql_correction_repository import MySQLCorrectionRepository
from .corrections.repository import CorrectionRepository
from .corrections.service import CorrectionService
from .daily.mysql_daily_repository import MySQLDailyRepository
from .daily.repository import DailyRepository
from .daily.service import DailyAggregator
from .database.connection import DBConfig, DatabaseConnection
from .database.locks import InProcessUserLocks, MySQLUserLocks
from .database.mysql_base import transaction
from .integrations.events import LoggingEventSink, MySQLEventSink
from .integrations.geo import FixedTimezoneResolver, GoogleMapsResolver
from .integrations.storage import LocalEvidenceStore
from .locations.mysql_location_repository import MySQLWorkLocationRepository
from .locations.repository import WorkLocationRepository
from .shifts.mysql_shift_repository import MySQLShiftRepository
from .shifts.repository import ShiftRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection | None

    shifts_repo: ShiftRepository
    locations_repo: WorkLocationRepository
    attendance_repo: AttendanceRepository
    daily_repo: DailyRepository
    corrections_repo: CorrectionRepository

    daily_aggregator: DailyAggregator
    attendance_service: AttendanceService
    correction_service: CorrectionService


def build_container(
    *,
    db_config: dict,
    maps_api_key: str = "",
    geo_timeout: float = 5.0,
    default_timezone: str = "UTC",
    evidence_dir: str = "instance/evidence",
    lookback_hours: int = 12,
    lock_timeout: int = 10,
    event_sink: str = "mysql",
    user_locks: str = "mysql",
) -> Container:
    conn = DatabaseConnection(DBConfig.from_mapping(db_config))

    shifts_repo = MySQLShiftRepository(conn)
    locations_repo = MySQLWorkLocationRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    daily_repo = MySQLDailyRepository(conn)
    corrections_repo = MySQLCorrectionRepository(conn)

    if user_locks == "process":
        locks = InProcessUserLocks()
    else:
        locks = MySQLUserLocks(conn, timeout_seconds=lock_timeout)
    events = LoggingEventSink() if event_sink == "log" else MySQLEventSink(conn)
    if maps_api_key:
        resolver = GoogleMapsResolver(maps_api_key, timeout=geo_timeout)
    else:
        resolver = FixedTimezoneResolver(default_timezone)

    daily_aggregator = DailyAggregator(daily_repo, attendance_repo, shifts_repo)
    attendance_service = AttendanceService(
        attendance_repo,
        shifts_repo,
        locations_repo,
        daily_aggregator,
        locks=locks,
        resolver=resolver,
        evidence_store=LocalEvidenceStore(evidence_dir),
        events=events,
        lookback_hours=lookback_hours,
    )
    correction_service = CorrectionService(
        corrections_repo,
        attendance_repo,
        daily_aggregator,
        locks=locks,
        events=events,
        transaction=partial(transaction, conn),
    )

    return Container(
        conn=conn,
        shifts_repo=shifts_repo,
        locations_repo=locations_repo,
        attendance_repo=attendance_repo,
        daily_repo=daily_repo,
        corrections_repo=corrections_repo,
        daily_aggregator=daily_aggregator,
        attendance_service=attendance_service,
        correction_service=correction_service,
    )
