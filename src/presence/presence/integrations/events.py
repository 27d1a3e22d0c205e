"""Fire-and-forget notification and activity-log events."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    org_id: int
    user_id: int
    title: str
    message: str
    type: str = "INFO"
    related_entity_type: str = "ATTENDANCE"
    related_entity_id: Optional[int] = None


@dataclass(frozen=True)
class ActivityLogEvent:
    user_id: int
    org_id: int
    event_type: str
    event_source: str
    object_type: str
    object_id: Optional[int]
    description: str
    location: Optional[str] = None
    request_ip: Optional[str] = None
    user_agent: Optional[str] = None


class EventSink(Protocol):
    def emit_notification(self, event: NotificationEvent) -> None:
        raise NotImplementedError

    def emit_activity_log(self, event: ActivityLogEvent) -> None:
        raise NotImplementedError


class LoggingEventSink:
    def emit_notification(self, event: NotificationEvent) -> None:
        logger.info("notification %s", asdict(event))

    def emit_activity_log(self, event: ActivityLogEvent) -> None:
        logger.info("activity %s", asdict(event))


class MySQLEventSink:
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def emit_notification(self, event: NotificationEvent) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO notifications(org_id, user_id, title, message, type,
                                          related_entity_type, related_entity_id)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    event.org_id,
                    event.user_id,
                    event.title,
                    event.message,
                    event.type,
                    event.related_entity_type,
                    event.related_entity_id,
                ),
            )

    def emit_activity_log(self, event: ActivityLogEvent) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO activity_logs(user_id, org_id, event_type, event_source, object_type,
                                          object_id, description, location, request_ip, user_agent)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    event.user_id,
                    event.org_id,
                    event.event_type,
                    event.event_source,
                    event.object_type,
                    event.object_id,
                    event.description,
                    event.location,
                    event.request_ip,
                    event.user_agent,
                ),
            )
