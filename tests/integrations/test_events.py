from __future__ import annotations

import logging

from src.presence.presence.integrations.events import ActivityLogEvent, LoggingEventSink, NotificationEvent


def test_logging_sink_logs_both_event_kinds(caplog):
    sink = LoggingEventSink()
    with caplog.at_level(logging.INFO, logger="src.presence.presence.integrations.events"):
        sink.emit_notification(NotificationEvent(org_id=1, user_id=7, title="Timed In", message="09:00"))
        sink.emit_activity_log(
            ActivityLogEvent(
                user_id=7,
                org_id=1,
                event_type="CHECK_IN",
                event_source="WEB",
                object_type="ATTENDANCE",
                object_id=3,
                description="User timed in",
            )
        )

    messages = [r.getMessage() for r in caplog.records]
    assert any("Timed In" in m for m in messages)
    assert any("CHECK_IN" in m for m in messages)
