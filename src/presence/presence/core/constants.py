"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

OPEN_SESSION_LOOKBACK_HOURS = 12
DEFAULT_OVERTIME_THRESHOLD_HOURS = 8.0
DEFAULT_LOCATION_RADIUS_M = 100
DEFAULT_RECORDS_LIMIT = 50
MAX_RECORDS_LIMIT = 100
DEFAULT_PAGE_SIZE = 10
USER_LOCK_TIMEOUT_SECONDS = 10

UNKNOWN_LOCATION = "Unknown Location"
FALLBACK_TIMEZONE = "UTC"
MANUAL_ADDITION_ADDRESS = "Manual Addition"
MANUAL_RESET_ADDRESS = "Manual Reset"
EVIDENCE_DIRECTORY = "attendance_images"
