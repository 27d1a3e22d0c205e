import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Without a key, local time comes from DEFAULT_TIMEZONE and addresses are unknown
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GEO_TIMEOUT_SECONDS = float(os.getenv("GEO_TIMEOUT_SECONDS", "5"))
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

EVIDENCE_DIR = os.getenv("EVIDENCE_DIR", "instance/evidence")

OPEN_SESSION_LOOKBACK_HOURS = int(os.getenv("OPEN_SESSION_LOOKBACK_HOURS", "12"))
USER_LOCK_TIMEOUT_SECONDS = int(os.getenv("USER_LOCK_TIMEOUT_SECONDS", "10"))
# "mysql" uses GET_LOCK across workers, "process" only serializes inside one process
USER_LOCKS = os.getenv("USER_LOCKS", "mysql")

# Exposes /attendance/simulate/* for manual testing
ALLOW_SIMULATION = bool(int(os.getenv("ALLOW_SIMULATION", "1")))

# "mysql" writes notifications/activity_logs tables, "log" only logs them
EVENT_SINK = os.getenv("EVENT_SINK", "mysql")
