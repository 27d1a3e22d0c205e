import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_db"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GEO_TIMEOUT_SECONDS = float(os.getenv("GEO_TIMEOUT_SECONDS", "5"))
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

EVIDENCE_DIR = os.getenv("EVIDENCE_DIR", "/var/lib/presence/evidence")

OPEN_SESSION_LOOKBACK_HOURS = int(os.getenv("OPEN_SESSION_LOOKBACK_HOURS", "12"))
USER_LOCK_TIMEOUT_SECONDS = int(os.getenv("USER_LOCK_TIMEOUT_SECONDS", "10"))
# "mysql" uses GET_LOCK across workers, "process" only serializes inside one process
USER_LOCKS = os.getenv("USER_LOCKS", "mysql")

# Never expose simulation in production
ALLOW_SIMULATION = False

# "mysql" writes notifications/activity_logs tables, "log" only logs them
EVENT_SINK = os.getenv("EVENT_SINK", "mysql")
