import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "presence_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

GOOGLE_MAPS_API_KEY = ""
GEO_TIMEOUT_SECONDS = 1.0
DEFAULT_TIMEZONE = "UTC"

EVIDENCE_DIR = os.getenv("EVIDENCE_DIR", "instance/test-evidence")

OPEN_SESSION_LOOKBACK_HOURS = 12
USER_LOCK_TIMEOUT_SECONDS = 2
USER_LOCKS = "process"

ALLOW_SIMULATION = True

EVENT_SINK = "log"
