import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classroom_db"),
}

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_JSON = bool(int(os.getenv("LOG_JSON", "0")))

# Refuse attendance drafts for classes with nobody enrolled.
REQUIRE_NON_EMPTY_ROSTER = bool(int(os.getenv("REQUIRE_NON_EMPTY_ROSTER", "1")))
# 0 disables the wait between two join requests for the same class.
JOIN_REQUEST_COOLDOWN_MINUTES = int(os.getenv("JOIN_REQUEST_COOLDOWN_MINUTES", "0"))
ROSTER_CAS_RETRIES = int(os.getenv("ROSTER_CAS_RETRIES", "3"))
