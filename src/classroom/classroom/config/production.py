import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "classroom_db"),
}

DEBUG = False

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = bool(int(os.getenv("LOG_JSON", "1")))

REQUIRE_NON_EMPTY_ROSTER = bool(int(os.getenv("REQUIRE_NON_EMPTY_ROSTER", "1")))
JOIN_REQUEST_COOLDOWN_MINUTES = int(os.getenv("JOIN_REQUEST_COOLDOWN_MINUTES", "0"))
ROSTER_CAS_RETRIES = int(os.getenv("ROSTER_CAS_RETRIES", "3"))
