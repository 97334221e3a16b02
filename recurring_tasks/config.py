"""Runtime configuration for the recurring task engine."""
import os

import pytz
from dotenv import load_dotenv

# Load environment variables but prioritize local development
load_dotenv()

# Async driver URL; SQLite is the local development fallback
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./todo_app.db")
SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("1", "true", "yes")
# How long a SQLite writer waits for another writer to commit
SQLITE_BUSY_TIMEOUT_MS = int(os.environ.get("SQLITE_BUSY_TIMEOUT_MS", "5000"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Recurrence engine tuning
SWEEP_WINDOW_DAYS = int(os.environ.get("SWEEP_WINDOW_DAYS", "3"))
INITIAL_OCCURRENCE_COUNT = int(os.environ.get("INITIAL_OCCURRENCE_COUNT", "3"))
SWEEP_MAX_ITERATIONS = int(os.environ.get("SWEEP_MAX_ITERATIONS", "10000"))

# Daily maintenance schedule (02:00 UTC by default)
SWEEP_CRON_HOUR = int(os.environ.get("SWEEP_CRON_HOUR", "2"))
SWEEP_CRON_MINUTE = int(os.environ.get("SWEEP_CRON_MINUTE", "0"))
SWEEP_TIMEZONE = pytz.timezone(os.environ.get("SWEEP_TIMEZONE", "UTC"))
ENABLE_MAINTENANCE_SCHEDULER = os.environ.get(
    "ENABLE_MAINTENANCE_SCHEDULER", "true"
).lower() in ("1", "true", "yes")

# Shared secret for the internal maintenance endpoints
INTERNAL_API_TOKEN = os.environ.get("INTERNAL_API_TOKEN", "")
