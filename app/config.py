import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cargo_booking.db")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Redis (used by the ARQ worker and the health check)
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Ephemeral store
EPHEMERAL_DEFAULT_TTL_MINUTES = int(os.getenv("EPHEMERAL_DEFAULT_TTL_MINUTES", "60"))
# Booking drafts live for 24 hours unless touched again
DRAFT_TTL_MINUTES = int(os.getenv("DRAFT_TTL_MINUTES", str(24 * 60)))
REAP_INTERVAL_MINUTES = int(os.getenv("REAP_INTERVAL_MINUTES", "10"))

# Booking lifecycle
# Whether a failed booking may be moved back to pending for another attempt
ALLOW_FAILED_RETRY = os.getenv("ALLOW_FAILED_RETRY", "false").lower() == "true"
BOOKING_NUMBER_MAX_ATTEMPTS = int(os.getenv("BOOKING_NUMBER_MAX_ATTEMPTS", "5"))

# Delivery counter bookkeeping
ADJUSTMENT_RETRY_BATCH_SIZE = int(os.getenv("ADJUSTMENT_RETRY_BATCH_SIZE", "100"))
ADJUSTMENT_MAX_ATTEMPTS = int(os.getenv("ADJUSTMENT_MAX_ATTEMPTS", "10"))

# Frontend origin allowed by CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
