"""
Booking and tracking number generation

Formats are an external contract read by customer-facing tracking lookups:
- booking number: CB-YYYYMMDD-NNNN (date prefix, 4 random digits)
- tracking number: CPP<epoch millis><NNN> (3 random digits)

Uniqueness is enforced by unique constraints; callers regenerate on collision.
"""

import secrets
from datetime import datetime
from typing import Optional

from ...utils.clock import utcnow

BOOKING_NUMBER_PREFIX = "CB"
TRACKING_NUMBER_PREFIX = "CPP"


def generate_booking_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"{BOOKING_NUMBER_PREFIX}-{now:%Y%m%d}-{secrets.randbelow(10000):04d}"


def generate_tracking_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"{TRACKING_NUMBER_PREFIX}{millis}{secrets.randbelow(1000):03d}"
