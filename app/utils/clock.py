"""Time helpers shared by the ephemeral store and the booking records"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (all stored timestamps are naive UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
