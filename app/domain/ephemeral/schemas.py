"""Ephemeral store schemas - categories, namespaces and record responses"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EphemeralCategory(str, Enum):
    """Closed set of namespaces sharing the ephemeral store"""

    BOOKING_DRAFT = "booking_draft"
    CART = "cart"
    PREFERENCES = "preferences"
    TEMP_DATA = "temp_data"
    USER_SESSION = "user_session"


@dataclass(frozen=True)
class Namespace:
    """
    A typed view over one category of the store.

    payload_model, when set, is a pydantic model every written payload (or
    partial payload for merges) is validated through. default_ttl is used for
    writes without an explicit TTL and for refresh-on-read.
    """

    category: EphemeralCategory
    default_ttl: timedelta
    payload_model: Optional[type] = None


class EphemeralRecordResponse(BaseModel):
    """Schema for an ephemeral record returned to clients"""

    key: str
    ownerId: Optional[str] = None
    category: str
    data: dict
    expiresAt: datetime
    lastAccessedAt: datetime
    createdAt: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "EphemeralRecordResponse":
        return cls(
            key=record.key,
            ownerId=record.owner_id,
            category=record.category,
            data=dict(record.payload or {}),
            expiresAt=record.expires_at,
            lastAccessedAt=record.last_accessed_at,
            createdAt=record.created_at,
        )
