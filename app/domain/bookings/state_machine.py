"""
Booking status transitions

Happy path: pending → confirmed → picked_up → in_transit → out_for_delivery → delivered
Any non-terminal status may also move to cancelled or failed.
delivered, cancelled and failed are terminal. failed → pending is only allowed
when the retry policy is enabled (ALLOW_FAILED_RETRY).
"""

import logging

from ...config import ALLOW_FAILED_RETRY
from ...shared.exceptions import ValidationError
from .schemas import BookingStatus

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset(
    {BookingStatus.DELIVERED.value, BookingStatus.CANCELLED.value, BookingStatus.FAILED.value}
)

FORWARD_TRANSITIONS = {
    "pending": ["confirmed"],
    "confirmed": ["picked_up"],
    "picked_up": ["in_transit"],
    "in_transit": ["out_for_delivery"],
    "out_for_delivery": ["delivered"],
    "delivered": [],  # Terminal state
    "cancelled": [],  # Terminal state
    "failed": [],  # Terminal state
}

SIDE_EXITS = ["cancelled", "failed"]


def allowed_targets(current_status: str, allow_failed_retry: bool = ALLOW_FAILED_RETRY) -> list[str]:
    """Statuses reachable from current_status in one step"""
    targets = list(FORWARD_TRANSITIONS.get(current_status, []))
    if current_status not in TERMINAL_STATUSES:
        targets.extend(SIDE_EXITS)
    if allow_failed_retry and current_status == BookingStatus.FAILED.value:
        targets.append(BookingStatus.PENDING.value)
    return targets


def validate_status_transition(
    current_status: str, new_status: str, allow_failed_retry: bool = ALLOW_FAILED_RETRY
) -> bool:
    """
    Validate if a booking status transition is allowed

    Returns:
        bool: True if transition is valid, False otherwise
    """
    # Allow same status (no-op)
    if current_status == new_status:
        return True

    return new_status in allowed_targets(current_status, allow_failed_retry)


def ensure_transition(
    current_status: str, new_status: str, allow_failed_retry: bool = ALLOW_FAILED_RETRY
) -> None:
    """Raise ValidationError when the transition is not in the table"""
    if new_status not in {s.value for s in BookingStatus}:
        raise ValidationError(f"Invalid status: {new_status}", field="status")

    if not validate_status_transition(current_status, new_status, allow_failed_retry):
        allowed = allowed_targets(current_status, allow_failed_retry)
        logger.warning(f"⚠️ Rejected booking status transition: {current_status} → {new_status}")
        raise ValidationError(
            f"Cannot change booking status from {current_status} to {new_status}",
            currentStatus=current_status,
            requestedStatus=new_status,
            allowedStatuses=allowed,
        )


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
