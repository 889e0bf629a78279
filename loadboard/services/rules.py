"""Lifecycle rules for loads and bookings.

These functions only look at statuses and plain values, never at the
database, so the services can call them after loading rows and tests can
exercise them with in-memory objects.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol

from loadboard.core.exceptions import ConflictError
from loadboard.models.booking import BookingStatus
from loadboard.models.load import LoadStatus

ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.ACCEPTED)


class BookingLike(Protocol):
    id: str
    status: BookingStatus


def is_active(status: BookingStatus) -> bool:
    return status in ACTIVE_BOOKING_STATUSES


def has_active_bookings(statuses: Iterable[BookingStatus]) -> bool:
    return any(is_active(status) for status in statuses)


def load_accepts_bookings(status: LoadStatus) -> bool:
    """Admission gate: only a POSTED load takes new or accepted bookings."""
    return status not in (LoadStatus.CANCELLED, LoadStatus.BOOKED)


def status_after_booking_removed(current: LoadStatus, has_active: bool) -> LoadStatus:
    """Status a load should hold once one of its bookings was rejected or deleted.

    Idempotent: feeding the result back in with the same booking set yields
    the same status.
    """
    if has_active or current == LoadStatus.CANCELLED:
        return current
    return LoadStatus.POSTED


def pending_siblings(bookings: Iterable[BookingLike], accepted_id: str) -> List[BookingLike]:
    """Bookings that must be rejected when ``accepted_id`` is accepted."""
    return [b for b in bookings if b.status == BookingStatus.PENDING and b.id != accepted_id]


def ensure_load_editable(status: LoadStatus) -> None:
    if status == LoadStatus.CANCELLED:
        raise ConflictError("Cannot update a cancelled load")


def ensure_load_deletable(has_active: bool) -> None:
    if has_active:
        raise ConflictError("Cannot delete load with active bookings")


def ensure_pending(status: BookingStatus, action: str) -> None:
    """``action`` is the past participle used in the message, e.g. "accepted"."""
    if status != BookingStatus.PENDING:
        raise ConflictError(f"Only pending bookings can be {action}")


def ensure_booking_editable(status: BookingStatus) -> None:
    if status == BookingStatus.REJECTED:
        raise ConflictError("Cannot update a rejected booking")


def ensure_not_duplicate(already_booked: bool) -> None:
    # Any earlier booking by the transporter counts, including rejected ones.
    if already_booked:
        raise ConflictError("Transporter has already booked this load")
