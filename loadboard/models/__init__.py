"""SQLAlchemy models for the load board."""

from loadboard.models.load import Facility, Load, LoadStatus  # noqa: F401
from loadboard.models.booking import Booking, BookingStatus  # noqa: F401
