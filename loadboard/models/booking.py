import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from loadboard.models.base import Base


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Booking(Base):
    __tablename__ = "booking"
    __table_args__ = (
        UniqueConstraint("load_id", "transporter_id", name="uq_booking_load_transporter"),
    )

    id = Column(String, primary_key=True)
    load_id = Column(String, ForeignKey("load.id", ondelete="CASCADE"), nullable=False, index=True)
    transporter_id = Column(String, nullable=False, index=True)
    proposed_rate = Column(Float, nullable=False)
    comment = Column(String(1000), nullable=True)
    status = Column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda enum_class: [e.value for e in enum_class]),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    load = relationship("Load", back_populates="bookings")
