import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, Integer, String
from sqlalchemy.orm import composite, relationship

from loadboard.models.base import Base


class LoadStatus(str, enum.Enum):
    POSTED = "POSTED"
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"


@dataclass
class Facility:
    """Loading and unloading points of a load, stored inline on the load row."""

    loading_point: str
    unloading_point: str
    loading_date: datetime
    unloading_date: datetime


class Load(Base):
    __tablename__ = "load"

    id = Column(String, primary_key=True)
    shipper_id = Column(String, nullable=False, index=True)

    loading_point = Column(String, nullable=False)
    unloading_point = Column(String, nullable=False)
    loading_date = Column(DateTime, nullable=False)
    unloading_date = Column(DateTime, nullable=False)

    product_type = Column(String, nullable=False)
    truck_type = Column(String, nullable=False, index=True)
    no_of_trucks = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False)
    comment = Column(String(1000), nullable=True)
    status = Column(
        Enum(LoadStatus, name="load_status", values_callable=lambda enum_class: [e.value for e in enum_class]),
        nullable=False,
        default=LoadStatus.POSTED,
        index=True,
    )

    date_posted = Column(DateTime, nullable=False, default=datetime.utcnow)

    facility = composite(Facility, loading_point, unloading_point, loading_date, unloading_date)

    # Bookings are removed explicitly by LoadService.delete_load; the FK cascade backs it up.
    bookings = relationship("Booking", back_populates="load", passive_deletes=True)
