from datetime import datetime
from typing import Optional

from pydantic import Field

from loadboard.models.booking import BookingStatus
from loadboard.schemas.common import CamelModel, NonBlankStr


class BookingUpdate(CamelModel):
    transporter_id: NonBlankStr
    proposed_rate: float = Field(..., gt=0)
    comment: Optional[str] = Field(default=None, max_length=1000)


class BookingCreate(BookingUpdate):
    load_id: NonBlankStr


class BookingResponse(CamelModel):
    id: str
    load_id: str
    transporter_id: str
    proposed_rate: float
    comment: Optional[str] = None
    status: BookingStatus
    requested_at: datetime
