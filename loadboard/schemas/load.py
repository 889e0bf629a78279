from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, ValidationInfo

from loadboard.models.load import LoadStatus
from loadboard.schemas.common import CamelModel, NonBlankStr


class FacilityBase(CamelModel):
    loading_point: NonBlankStr
    unloading_point: NonBlankStr
    loading_date: datetime
    unloading_date: datetime


class FacilityIn(FacilityBase):
    @field_validator("unloading_date")
    @classmethod
    def unloading_after_loading(cls, value: datetime, info: ValidationInfo) -> datetime:
        loading_date = info.data.get("loading_date")
        if loading_date is not None and loading_date >= value:
            raise ValueError("Loading date must be before unloading date")
        return value


class LoadCreate(CamelModel):
    shipper_id: NonBlankStr
    facility: FacilityIn
    product_type: NonBlankStr
    truck_type: NonBlankStr
    no_of_trucks: int = Field(..., ge=1)
    weight: float = Field(..., gt=0)
    comment: Optional[str] = Field(default=None, max_length=1000)


class LoadUpdate(LoadCreate):
    pass


class LoadResponse(CamelModel):
    id: str
    shipper_id: str
    facility: FacilityBase
    product_type: str
    truck_type: str
    no_of_trucks: int
    weight: float
    comment: Optional[str] = None
    date_posted: datetime
    status: LoadStatus
