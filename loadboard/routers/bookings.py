from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from loadboard.core.config import get_settings
from loadboard.core.db import get_db
from loadboard.core.exceptions import ConflictError, NotFoundError
from loadboard.models.booking import BookingStatus
from loadboard.schemas.booking import BookingCreate, BookingResponse, BookingUpdate
from loadboard.schemas.common import Page
from loadboard.services.booking import BookingService

router = APIRouter()
settings = get_settings()


async def _service(db: AsyncSession = Depends(get_db)) -> BookingService:
    return BookingService(db)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(_service),
) -> BookingResponse:
    try:
        booking = await service.create_booking(payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return BookingResponse.model_validate(booking)


@router.get("", response_model=Page[BookingResponse])
async def list_bookings(
    load_id: Optional[str] = Query(None, alias="loadId"),
    transporter_id: Optional[str] = Query(None, alias="transporterId"),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(0, ge=0),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: BookingService = Depends(_service),
) -> Page[BookingResponse]:
    bookings, total = await service.list_bookings(load_id, transporter_id, status_filter, page, size)
    return Page[BookingResponse].build(
        [BookingResponse.model_validate(b) for b in bookings], page, size, total
    )


# Load-scoped listings - MUST be before /{booking_id} route
@router.get("/load/{load_id}", response_model=List[BookingResponse])
async def list_bookings_for_load(
    load_id: str,
    service: BookingService = Depends(_service),
) -> List[BookingResponse]:
    bookings = await service.list_by_load(load_id)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/load/{load_id}/active", response_model=List[BookingResponse])
async def list_active_bookings_for_load(
    load_id: str,
    service: BookingService = Depends(_service),
) -> List[BookingResponse]:
    """PENDING and ACCEPTED bookings of a load."""
    bookings = await service.list_active_by_load(load_id)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: str, service: BookingService = Depends(_service)) -> BookingResponse:
    try:
        booking = await service.get_booking(booking_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return BookingResponse.model_validate(booking)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    service: BookingService = Depends(_service),
) -> BookingResponse:
    try:
        booking = await service.update_booking(booking_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return BookingResponse.model_validate(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(booking_id: str, service: BookingService = Depends(_service)) -> Response:
    try:
        await service.delete_booking(booking_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(booking_id: str, service: BookingService = Depends(_service)) -> BookingResponse:
    """Accept one bid. Competing pending bids on the load are rejected and the load becomes BOOKED."""
    try:
        booking = await service.accept_booking(booking_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(booking_id: str, service: BookingService = Depends(_service)) -> BookingResponse:
    try:
        booking = await service.reject_booking(booking_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return BookingResponse.model_validate(booking)
