from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from loadboard.core.config import get_settings
from loadboard.core.db import get_db
from loadboard.core.exceptions import ConflictError, NotFoundError
from loadboard.models.load import LoadStatus
from loadboard.schemas.common import Page
from loadboard.schemas.load import LoadCreate, LoadResponse, LoadUpdate
from loadboard.services.load import LoadService

router = APIRouter()
settings = get_settings()


async def _service(db: AsyncSession = Depends(get_db)) -> LoadService:
    return LoadService(db)


@router.post("", response_model=LoadResponse, status_code=status.HTTP_201_CREATED)
async def create_load(payload: LoadCreate, service: LoadService = Depends(_service)) -> LoadResponse:
    load = await service.create_load(payload)
    return LoadResponse.model_validate(load)


@router.get("", response_model=Page[LoadResponse])
async def list_loads(
    shipper_id: Optional[str] = Query(None, alias="shipperId"),
    truck_type: Optional[str] = Query(None, alias="truckType"),
    status_filter: Optional[LoadStatus] = Query(None, alias="status"),
    page: int = Query(0, ge=0),
    size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    service: LoadService = Depends(_service),
) -> Page[LoadResponse]:
    loads, total = await service.list_loads(shipper_id, truck_type, status_filter, page, size)
    return Page[LoadResponse].build(
        [LoadResponse.model_validate(load) for load in loads], page, size, total
    )


@router.get("/{load_id}", response_model=LoadResponse)
async def get_load(load_id: str, service: LoadService = Depends(_service)) -> LoadResponse:
    try:
        load = await service.get_load(load_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return LoadResponse.model_validate(load)


@router.put("/{load_id}", response_model=LoadResponse)
async def update_load(
    load_id: str,
    payload: LoadUpdate,
    service: LoadService = Depends(_service),
) -> LoadResponse:
    try:
        load = await service.update_load(load_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return LoadResponse.model_validate(load)


@router.delete("/{load_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_load(load_id: str, service: LoadService = Depends(_service)) -> Response:
    try:
        await service.delete_load(load_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{load_id}/cancel", response_model=LoadResponse)
async def cancel_load(load_id: str, service: LoadService = Depends(_service)) -> LoadResponse:
    """Withdraw a load from the board. Cancelled loads take no bookings and cannot be edited."""
    try:
        load = await service.cancel_load(load_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return LoadResponse.model_validate(load)
