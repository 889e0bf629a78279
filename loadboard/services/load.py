from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from loadboard.core.exceptions import ConflictError, NotFoundError
from loadboard.models.booking import Booking
from loadboard.models.load import Facility, Load, LoadStatus
from loadboard.schemas.load import LoadCreate, LoadUpdate
from loadboard.services import rules

logger = logging.getLogger(__name__)


class LoadService:
    """Owns load status.

    Status only changes through ``mark_booked``, ``mark_cancelled`` and
    ``reconcile_after_booking_removed``; the update path never touches it.
    Transition helpers flush but do not commit, so BookingService can fold
    them into its own unit of work. Public operations commit once at the end.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get(self, load_id: str, *, lock: bool = False) -> Load:
        query = select(Load).where(Load.id == load_id)
        if lock:
            # Serializes accept/create on the same load (row lock on Postgres).
            query = query.with_for_update()
        result = await self.db.execute(query)
        load = result.scalar_one_or_none()
        if not load:
            raise NotFoundError("Load", "id", load_id)
        return load

    async def has_active_bookings(self, load_id: str) -> bool:
        result = await self.db.execute(select(Booking.status).where(Booking.load_id == load_id))
        return rules.has_active_bookings(result.scalars().all())

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_load(self, payload: LoadCreate) -> Load:
        load = Load(
            id=str(uuid.uuid4()),
            status=LoadStatus.POSTED,
        )
        self._apply(load, payload)
        self.db.add(load)
        await self.db.commit()
        await self.db.refresh(load)
        logger.info(f"[LoadService.create_load] Posted load {load.id} for shipper {load.shipper_id}")
        return load

    async def list_loads(
        self,
        shipper_id: Optional[str] = None,
        truck_type: Optional[str] = None,
        status: Optional[LoadStatus] = None,
        page: int = 0,
        size: int = 10,
    ) -> Tuple[List[Load], int]:
        """Return one page of loads plus the total number of matches."""
        filters = []
        if shipper_id:
            filters.append(Load.shipper_id == shipper_id)
        if truck_type:
            filters.append(Load.truck_type == truck_type)
        if status:
            filters.append(Load.status == status)

        total_result = await self.db.execute(select(func.count(Load.id)).where(*filters))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Load)
            .where(*filters)
            .order_by(Load.date_posted.desc(), Load.id)
            .offset(page * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def get_load(self, load_id: str) -> Load:
        return await self._get(load_id)

    async def update_load(self, load_id: str, payload: LoadUpdate) -> Load:
        load = await self._get(load_id)
        rules.ensure_load_editable(load.status)
        self._apply(load, payload)
        await self.db.commit()
        await self.db.refresh(load)
        return load

    async def delete_load(self, load_id: str) -> None:
        load = await self._get(load_id, lock=True)
        rules.ensure_load_deletable(await self.has_active_bookings(load_id))

        # Remaining bookings are all REJECTED; drop them with the load.
        removed = await self.db.execute(delete(Booking).where(Booking.load_id == load_id))
        await self.db.delete(load)
        await self.db.commit()
        logger.info(
            f"[LoadService.delete_load] Deleted load {load_id} and {removed.rowcount} inactive booking(s)"
        )

    async def cancel_load(self, load_id: str) -> Load:
        load = await self.mark_cancelled(load_id)
        await self.db.commit()
        await self.db.refresh(load)
        return load

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def can_accept_bookings(self, load_id: str, *, lock: bool = False) -> bool:
        load = await self._get(load_id, lock=lock)
        return rules.load_accepts_bookings(load.status)

    async def mark_booked(self, load_id: str) -> Load:
        """POSTED -> BOOKED as a single conditional write.

        The status guard lives in the UPDATE itself, so of two transactions that
        both saw the load open only the first one to write gets a row back.
        """
        result = await self.db.execute(
            update(Load)
            .where(Load.id == load_id, Load.status == LoadStatus.POSTED)
            .values(status=LoadStatus.BOOKED)
            .execution_options(synchronize_session=False)
        )
        load = await self._get(load_id)
        if result.rowcount == 0:
            raise ConflictError("Load is no longer available for booking")
        await self.db.refresh(load)
        return load

    async def mark_cancelled(self, load_id: str) -> Load:
        load = await self._get(load_id)
        load.status = LoadStatus.CANCELLED
        await self.db.flush()
        logger.info(f"[LoadService.mark_cancelled] Load {load_id} cancelled")
        return load

    async def reconcile_after_booking_removed(self, load_id: str) -> Load:
        """Put the load back to POSTED once no PENDING or ACCEPTED booking is left."""
        load = await self._get(load_id)
        new_status = rules.status_after_booking_removed(
            load.status, await self.has_active_bookings(load_id)
        )
        if new_status != load.status:
            logger.info(
                f"[LoadService.reconcile_after_booking_removed] Load {load_id} "
                f"{load.status.value} -> {new_status.value}"
            )
            load.status = new_status
            await self.db.flush()
        return load

    @staticmethod
    def _apply(load: Load, payload: LoadCreate) -> None:
        load.shipper_id = payload.shipper_id
        load.facility = Facility(
            loading_point=payload.facility.loading_point,
            unloading_point=payload.facility.unloading_point,
            loading_date=payload.facility.loading_date,
            unloading_date=payload.facility.unloading_date,
        )
        load.product_type = payload.product_type
        load.truck_type = payload.truck_type
        load.no_of_trucks = payload.no_of_trucks
        load.weight = payload.weight
        load.comment = payload.comment
