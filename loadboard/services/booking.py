from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from loadboard.core.exceptions import ConflictError, NotFoundError
from loadboard.models.booking import Booking, BookingStatus
from loadboard.schemas.booking import BookingCreate, BookingUpdate
from loadboard.services import rules
from loadboard.services.load import LoadService

logger = logging.getLogger(__name__)


class BookingService:
    """Owns booking status and drives the matching load transitions.

    Every public mutation is a single unit of work: the booking write and the
    load notification that follows it are committed together.
    """

    def __init__(self, db: AsyncSession, loads: Optional[LoadService] = None) -> None:
        self.db = db
        self.loads = loads or LoadService(db)

    async def _get(self, booking_id: str, *, lock: bool = False) -> Booking:
        query = select(Booking).where(Booking.id == booking_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", "id", booking_id)
        return booking

    async def _load_id_of(self, booking_id: str) -> str:
        result = await self.db.execute(select(Booking.load_id).where(Booking.id == booking_id))
        load_id = result.scalar_one_or_none()
        if load_id is None:
            raise NotFoundError("Booking", "id", booking_id)
        return load_id

    async def _settle(self, booking: Booking, status: BookingStatus, action: str) -> None:
        """Move a PENDING booking to ``status``, re-checking PENDING in the UPDATE itself."""
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Only pending bookings can be {action}")
        await self.db.refresh(booking)

    async def _exists_for_transporter(self, load_id: str, transporter_id: str) -> bool:
        result = await self.db.execute(
            select(func.count(Booking.id)).where(
                Booking.load_id == load_id,
                Booking.transporter_id == transporter_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def create_booking(self, payload: BookingCreate) -> Booking:
        if not await self.loads.can_accept_bookings(payload.load_id, lock=True):
            raise ConflictError("Load is not available for booking")
        rules.ensure_not_duplicate(
            await self._exists_for_transporter(payload.load_id, payload.transporter_id)
        )

        booking = Booking(
            id=str(uuid.uuid4()),
            load_id=payload.load_id,
            transporter_id=payload.transporter_id,
            proposed_rate=payload.proposed_rate,
            comment=payload.comment,
            status=BookingStatus.PENDING,
            requested_at=datetime.utcnow(),
        )
        self.db.add(booking)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            # A concurrent request inserted the same (load, transporter) pair first.
            await self.db.rollback()
            raise ConflictError("Transporter has already booked this load") from exc
        await self.db.refresh(booking)
        logger.info(
            f"[BookingService.create_booking] Booking {booking.id} by {booking.transporter_id} "
            f"on load {booking.load_id}"
        )
        return booking

    async def list_bookings(
        self,
        load_id: Optional[str] = None,
        transporter_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        page: int = 0,
        size: int = 10,
    ) -> Tuple[List[Booking], int]:
        filters = []
        if load_id:
            filters.append(Booking.load_id == load_id)
        if transporter_id:
            filters.append(Booking.transporter_id == transporter_id)
        if status:
            filters.append(Booking.status == status)

        total_result = await self.db.execute(select(func.count(Booking.id)).where(*filters))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Booking)
            .where(*filters)
            .order_by(Booking.requested_at.desc(), Booking.id)
            .offset(page * size)
            .limit(size)
        )
        return list(result.scalars().all()), total

    async def get_booking(self, booking_id: str) -> Booking:
        return await self._get(booking_id)

    async def list_by_load(self, load_id: str) -> List[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.load_id == load_id).order_by(Booking.requested_at)
        )
        return list(result.scalars().all())

    async def list_active_by_load(self, load_id: str) -> List[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.load_id == load_id,
                Booking.status.in_(rules.ACTIVE_BOOKING_STATUSES),
            )
            .order_by(Booking.requested_at)
        )
        return list(result.scalars().all())

    async def update_booking(self, booking_id: str, payload: BookingUpdate) -> Booking:
        booking = await self._get(booking_id, lock=True)
        rules.ensure_booking_editable(booking.status)

        try:
            # A sibling accept may have rejected the booking since it was read.
            result = await self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status != BookingStatus.REJECTED)
                .values(
                    transporter_id=payload.transporter_id,
                    proposed_rate=payload.proposed_rate,
                    comment=payload.comment,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError("Cannot update a rejected booking")
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Transporter has already booked this load") from exc
        await self.db.refresh(booking)
        return booking

    async def delete_booking(self, booking_id: str) -> None:
        booking = await self._get(booking_id)
        load_id = booking.load_id

        await self.db.delete(booking)
        await self.db.flush()
        await self.loads.reconcile_after_booking_removed(load_id)
        await self.db.commit()
        logger.info(f"[BookingService.delete_booking] Deleted booking {booking_id} from load {load_id}")

    async def accept_booking(self, booking_id: str) -> Booking:
        load_id = await self._load_id_of(booking_id)

        # Load row first, then the booking, the same order create and delete lock in.
        load_open = await self.loads.can_accept_bookings(load_id, lock=True)
        booking = await self._get(booking_id, lock=True)
        rules.ensure_pending(booking.status, "accepted")
        if not load_open:
            raise ConflictError("Load is no longer available for booking")

        await self._settle(booking, BookingStatus.ACCEPTED, "accepted")
        await self.loads.mark_booked(load_id)

        siblings = rules.pending_siblings(await self.list_by_load(load_id), booking.id)
        for sibling in siblings:
            sibling.status = BookingStatus.REJECTED

        await self.db.commit()
        await self.db.refresh(booking)
        logger.info(
            f"[BookingService.accept_booking] Accepted booking {booking_id} on load {load_id}, "
            f"auto-rejected {len(siblings)} competing booking(s)"
        )
        return booking

    async def reject_booking(self, booking_id: str) -> Booking:
        booking = await self._get(booking_id, lock=True)
        rules.ensure_pending(booking.status, "rejected")

        await self._settle(booking, BookingStatus.REJECTED, "rejected")
        await self.loads.reconcile_after_booking_removed(booking.load_id)

        await self.db.commit()
        await self.db.refresh(booking)
        logger.info(f"[BookingService.reject_booking] Rejected booking {booking_id}")
        return booking
