import pytest
from sqlalchemy import update

from loadboard.core.exceptions import ConflictError, NotFoundError
from loadboard.models.booking import Booking, BookingStatus
from loadboard.models.load import LoadStatus
from loadboard.schemas.booking import BookingUpdate
from loadboard.services import rules
from loadboard.services.booking import BookingService
from tests.factories import booking_payload, place_booking, post_load


async def test_create_booking_is_pending_and_leaves_load_posted(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")

    assert booking.status == BookingStatus.PENDING
    assert booking.requested_at is not None
    assert booking.load_id == load.id
    assert (await load_service.get_load(load.id)).status == LoadStatus.POSTED


async def test_accept_books_the_load(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")

    accepted = await booking_service.accept_booking(booking.id)

    assert accepted.status == BookingStatus.ACCEPTED
    assert (await load_service.get_load(load.id)).status == LoadStatus.BOOKED


async def test_booked_load_refuses_new_bookings(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.accept_booking(booking.id)

    with pytest.raises(ConflictError, match="not available"):
        await place_booking(booking_service, load.id, "T2")


async def test_cancelled_load_refuses_new_bookings(load_service, booking_service):
    load = await post_load(load_service)
    await load_service.cancel_load(load.id)

    with pytest.raises(ConflictError):
        await place_booking(booking_service, load.id, "T1")


async def test_create_booking_for_missing_load(booking_service):
    with pytest.raises(NotFoundError, match="Load not found"):
        await place_booking(booking_service, "missing-load", "T1")


async def test_accept_rejects_every_competing_pending_booking(load_service, booking_service):
    load = await post_load(load_service)
    bookings = [await place_booking(booking_service, load.id, f"T{i}") for i in range(4)]

    await booking_service.accept_booking(bookings[1].id)

    statuses = {b.id: b.status for b in await booking_service.list_by_load(load.id)}
    assert statuses[bookings[1].id] == BookingStatus.ACCEPTED
    for other in (bookings[0], bookings[2], bookings[3]):
        assert statuses[other.id] == BookingStatus.REJECTED
    assert (await load_service.get_load(load.id)).status == LoadStatus.BOOKED

    active = await booking_service.list_active_by_load(load.id)
    assert [b.id for b in active] == [bookings[1].id]


async def test_second_accept_on_same_load_conflicts(load_service, booking_service):
    load = await post_load(load_service)
    first = await place_booking(booking_service, load.id, "T1")
    second = await place_booking(booking_service, load.id, "T2")

    await booking_service.accept_booking(first.id)

    # The sibling was auto-rejected, so the pending check fails first.
    with pytest.raises(ConflictError, match="Only pending bookings can be accepted"):
        await booking_service.accept_booking(second.id)


async def test_accept_when_load_booked_elsewhere_conflicts(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await load_service.mark_booked(load.id)

    with pytest.raises(ConflictError, match="no longer available"):
        await booking_service.accept_booking(booking.id)
    assert (await booking_service.get_booking(booking.id)).status == BookingStatus.PENDING


async def test_accept_missing_booking(booking_service):
    with pytest.raises(NotFoundError, match="Booking not found with id: missing"):
        await booking_service.accept_booking("missing")


async def test_delete_accepted_booking_reverts_load_to_posted(load_service, booking_service):
    load = await post_load(load_service)
    b3 = await place_booking(booking_service, load.id, "T1")
    b4 = await place_booking(booking_service, load.id, "T2")
    await booking_service.accept_booking(b3.id)

    await booking_service.delete_booking(b3.id)

    assert (await load_service.get_load(load.id)).status == LoadStatus.POSTED
    assert (await booking_service.get_booking(b4.id)).status == BookingStatus.REJECTED
    with pytest.raises(NotFoundError):
        await booking_service.get_booking(b3.id)


async def test_delete_pending_booking_keeps_load_posted(load_service, booking_service):
    load = await post_load(load_service)
    b1 = await place_booking(booking_service, load.id, "T1")
    await place_booking(booking_service, load.id, "T2")

    await booking_service.delete_booking(b1.id)

    assert (await load_service.get_load(load.id)).status == LoadStatus.POSTED
    assert len(await booking_service.list_active_by_load(load.id)) == 1


async def test_delete_missing_booking(booking_service):
    with pytest.raises(NotFoundError):
        await booking_service.delete_booking("missing")


async def test_reject_pending_booking(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")

    rejected = await booking_service.reject_booking(booking.id)

    assert rejected.status == BookingStatus.REJECTED
    assert (await load_service.get_load(load.id)).status == LoadStatus.POSTED


async def test_reject_accepted_booking_conflicts(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.accept_booking(booking.id)

    with pytest.raises(ConflictError, match="Only pending bookings can be rejected"):
        await booking_service.reject_booking(booking.id)


async def test_same_transporter_cannot_book_twice(load_service, booking_service):
    load = await post_load(load_service)
    await place_booking(booking_service, load.id, "T1")

    with pytest.raises(ConflictError, match="already booked"):
        await place_booking(booking_service, load.id, "T1")

    other = await place_booking(booking_service, load.id, "T2")
    assert other.status == BookingStatus.PENDING


async def test_rejected_transporter_cannot_rebook(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.reject_booking(booking.id)

    with pytest.raises(ConflictError, match="already booked"):
        await place_booking(booking_service, load.id, "T1")


async def test_same_transporter_on_different_loads(load_service, booking_service):
    first = await post_load(load_service)
    second = await post_load(load_service)

    await place_booking(booking_service, first.id, "T1")
    booking = await place_booking(booking_service, second.id, "T1")
    assert booking.load_id == second.id


async def test_update_booking_fields(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    requested_at = booking.requested_at

    payload = BookingUpdate.model_validate(booking_payload(load.id, "T9", proposedRate=51000.0, comment="Revised"))
    updated = await booking_service.update_booking(booking.id, payload)

    assert updated.transporter_id == "T9"
    assert updated.proposed_rate == 51000.0
    assert updated.comment == "Revised"
    assert updated.status == BookingStatus.PENDING
    assert updated.load_id == load.id
    assert updated.requested_at == requested_at


async def test_update_accepted_booking_is_allowed(load_service, booking_service):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.accept_booking(booking.id)

    payload = BookingUpdate.model_validate(booking_payload(load.id, "T1", proposedRate=1.0))
    updated = await booking_service.update_booking(booking.id, payload)
    assert updated.status == BookingStatus.ACCEPTED
    assert updated.proposed_rate == 1.0


@pytest.mark.parametrize("rate, comment", [(1.0, None), (99999.0, "please reconsider")])
async def test_update_rejected_booking_conflicts(load_service, booking_service, rate, comment):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.reject_booking(booking.id)

    payload = BookingUpdate.model_validate(booking_payload(load.id, "T1", proposedRate=rate, comment=comment))
    with pytest.raises(ConflictError, match="rejected"):
        await booking_service.update_booking(booking.id, payload)


async def test_update_missing_booking(booking_service):
    payload = BookingUpdate.model_validate(booking_payload("any", "T1"))
    with pytest.raises(NotFoundError):
        await booking_service.update_booking("missing", payload)


async def test_list_bookings_filters_and_pages(load_service, booking_service):
    first = await post_load(load_service)
    second = await post_load(load_service)
    for i in range(3):
        await place_booking(booking_service, first.id, f"T{i}")
    lone = await place_booking(booking_service, second.id, "T0")
    await booking_service.reject_booking(lone.id)

    bookings, total = await booking_service.list_bookings(load_id=first.id, page=0, size=2)
    assert total == 3
    assert len(bookings) == 2

    bookings, total = await booking_service.list_bookings(transporter_id="T0")
    assert total == 2

    bookings, total = await booking_service.list_bookings(status=BookingStatus.REJECTED)
    assert total == 1
    assert bookings[0].id == lone.id


async def test_listing_unknown_load_is_empty(booking_service):
    assert await booking_service.list_by_load("missing") == []
    assert await booking_service.list_active_by_load("missing") == []


async def test_duplicate_insert_past_the_existence_check_conflicts(load_service, booking_service, monkeypatch):
    load = await post_load(load_service)
    await place_booking(booking_service, load.id, "T1")

    # Another request inserted the same pair between our check and our commit.
    async def not_seen_yet(self, load_id, transporter_id):
        return False

    monkeypatch.setattr(BookingService, "_exists_for_transporter", not_seen_yet)
    with pytest.raises(ConflictError, match="already booked"):
        await place_booking(booking_service, load.id, "T1")

    bookings = await booking_service.list_by_load(load.id)
    assert [b.transporter_id for b in bookings] == ["T1"]


async def test_update_to_transporter_already_on_load_conflicts(load_service, booking_service):
    load = await post_load(load_service)
    await place_booking(booking_service, load.id, "T1")
    second = await place_booking(booking_service, load.id, "T2")

    payload = BookingUpdate.model_validate(booking_payload(load.id, "T1", proposedRate=1.0))
    with pytest.raises(ConflictError, match="already booked"):
        await booking_service.update_booking(second.id, payload)

    unchanged = await booking_service.get_booking(second.id)
    assert unchanged.transporter_id == "T2"
    assert unchanged.proposed_rate == 45000.0


async def test_update_rejected_after_read_conflicts(load_service, booking_service, db):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await db.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(status=BookingStatus.REJECTED)
        .execution_options(synchronize_session=False)
    )

    payload = BookingUpdate.model_validate(booking_payload(load.id, "T1", comment="edited"))
    with pytest.raises(ConflictError, match="Cannot update a rejected booking"):
        await booking_service.update_booking(booking.id, payload)

    assert (await booking_service.get_booking(booking.id)).comment == "Can pick up same day"


async def test_update_write_rechecks_rejected_status(load_service, booking_service, monkeypatch):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.reject_booking(booking.id)

    # Let the read-time guard pass, as it would for a read taken before the rejection.
    monkeypatch.setattr(rules, "ensure_booking_editable", lambda status: None)
    payload = BookingUpdate.model_validate(booking_payload(load.id, "T1", comment="edited"))
    with pytest.raises(ConflictError, match="Cannot update a rejected booking"):
        await booking_service.update_booking(booking.id, payload)

    assert (await booking_service.get_booking(booking.id)).comment == "Can pick up same day"


@pytest.mark.parametrize("action", ["accept_booking", "reject_booking"])
async def test_status_write_rechecks_pending(load_service, booking_service, monkeypatch, action):
    load = await post_load(load_service)
    booking = await place_booking(booking_service, load.id, "T1")
    await booking_service.reject_booking(booking.id)

    monkeypatch.setattr(rules, "ensure_pending", lambda status, action: None)
    with pytest.raises(ConflictError, match="Only pending bookings"):
        await getattr(booking_service, action)(booking.id)

    assert (await booking_service.get_booking(booking.id)).status == BookingStatus.REJECTED
    assert (await load_service.get_load(load.id)).status == LoadStatus.POSTED
