from ..domain.errors import NotReservationOwnerError, RequesterNotFoundError, ReservationNotFoundError
from ..domain.repositories import ReservationRepository, SlotRepository, UserRepository
from ..domain.services import SlotKey, ensure_cancellable
from ..models import Reservation, ReservationStatus, Slot
from ..utils.time import utc_now_naive
from .capacity import CapacityController


async def book_exam(
    user_repo: UserRepository,
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    *,
    user_id: int,
    slot_key: SlotKey,
) -> tuple[Reservation, Slot]:
    # Checked before locking so doomed requests never hold the slot row.
    if not await user_repo.exists(user_id):
        raise RequesterNotFoundError("requester not found")

    capacity = CapacityController(slot_repo)
    slot = await capacity.acquire_slot(slot_key)
    slot = await capacity.occupy(slot)

    reservation = await res_repo.create(
        slot_id=slot.id,
        user_id=user_id,
        scheduled_at=slot.starts_at,
        status=ReservationStatus.BOOKED,
    )
    return reservation, slot


async def cancel_reservation(
    slot_repo: SlotRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
    reason: str | None,
) -> tuple[Reservation, Slot, ReservationStatus]:
    """Cancel a reservation owned by `user_id` and give its seat back to the slot.

    Returns the updated reservation, its slot and the status it had before.
    """
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    if reservation.user_id != user_id:
        raise NotReservationOwnerError("reservation belongs to another user")
    previous_status = reservation.status
    ensure_cancellable(previous_status)

    # Keyed by the stored slot id, never re-derived from scheduled_at.
    capacity = CapacityController(slot_repo)
    slot = await capacity.lock_slot(reservation.slot_id)
    slot = await capacity.release(slot)

    reservation.status = ReservationStatus.CANCELLED
    reservation.cancellation_reason = reason
    reservation.updated_at = utc_now_naive()
    updated = await res_repo.save(reservation)
    return updated, slot, previous_status


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
) -> list[tuple[Reservation, Slot]]:
    return await res_repo.list_by_user(user_id)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> tuple[Reservation, Slot] | None:
    return await res_repo.get_for_user(reservation_id, user_id)
