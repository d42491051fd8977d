import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..domain.errors import (
    CapacityInvariantError,
    DomainError,
    InvalidReservationStateError,
    NoCapacityError,
    NotFoundError,
    NotReservationOwnerError,
    ResourceBusyError,
)
from ..domain.services import SlotKey
from ..infrastructure.repositories import (
    SqlAlchemyReservationRepository,
    SqlAlchemySlotRepository,
    SqlAlchemyUserRepository,
)
from ..models import Reservation, ReservationStatus, Slot
from ..schemas import ReservationCancel, ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from ..utils.time import to_clinic_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])

BUSY_RETRY_AFTER_SECONDS = "1"


def _to_http_exception(exc: DomainError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, NotReservationOwnerError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not your reservation")
    if isinstance(exc, NoCapacityError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="no slots left")
    if isinstance(exc, InvalidReservationStateError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ResourceBusyError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="slot is busy, retry",
            headers={"Retry-After": BUSY_RETRY_AFTER_SECONDS},
        )
    if isinstance(exc, CapacityInvariantError):
        logger.error("capacity invariant violated: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


def _audit(
    action: AuditAction,
    *,
    reservation: Reservation,
    slot: Slot,
    status_from: ReservationStatus | None,
) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="user",
            reservation_id=reservation.id,
            user_id=reservation.user_id,
            slot_id=slot.id,
            site_id=slot.site_id,
            exam_id=slot.exam_id,
            status_from=status_from,
            status_to=reservation.status,
            used_capacity=slot.used_capacity,
            total_capacity=slot.total_capacity,
            reason=reservation.cancellation_reason,
        )
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    if payload.scheduled_at.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="scheduled_at must have timezone")
    slot_key = SlotKey.from_datetime(
        site_id=payload.site_id,
        exam_id=payload.exam_id,
        scheduled_at=to_clinic_naive(payload.scheduled_at),
    )
    user_repo = SqlAlchemyUserRepository(session)
    slot_repo = SqlAlchemySlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            reservation, slot = await reservation_usecase.book_exam(
                user_repo,
                slot_repo,
                res_repo,
                user_id=user_id,
                slot_key=slot_key,
            )
        except DomainError as exc:
            raise _to_http_exception(exc) from exc

    _audit("reservation.booked", reservation=reservation, slot=slot, status_from=None)
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id)
    return [ReservationRead.from_db(reservation=res, slot=slot) for res, slot in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    row = await reservation_usecase.get_user_reservation(res_repo, reservation_id=reservation_id, user_id=user_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    reservation, slot = row
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationCancel] = None,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    slot_repo = SqlAlchemySlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            updated, slot, status_from = await reservation_usecase.cancel_reservation(
                slot_repo,
                res_repo,
                reservation_id=reservation_id,
                user_id=user_id,
                reason=payload.reason if payload is not None else None,
            )
        except DomainError as exc:
            raise _to_http_exception(exc) from exc

    _audit("reservation.cancelled", reservation=updated, slot=slot, status_from=status_from)
    return ReservationRead.from_db(reservation=updated, slot=slot)
