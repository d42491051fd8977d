from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, List, Optional, Tuple, TypeVar, cast

from sqlalchemy import Select, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from ..config import get_settings
from ..domain.errors import ResourceBusyError
from ..domain.repositories import ReservationRepository, SlotRepository, UserRepository
from ..domain.services import SlotKey
from ..models import Exam, ExamType, Reservation, ReservationStatus, Site, Slot, User
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)

T = TypeVar("T")

MYSQL_LOCK_WAIT_TIMEOUT = 1205
PG_LOCK_NOT_AVAILABLE = "55P03"


def is_lock_timeout(exc: DBAPIError) -> bool:
    """Return True if the driver error means a row-lock wait gave up."""
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        if getattr(orig, attr, None) == PG_LOCK_NOT_AVAILABLE:
            return True
    args = getattr(orig, "args", ())
    return bool(args) and args[0] == MYSQL_LOCK_WAIT_TIMEOUT


async def _bound_lock_wait(session: AsyncSession) -> None:
    # MySQL/MariaDB get their bound once per pooled connection (database.set_lock_wait_timeout).
    if session.get_bind().dialect.name != "postgresql":
        return
    # SET does not take bind parameters; the setting is a validated int.
    await session.execute(text(f"SET LOCAL lock_timeout = '{get_settings().lock_timeout_seconds}s'"))


async def _scalar_for_update(session: AsyncSession, stmt: Select[Tuple[T]]) -> T | None:
    await _bound_lock_wait(session)
    locked = stmt.with_for_update().execution_options(populate_existing=True)
    try:
        return await session.scalar(locked)
    except DBAPIError as exc:
        if is_lock_timeout(exc):
            logger.warning("row lock wait timed out: %s", exc.orig)
            raise ResourceBusyError("timed out waiting for row lock") from exc
        raise


def _has_capacity() -> Any:
    return Slot.used_capacity < Slot.total_capacity


def _reservation_rows() -> Select[Tuple[Reservation, Slot]]:
    """Reservation + slot rows with `reservation.slot`, its site and its exam already loaded."""
    return (
        select(Reservation, Slot)
        .join(Slot, Reservation.slot_id == Slot.id)
        .options(
            contains_eager(Reservation.slot).selectinload(Slot.site),
            contains_eager(Reservation.slot).selectinload(Slot.exam),
        )
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, user_id: int) -> bool:
        return await self.session.scalar(select(User.id).where(User.id == user_id)) is not None


class SqlAlchemySlotRepository(SlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update_by_key(self, key: SlotKey) -> Slot | None:
        stmt = select(Slot).where(
            Slot.site_id == key.site_id,
            Slot.exam_id == key.exam_id,
            Slot.slot_date == key.slot_date,
            Slot.start_time == key.start_time,
        )
        return await _scalar_for_update(self.session, stmt)

    async def get_for_update(self, slot_id: int) -> Slot | None:
        return await _scalar_for_update(self.session, select(Slot).where(Slot.id == slot_id))

    async def save(self, slot: Slot) -> Slot:
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def list_available_dates(self, from_date: date) -> List[date]:
        stmt = (
            select(Slot.slot_date)
            .where(Slot.slot_date >= from_date, _has_capacity())
            .distinct()
            .order_by(Slot.slot_date)
        )
        return list(await self.session.scalars(stmt))

    async def list_available_sites(self, on_date: date) -> List[Site]:
        open_sites = select(Slot.site_id).where(Slot.slot_date == on_date, _has_capacity())
        stmt = select(Site).where(Site.id.in_(open_sites)).order_by(Site.name)
        return list(await self.session.scalars(stmt))

    async def list_available_exam_types(self, on_date: date, site_id: int) -> List[ExamType]:
        open_types = (
            select(Exam.exam_type_id)
            .join(Slot, Slot.exam_id == Exam.id)
            .where(Slot.slot_date == on_date, Slot.site_id == site_id, _has_capacity())
        )
        stmt = select(ExamType).where(ExamType.id.in_(open_types)).order_by(ExamType.name)
        return list(await self.session.scalars(stmt))

    async def list_available_exams(self, on_date: date, site_id: int, exam_type_id: int) -> List[Exam]:
        open_exams = select(Slot.exam_id).where(Slot.slot_date == on_date, Slot.site_id == site_id, _has_capacity())
        stmt = (
            select(Exam)
            .where(Exam.id.in_(open_exams), Exam.exam_type_id == exam_type_id)
            .order_by(Exam.name)
        )
        return list(await self.session.scalars(stmt))

    async def list_available_slots(self, on_date: date, site_id: int, exam_id: int) -> List[Slot]:
        stmt = (
            select(Slot)
            .where(
                Slot.slot_date == on_date,
                Slot.site_id == site_id,
                Slot.exam_id == exam_id,
                _has_capacity(),
            )
            .order_by(Slot.start_time)
        )
        return list(await self.session.scalars(stmt))


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        return await _scalar_for_update(self.session, select(Reservation).where(Reservation.id == reservation_id))

    async def create(
        self,
        *,
        slot_id: int,
        user_id: int,
        scheduled_at: datetime,
        status: ReservationStatus,
    ) -> Reservation:
        now = utc_now_naive()
        reservation = Reservation(
            slot_id=slot_id,
            user_id=user_id,
            scheduled_at=scheduled_at,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: int) -> List[Tuple[Reservation, Slot]]:
        stmt = (
            _reservation_rows()
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.scheduled_at.desc(), Reservation.id.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Reservation, Slot]], list(rows.all()))

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Tuple[Reservation, Slot]]:
        stmt = _reservation_rows().where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Reservation, Slot]], row)
