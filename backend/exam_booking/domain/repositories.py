from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from ..models import Exam, ExamType, Reservation, ReservationStatus, Site, Slot
from .services import SlotKey


class UserRepository(Protocol):
    async def exists(self, user_id: int) -> bool: ...


class SlotRepository(Protocol):
    async def get_for_update_by_key(self, key: SlotKey) -> Slot | None: ...

    async def get_for_update(self, slot_id: int) -> Slot | None: ...

    async def save(self, slot: Slot) -> Slot: ...

    async def list_available_dates(self, from_date: date) -> list[date]: ...

    async def list_available_sites(self, on_date: date) -> list[Site]: ...

    async def list_available_exam_types(self, on_date: date, site_id: int) -> list[ExamType]: ...

    async def list_available_exams(self, on_date: date, site_id: int, exam_type_id: int) -> list[Exam]: ...

    async def list_available_slots(self, on_date: date, site_id: int, exam_id: int) -> list[Slot]: ...


class ReservationRepository(Protocol):
    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def create(
        self,
        *,
        slot_id: int,
        user_id: int,
        scheduled_at: datetime,
        status: ReservationStatus,
    ) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def list_by_user(self, user_id: int) -> list[tuple[Reservation, Slot]]: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> tuple[Reservation, Slot] | None: ...
