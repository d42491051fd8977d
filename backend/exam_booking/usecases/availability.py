from datetime import date
from typing import List

from ..domain.repositories import SlotRepository
from ..models import Exam, ExamType, Site, Slot

# Read-only drill-down used before booking: date -> site -> exam type -> exam -> start time.
# No row locks; the figures can be stale by the time the user books.


async def list_available_dates(slot_repo: SlotRepository, *, from_date: date) -> List[date]:
    return await slot_repo.list_available_dates(from_date)


async def list_available_sites(slot_repo: SlotRepository, *, on_date: date) -> List[Site]:
    return await slot_repo.list_available_sites(on_date)


async def list_available_exam_types(
    slot_repo: SlotRepository,
    *,
    on_date: date,
    site_id: int,
) -> List[ExamType]:
    return await slot_repo.list_available_exam_types(on_date, site_id)


async def list_available_exams(
    slot_repo: SlotRepository,
    *,
    on_date: date,
    site_id: int,
    exam_type_id: int,
) -> List[Exam]:
    return await slot_repo.list_available_exams(on_date, site_id, exam_type_id)


async def list_available_slots(
    slot_repo: SlotRepository,
    *,
    on_date: date,
    site_id: int,
    exam_id: int,
) -> List[Slot]:
    return await slot_repo.list_available_slots(on_date, site_id, exam_id)
