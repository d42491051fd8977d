from datetime import date, time
from typing import List

import pytest
from exam_booking.models import Exam, ExamType, Site, Slot
from exam_booking.usecases import availability as uc

DAY = date(2030, 1, 15)


def _slot(slot_id: int, *, total: int, used: int) -> Slot:
    return Slot(
        id=slot_id,
        site_id=1,
        exam_id=3,
        slot_date=DAY,
        start_time=time(8 + slot_id, 0),
        end_time=time(8 + slot_id, 30),
        total_capacity=total,
        used_capacity=used,
    )


class FakeSlotRepo:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    async def list_available_dates(self, from_date: date) -> List[date]:
        self.calls.append(("dates", from_date))
        return [DAY]

    async def list_available_sites(self, on_date: date) -> List[Site]:
        self.calls.append(("sites", on_date))
        return [Site(id=1, name="Norte")]

    async def list_available_exam_types(self, on_date: date, site_id: int) -> List[ExamType]:
        self.calls.append(("exam_types", on_date, site_id))
        return [ExamType(id=2, name="Laboratorio")]

    async def list_available_exams(self, on_date: date, site_id: int, exam_type_id: int) -> List[Exam]:
        self.calls.append(("exams", on_date, site_id, exam_type_id))
        return [Exam(id=3, exam_type_id=exam_type_id, name="Hemograma")]

    async def list_available_slots(self, on_date: date, site_id: int, exam_id: int) -> List[Slot]:
        self.calls.append(("slots", on_date, site_id, exam_id))
        return [_slot(2, total=4, used=1)]


@pytest.mark.asyncio
async def test_drill_down_forwards_filters() -> None:
    repo = FakeSlotRepo()
    assert await uc.list_available_dates(repo, from_date=DAY) == [DAY]
    sites = await uc.list_available_sites(repo, on_date=DAY)
    exam_types = await uc.list_available_exam_types(repo, on_date=DAY, site_id=1)
    exams = await uc.list_available_exams(repo, on_date=DAY, site_id=1, exam_type_id=2)

    assert [s.name for s in sites] == ["Norte"]
    assert [t.name for t in exam_types] == ["Laboratorio"]
    assert [e.name for e in exams] == ["Hemograma"]
    assert repo.calls == [
        ("dates", DAY),
        ("sites", DAY),
        ("exam_types", DAY, 1),
        ("exams", DAY, 1, 2),
    ]


@pytest.mark.asyncio
async def test_list_available_slots_returns_repository_rows() -> None:
    repo = FakeSlotRepo()
    slots = await uc.list_available_slots(repo, on_date=DAY, site_id=1, exam_id=3)
    assert [s.id for s in slots] == [2]
    assert slots[0].remaining_capacity == 3
    assert repo.calls == [("slots", DAY, 1, 3)]
