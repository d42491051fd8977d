from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user_id, get_session
from ..infrastructure.repositories import SqlAlchemySlotRepository
from ..schemas import ExamRead, ExamTypeRead, SiteRead, SlotAvailability
from ..usecases import availability as availability_usecase
from ..utils.time import clinic_today

router = APIRouter(prefix="/availability", tags=["availability"], dependencies=[Depends(get_current_user_id)])


@router.get("/dates", response_model=List[date])
async def list_dates(session: AsyncSession = Depends(get_session)) -> list[date]:
    slot_repo = SqlAlchemySlotRepository(session)
    return await availability_usecase.list_available_dates(slot_repo, from_date=clinic_today())


@router.get("/sites", response_model=List[SiteRead])
async def list_sites(
    on_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[SiteRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    sites = await availability_usecase.list_available_sites(slot_repo, on_date=on_date)
    return [SiteRead.model_validate(site) for site in sites]


@router.get("/exam-types", response_model=List[ExamTypeRead])
async def list_exam_types(
    on_date: date = Query(..., alias="date"),
    site_id: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[ExamTypeRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    exam_types = await availability_usecase.list_available_exam_types(slot_repo, on_date=on_date, site_id=site_id)
    return [ExamTypeRead.model_validate(exam_type) for exam_type in exam_types]


@router.get("/exams", response_model=List[ExamRead])
async def list_exams(
    on_date: date = Query(..., alias="date"),
    site_id: int = Query(..., ge=1),
    exam_type_id: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[ExamRead]:
    slot_repo = SqlAlchemySlotRepository(session)
    exams = await availability_usecase.list_available_exams(
        slot_repo,
        on_date=on_date,
        site_id=site_id,
        exam_type_id=exam_type_id,
    )
    return [ExamRead.model_validate(exam) for exam in exams]


@router.get("/slots", response_model=List[SlotAvailability])
async def list_slots(
    on_date: date = Query(..., alias="date"),
    site_id: int = Query(..., ge=1),
    exam_id: int = Query(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[SlotAvailability]:
    slot_repo = SqlAlchemySlotRepository(session)
    slots = await availability_usecase.list_available_slots(
        slot_repo,
        on_date=on_date,
        site_id=site_id,
        exam_id=exam_id,
    )
    return [SlotAvailability.from_db(slot=slot) for slot in slots]
