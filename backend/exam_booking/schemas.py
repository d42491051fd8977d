from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .models import Reservation, ReservationStatus, Slot
from .utils.time import clinic_naive_to_aware


class SiteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None


class ExamTypeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None


class ExamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    exam_type_id: int
    name: str
    description: Optional[str] = None
    preparation: Optional[str] = None


class SlotAvailability(BaseModel):
    slot_id: int
    site_id: int
    exam_id: int
    slot_date: date
    start_time: time
    end_time: time
    total_capacity: int
    remaining: int

    @classmethod
    def from_db(cls, *, slot: Slot) -> "SlotAvailability":
        return cls(
            slot_id=slot.id,
            site_id=slot.site_id,
            exam_id=slot.exam_id,
            slot_date=slot.slot_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            total_capacity=slot.total_capacity,
            remaining=slot.remaining_capacity,
        )


class ReservationCreate(BaseModel):
    site_id: int = Field(ge=1)
    exam_id: int = Field(ge=1)
    scheduled_at: datetime


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=255)


class ReservationRead(BaseModel):
    reservation_id: int
    slot_id: int
    user_id: int
    site_id: int
    exam_id: int
    status: ReservationStatus
    scheduled_at: datetime
    cancellation_reason: Optional[str] = None

    @field_serializer("scheduled_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation, slot: Slot) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            slot_id=reservation.slot_id,
            user_id=reservation.user_id,
            site_id=slot.site_id,
            exam_id=slot.exam_id,
            status=reservation.status,
            scheduled_at=clinic_naive_to_aware(reservation.scheduled_at),
            cancellation_reason=reservation.cancellation_reason,
        )
