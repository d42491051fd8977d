from dataclasses import dataclass
from datetime import date, datetime, time

from ..models import ReservationStatus
from .errors import CapacityExceededError, CapacityUnderflowError, InvalidReservationStateError

CANCELLABLE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.BOOKED})


@dataclass(frozen=True)
class SlotKey:
    site_id: int
    exam_id: int
    slot_date: date
    start_time: time

    @classmethod
    def from_datetime(cls, *, site_id: int, exam_id: int, scheduled_at: datetime) -> "SlotKey":
        """Build the key for the slot starting at `scheduled_at` (clinic-local, naive)."""
        return cls(
            site_id=site_id,
            exam_id=exam_id,
            slot_date=scheduled_at.date(),
            start_time=scheduled_at.time().replace(microsecond=0),
        )


@dataclass(frozen=True)
class CapacitySnapshot:
    total: int
    used: int


def used_after_occupy(snapshot: CapacitySnapshot) -> int:
    """
    Pure guard for taking one unit of capacity.
    Returns the new used count, or raises CapacityExceededError when the slot is full.
    """
    if snapshot.used >= snapshot.total:
        raise CapacityExceededError(f"used={snapshot.used} total={snapshot.total}")
    return snapshot.used + 1


def used_after_release(snapshot: CapacitySnapshot) -> int:
    if snapshot.used <= 0:
        raise CapacityUnderflowError(f"used={snapshot.used} total={snapshot.total}")
    return snapshot.used - 1


def ensure_cancellable(status: ReservationStatus) -> None:
    if status not in CANCELLABLE_STATUSES:
        raise InvalidReservationStateError(f"reservation is {status.value}")
