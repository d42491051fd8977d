from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().clinic_timezone)


def to_clinic_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to the clinic's wall-clock time, dropping tzinfo."""
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(clinic_tz()).replace(tzinfo=None)


def clinic_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=clinic_tz())


def clinic_today() -> date:
    return datetime.now(timezone.utc).astimezone(clinic_tz()).date()


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
