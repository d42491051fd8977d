from __future__ import annotations

from datetime import date, datetime, time
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String, Text, Time


# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class ReservationStatus(StrEnum):
    PENDING = "pending"
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Site(Base):
    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    slots: Mapped[list["Slot"]] = relationship(back_populates="site")


class ExamType(Base):
    __tablename__ = "exam_types"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    exams: Mapped[list["Exam"]] = relationship(back_populates="exam_type")


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (Index("idx_exams_type", "exam_type_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    exam_type_id: Mapped[int] = mapped_column(ForeignKey("exam_types.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preparation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    exam_type: Mapped["ExamType"] = relationship(back_populates="exams")
    slots: Mapped[list["Slot"]] = relationship(back_populates="exam")


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_slots_time"),
        CheckConstraint("total_capacity >= 0", name="chk_slots_total"),
        CheckConstraint(
            "used_capacity >= 0 AND used_capacity <= total_capacity",
            name="chk_slots_used",
        ),
        UniqueConstraint("site_id", "exam_id", "date", "start_time", name="uq_slots_key"),
        Index("idx_slots_date", "date"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    site_id: Mapped[int] = mapped_column(ForeignKey("sites.id"), nullable=False)
    exam_id: Mapped[int] = mapped_column(ForeignKey("exams.id"), nullable=False)
    slot_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    total_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    used_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    site: Mapped["Site"] = relationship(back_populates="slots")
    exam: Mapped["Exam"] = relationship(back_populates="slots")
    reservations: Mapped[list["Reservation"]] = relationship(back_populates="slot")

    @property
    def remaining_capacity(self) -> int:
        return self.total_capacity - self.used_capacity

    @property
    def has_capacity(self) -> bool:
        return self.used_capacity < self.total_capacity

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.slot_date, self.start_time)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("idx_res_slot", "slot_id"),
        Index("idx_res_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    slot_id: Mapped[int] = mapped_column(ForeignKey("slots.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(
            ReservationStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=ReservationStatus.BOOKED,
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    slot: Mapped["Slot"] = relationship(back_populates="reservations")

    # Navigation through the slot; never stored on the reservation row. Needs `slot`,
    # `slot.site` and `slot.exam` loaded up front (see the reservation repository),
    # since an AsyncSession cannot lazy-load on attribute access.
    @property
    def site(self) -> Optional[Site]:
        return self.slot.site if self.slot is not None else None

    @property
    def exam(self) -> Optional[Exam]:
        return self.slot.exam if self.slot is not None else None
