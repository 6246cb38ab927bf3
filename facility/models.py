"""SQLAlchemy models shared across all services."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum as SqlEnum, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class RoleEnum(str, Enum):
    STUDENT = "student"
    DEPARTMENT_ADMIN = "department_admin"
    SUPER_ADMIN = "super_admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class EquipmentCondition(str, Enum):
    GOOD = "good"
    BROKEN = "broken"
    UNDER_MAINTENANCE = "under_maintenance"


class LendingStatus(str, Enum):
    BORROW = "borrow"
    RETURNED = "returned"


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    code: Mapped[str] = mapped_column(String(20), unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, default=None)

    rooms: Mapped[List["Room"]] = relationship(back_populates="department")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(100))
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    identity_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), default=RoleEnum.STUDENT)
    department_id: Mapped[Optional[int]] = mapped_column(ForeignKey("departments.id", ondelete="SET NULL"), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    bookings: Mapped[List["Booking"]] = relationship(back_populates="user")
    lendings: Mapped[List["LendingTool"]] = relationship(back_populates="user")


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    code: Mapped[str] = mapped_column(String(30), unique=True)
    capacity: Mapped[int] = mapped_column(Integer, index=True)
    department_id: Mapped[Optional[int]] = mapped_column(ForeignKey("departments.id", ondelete="SET NULL"), default=None)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    department: Mapped[Optional[Department]] = relationship(back_populates="rooms")
    bookings: Mapped[List["Booking"]] = relationship(back_populates="room", cascade="all, delete-orphan")
    exams: Mapped[List["ExamSchedule"]] = relationship(back_populates="room")
    sessions: Mapped[List["SessionSchedule"]] = relationship(back_populates="room")


class LectureSchedule(Base):
    """Recurring lecture; the room is free text typed by whoever imported the timetable."""

    __tablename__ = "lecture_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    day: Mapped[str] = mapped_column(String(20), index=True)
    start_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    end_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    course_name: Mapped[Optional[str]] = mapped_column(String(200), default=None)
    course_code: Mapped[Optional[str]] = mapped_column(String(30), default=None)
    lecturer: Mapped[Optional[str]] = mapped_column(String(100), default=None)
    class_name: Mapped[Optional[str]] = mapped_column(String(20), default=None)


class ExamSchedule(Base):
    __tablename__ = "exam_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), default=None)
    scheduled_on: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    end_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    course_name: Mapped[str] = mapped_column(String(200))
    is_take_home: Mapped[bool] = mapped_column(Boolean, default=False)

    room: Mapped[Optional[Room]] = relationship(back_populates="exams")


class SessionSchedule(Base):
    """One-off thesis defense or seminar session."""

    __tablename__ = "session_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), default=None)
    scheduled_on: Mapped[date] = mapped_column(Date, index=True)
    start_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    end_time: Mapped[Optional[str]] = mapped_column(String(8), default=None)
    title: Mapped[str] = mapped_column(String(200))

    room: Mapped[Optional[Room]] = relationship(back_populates="sessions")


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    purpose: Mapped[str] = mapped_column(String(255))
    status: Mapped[BookingStatus] = mapped_column(SqlEnum(BookingStatus), default=BookingStatus.PENDING, index=True)
    equipment_requested: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped[User] = relationship(back_populates="bookings")
    room: Mapped[Room] = relationship(back_populates="bookings")


class Equipment(Base):
    __tablename__ = "equipment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    code: Mapped[str] = mapped_column(String(30), unique=True)
    category: Mapped[str] = mapped_column(String(50), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit: Mapped[str] = mapped_column(String(20), default="pcs")
    condition: Mapped[EquipmentCondition] = mapped_column(SqlEnum(EquipmentCondition), default=EquipmentCondition.GOOD)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    room_id: Mapped[Optional[int]] = mapped_column(ForeignKey("rooms.id", ondelete="SET NULL"), default=None)

    room: Mapped[Optional[Room]] = relationship()


class LendingTool(Base):
    """Direct lending transaction; ``equipment_ids`` and ``quantities`` are parallel arrays."""

    __tablename__ = "lending_tool"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    equipment_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    quantities: Mapped[list[int]] = mapped_column(JSON, default=list)
    borrowed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    status: Mapped[LendingStatus] = mapped_column(SqlEnum(LendingStatus), default=LendingStatus.BORROW)

    user: Mapped[Optional[User]] = relationship(back_populates="lendings")
    checkouts: Mapped[List["Checkout"]] = relationship(back_populates="lending", cascade="all, delete-orphan")


class Checkout(Base):
    __tablename__ = "checkouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    lending_id: Mapped[int] = mapped_column(ForeignKey("lending_tool.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(30), default="returned")
    notes: Mapped[Optional[str]] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    lending: Mapped[LendingTool] = relationship(back_populates="checkouts")
    items: Mapped[List["CheckoutItem"]] = relationship(back_populates="checkout", cascade="all, delete-orphan")


class CheckoutItem(Base):
    __tablename__ = "checkout_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    checkout_id: Mapped[int] = mapped_column(ForeignKey("checkouts.id", ondelete="CASCADE"), index=True)
    equipment_id: Mapped[int] = mapped_column(ForeignKey("equipment.id", ondelete="CASCADE"), index=True)
    returned_quantity: Mapped[int] = mapped_column(Integer, default=0)

    checkout: Mapped[Checkout] = relationship(back_populates="items")
