"""Read-only snapshot loaders feeding the availability and reconciliation code."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .availability import END_OF_DAY, ScheduleEntry, ScheduleKind, weekday_index, weekday_name
from .models import (
    Booking,
    BookingStatus,
    Checkout,
    ExamSchedule,
    LectureSchedule,
    LendingTool,
    Room,
    SessionSchedule,
)
from .reconcile import UNKNOWN_BORROWER, BookingSource, BorrowSource, LendingSource, ReturnRecord, parallel_quantities

_CLOCK = "%H:%M:%S"


def load_rooms(db: Session, department_id: Optional[int] = None) -> List[Room]:
    query = select(Room).options(selectinload(Room.department)).order_by(Room.name)
    if department_id is not None:
        query = query.where(Room.department_id == department_id)
    return list(db.execute(query).scalars().all())


def lecture_entries(db: Session, weekday: int) -> List[ScheduleEntry]:
    # Day names are free text (English or Indonesian), so the filter runs here.
    rows = db.execute(select(LectureSchedule)).scalars().all()
    return [
        ScheduleEntry(
            room_name=row.room,
            day=row.day,
            start_time=row.start_time,
            end_time=row.end_time,
            label=row.course_name or row.course_code or "Lecture",
            kind=ScheduleKind.LECTURE,
        )
        for row in rows
        if weekday_index(row.day) == weekday
    ]


def exam_entries(db: Session, on_date: date) -> List[ScheduleEntry]:
    rows = db.execute(
        select(ExamSchedule)
        .options(selectinload(ExamSchedule.room))
        .where(ExamSchedule.scheduled_on == on_date, ExamSchedule.is_take_home.is_(False))
    ).scalars().all()
    return [
        ScheduleEntry(
            room_name=row.room.name if row.room else None,
            day=weekday_name(on_date),
            start_time=row.start_time,
            end_time=row.end_time,
            label=row.course_name,
            kind=ScheduleKind.EXAM,
            on_date=on_date,
        )
        for row in rows
    ]


def session_entries(db: Session, on_date: date) -> List[ScheduleEntry]:
    rows = db.execute(
        select(SessionSchedule)
        .options(selectinload(SessionSchedule.room))
        .where(SessionSchedule.scheduled_on == on_date)
    ).scalars().all()
    return [
        ScheduleEntry(
            room_name=row.room.name if row.room else None,
            day=weekday_name(on_date),
            start_time=row.start_time,
            end_time=row.end_time,
            label=row.title,
            kind=ScheduleKind.SESSION,
            on_date=on_date,
        )
        for row in rows
    ]


def booking_entries(db: Session, on_date: date) -> List[ScheduleEntry]:
    """Approved bookings touching ``on_date``, clipped to that day."""

    day_start = datetime.combine(on_date, time.min)
    day_end = day_start + timedelta(days=1)
    rows = db.execute(
        select(Booking)
        .options(selectinload(Booking.room))
        .where(
            Booking.status == BookingStatus.APPROVED,
            Booking.start_time < day_end,
            Booking.end_time > day_start,
        )
    ).scalars().all()
    entries = []
    for row in rows:
        start = max(row.start_time, day_start)
        end = min(row.end_time, day_end)
        entries.append(
            ScheduleEntry(
                room_name=row.room.name if row.room else None,
                day=weekday_name(on_date),
                start_time=start.strftime(_CLOCK),
                end_time=end.strftime(_CLOCK) if end < day_end else END_OF_DAY,
                label=row.purpose,
                kind=ScheduleKind.BOOKING,
                on_date=on_date,
            )
        )
    return entries


def schedule_entries(db: Session, weekday: int, on_date: Optional[date] = None) -> List[ScheduleEntry]:
    """All schedule entries for a weekday; one-off sources only when a date is known."""

    entries = lecture_entries(db, weekday)
    if on_date is not None:
        entries.extend(exam_entries(db, on_date))
        entries.extend(session_entries(db, on_date))
        entries.extend(booking_entries(db, on_date))
    return entries


def borrow_sources(db: Session, equipment_id: int) -> List[BorrowSource]:
    """Lending rows and approved bookings that include ``equipment_id``."""

    sources: List[BorrowSource] = []
    lendings = db.execute(
        select(LendingTool).options(selectinload(LendingTool.user)).order_by(LendingTool.borrowed_at)
    ).scalars().all()
    for lending in lendings:
        if equipment_id not in (lending.equipment_ids or []):
            continue
        sources.append(
            LendingSource(
                record_id=lending.id,
                quantities=parallel_quantities(lending.equipment_ids, lending.quantities),
                borrower_id=lending.user_id,
                borrower_name=lending.user.full_name if lending.user else UNKNOWN_BORROWER,
                borrowed_at=lending.borrowed_at,
            )
        )

    bookings = db.execute(
        select(Booking)
        .options(selectinload(Booking.user))
        .where(Booking.status == BookingStatus.APPROVED)
        .order_by(Booking.start_time)
    ).scalars().all()
    for booking in bookings:
        if equipment_id not in (booking.equipment_requested or []):
            continue
        sources.append(
            BookingSource(
                record_id=booking.id,
                equipment_ids=tuple(booking.equipment_requested),
                borrower_id=booking.user_id,
                borrower_name=booking.user.full_name if booking.user else UNKNOWN_BORROWER,
                borrowed_at=booking.start_time,
            )
        )
    return sources


def return_records(db: Session, lending_ids: List[int]) -> List[ReturnRecord]:
    if not lending_ids:
        return []
    checkouts = db.execute(
        select(Checkout).options(selectinload(Checkout.items)).where(Checkout.lending_id.in_(lending_ids))
    ).scalars().all()
    records = []
    for checkout in checkouts:
        returned: dict[int, int] = {}
        for item in checkout.items:
            returned[item.equipment_id] = returned.get(item.equipment_id, 0) + item.returned_quantity
        records.append(
            ReturnRecord(
                lending_id=checkout.lending_id,
                created_at=checkout.created_at,
                returned=returned,
                status=checkout.status,
            )
        )
    return records
