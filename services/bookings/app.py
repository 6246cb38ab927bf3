from datetime import datetime
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from facility.database import get_db
from facility.dependencies import ADMIN_ROLES, get_current_user, require_admin
from facility.events import publish_event
from facility.models import Booking, BookingStatus, Equipment, Room, User
from facility.persistence import get_or_404
from facility.rate_limit import limiter
from facility.schemas import BookingCreate, BookingRead
from facility.service import create_service

app = create_service("Bookings Service", "bookings")


def _ensure_availability(
    db: Session, room_id: int, start: datetime, end: datetime, exclude_booking_id: Optional[int] = None
) -> None:
    overlap_query = db.query(Booking).filter(
        Booking.room_id == room_id,
        Booking.status == BookingStatus.APPROVED,
        Booking.start_time < end,
        Booking.end_time > start,
    )
    if exclude_booking_id:
        overlap_query = overlap_query.filter(Booking.id != exclude_booking_id)
    if overlap_query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Room already booked for that slot")


def _pending_or_409(booking: Booking) -> None:
    if booking.status != BookingStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Booking is already {booking.status.value}",
        )


@app.get("/bookings", response_model=List[BookingRead])
@limiter.limit("30/minute")
def list_bookings(
    request: Request,
    status_filter: Optional[BookingStatus] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    query = db.query(Booking)
    if current_user.role not in ADMIN_ROLES:
        query = query.filter(Booking.user_id == current_user.id)
    if status_filter is not None:
        query = query.filter(Booking.status == status_filter)
    return query.order_by(Booking.start_time.desc()).all()


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Booking:
    if booking_in.end_time <= booking_in.start_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")
    room = db.query(Room).filter(Room.id == booking_in.room_id, Room.is_available.is_(True)).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found or unavailable")
    for equipment_id in set(booking_in.equipment_requested):
        get_or_404(db, Equipment, equipment_id, f"Equipment {equipment_id}")

    _ensure_availability(db, booking_in.room_id, booking_in.start_time, booking_in.end_time)
    booking = Booking(user_id=current_user.id, **booking_in.model_dump())
    db.add(booking)
    db.commit()
    db.refresh(booking)

    publish_event(
        "booking_created",
        {
            "booking_id": booking.id,
            "user_id": booking.user_id,
            "room_id": booking.room_id,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
        },
    )
    return booking


@app.get("/bookings/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Booking:
    booking = get_or_404(db, Booking, booking_id, "Booking")
    if current_user.role not in ADMIN_ROLES and booking.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@app.post("/bookings/{booking_id}/approve", response_model=BookingRead)
@limiter.limit("20/minute")
def approve_booking(
    request: Request,
    booking_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Booking:
    booking = get_or_404(db, Booking, booking_id, "Booking")
    _pending_or_409(booking)
    _ensure_availability(db, booking.room_id, booking.start_time, booking.end_time, exclude_booking_id=booking.id)
    booking.status = BookingStatus.APPROVED
    db.commit()
    db.refresh(booking)

    publish_event(
        "booking_approved",
        {"booking_id": booking.id, "room_id": booking.room_id, "equipment_ids": booking.equipment_requested},
    )
    return booking


@app.post("/bookings/{booking_id}/reject", response_model=BookingRead)
@limiter.limit("20/minute")
def reject_booking(
    request: Request,
    booking_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Booking:
    booking = get_or_404(db, Booking, booking_id, "Booking")
    _pending_or_409(booking)
    booking.status = BookingStatus.REJECTED
    db.commit()
    db.refresh(booking)
    return booking


@app.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
def delete_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    booking = get_or_404(db, Booking, booking_id, "Booking")
    if current_user.role not in ADMIN_ROLES and booking.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    db.delete(booking)
    db.commit()
