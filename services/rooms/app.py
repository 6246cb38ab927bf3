from datetime import date, datetime
from typing import List, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from facility.availability import (
    WEEKDAY_NAMES,
    RoomAvailability,
    parse_clock,
    resolve_today,
    resolve_weekday,
    search_available,
    weekday_name,
)
from facility.database import get_db
from facility.dependencies import get_current_user, require_admin
from facility.models import Department, Room, User
from facility.persistence import commit_or_conflict, ensure_unique, get_or_404
from facility.rate_limit import limiter
from facility.schemas import (
    DepartmentCreate,
    DepartmentRead,
    RoomBoard,
    RoomCreate,
    RoomRead,
    RoomStatusRead,
    RoomUpdate,
)
from facility.service import create_service
from facility.snapshots import load_rooms, schedule_entries

app = create_service("Rooms Service", "rooms")


def _board_rows(resolved: List[RoomAvailability[Room]]) -> List[RoomStatusRead]:
    return [RoomStatusRead(room=RoomRead.model_validate(item.room), status=item.status) for item in resolved]


@app.get("/departments", response_model=List[DepartmentRead])
def list_departments(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> List[Department]:
    return db.query(Department).order_by(Department.name).all()


@app.post("/departments", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_department(
    request: Request,
    department_in: DepartmentCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Department:
    ensure_unique(
        db,
        Department,
        [
            ("code", department_in.code, "Department code already exists"),
            ("name", department_in.name, "Department name already exists"),
        ],
    )
    department = Department(**department_in.model_dump())
    db.add(department)
    commit_or_conflict(db, "Department code or name already exists")
    db.refresh(department)
    return department


@app.post("/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Room:
    if room_in.department_id is not None:
        get_or_404(db, Department, room_in.department_id, "Department")
    ensure_unique(db, Room, [("code", room_in.code, "Room code already exists")])
    room = Room(**room_in.model_dump())
    db.add(room)
    commit_or_conflict(db, "Room code already exists")
    db.refresh(room)
    return room


@app.get("/rooms", response_model=List[RoomRead])
def list_rooms(
    department_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[Room]:
    return load_rooms(db, department_id)


@app.get("/rooms/status", response_model=RoomBoard)
@limiter.limit("30/minute")
def rooms_today(
    request: Request,
    at: Optional[datetime] = Query(default=None, description="Instant to evaluate; defaults to now"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> RoomBoard:
    """Label every room In Use / Scheduled / Available for the current moment."""

    now = at or datetime.now()
    rooms = load_rooms(db)
    entries = schedule_entries(db, now.weekday(), now.date())
    resolved = resolve_today(rooms, entries, now)
    return RoomBoard(mode="today", checked_at=now, day=weekday_name(now.date()), rooms=_board_rows(resolved))


@app.get("/rooms/search", response_model=RoomBoard)
@limiter.limit("30/minute")
def search_rooms(
    request: Request,
    start_time: str,
    end_time: str,
    day: Optional[str] = None,
    on_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> RoomBoard:
    """Rooms with no schedule overlap in ``[start_time, end_time)`` on the requested day."""

    try:
        weekday = resolve_weekday(day, on_date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    start, end = parse_clock(start_time), parse_clock(end_time)
    if start is None or end is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Times must be formatted as HH:MM")
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")

    rooms = [room for room in load_rooms(db) if room.is_available]
    entries = schedule_entries(db, weekday, on_date)
    resolved = search_available(rooms, entries, weekday, start, end, on_date)
    return RoomBoard(
        mode="search",
        checked_at=datetime.now(),
        day=WEEKDAY_NAMES[weekday],
        start_time=start.strftime("%H:%M"),
        end_time=end.strftime("%H:%M"),
        rooms=_board_rows(resolved),
    )


@app.get("/rooms/{room_id}", response_model=RoomRead)
def get_room(room_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> Room:
    return get_or_404(db, Room, room_id, "Room")


@app.put("/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("15/minute")
def update_room(
    request: Request,
    room_id: int,
    room_update: RoomUpdate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Room:
    room = get_or_404(db, Room, room_id, "Room")
    update_data = room_update.model_dump(exclude_unset=True)
    if update_data.get("department_id") is not None:
        get_or_404(db, Department, update_data["department_id"], "Department")
    ensure_unique(db, Room, [("code", update_data.get("code"), "Room code already exists")], exclude_id=room_id)
    for key, value in update_data.items():
        setattr(room, key, value)
    commit_or_conflict(db, "Room code already exists")
    db.refresh(room)
    return room


@app.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_room(
    request: Request,
    room_id: int,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    room = get_or_404(db, Room, room_id, "Room")
    db.delete(room)
    db.commit()
