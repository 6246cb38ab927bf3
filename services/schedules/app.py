from datetime import date
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from facility.availability import resolve_weekday, weekday_index
from facility.database import get_db
from facility.dependencies import get_current_user, require_admin
from facility.models import ExamSchedule, LectureSchedule, Room, SessionSchedule, User
from facility.persistence import get_or_404
from facility.rate_limit import limiter
from facility.schemas import (
    ExamCreate,
    ExamRead,
    LectureCreate,
    LectureRead,
    ScheduleEntryRead,
    SessionCreate,
    SessionRead,
)
from facility.service import create_service
from facility.snapshots import schedule_entries

app = create_service("Schedules Service", "schedules")


def _check_room(db: Session, room_id: Optional[int]) -> None:
    if room_id is not None:
        get_or_404(db, Room, room_id, "Room")


@app.get("/schedules", response_model=List[ScheduleEntryRead])
@limiter.limit("30/minute")
def projected_entries(
    request: Request,
    day: Optional[str] = None,
    on_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """Every schedule source projected onto common entries for one day.

    With only ``day`` the recurring lectures are returned; ``on_date`` adds
    the exams, sessions and approved bookings held on that date.
    """

    try:
        weekday = resolve_weekday(day, on_date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [ScheduleEntryRead.model_validate(entry) for entry in schedule_entries(db, weekday, on_date)]


@app.post("/schedules/lectures", response_model=LectureRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_lecture(
    request: Request,
    lecture_in: LectureCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> LectureSchedule:
    lecture = LectureSchedule(**lecture_in.model_dump())
    db.add(lecture)
    db.commit()
    db.refresh(lecture)
    return lecture


@app.get("/schedules/lectures", response_model=List[LectureRead])
def list_lectures(
    day: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[LectureSchedule]:
    lectures = db.query(LectureSchedule).order_by(LectureSchedule.start_time).all()
    if day is None:
        return lectures
    weekday = weekday_index(day)
    return [lecture for lecture in lectures if weekday is not None and weekday_index(lecture.day) == weekday]


@app.delete("/schedules/lectures/{lecture_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lecture(lecture_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)) -> None:
    db.delete(get_or_404(db, LectureSchedule, lecture_id, "Lecture"))
    db.commit()


@app.post("/schedules/exams", response_model=ExamRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_exam(
    request: Request,
    exam_in: ExamCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ExamSchedule:
    _check_room(db, exam_in.room_id)
    exam = ExamSchedule(**exam_in.model_dump())
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return exam


@app.get("/schedules/exams", response_model=List[ExamRead])
def list_exams(
    on_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[ExamSchedule]:
    query = db.query(ExamSchedule)
    if on_date is not None:
        query = query.filter(ExamSchedule.scheduled_on == on_date)
    return query.order_by(ExamSchedule.scheduled_on, ExamSchedule.start_time).all()


@app.delete("/schedules/exams/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exam(exam_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)) -> None:
    db.delete(get_or_404(db, ExamSchedule, exam_id, "Exam"))
    db.commit()


@app.post("/schedules/sessions", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_session(
    request: Request,
    session_in: SessionCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SessionSchedule:
    _check_room(db, session_in.room_id)
    session = SessionSchedule(**session_in.model_dump())
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


@app.get("/schedules/sessions", response_model=List[SessionRead])
def list_sessions(
    on_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[SessionSchedule]:
    query = db.query(SessionSchedule)
    if on_date is not None:
        query = query.filter(SessionSchedule.scheduled_on == on_date)
    return query.order_by(SessionSchedule.scheduled_on, SessionSchedule.start_time).all()


@app.delete("/schedules/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)) -> None:
    db.delete(get_or_404(db, SessionSchedule, session_id, "Session"))
    db.commit()
