"""Pydantic schemas shared across the facility services."""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field

from .availability import RoomStatus, ScheduleKind, weekday_index
from .models import BookingStatus, EquipmentCondition, LendingStatus, RoleEnum


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserBase(BaseModel):
    full_name: str = Field(..., max_length=100)
    username: str = Field(..., max_length=50)
    email: EmailStr
    identity_number: str = Field(..., max_length=30)
    role: RoleEnum = RoleEnum.STUDENT
    department_id: Optional[int] = None


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)


class UserRead(UserBase):
    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class DepartmentCreate(BaseModel):
    name: str = Field(..., max_length=100)
    code: str = Field(..., max_length=20)
    description: Optional[str] = None


class DepartmentRead(DepartmentCreate):
    id: int

    model_config = {"from_attributes": True}


class RoomBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=30)
    capacity: int = Field(..., ge=0)
    department_id: Optional[int] = None
    is_available: bool = True


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    capacity: Optional[int] = Field(None, ge=0)
    department_id: Optional[int] = None
    is_available: Optional[bool] = None


class RoomRead(RoomBase):
    id: int
    department: Optional[DepartmentRead] = None

    model_config = {"from_attributes": True}


class RoomStatusRead(BaseModel):
    room: RoomRead
    status: RoomStatus


class RoomBoard(BaseModel):
    mode: Literal["today", "search"]
    checked_at: datetime
    day: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    rooms: List[RoomStatusRead]


def _known_day(value: str) -> str:
    if weekday_index(value) is None:
        raise ValueError(f"Unknown day name: {value}")
    return value


KnownDay = Annotated[str, AfterValidator(_known_day)]


class LectureCreate(BaseModel):
    room: Optional[str] = Field(None, max_length=100)
    day: KnownDay
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    course_name: Optional[str] = None
    course_code: Optional[str] = None
    lecturer: Optional[str] = None
    class_name: Optional[str] = None


class LectureRead(LectureCreate):
    id: int
    day: str

    model_config = {"from_attributes": True}


class ExamCreate(BaseModel):
    room_id: Optional[int] = None
    scheduled_on: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    course_name: str
    is_take_home: bool = False


class ExamRead(ExamCreate):
    id: int

    model_config = {"from_attributes": True}


class SessionCreate(BaseModel):
    room_id: Optional[int] = None
    scheduled_on: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    title: str


class SessionRead(SessionCreate):
    id: int

    model_config = {"from_attributes": True}


class ScheduleEntryRead(BaseModel):
    room_name: Optional[str]
    day: str
    start_time: Optional[str]
    end_time: Optional[str]
    label: str
    kind: ScheduleKind
    on_date: Optional[date] = None

    model_config = {"from_attributes": True}


class BookingCreate(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    purpose: str = Field(..., min_length=3, max_length=255)
    equipment_requested: List[int] = Field(default_factory=list)


class BookingRead(BookingCreate):
    id: int
    user_id: int
    status: BookingStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class EquipmentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=30)
    category: str = Field(..., max_length=50)
    quantity: int = Field(1, ge=0)
    unit: str = Field("pcs", max_length=20)
    condition: EquipmentCondition = EquipmentCondition.GOOD
    is_available: bool = True
    room_id: Optional[int] = None


class EquipmentCreate(EquipmentBase):
    pass


class EquipmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    category: Optional[str] = Field(None, max_length=50)
    quantity: Optional[int] = Field(None, ge=0)
    unit: Optional[str] = Field(None, max_length=20)
    condition: Optional[EquipmentCondition] = None
    is_available: Optional[bool] = None
    room_id: Optional[int] = None


class EquipmentRead(EquipmentBase):
    id: int

    model_config = {"from_attributes": True}


class LendingItem(BaseModel):
    equipment_id: int
    quantity: int = Field(1, ge=1)


class LendingCreate(BaseModel):
    items: List[LendingItem] = Field(..., min_length=1)
    borrower_id: Optional[int] = Field(None, description="Admins may lend on behalf of another user")


class LendingRead(BaseModel):
    id: int
    user_id: Optional[int]
    equipment_ids: List[int]
    quantities: List[int]
    borrowed_at: datetime
    status: LendingStatus

    model_config = {"from_attributes": True}


class CheckoutItemIn(BaseModel):
    equipment_id: int
    returned_quantity: int = Field(..., ge=0)

    model_config = {"from_attributes": True}


class CheckoutCreate(BaseModel):
    lending_id: int
    items: List[CheckoutItemIn] = Field(..., min_length=1)
    notes: Optional[str] = None


class CheckoutRead(BaseModel):
    id: int
    lending_id: int
    status: str
    created_at: datetime
    items: List[CheckoutItemIn]

    model_config = {"from_attributes": True}


class MissingRecordRead(BaseModel):
    source: Literal["lending", "booking"]
    record_id: int
    borrower_id: Optional[int]
    borrower_name: str
    borrowed_at: Optional[datetime]
    borrowed_quantity: int
    returned_quantity: int
    missing_quantity: int
    status: str

    model_config = {"from_attributes": True}


class EquipmentSummary(BaseModel):
    equipment_id: int
    quantity: int
    unit: str
    outstanding_events: int
    borrowed_quantity: int
    missing_quantity: int
