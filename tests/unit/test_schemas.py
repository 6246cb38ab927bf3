"""Unit tests for schema validation."""
from datetime import datetime

import pytest
from pydantic import ValidationError

from facility.models import RoleEnum
from facility.schemas import (
    BookingCreate,
    CheckoutCreate,
    LectureCreate,
    LendingCreate,
    RoomCreate,
    UserCreate,
)


class TestUserSchemas:
    def test_user_create_default_role(self):
        user = UserCreate(
            full_name="Jane Doe",
            username="janedoe",
            email="jane@example.com",
            identity_number="2201002",
            password="SecurePass123!",
        )

        assert user.role == RoleEnum.STUDENT

    def test_user_create_invalid_email(self):
        with pytest.raises(ValidationError):
            UserCreate(
                full_name="Test User",
                username="testuser",
                email="invalid-email",
                identity_number="2201003",
                password="Password123",
            )

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError):
            UserCreate(
                full_name="Test User",
                username="testuser",
                email="test@example.com",
                identity_number="2201004",
                password="short",
            )


class TestRoomSchemas:
    def test_room_create_defaults(self):
        room = RoomCreate(name="Lab A-1", code="LAB-A1", capacity=30)

        assert room.is_available is True
        assert room.department_id is None

    def test_negative_capacity_rejected(self):
        with pytest.raises(ValidationError):
            RoomCreate(name="Lab", code="LAB", capacity=-1)


class TestScheduleSchemas:
    def test_indonesian_day_accepted(self):
        lecture = LectureCreate(room="Lab", day="Kamis", start_time="07:00", end_time="08:40")

        assert lecture.day == "Kamis"

    def test_unknown_day_rejected(self):
        with pytest.raises(ValidationError):
            LectureCreate(room="Lab", day="Caturday")


class TestBookingSchemas:
    def test_booking_create_valid(self):
        booking = BookingCreate(
            room_id=1,
            start_time=datetime(2024, 1, 1, 10, 0),
            end_time=datetime(2024, 1, 1, 11, 0),
            purpose="Club meeting",
        )

        assert booking.equipment_requested == []

    def test_purpose_required(self):
        with pytest.raises(ValidationError):
            BookingCreate(room_id=1, start_time=datetime(2024, 1, 1, 10), end_time=datetime(2024, 1, 1, 11), purpose="")


class TestLendingSchemas:
    def test_lending_needs_items(self):
        with pytest.raises(ValidationError):
            LendingCreate(items=[])

    def test_lending_quantity_positive(self):
        with pytest.raises(ValidationError):
            LendingCreate(items=[{"equipment_id": 1, "quantity": 0}])

    def test_checkout_allows_zero_returned(self):
        checkout = CheckoutCreate(lending_id=1, items=[{"equipment_id": 1, "returned_quantity": 0}])

        assert checkout.items[0].returned_quantity == 0
