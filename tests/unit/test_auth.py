"""Unit tests for authentication functions."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from jose import jwt

from facility.auth import (
    authenticate_user,
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from facility.config import get_settings
from facility.models import RoleEnum, User

settings = get_settings()


def make_user(password: str) -> User:
    return User(
        id=1,
        full_name="Test User",
        username="testuser",
        email="test@example.com",
        identity_number="2201999",
        role=RoleEnum.STUDENT,
        hashed_password=get_password_hash(password),
    )


class TestPasswordHashing:
    def test_password_hash_and_verify(self):
        password = "MySecurePassword123!"
        hashed = get_password_hash(password)

        assert hashed != password
        assert verify_password(password, hashed) is True
        assert verify_password("WrongPassword", hashed) is False

    def test_same_password_different_hashes(self):
        hash1 = get_password_hash("TestPassword123")
        hash2 = get_password_hash("TestPassword123")

        assert hash1 != hash2


class TestJWTTokens:
    def test_create_access_token(self):
        token = create_access_token({"sub": "testuser", "role": "super_admin"})

        decoded = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        assert decoded["sub"] == "testuser"
        assert decoded["role"] == "super_admin"
        assert decoded["exp"] > datetime.utcnow().timestamp()

    def test_decode_token_invalid(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_token("invalid.token.here")

        assert exc_info.value.status_code == 401
        assert "Invalid token" in str(exc_info.value.detail)

    def test_decode_token_expired(self):
        token = create_access_token({"sub": "testuser"}, timedelta(hours=-1))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401


class TestUserAuthentication:
    def test_authenticate_user_success(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = make_user("TestPass123")

        result = authenticate_user(mock_db, "2201999", "TestPass123")

        assert result is not None
        assert result.username == "testuser"

    def test_authenticate_user_wrong_password(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = make_user("CorrectPassword")

        assert authenticate_user(mock_db, "testuser", "WrongPassword") is None

    def test_authenticate_user_not_found(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = None

        assert authenticate_user(mock_db, "nonexistent", "anypassword") is None
