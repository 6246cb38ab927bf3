import os
from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("PUBLISH_EVENTS", "false")
os.environ.setdefault("LOG_DIR", "./logs/test")

from facility.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from facility.database import Base, SessionLocal, engine  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.equipment.app import app as equipment_app  # noqa: E402
from services.rooms.app import app as rooms_app  # noqa: E402
from services.schedules.app import app as schedules_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402

PASSWORD = "Passw0rd!"

ADMIN_PAYLOAD = {
    "full_name": "Facility Admin",
    "username": "admin",
    "email": "admin@example.com",
    "identity_number": "ADM-001",
    "password": PASSWORD,
    "role": "super_admin",
}

STUDENT_PAYLOAD = {
    "full_name": "Siti Rahma",
    "username": "student1",
    "email": "student1@example.com",
    "identity_number": "2201001",
    "password": PASSWORD,
}


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def rooms_client() -> Generator[TestClient, None, None]:
    with TestClient(rooms_app) as client:
        yield client


@pytest.fixture()
def schedules_client() -> Generator[TestClient, None, None]:
    with TestClient(schedules_app) as client:
        yield client


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def equipment_client() -> Generator[TestClient, None, None]:
    with TestClient(equipment_app) as client:
        yield client


@pytest.fixture()
def login(users_client) -> Callable[[str], Dict[str, str]]:
    def _login(username: str, password: str = PASSWORD) -> Dict[str, str]:
        response = users_client.post(
            "/users/login",
            data={"username": username, "password": password},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = response.json()["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _login


@pytest.fixture()
def admin_headers(users_client, login) -> Dict[str, str]:
    users_client.post("/users/register", json=ADMIN_PAYLOAD)
    return login("admin")


@pytest.fixture()
def student_headers(users_client, login, admin_headers) -> Dict[str, str]:
    users_client.post("/users/register", json=STUDENT_PAYLOAD)
    return login("student1")
