from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nexus_hr.db import Base, get_db
from nexus_hr.main import app
from nexus_hr.models import Employee, EmployeeStatus, User, UserRole
from nexus_hr.security import CurrentUser, get_current_user, reset_login_attempts

engine = create_engine(
    "sqlite+pysqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, _connection_record):  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_employee(db: Session, **overrides: object) -> Employee:
    suffix = uuid4().hex[:8]
    values: dict[str, object] = {
        "employee_code": f"EMP-{suffix}",
        "first_name": "Test",
        "last_name": f"Employee{suffix}",
        "email": f"employee-{suffix}@example.com",
        "position": "Engineer",
        "department": "Engineering",
        "location": "Remote",
        "hire_date": date(2023, 1, 9),
        "status": EmployeeStatus.ACTIVE,
        "skills": [],
    }
    values.update(overrides)
    employee = Employee(**values)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def make_user(db: Session, *, role: UserRole = UserRole.EMPLOYEE, password_hash: str = "x", **overrides: object) -> User:
    suffix = uuid4().hex[:8]
    values: dict[str, object] = {
        "email": f"user-{suffix}@example.com",
        "password_hash": password_hash,
        "first_name": "Test",
        "last_name": "User",
        "role": role,
        "is_active": True,
    }
    values.update(overrides)
    user = User(**values)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


class DatabaseTestCase(unittest.TestCase):
    """Fresh sqlite schema per test, exposed as ``self.db``."""

    def setUp(self) -> None:
        Base.metadata.create_all(engine)
        self.db = TestingSession()

    def tearDown(self) -> None:
        self.db.close()
        Base.metadata.drop_all(engine)


class ApiTestCase(DatabaseTestCase):
    """TestClient against the real app with the database swapped for sqlite.

    ``role`` controls the caller returned by ``get_current_user``; set it to
    ``None`` to exercise the real bearer-token flow.
    """

    role: UserRole | None = UserRole.ADMIN

    def setUp(self) -> None:
        super().setUp()
        app.state.rate_limiter.reset()
        reset_login_attempts()

        def _override_get_db() -> Generator[Session, None, None]:
            yield self.db

        app.dependency_overrides[get_db] = _override_get_db
        if self.role is not None:
            self.act_as(self.role)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        super().tearDown()

    def act_as(self, role: UserRole, *, employee_id: str | None = None) -> CurrentUser:
        current = CurrentUser(
            id=f"user-{role.value.lower()}",
            email=f"{role.value.lower()}@example.com",
            role=role,
            employee_id=employee_id,
        )
        app.dependency_overrides[get_current_user] = lambda: current
        return current
