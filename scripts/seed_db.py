#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from nexus_hr.db import SessionLocal
from nexus_hr.models import Employee, EmployeeStatus, User, UserRole
from nexus_hr.security import hash_password

SEED_ACCOUNTS = [
    {
        "email": "admin@nexushr.com",
        "password": "admin123",
        "role": UserRole.ADMIN,
        "first_name": "Admin",
        "last_name": "User",
        "employee_code": "EMP001",
        "position": "System Administrator",
        "department": "IT",
        "location": "Headquarters",
        "hire_date": date(2020, 1, 1),
        "salary": 120000,
        "skills": ["Administration", "Security"],
    },
    {
        "email": "john.doe@nexushr.com",
        "password": "password123",
        "role": UserRole.EMPLOYEE,
        "first_name": "John",
        "last_name": "Doe",
        "employee_code": "EMP002",
        "position": "Software Engineer",
        "department": "Engineering",
        "location": "New York",
        "hire_date": date(2021, 3, 15),
        "salary": 95000,
        "skills": ["Python", "React", "SQL"],
    },
    {
        "email": "jane.smith@nexushr.com",
        "password": "password123",
        "role": UserRole.HR,
        "first_name": "Jane",
        "last_name": "Smith",
        "employee_code": "EMP003",
        "position": "HR Manager",
        "department": "Human Resources",
        "location": "New York",
        "hire_date": date(2019, 6, 1),
        "salary": 85000,
        "skills": ["Recruiting", "Employee Relations"],
    },
    {
        "email": "mike.johnson@nexushr.com",
        "password": "password123",
        "role": UserRole.MANAGER,
        "first_name": "Mike",
        "last_name": "Johnson",
        "employee_code": "EMP004",
        "position": "Engineering Manager",
        "department": "Engineering",
        "location": "San Francisco",
        "hire_date": date(2018, 9, 10),
        "salary": 130000,
        "skills": ["Leadership", "Architecture"],
    },
]


def seed_account(db: Session, account: dict) -> str:
    if db.scalar(select(User.id).where(User.email == account["email"])) is not None:
        return "skipped"

    user = User(
        email=account["email"],
        password_hash=hash_password(account["password"]),
        first_name=account["first_name"],
        last_name=account["last_name"],
        role=account["role"],
        is_active=True,
    )
    db.add(user)
    db.flush()
    db.add(
        Employee(
            employee_code=account["employee_code"],
            first_name=account["first_name"],
            last_name=account["last_name"],
            email=account["email"],
            position=account["position"],
            department=account["department"],
            location=account["location"],
            hire_date=account["hire_date"],
            salary=account["salary"],
            skills=list(account["skills"]),
            status=EmployeeStatus.ACTIVE,
            user_id=user.id,
        )
    )
    db.commit()
    return "created"


def run() -> dict:
    report: dict = {"accounts": []}
    with SessionLocal() as db:
        for account in SEED_ACCOUNTS:
            report["accounts"].append({"email": account["email"], "result": seed_account(db, account)})
    return report


if __name__ == "__main__":
    print(json.dumps(run(), indent=2))
