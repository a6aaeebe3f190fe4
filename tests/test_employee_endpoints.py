from __future__ import annotations

import csv
import io
import unittest
from unittest.mock import patch

from openpyxl import load_workbook

from hr_testing import ApiTestCase, make_employee

from nexus_hr.models import AttendanceRecord, AttendanceStatus, Employee, EmployeeStatus, UserRole


def _employee_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "position": "Engineer",
        "department": "Engineering",
        "location": "London",
        "hireDate": "2024-02-01",
        "salary": 90000,
        "skills": ["Python", "Math"],
    }
    payload.update(overrides)
    return payload


class EmployeeEndpointTests(ApiTestCase):
    role = UserRole.HR

    def test_list_is_paginated_with_meta(self) -> None:
        for _ in range(3):
            make_employee(self.db)

        response = self.client.get("/api/employees", params={"page": 1, "limit": 2})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(body["meta"], {"total": 3, "page": 1, "limit": 2, "totalPages": 2})

    def test_list_clamps_limit_and_filters_by_search(self) -> None:
        make_employee(self.db, first_name="Grace", last_name="Hopper")
        make_employee(self.db, first_name="Alan", last_name="Turing")

        response = self.client.get("/api/employees", params={"search": "hopp", "limit": 500})

        body = response.json()
        self.assertEqual([item["lastName"] for item in body["data"]], ["Hopper"])
        self.assertEqual(body["meta"]["limit"], 100)

    def test_create_generates_code_and_login_account(self) -> None:
        response = self.client.post("/api/employees", json=_employee_payload())

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertTrue(data["employeeId"].startswith("EMP"))
        self.assertEqual(data["status"], "ACTIVE")

        detail = self.client.get(f"/api/employees/{data['id']}")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()["data"]["user"]["email"], "ada@example.com")
        self.assertEqual(detail.json()["data"]["user"]["role"], "EMPLOYEE")

    def test_create_rejects_duplicate_email(self) -> None:
        make_employee(self.db, email="ada@example.com")

        response = self.client.post("/api/employees", json=_employee_payload())

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Employee with this email already exists")

    def test_employee_role_cannot_create(self) -> None:
        self.act_as(UserRole.EMPLOYEE)

        response = self.client.post("/api/employees", json=_employee_payload())

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Insufficient permissions")

    def test_delete_is_admin_only_and_cascades(self) -> None:
        employee = make_employee(self.db)
        self.db.add(
            AttendanceRecord(
                employee_id=employee.id,
                date=employee.hire_date,
                status=AttendanceStatus.ABSENT,
            )
        )
        self.db.commit()

        forbidden = self.client.delete(f"/api/employees/{employee.id}")
        self.assertEqual(forbidden.status_code, 403)

        self.act_as(UserRole.ADMIN)
        deleted = self.client.delete(f"/api/employees/{employee.id}")
        self.assertEqual(deleted.status_code, 200)
        self.db.expire_all()
        self.assertIsNone(self.db.get(Employee, employee.id))
        self.assertEqual(self.db.query(AttendanceRecord).count(), 0)

        missing = self.client.delete(f"/api/employees/{employee.id}")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "Employee not found")

    def test_update_keeps_required_fields_when_null(self) -> None:
        employee = make_employee(self.db, position="Engineer")

        response = self.client.put(
            f"/api/employees/{employee.id}",
            json={"position": None, "department": "Research", "status": "ON_LEAVE"},
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["position"], "Engineer")
        self.assertEqual(data["department"], "Research")
        self.assertEqual(data["status"], "ON_LEAVE")

    def test_search_requires_every_requested_skill(self) -> None:
        make_employee(self.db, first_name="Both", skills=["Python", "SQL"])
        make_employee(self.db, first_name="One", skills=["Python"])

        response = self.client.get("/api/employees/search", params={"skills": "python, sql"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([item["firstName"] for item in body["data"]], ["Both"])
        self.assertEqual(body["meta"]["total"], 1)

    def test_search_rejects_unknown_sort_column(self) -> None:
        response = self.client.get("/api/employees/search", params={"sortBy": "password"})

        self.assertEqual(response.status_code, 400)

    def test_search_filters_salary_and_sorts(self) -> None:
        make_employee(self.db, first_name="Low", salary=40000)
        make_employee(self.db, first_name="Mid", salary=60000)
        make_employee(self.db, first_name="High", salary=90000)

        response = self.client.get(
            "/api/employees/search",
            params={"salaryMin": 50000, "sortBy": "salary", "sortOrder": "asc"},
        )

        self.assertEqual([item["firstName"] for item in response.json()["data"]], ["Mid", "High"])

    def test_bulk_import_reports_failed_rows(self) -> None:
        make_employee(self.db, email="taken@example.com")

        response = self.client.post(
            "/api/employees/bulk-import",
            json={
                "employees": [
                    _employee_payload(email="first@example.com", employeeId="EMP100"),
                    _employee_payload(email="taken@example.com"),
                    _employee_payload(email="second@example.com"),
                ]
            },
        )

        self.assertEqual(response.status_code, 200)
        result = response.json()["data"]
        self.assertEqual(result["success"], 2)
        self.assertEqual(result["failed"], 1)
        self.assertEqual(result["errors"][0]["email"], "taken@example.com")
        self.assertIsNotNone(self.db.query(Employee).filter_by(employee_code="EMP100").one_or_none())

    def test_unexpected_failure_hides_details(self) -> None:
        with patch("nexus_hr.routers.employees.list_employees", side_effect=RuntimeError("db secret detail")):
            response = self.client.get("/api/employees")

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["status"], "error")
        self.assertEqual(body["code"], "INTERNAL_ERROR")
        self.assertEqual(body["message"], "Failed to fetch employees")
        self.assertNotIn("db secret detail", response.text)

    def test_bulk_import_rejects_empty_list(self) -> None:
        response = self.client.post("/api/employees/bulk-import", json={"employees": []})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid employees data")


class EmployeeExportTests(ApiTestCase):
    role = UserRole.ADMIN

    def setUp(self) -> None:
        super().setUp()
        make_employee(self.db, department="Engineering", first_name="Quote\"d, Name")
        make_employee(self.db, department="Engineering")
        make_employee(self.db, department="Sales", status=EmployeeStatus.INACTIVE)

    def test_export_without_format_is_json(self) -> None:
        response = self.client.get("/api/employees/export")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("application/json"))
        self.assertIn(".json", response.headers["Content-Disposition"])
        body = response.json()
        self.assertEqual(body["meta"]["total"], 3)
        self.assertEqual(len(body["data"]), 3)

    def test_json_export_total_matches_rows(self) -> None:
        response = self.client.get("/api/employees/export", params={"format": "json", "department": "Engineering"})

        self.assertEqual(response.status_code, 200)
        self.assertIn("attachment;", response.headers["Content-Disposition"])
        body = response.json()
        self.assertEqual(body["meta"]["total"], len(body["data"]))
        self.assertEqual(body["meta"]["total"], 2)
        self.assertEqual(body["meta"]["department"], "Engineering")
        self.assertIn("exportedAt", body["meta"])

    def test_csv_export_quotes_fields_and_counts_rows(self) -> None:
        response = self.client.get("/api/employees/export", params={"format": "csv"})

        self.assertEqual(response.status_code, 200)
        rows = list(csv.reader(io.StringIO(response.text)))
        self.assertEqual(rows[0][0], "Employee ID")
        self.assertEqual(len(rows) - 1, 3)
        self.assertEqual(response.headers["X-Total-Count"], "3")
        self.assertTrue(response.text.startswith('"Employee ID"'))
        self.assertIn('Quote"d, Name', [row[1] for row in rows[1:]])

    def test_xlsx_export_has_header_and_rows(self) -> None:
        response = self.client.get("/api/employees/export", params={"format": "xlsx", "status": "INACTIVE"})

        self.assertEqual(response.status_code, 200)
        workbook = load_workbook(io.BytesIO(response.content))
        sheet = workbook.active
        self.assertEqual(sheet.cell(row=1, column=1).value, "Employee ID")
        self.assertEqual(sheet.max_row - 1, 1)
        self.assertEqual(response.headers["X-Total-Count"], "1")

    def test_export_forbidden_for_managers(self) -> None:
        self.act_as(UserRole.MANAGER)

        response = self.client.get("/api/employees/export", params={"format": "csv"})

        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
