from __future__ import annotations

import csv
import io
import unittest
from datetime import date, datetime, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

from hr_testing import ApiTestCase, DatabaseTestCase, make_employee

from nexus_hr.errors import ApiError
from nexus_hr.models import AttendanceRecord, AttendanceStatus, AuditLog, UserRole
from nexus_hr.services.attendance import (
    calculate_work_hours,
    clock_in,
    clock_out,
    get_monthly_summary,
    local_day,
    mark_absent,
)


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class WorkHoursTests(unittest.TestCase):
    def test_hours_are_rounded_to_two_decimals(self) -> None:
        self.assertEqual(calculate_work_hours(_utc(2024, 3, 4, 9, 0), _utc(2024, 3, 4, 17, 30)), 8.5)
        self.assertEqual(calculate_work_hours(_utc(2024, 3, 4, 9, 0), _utc(2024, 3, 4, 9, 20)), 0.33)

    def test_naive_values_are_treated_as_utc(self) -> None:
        self.assertEqual(
            calculate_work_hours(datetime(2024, 3, 4, 9, 0), _utc(2024, 3, 4, 10, 0)),
            1.0,
        )

    def test_local_day_uses_the_given_zone(self) -> None:
        moment = _utc(2024, 3, 4, 22, 30)
        self.assertEqual(local_day(moment, ZoneInfo("UTC")), date(2024, 3, 4))
        self.assertEqual(local_day(moment, ZoneInfo("Europe/Istanbul")), date(2024, 3, 5))


class AttendanceServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.employee = make_employee(self.db)

    def test_clock_in_then_out_records_hours(self) -> None:
        record = clock_in(self.db, self.employee.id, location="HQ", now=_utc(2024, 3, 4, 9, 0))
        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(record.date, date(2024, 3, 4))
        self.assertIsNone(record.work_hours)

        record = clock_out(self.db, self.employee.id, now=_utc(2024, 3, 4, 17, 30))

        self.assertEqual(record.work_hours, 8.5)
        self.assertEqual(self.db.query(AttendanceRecord).count(), 1)

    def test_second_clock_in_same_day_is_rejected(self) -> None:
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 0))

        with self.assertRaises(ApiError) as ctx:
            clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 10, 0))

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, "Already clocked in today")

    def test_clock_out_without_clock_in_is_not_found(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            clock_out(self.db, self.employee.id, now=_utc(2024, 3, 4, 17, 0))

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "No clock-in record found")

    def test_second_clock_out_is_rejected(self) -> None:
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 0))
        clock_out(self.db, self.employee.id, now=_utc(2024, 3, 4, 17, 0))

        with self.assertRaises(ApiError) as ctx:
            clock_out(self.db, self.employee.id, now=_utc(2024, 3, 4, 18, 0))

        self.assertEqual(ctx.exception.message, "Already clocked out")

    def test_clock_in_on_a_new_day_opens_a_new_record(self) -> None:
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 0))
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 5, 9, 0))

        self.assertEqual(self.db.query(AttendanceRecord).count(), 2)

    def test_clock_in_over_absent_marker_turns_it_present(self) -> None:
        mark_absent(self.db, self.employee.id, day=date(2024, 3, 4))

        record = clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 11, 0))

        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(self.db.query(AttendanceRecord).count(), 1)

    def test_mark_absent_twice_is_rejected(self) -> None:
        mark_absent(self.db, self.employee.id, day=date(2024, 3, 4))

        with self.assertRaises(ApiError) as ctx:
            mark_absent(self.db, self.employee.id, day=date(2024, 3, 4))

        self.assertEqual(ctx.exception.message, "Attendance record already exists for this date")

    def test_concurrent_insert_for_the_same_day_is_a_conflict(self) -> None:
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 0))

        with patch("nexus_hr.services.attendance._record_for_day", return_value=None):
            with self.assertRaises(ApiError) as clock_ctx:
                clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 5))
            with self.assertRaises(ApiError) as absent_ctx:
                mark_absent(self.db, self.employee.id, day=date(2024, 3, 4))

        self.assertEqual(clock_ctx.exception.status_code, 400)
        self.assertEqual(clock_ctx.exception.code, "ALREADY_CLOCKED_IN")
        self.assertEqual(absent_ctx.exception.code, "ATTENDANCE_EXISTS")
        self.assertEqual(self.db.query(AttendanceRecord).count(), 1)

    def test_unknown_employee_is_not_found(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            clock_in(self.db, "missing", now=_utc(2024, 3, 4, 9, 0))

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "Employee not found")

    def test_monthly_summary_counts_statuses(self) -> None:
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 4, 9, 0))
        clock_out(self.db, self.employee.id, now=_utc(2024, 3, 4, 17, 0))
        clock_in(self.db, self.employee.id, now=_utc(2024, 3, 5, 9, 0))
        clock_out(self.db, self.employee.id, now=_utc(2024, 3, 5, 13, 0))
        mark_absent(self.db, self.employee.id, day=date(2024, 3, 6))
        mark_absent(self.db, self.employee.id, day=date(2024, 4, 1))

        summary = get_monthly_summary(self.db, self.employee.id, year=2024, month=3)

        self.assertEqual(summary.total_days, 3)
        self.assertEqual(summary.present_days, 2)
        self.assertEqual(summary.absent_days, 1)
        self.assertEqual(summary.total_work_hours, 12.0)
        self.assertEqual(summary.average_work_hours, 6.0)
        self.assertEqual(summary.attendance_rate, 66.67)
        self.assertEqual(len(summary.records), 3)


class AttendanceEndpointTests(ApiTestCase):
    role = UserRole.MANAGER

    def setUp(self) -> None:
        super().setUp()
        self.employee = make_employee(self.db)

    def test_clock_in_falls_back_to_callers_employee(self) -> None:
        self.act_as(UserRole.EMPLOYEE, employee_id=self.employee.id)

        response = self.client.post("/api/attendance/clock-in", json={"location": "HQ"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["employeeId"], self.employee.id)
        self.assertEqual(response.json()["message"], "Clocked in successfully")
        audit = self.db.query(AuditLog).filter_by(action="ATTENDANCE_CLOCK_IN").one()
        self.assertEqual(audit.entity_id, response.json()["data"]["id"])

    def test_clock_in_without_any_employee_is_rejected(self) -> None:
        response = self.client.post("/api/attendance/clock-in", json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "EMPLOYEE_REQUIRED")

    def test_clock_out_without_clock_in_is_404(self) -> None:
        response = self.client.post("/api/attendance/clock-out", json={"employeeId": self.employee.id})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "No clock-in record found")

    def test_mark_absent_requires_supervisor(self) -> None:
        payload = {"employeeId": self.employee.id, "date": "2024-03-04"}

        created = self.client.post("/api/attendance/mark-absent", json=payload)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["data"]["status"], "ABSENT")

        duplicate = self.client.post("/api/attendance/mark-absent", json=payload)
        self.assertEqual(duplicate.status_code, 400)

        self.act_as(UserRole.EMPLOYEE, employee_id=self.employee.id)
        forbidden = self.client.post("/api/attendance/mark-absent", json={"employeeId": self.employee.id})
        self.assertEqual(forbidden.status_code, 403)

    def test_records_filter_by_employee_and_range(self) -> None:
        other = make_employee(self.db)
        for day in (date(2024, 3, 1), date(2024, 3, 2), date(2024, 4, 1)):
            mark_absent(self.db, self.employee.id, day=day)
        mark_absent(self.db, other.id, day=date(2024, 3, 1))

        response = self.client.get(
            "/api/attendance/records",
            params={"employeeId": self.employee.id, "startDate": "2024-03-01", "endDate": "2024-03-31"},
        )

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["meta"]["total"], 2)
        self.assertEqual([item["date"] for item in body["data"]], ["2024-03-02", "2024-03-01"])

    def test_summary_rejects_bad_month(self) -> None:
        response = self.client.get(
            f"/api/attendance/summary/{self.employee.id}",
            params={"year": 2024, "month": 13},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Validation failed")

    def test_stats_counts_active_employees(self) -> None:
        self.client.post("/api/attendance/clock-in", json={"employeeId": self.employee.id})

        response = self.client.get("/api/attendance/stats")

        data = response.json()["data"]
        self.assertEqual(data["totalEmployees"], 1)
        self.assertEqual(data["present"], 1)
        self.assertEqual(data["notMarked"], 0)
        self.assertEqual(data["attendanceRate"], 100.0)

    def test_update_recomputes_hours(self) -> None:
        record = mark_absent(self.db, self.employee.id, day=date(2024, 3, 4))
        self.act_as(UserRole.HR)

        response = self.client.put(
            f"/api/attendance/{record.id}",
            json={
                "status": "PRESENT",
                "clockIn": "2024-03-04T08:00:00Z",
                "clockOut": "2024-03-04T12:15:00Z",
            },
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["workHours"], 4.25)
        self.assertEqual(response.json()["data"]["status"], "PRESENT")


class AttendanceExportTests(ApiTestCase):
    role = UserRole.HR

    def setUp(self) -> None:
        super().setUp()
        engineer = make_employee(self.db, department="Engineering")
        seller = make_employee(self.db, department="Sales")
        mark_absent(self.db, engineer.id, day=date(2024, 3, 4))
        mark_absent(self.db, engineer.id, day=date(2024, 4, 2))
        mark_absent(self.db, seller.id, day=date(2024, 3, 5))
        self.filters = {"startDate": "2024-03-01", "endDate": "2024-03-31", "department": "Engineering"}

    def test_export_defaults_to_json(self) -> None:
        response = self.client.get("/api/attendance/export")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("application/json"))
        body = response.json()
        self.assertEqual(body["meta"]["total"], 3)
        self.assertEqual(len(body["data"]), 3)

    def test_json_export_applies_range_and_department(self) -> None:
        response = self.client.get("/api/attendance/export", params={"format": "json", **self.filters})

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["meta"]["total"], len(body["data"]))
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(body["data"][0]["department"], "Engineering")
        self.assertEqual(body["data"][0]["date"], "2024-03-04")

    def test_csv_export_row_count_matches_header(self) -> None:
        response = self.client.get("/api/attendance/export", params={"format": "csv", **self.filters})

        rows = list(csv.reader(io.StringIO(response.text)))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(rows[0][0], "Employee ID")
        self.assertEqual(len(rows) - 1, 1)
        self.assertEqual(response.headers["X-Total-Count"], "1")

    def test_export_is_limited_to_admin_and_hr(self) -> None:
        self.act_as(UserRole.MANAGER)

        response = self.client.get("/api/attendance/export")

        self.assertEqual(response.status_code, 403)



if __name__ == "__main__":
    unittest.main()
