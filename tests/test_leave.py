from __future__ import annotations

import unittest
from datetime import date

from hr_testing import ApiTestCase, make_employee

from nexus_hr.errors import ApiError
from nexus_hr.models import LeaveRequest, LeaveStatus, LeaveType, UserRole
from nexus_hr.services.leaves import calculate_leave_days, summarize_leave_balance

REASON = "Family trip planned for months"


class LeaveDayCountTests(unittest.TestCase):
    def test_inclusive_calendar_days(self) -> None:
        self.assertEqual(calculate_leave_days(date(2024, 12, 24), date(2024, 12, 31)), 8.0)
        self.assertEqual(calculate_leave_days(date(2024, 6, 3), date(2024, 6, 3)), 1.0)

    def test_half_day_is_always_half(self) -> None:
        self.assertEqual(calculate_leave_days(date(2024, 6, 3), date(2024, 6, 5), is_half_day=True), 0.5)

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            calculate_leave_days(date(2024, 6, 10), date(2024, 6, 3))

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, "End date must be on or after start date")

    def test_balance_only_counts_approved_requests(self) -> None:
        requests = [
            LeaveRequest(leave_type=LeaveType.ANNUAL, days=5, status=LeaveStatus.APPROVED),
            LeaveRequest(leave_type=LeaveType.ANNUAL, days=3, status=LeaveStatus.PENDING),
            LeaveRequest(leave_type=LeaveType.SICK, days=0.5, status=LeaveStatus.APPROVED),
        ]

        balances = {item.leave_type: item for item in summarize_leave_balance(requests)}

        self.assertEqual(balances[LeaveType.ANNUAL].used, 5.0)
        self.assertEqual(balances[LeaveType.ANNUAL].remaining, 15.0)
        self.assertEqual(balances[LeaveType.SICK].remaining, 9.5)
        self.assertEqual(balances[LeaveType.UNPAID].entitled, 0)


class LeaveEndpointTests(ApiTestCase):
    role = UserRole.EMPLOYEE

    def setUp(self) -> None:
        super().setUp()
        self.employee = make_employee(self.db)
        self.manager = make_employee(self.db)
        self.act_as(UserRole.EMPLOYEE, employee_id=self.employee.id)

    def _create(self, **overrides: object) -> dict:
        payload: dict[str, object] = {
            "employeeId": self.employee.id,
            "leaveType": "ANNUAL",
            "startDate": "2024-06-03",
            "endDate": "2024-06-10",
            "reason": REASON,
        }
        payload.update(overrides)
        response = self.client.post("/api/leave/requests", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def test_create_computes_days_and_starts_pending(self) -> None:
        data = self._create()

        self.assertEqual(data["days"], 8.0)
        self.assertEqual(data["status"], "PENDING")
        self.assertIsNone(data["approverId"])

    def test_create_rejects_reversed_dates(self) -> None:
        response = self.client.post(
            "/api/leave/requests",
            json={
                "employeeId": self.employee.id,
                "leaveType": "SICK",
                "startDate": "2024-06-10",
                "endDate": "2024-06-03",
                "reason": REASON,
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "INVALID_DATE_RANGE")

    def test_create_rejects_short_reason(self) -> None:
        response = self.client.post(
            "/api/leave/requests",
            json={
                "employeeId": self.employee.id,
                "leaveType": "SICK",
                "startDate": "2024-06-03",
                "endDate": "2024-06-03",
                "reason": "flu",
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["errors"][0]["field"], "reason")

    def test_employee_cannot_approve(self) -> None:
        leave_id = self._create()["id"]

        response = self.client.post(f"/api/leave/requests/{leave_id}/approve", json={})

        self.assertEqual(response.status_code, 403)

    def test_later_decision_overwrites_earlier_one(self) -> None:
        leave_id = self._create()["id"]
        self.act_as(UserRole.MANAGER, employee_id=self.manager.id)

        approved = self.client.post(f"/api/leave/requests/{leave_id}/approve", json={"comments": "Enjoy"})
        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["data"]["status"], "APPROVED")
        self.assertEqual(approved.json()["data"]["approverId"], self.manager.id)
        self.assertIsNotNone(approved.json()["data"]["approvedAt"])

        rejected = self.client.post(
            f"/api/leave/requests/{leave_id}/reject",
            json={"comments": "Coverage gap"},
        )
        self.assertEqual(rejected.status_code, 200)
        self.assertEqual(rejected.json()["data"]["status"], "REJECTED")
        self.assertEqual(rejected.json()["data"]["approverComments"], "Coverage gap")

    def test_update_recomputes_days(self) -> None:
        leave_id = self._create()["id"]

        response = self.client.put(f"/api/leave/requests/{leave_id}", json={"isHalfDay": True})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["days"], 0.5)

    def test_delete_then_get_is_not_found(self) -> None:
        leave_id = self._create()["id"]

        deleted = self.client.delete(f"/api/leave/requests/{leave_id}")
        self.assertEqual(deleted.status_code, 200)

        missing = self.client.get(f"/api/leave/requests/{leave_id}")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["message"], "Leave request not found")

    def test_balance_uses_approved_requests_in_year(self) -> None:
        first = self._create()["id"]
        self._create(startDate="2024-07-01", endDate="2024-07-02")
        self._create(startDate="2023-07-01", endDate="2023-07-05")
        self.act_as(UserRole.HR)
        self.client.post(f"/api/leave/requests/{first}/approve", json={})

        response = self.client.get(f"/api/leave/balance/{self.employee.id}", params={"year": 2024})

        self.assertEqual(response.status_code, 200)
        balances = {item["leaveType"]: item for item in response.json()["data"]["balances"]}
        self.assertEqual(balances["ANNUAL"]["used"], 8.0)
        self.assertEqual(balances["ANNUAL"]["remaining"], 12.0)
        self.assertEqual(balances["SICK"]["used"], 0.0)

    def test_calendar_shows_overlapping_approved_leave(self) -> None:
        approved = self._create()["id"]
        self._create(startDate="2024-06-05", endDate="2024-06-06")
        self.act_as(UserRole.ADMIN)
        self.client.post(f"/api/leave/requests/{approved}/approve", json={})

        response = self.client.get(
            "/api/leave/calendar",
            params={"startDate": "2024-06-08", "endDate": "2024-06-30"},
        )

        self.assertEqual([item["id"] for item in response.json()["data"]], [approved])

    def test_policies_list_every_leave_type(self) -> None:
        response = self.client.get("/api/leave/policies")

        policies = {item["leaveType"]: item["daysPerYear"] for item in response.json()["data"]}
        self.assertEqual(policies["ANNUAL"], 20)
        self.assertEqual(policies["MATERNITY"], 90)
        self.assertEqual(len(policies), len(LeaveType))


if __name__ == "__main__":
    unittest.main()
