from __future__ import annotations

import unittest

from hr_testing import ApiTestCase, make_employee

from nexus_hr.models import AuditLog, PayrollRecord, UserRole
from nexus_hr.services.payroll import compute_payroll_totals


class PayrollTotalsTests(unittest.TestCase):
    def test_gross_and_net(self) -> None:
        totals = compute_payroll_totals(
            base_salary=5000,
            allowances=200,
            deductions=100,
            tax_amount=400,
            bonus=300,
        )

        self.assertEqual(totals.gross_salary, 5500)
        self.assertEqual(totals.net_salary, 5000)

    def test_amounts_are_not_rounded(self) -> None:
        totals = compute_payroll_totals(base_salary=1000.005, tax_amount=0.001)

        self.assertEqual(totals.gross_salary, 1000.005)
        self.assertAlmostEqual(totals.net_salary, 1000.004)


class PayrollEndpointTests(ApiTestCase):
    role = UserRole.HR

    def setUp(self) -> None:
        super().setUp()
        self.employee = make_employee(self.db, first_name="Grace", last_name="Hopper")

    def _process(self, **overrides: object) -> dict:
        payload: dict[str, object] = {
            "employeeId": self.employee.id,
            "payPeriodStart": "2024-03-01",
            "payPeriodEnd": "2024-03-31",
            "baseSalary": 5000,
            "allowances": 300,
            "deductions": 200,
            "taxAmount": 300,
            "bonus": 200,
        }
        payload.update(overrides)
        response = self.client.post("/api/payroll/process", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def test_process_stores_computed_totals(self) -> None:
        data = self._process()

        self.assertEqual(data["grossSalary"], 5500)
        self.assertEqual(data["netSalary"], 5000)
        self.assertEqual(data["status"], "PENDING")
        self.assertEqual(data["employee"]["firstName"], "Grace")
        self.assertEqual(self.db.query(AuditLog).filter_by(action="PAYROLL_PROCESSED").count(), 1)

    def test_process_rejects_reversed_period(self) -> None:
        response = self.client.post(
            "/api/payroll/process",
            json={
                "employeeId": self.employee.id,
                "payPeriodStart": "2024-03-31",
                "payPeriodEnd": "2024-03-01",
                "baseSalary": 5000,
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Validation failed")

    def test_process_for_unknown_employee_is_404(self) -> None:
        response = self.client.post(
            "/api/payroll/process",
            json={
                "employeeId": "missing",
                "payPeriodStart": "2024-03-01",
                "payPeriodEnd": "2024-03-31",
                "baseSalary": 5000,
            },
        )

        self.assertEqual(response.status_code, 404)

    def test_processing_is_management_only(self) -> None:
        self.act_as(UserRole.MANAGER)

        response = self.client.post(
            "/api/payroll/process",
            json={
                "employeeId": self.employee.id,
                "payPeriodStart": "2024-03-01",
                "payPeriodEnd": "2024-03-31",
                "baseSalary": 5000,
            },
        )

        self.assertEqual(response.status_code, 403)

    def test_update_recomputes_totals(self) -> None:
        record_id = self._process()["id"]

        response = self.client.put(f"/api/payroll/records/{record_id}", json={"bonus": 700})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["grossSalary"], 6000)
        self.assertEqual(response.json()["data"]["netSalary"], 5500)

    def test_send_payslip_marks_paid(self) -> None:
        record_id = self._process()["id"]

        response = self.client.post(f"/api/payroll/payslips/{record_id}/send")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "PAID")
        self.assertIsNotNone(response.json()["data"]["paymentDate"])

    def test_records_filter_by_year_and_month(self) -> None:
        self._process()
        self._process(payPeriodStart="2024-04-01", payPeriodEnd="2024-04-30")
        self._process(payPeriodStart="2023-04-01", payPeriodEnd="2023-04-30")

        response = self.client.get("/api/payroll/records", params={"year": 2024, "month": 4})

        body = response.json()
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(body["data"][0]["payPeriodStart"], "2024-04-01")

    def test_employee_records_route_is_not_shadowed(self) -> None:
        self._process()
        other = make_employee(self.db)
        self._process(employeeId=other.id)

        response = self.client.get(f"/api/payroll/records/employee/{self.employee.id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["employeeId"] for item in response.json()["data"]], [self.employee.id])

    def test_tax_summary_only_counts_paid_records(self) -> None:
        paid = self._process()["id"]
        self._process(payPeriodStart="2024-04-01", payPeriodEnd="2024-04-30")
        self.client.post(f"/api/payroll/payslips/{paid}/send")

        response = self.client.get("/api/payroll/tax-summary/2024")

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["totalGross"], 5500)
        self.assertEqual(data["totalTax"], 300)
        self.assertEqual(data["employees"][0]["employeeName"], "Grace Hopper")
        self.assertEqual(data["employees"][0]["recordCount"], 1)
        self.assertEqual(self.db.query(PayrollRecord).count(), 2)


if __name__ == "__main__":
    unittest.main()
