from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from hr_testing import ApiTestCase, make_employee

from nexus_hr.models import Asset, AssetStatus, AuditLog, DocumentPermission, UserRole


class DocumentEndpointTests(ApiTestCase):
    role = UserRole.HR

    def setUp(self) -> None:
        super().setUp()
        self.owner = make_employee(self.db)
        self.colleague = make_employee(self.db)

    def _upload(self, **overrides: object) -> dict:
        payload: dict[str, object] = {
            "name": "Employment contract",
            "type": "pdf",
            "category": "CONTRACT",
            "filePath": "/contracts/2024/contract.pdf",
            "fileSize": 2048,
            "mimeType": "application/pdf",
            "tags": ["legal"],
            "employeeId": self.owner.id,
        }
        payload.update(overrides)
        response = self.client.post("/api/documents", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def test_upload_records_uploader(self) -> None:
        data = self._upload()

        self.assertEqual(data["uploadedBy"], "user-hr")
        self.assertEqual(data["tags"], ["legal"])
        self.assertFalse(data["isConfidential"])

    def test_upload_for_unknown_employee_is_404(self) -> None:
        response = self.client.post(
            "/api/documents",
            json={"name": "x", "type": "pdf", "category": "OTHER", "filePath": "x.pdf", "employeeId": "missing"},
        )

        self.assertEqual(response.status_code, 404)

    def test_list_filters_by_category(self) -> None:
        self._upload()
        self._upload(name="Policy", category="POLICY")

        response = self.client.get("/api/documents", params={"category": "POLICY"})

        self.assertEqual([item["name"] for item in response.json()["data"]], ["Policy"])

    def test_share_is_idempotent_and_visible_on_detail(self) -> None:
        document_id = self._upload()["id"]

        first = self.client.post(f"/api/documents/{document_id}/share", json={"employeeIds": [self.colleague.id]})
        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()["data"][0]["canView"])
        self.assertFalse(first.json()["data"][0]["canEdit"])

        second = self.client.post(
            f"/api/documents/{document_id}/share",
            json={"employeeIds": [self.colleague.id, self.colleague.id], "canEdit": True},
        )
        self.assertEqual(second.status_code, 200)
        self.assertEqual(self.db.query(DocumentPermission).count(), 1)

        detail = self.client.get(f"/api/documents/{document_id}").json()["data"]
        self.assertEqual(len(detail["permissions"]), 1)
        self.assertTrue(detail["permissions"][0]["canEdit"])

    def test_share_with_unknown_employee_is_rejected(self) -> None:
        document_id = self._upload()["id"]

        response = self.client.post(f"/api/documents/{document_id}/share", json={"employeeIds": ["ghost"]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "EMPLOYEE_NOT_FOUND")

    def test_revoke_access(self) -> None:
        document_id = self._upload()["id"]
        self.client.post(f"/api/documents/{document_id}/share", json={"employeeIds": [self.colleague.id]})

        revoked = self.client.delete(f"/api/documents/{document_id}/permissions/{self.colleague.id}")
        self.assertEqual(revoked.status_code, 200)
        self.assertEqual(self.db.query(DocumentPermission).count(), 0)

        again = self.client.delete(f"/api/documents/{document_id}/permissions/{self.colleague.id}")
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json()["message"], "Document permission not found")

    def test_download_builds_public_url(self) -> None:
        document_id = self._upload()["id"]

        response = self.client.get(f"/api/documents/{document_id}/download")

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertTrue(data["downloadUrl"].endswith("/uploads/contracts/2024/contract.pdf"))
        self.assertEqual(data["mimeType"], "application/pdf")

    def test_delete_removes_permissions(self) -> None:
        document_id = self._upload()["id"]
        self.client.post(f"/api/documents/{document_id}/share", json={"employeeIds": [self.colleague.id]})

        response = self.client.delete(f"/api/documents/{document_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.db.query(DocumentPermission).count(), 0)
        self.assertEqual(self.client.get(f"/api/documents/{document_id}").status_code, 404)


class AssetEndpointTests(ApiTestCase):
    role = UserRole.ADMIN

    def setUp(self) -> None:
        super().setUp()
        self.employee = make_employee(self.db)

    def _create(self, **overrides: object) -> dict:
        payload: dict[str, object] = {
            "name": "MacBook Pro",
            "category": "LAPTOP",
            "serialNumber": "SN-001",
            "purchaseDate": "2024-01-15",
            "purchasePrice": 2499.0,
        }
        payload.update(overrides)
        response = self.client.post("/api/assets", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def test_create_defaults_to_available(self) -> None:
        self.assertEqual(self._create()["status"], "AVAILABLE")

    def test_failed_audit_write_does_not_fail_the_request(self) -> None:
        commit = self.db.commit

        def _commit_failing_on_audit_rows() -> None:
            if any(isinstance(item, AuditLog) for item in self.db.new):
                raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))
            commit()

        with patch.object(self.db, "commit", side_effect=_commit_failing_on_audit_rows):
            with self.assertLogs("nexus_hr.audit", level="ERROR") as logs:
                created = self._create()

        self.assertEqual(created["serialNumber"], "SN-001")
        self.assertEqual(self.db.query(Asset).count(), 1)
        self.assertEqual(self.db.query(AuditLog).count(), 0)
        self.assertIn("audit_log_write_failed", logs.output[0])

    def test_duplicate_serial_is_rejected(self) -> None:
        self._create()

        response = self.client.post(
            "/api/assets",
            json={
                "name": "Another laptop",
                "category": "LAPTOP",
                "serialNumber": "SN-001",
                "purchaseDate": "2024-02-01",
                "purchasePrice": 1999.0,
            },
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "SERIAL_TAKEN")
        self.assertEqual(self.db.query(Asset).count(), 1)

    def test_assign_then_return(self) -> None:
        asset_id = self._create()["id"]

        assigned = self.client.post(f"/api/assets/{asset_id}/assign", json={"employeeId": self.employee.id})
        self.assertEqual(assigned.status_code, 200)
        self.assertEqual(assigned.json()["data"]["status"], "ASSIGNED")
        self.assertIsNotNone(assigned.json()["data"]["assignedDate"])

        held = self.client.get(f"/api/assets/employee/{self.employee.id}")
        self.assertEqual([item["id"] for item in held.json()["data"]], [asset_id])

        returned = self.client.post(f"/api/assets/{asset_id}/return", json={"condition": "Scratched lid"})
        self.assertEqual(returned.status_code, 200)
        data = returned.json()["data"]
        self.assertEqual(data["status"], "AVAILABLE")
        self.assertIsNone(data["employeeId"])
        self.assertIsNone(data["assignedDate"])
        self.assertEqual(data["condition"], "Scratched lid")
        self.assertEqual(self.client.get(f"/api/assets/employee/{self.employee.id}").json()["data"], [])

    def test_assign_to_unknown_employee_is_404(self) -> None:
        asset_id = self._create()["id"]

        response = self.client.post(f"/api/assets/{asset_id}/assign", json={"employeeId": "missing"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Employee not found")

    def test_deleting_employee_releases_asset(self) -> None:
        asset_id = self._create()["id"]
        self.client.post(f"/api/assets/{asset_id}/assign", json={"employeeId": self.employee.id})

        self.client.delete(f"/api/employees/{self.employee.id}")

        self.db.expire_all()
        asset = self.db.get(Asset, asset_id)
        self.assertIsNotNone(asset)
        self.assertIsNone(asset.employee_id)
        self.assertEqual(asset.status, AssetStatus.ASSIGNED)

    def test_list_search_matches_serial(self) -> None:
        self._create()
        self._create(name="Dell monitor", category="MONITOR", serialNumber="MON-77")

        response = self.client.get("/api/assets", params={"search": "mon-7"})

        self.assertEqual([item["name"] for item in response.json()["data"]], ["Dell monitor"])

    def test_employees_cannot_manage_assets(self) -> None:
        self.act_as(UserRole.EMPLOYEE)

        response = self.client.post(
            "/api/assets",
            json={
                "name": "Phone",
                "category": "PHONE",
                "serialNumber": "PH-1",
                "purchaseDate": "2024-01-15",
                "purchasePrice": 800.0,
            },
        )

        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
