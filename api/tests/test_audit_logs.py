"""Tests for the audit trail."""


class TestAuditLogs:
    def _create_unit(self, client, headers, code):
        return client.post("/org-units/", headers=headers, json={"code": code, "name": f"Unit {code}"}).json()

    def test_writes_are_logged(self, client, admin_headers, admin_user):
        unit = self._create_unit(client, admin_headers, "HR")
        client.patch(f"/org-units/{unit['unit_id']}", headers=admin_headers, json={"name": "Human Capital"})
        client.delete(f"/org-units/{unit['unit_id']}", headers=admin_headers)

        logs = client.get(
            f"/audit-logs/?entity_type=OrgUnit&entity_id={unit['unit_id']}", headers=admin_headers
        ).json()
        assert [log["action"] for log in logs] == ["DELETE", "UPDATE", "CREATE"]
        assert logs[1]["changes"]["name"] == {"old": "Unit HR", "new": "Human Capital"}
        assert logs[0]["user"]["email"] == "admin@example.com"

    def test_unchanged_update_not_logged(self, client, admin_headers):
        unit = self._create_unit(client, admin_headers, "HR")
        client.patch(f"/org-units/{unit['unit_id']}", headers=admin_headers, json={"name": "Unit HR"})
        logs = client.get("/audit-logs/?action=UPDATE", headers=admin_headers).json()
        assert logs == []

    def test_filters_and_paging(self, client, admin_headers, owner_headers, risk_owner):
        self._create_unit(client, admin_headers, "HR")
        self._create_unit(client, owner_headers, "IT")
        self._create_unit(client, owner_headers, "LEG")

        logs = client.get(f"/audit-logs/?user_id={risk_owner.user_id}", headers=admin_headers).json()
        assert len(logs) == 2
        logs = client.get("/audit-logs/?limit=1&offset=1", headers=admin_headers).json()
        assert len(logs) == 1
        assert logs[0]["changes"]["code"] == "IT"

    def test_entity_types(self, client, admin_headers, sample_risk):
        self._create_unit(client, admin_headers, "HR")
        client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=admin_headers, json={
            "assessment_type": "INHERENT", "impact_scale": 2, "probability_scale": 2
        })
        types = client.get("/audit-logs/entity-types", headers=admin_headers).json()
        assert types == ["OrgUnit", "RiskAssessment"]

    def test_requires_authentication(self, client, db_session):
        assert client.get("/audit-logs/").status_code == 401
