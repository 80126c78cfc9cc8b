"""Tests for the risk register, assessments and the risk matrix."""
import csv
import io

import pytest

from conftest import add_assessment
from riskreg.models.audit_log import AuditLog
from riskreg.models.control import ExistingControl
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment


def _risk_payload(objective, org_units, taxonomy, **overrides):
    payload = {
        "name": "Payment gateway outage",
        "description": "Third-party payment gateway unavailable",
        "objective_id": objective.objective_id,
        "owner_unit_id": org_units["ops"].unit_id,
        "category_id": taxonomy.taxonomy_id,
    }
    payload.update(overrides)
    return payload


class TestRiskCrud:
    def test_create_generates_number(self, client, owner_headers, objective, org_units, taxonomy):
        response = client.post("/risks/", headers=owner_headers, json=_risk_payload(objective, org_units, taxonomy))
        assert response.status_code == 201
        data = response.json()
        assert data["risk_number"] == "RISK-0001"
        assert data["owner_unit"]["code"] == "OPS"
        assert data["inherent_assessment"] is None

    def test_generated_number_skips_taken(self, client, owner_headers, make_risk, objective, org_units, taxonomy):
        make_risk(risk_number="RISK-0002")
        response = client.post("/risks/", headers=owner_headers, json=_risk_payload(objective, org_units, taxonomy))
        assert response.json()["risk_number"] == "RISK-0003"

    def test_explicit_duplicate_number(self, client, owner_headers, sample_risk, objective, org_units, taxonomy):
        payload = _risk_payload(objective, org_units, taxonomy, risk_number=sample_risk.risk_number)
        response = client.post("/risks/", headers=owner_headers, json=payload)
        assert response.status_code == 400

    def test_unknown_references(self, client, owner_headers, objective, org_units, taxonomy):
        for field, label in [
            ("objective_id", "Objective not found"),
            ("owner_unit_id", "Organizational unit not found"),
            ("category_id", "Risk category not found"),
        ]:
            payload = _risk_payload(objective, org_units, taxonomy, **{field: 9999})
            response = client.post("/risks/", headers=owner_headers, json=payload)
            assert response.status_code == 400
            assert response.json()["detail"] == label

    def test_auditor_is_read_only(self, client, auditor_headers, sample_risk, objective, org_units, taxonomy):
        assert client.get(f"/risks/{sample_risk.risk_id}", headers=auditor_headers).status_code == 200
        response = client.post("/risks/", headers=auditor_headers, json=_risk_payload(objective, org_units, taxonomy))
        assert response.status_code == 403

    def test_requires_token(self, client, db_session):
        assert client.get("/risks/").status_code == 401

    def test_update_risk(self, client, db_session, owner_headers, sample_risk):
        response = client.patch(
            f"/risks/{sample_risk.risk_id}", headers=owner_headers, json={"name": "Data center outage"}
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Data center outage"
        log = db_session.query(AuditLog).filter(
            AuditLog.entity_type == "Risk", AuditLog.action == "UPDATE"
        ).one()
        assert log.changes["name"]["new"] == "Data center outage"

    @pytest.mark.parametrize("field", ["name", "risk_number", "objective_id", "owner_unit_id", "category_id"])
    def test_update_rejects_null_for_required_field(self, client, db_session, owner_headers, sample_risk, field):
        response = client.patch(f"/risks/{sample_risk.risk_id}", headers=owner_headers, json={field: None})
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"
        assert field in response.json()["details"][0]["msg"]

        db_session.expire_all()
        assert getattr(db_session.get(Risk, sample_risk.risk_id), field) is not None

    def test_update_clears_optional_description(self, client, owner_headers, sample_risk):
        response = client.patch(f"/risks/{sample_risk.risk_id}", headers=owner_headers, json={"description": None})
        assert response.status_code == 200
        assert response.json()["description"] is None

    def test_get_unknown(self, client, owner_headers):
        response = client.get("/risks/9999", headers=owner_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Risk not found"

    def test_detail_includes_children(self, client, db_session, owner_headers, sample_risk):
        db_session.add(ExistingControl(
            risk_id=sample_risk.risk_id, control_type="Preventive",
            impact_description="Daily backups", effectiveness_rating="EFFECTIVE"
        ))
        db_session.commit()
        add_assessment(db_session, sample_risk, "INHERENT", 4, 5)

        data = client.get(f"/risks/{sample_risk.risk_id}", headers=owner_headers).json()
        assert [c["impact_description"] for c in data["controls"]] == ["Daily backups"]
        assert data["inherent_assessment"]["level"] == "VERY_HIGH"
        assert data["residual_assessment"] is None
        assert data["kris"] == []

    def test_delete_cascades(self, client, db_session, owner_headers, sample_risk):
        add_assessment(db_session, sample_risk, "RESIDUAL", 2, 2)
        db_session.add(ExistingControl(
            risk_id=sample_risk.risk_id, control_type="Corrective", effectiveness_rating="FAIRLY_EFFECTIVE"
        ))
        db_session.commit()

        response = client.delete(f"/risks/{sample_risk.risk_id}", headers=owner_headers)
        assert response.status_code == 204
        db_session.expire_all()
        assert db_session.query(RiskAssessment).count() == 0
        assert db_session.query(ExistingControl).count() == 0


class TestRiskList:
    def test_pagination(self, client, owner_headers, make_risk):
        for i in range(12):
            make_risk(name=f"Risk {i}")
        response = client.get("/risks/?page=2&limit=5", headers=owner_headers)
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 5
        assert body["pagination"] == {"page": 2, "limit": 5, "total": 12, "total_pages": 3}

    def test_empty_register(self, client, owner_headers):
        body = client.get("/risks/", headers=owner_headers).json()
        assert body["data"] == []
        assert body["pagination"]["total_pages"] == 0

    def test_search(self, client, owner_headers, make_risk):
        make_risk(name="Fraudulent transfer")
        make_risk(name="Server room flood")
        body = client.get("/risks/?search=flood", headers=owner_headers).json()
        assert [r["name"] for r in body["data"]] == ["Server room flood"]

    def test_filter_by_unit(self, client, owner_headers, make_risk, org_units):
        make_risk(name="Ops risk")
        make_risk(name="Finance risk", unit=org_units["fin"])
        body = client.get(f"/risks/?unit_id={org_units['fin'].unit_id}", headers=owner_headers).json()
        assert [r["name"] for r in body["data"]] == ["Finance risk"]

    def test_filter_by_level(self, client, db_session, owner_headers, make_risk):
        high = make_risk(name="High one")
        low = make_risk(name="Low one")
        add_assessment(db_session, high, "INHERENT", 3, 5)
        add_assessment(db_session, low, "INHERENT", 1, 2)
        body = client.get("/risks/?level=HIGH", headers=owner_headers).json()
        assert [r["name"] for r in body["data"]] == ["High one"]

    def test_invalid_level(self, client, owner_headers):
        assert client.get("/risks/?level=SEVERE", headers=owner_headers).status_code == 400


class TestRiskAssessment:
    def test_create_inherent(self, client, db_session, owner_headers, sample_risk):
        response = client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers, json={
            "assessment_type": "INHERENT",
            "impact_value": "Loss above 10 billion",
            "impact_scale": 5,
            "probability_value": "Likely",
            "probability_scale": 4,
            "qualitative_impact_note": "Reputational damage",
            "target_residual": "ignored for inherent",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["exposure"] == 20
        assert data["level"] == "VERY_HIGH"
        assert data["qualitative_impact_note"] == "Reputational damage"
        assert data["target_residual"] is None

        log = db_session.query(AuditLog).filter(AuditLog.entity_type == "RiskAssessment").one()
        assert log.action == "CREATE"

    def test_replace_existing(self, client, db_session, owner_headers, sample_risk):
        url = f"/risks/{sample_risk.risk_id}/assessment"
        first = client.post(url, headers=owner_headers, json={
            "assessment_type": "RESIDUAL", "impact_scale": 4, "probability_scale": 4
        }).json()
        second = client.post(url, headers=owner_headers, json={
            "assessment_type": "RESIDUAL", "impact_scale": 2, "probability_scale": 3
        }).json()
        assert second["assessment_id"] == first["assessment_id"]
        assert second["exposure"] == 6
        assert second["level"] == "LOW"
        assert db_session.query(RiskAssessment).count() == 1

    def test_level_is_never_taken_from_client(self, client, owner_headers, sample_risk):
        response = client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers, json={
            "assessment_type": "INHERENT", "impact_scale": 1, "probability_scale": 1,
            "level": "VERY_HIGH", "exposure": 25,
        })
        data = response.json()
        assert data["exposure"] == 1
        assert data["level"] == "VERY_LOW"

    def test_rejects_out_of_range_scale(self, client, owner_headers, sample_risk):
        response = client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers, json={
            "assessment_type": "INHERENT", "impact_scale": 6, "probability_scale": 3
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_rejects_non_integer_scale(self, client, owner_headers, sample_risk):
        for bad in (2.5, "3"):
            response = client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers, json={
                "assessment_type": "INHERENT", "impact_scale": bad, "probability_scale": 3
            })
            assert response.status_code == 400

    def test_rejects_unknown_type(self, client, owner_headers, sample_risk):
        response = client.post(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers, json={
            "assessment_type": "TARGET", "impact_scale": 3, "probability_scale": 3
        })
        assert response.status_code == 400

    def test_get_pair(self, client, db_session, owner_headers, sample_risk):
        add_assessment(db_session, sample_risk, "INHERENT", 3, 5)
        data = client.get(f"/risks/{sample_risk.risk_id}/assessment", headers=owner_headers).json()
        assert data["inherent"]["exposure"] == 15
        assert data["inherent"]["level"] == "HIGH"
        assert data["residual"] is None

    def test_unknown_risk(self, client, owner_headers):
        response = client.post("/risks/9999/assessment", headers=owner_headers, json={
            "assessment_type": "INHERENT", "impact_scale": 3, "probability_scale": 3
        })
        assert response.status_code == 404


class TestRiskMatrix:
    def test_grid_shape(self, client, owner_headers):
        data = client.get("/risks/matrix", headers=owner_headers).json()
        grid = data["matrix_grid"]
        assert len(grid) == 5
        assert all(len(row) == 5 for row in grid)
        assert [row[0]["impact"] for row in grid] == [5, 4, 3, 2, 1]
        assert [cell["probability"] for cell in grid[0]] == [1, 2, 3, 4, 5]
        assert grid[0][4]["level"] == "VERY_HIGH"
        assert grid[4][0]["level"] == "VERY_LOW"
        assert data["total_risks"] == 0

    def test_counts_by_type(self, client, db_session, owner_headers, make_risk):
        a = make_risk(name="A")
        b = make_risk(name="B")
        add_assessment(db_session, a, "RESIDUAL", 2, 4)
        add_assessment(db_session, b, "RESIDUAL", 2, 4)
        add_assessment(db_session, a, "INHERENT", 5, 5)

        residual = client.get("/risks/matrix?type=residual", headers=owner_headers).json()
        cell = residual["matrix_grid"][1][1]
        assert (cell["impact"], cell["probability"]) == (4, 2)
        assert cell["count"] == 2
        assert residual["level_stats"]["LOW"] == 2
        assert residual["total_risks"] == 2

        inherent = client.get("/risks/matrix?type=inherent", headers=owner_headers).json()
        assert inherent["matrix_grid"][0][4]["count"] == 1
        assert inherent["total_risks"] == 1

    def test_filter_by_unit(self, client, db_session, owner_headers, make_risk, org_units):
        ops = make_risk(name="Ops")
        fin = make_risk(name="Fin", unit=org_units["fin"])
        add_assessment(db_session, ops, "RESIDUAL", 3, 3)
        add_assessment(db_session, fin, "RESIDUAL", 3, 3)
        data = client.get(
            f"/risks/matrix?unit_id={org_units['fin'].unit_id}", headers=owner_headers
        ).json()
        assert [r["name"] for r in data["risks"]] == ["Fin"]

    def test_invalid_type(self, client, owner_headers):
        assert client.get("/risks/matrix?type=target", headers=owner_headers).status_code == 400

    def test_csv_export(self, client, db_session, owner_headers, sample_risk):
        add_assessment(db_session, sample_risk, "RESIDUAL", 3, 4)
        response = client.get("/risks/matrix/export?type=residual", headers=owner_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=risk_matrix_residual_" in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == [
            "Risk Number", "Risk Name", "Category", "Unit",
            "Probability", "Impact", "Exposure", "Level",
        ]
        assert rows[1] == [
            sample_risk.risk_number, sample_risk.name, "Operational Risk", "Operations",
            "3", "4", "12", "MODERATE",
        ]

    def test_json_export(self, client, db_session, owner_headers, sample_risk):
        add_assessment(db_session, sample_risk, "INHERENT", 5, 4)
        data = client.get("/risks/matrix/export?type=inherent&format=json", headers=owner_headers).json()
        assert data["total"] == 1
        assert data["risks"][0]["level"] == "VERY_HIGH"
