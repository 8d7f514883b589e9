"""
Tests for the HTTP API.

Uses FastAPI's TestClient against the in-memory database; the shared
session is injected through the get_db dependency.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app.database import get_db
from app.main import app
from app.models.db_models import CommissionDB, CommissionStructureDB, DealDB
from app.services.ingestion import ReportStorage


P99_ROW = "A123,Wes Writer,John Client,P-99,$120.00,$30.00,01/15/2024,02/01/2024,Accident Advantage"


@pytest.fixture
def client(db, tmp_path):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        app.state.report_storage = ReportStorage(str(tmp_path / "uploads"))
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def aflac(seed, db):
    setup = seed.aflac_agency()
    db.commit()
    return setup


def _upload(client, content, sidecar, filename="aflac.csv"):
    return client.post(
        "/commission-reports/upload",
        files={"file": (filename, content, "text/csv")},
        data={"data": json.dumps(sidecar)},
    )


# =============================================================================
# TEST: COMMISSION REPORTS
# =============================================================================

class TestCommissionReportsApi:
    """Upload and report lookup."""

    def test_upload_aflac_report(self, client, db, aflac, aflac_report):
        response = _upload(client, aflac_report(P99_ROW), {
            "carrierId": aflac["carrier"].id,
            "agencyId": aflac["agency"].id,
            "userId": "user-1",
            "amount": "30.00",
            "date": "2024-02-01",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total_records"] == 1
        assert body["total_rows"] == 1
        assert body["processed_count"] == 1
        assert body["error_count"] == 0
        assert body["commissions_created"] == 2
        assert body["carrier_config"] == "Aflac"
        assert body["file_type"] == "csv"
        assert body["status"] == "processed"
        assert db.query(CommissionDB).count() == 2

        detail = client.get(f"/commission-reports/{body['report_id']}")
        assert detail.status_code == 200
        assert detail.json()["upload_date"] == "2024-02-01"
        assert detail.json()["status"] == "processed"

    def test_row_errors_are_returned(self, client, aflac, aflac_report):
        response = _upload(client, aflac_report(
            "Z000,Nobody,Jane Client,P-1,$50.00,$5.00,,,Accident Advantage",
        ), {"carrierId": aflac["carrier"].id, "agencyId": aflac["agency"].id})

        assert response.status_code == 200
        assert response.json()["status"] == "error"
        assert len(response.json()["processing_errors"]) == 1

    def test_wrong_extension_is_400(self, client, aflac, aflac_report):
        response = _upload(client, aflac_report(P99_ROW), {"carrierId": aflac["carrier"].id}, filename="aflac.xlsx")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_file_type"

    def test_missing_carrier_id_is_400(self, client, aflac, aflac_report):
        response = _upload(client, aflac_report(P99_ROW), {"agencyId": aflac["agency"].id})
        assert response.status_code == 400

    def test_malformed_sidecar_is_400(self, client, aflac, aflac_report):
        response = client.post(
            "/commission-reports/upload",
            files={"file": ("aflac.csv", aflac_report(P99_ROW), "text/csv")},
            data={"data": "{not json"},
        )
        assert response.status_code == 400

    def test_hierarchy_cycle_is_409(self, client, db, aflac, aflac_report):
        aflac["manager"].upline_id = aflac["writer"].id
        db.commit()

        response = _upload(client, aflac_report(P99_ROW), {
            "carrierId": aflac["carrier"].id,
            "agencyId": aflac["agency"].id,
        })

        assert response.status_code == 409

    def test_download_returns_uploaded_bytes(self, client, aflac, aflac_report):
        content = aflac_report(P99_ROW)
        report_id = _upload(client, content, {
            "carrierId": aflac["carrier"].id,
            "agencyId": aflac["agency"].id,
        }).json()["report_id"]

        response = client.get(f"/commission-reports/{report_id}/download")

        assert response.status_code == 200
        assert response.content == content
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="aflac.csv"' in response.headers["content-disposition"]

    def test_download_unknown_report_is_404(self, client):
        assert client.get("/commission-reports/missing/download").status_code == 404

    def test_unknown_report_is_404(self, client):
        assert client.get("/commission-reports/missing").status_code == 404

    def test_lists_carrier_formats(self, client):
        response = client.get("/commission-reports/carriers")

        assert response.status_code == 200
        formats = {f["name"]: f for f in response.json()}
        assert formats["Aetna"]["sheet_name"] == "Commission Details"
        assert formats["Aflac"]["file_type"] == "csv"


# =============================================================================
# TEST: DEALS
# =============================================================================

class TestDealsApi:
    """Manual deal submission and lookup."""

    def _payload(self, aflac, **overrides):
        payload = {
            "policy_number": "P-99",
            "carrier_id": aflac["carrier"].id,
            "agent_id": aflac["writer"].id,
            "product_id": aflac["product"].id,
            "agency_id": aflac["agency"].id,
            "client_name": "John Client",
            "client_email": "client@example.com",
            "annual_premium": "120.00",
        }
        payload.update(overrides)
        return payload

    def test_create_then_update(self, client, aflac):
        created = client.post("/deals", json=self._payload(aflac))
        assert created.status_code == 201
        assert created.json()["operation"] == "created"
        assert created.json()["deal"]["status"] == "pending"
        assert len(created.json()["deal"]["snapshot"]) == 2

        updated = client.post("/deals", json=self._payload(
            aflac, client_email="other@example.com", client_phone="555-0100",
        ))
        assert updated.status_code == 200
        assert updated.json()["operation"] == "updated"
        assert updated.json()["deal"]["client_email"] == "client@example.com"
        assert updated.json()["filled_fields"] == ["client_phone"]

    def test_incomplete_hierarchy_is_422(self, client, db, aflac):
        aflac["manager"].position_id = None
        db.commit()

        response = client.post("/deals", json=self._payload(aflac))

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "hierarchy_incomplete"
        assert db.query(DealDB).count() == 0

    def test_create_without_product_is_400(self, client, aflac):
        response = client.post("/deals", json=self._payload(aflac, product_id=None))
        assert response.status_code == 400

    def test_unknown_agent_is_404(self, client, aflac):
        response = client.post("/deals", json=self._payload(aflac, agent_id="missing"))
        assert response.status_code == 404

    def test_get_deal_with_snapshot(self, client, aflac):
        deal_id = client.post("/deals", json=self._payload(aflac)).json()["deal"]["deal_id"]

        response = client.get(f"/deals/{deal_id}")

        assert response.status_code == 200
        snapshot = response.json()["snapshot"]
        assert [entry["level"] for entry in snapshot] == [0, 1]
        assert snapshot[0]["agent_id"] == aflac["writer"].id

    def test_unknown_deal_is_404(self, client):
        assert client.get("/deals/missing").status_code == 404


# =============================================================================
# TEST: AGENTS & COMMISSION STRUCTURES
# =============================================================================

class TestAgentsApi:
    """Read-only hierarchy checks."""

    def test_check_positions(self, client, db, aflac):
        aflac["manager"].position_id = None
        db.commit()

        response = client.get(f"/agents/{aflac['writer'].id}/check-positions")

        assert response.status_code == 200
        body = response.json()
        assert body["has_all_positions"] is False
        assert body["total_checked"] == 2
        assert body["missing_positions"][0]["name"] == "Maria Manager"

    def test_check_positions_unknown_agent(self, client):
        assert client.get("/agents/missing/check-positions").status_code == 404

    def test_agents_without_positions(self, client, db, seed, aflac):
        loose = seed.agent("Lou", "Loose", agency=aflac["agency"])
        db.commit()

        response = client.get("/agents/without-positions", params={"agency_id": aflac["agency"].id})

        assert response.status_code == 200
        assert [a["agent_id"] for a in response.json()] == [loose.id]

    def test_assigning_a_position_unblocks_deal_creation(self, client, db, aflac):
        aflac["manager"].position_id = None
        db.commit()
        deal = {
            "policy_number": "P-99",
            "carrier_id": aflac["carrier"].id,
            "agent_id": aflac["writer"].id,
            "product_id": aflac["product"].id,
        }
        assert client.post("/deals", json=deal).status_code == 422

        response = client.post("/agents/assign-position", json={
            "agentId": aflac["manager"].id,
            "positionId": aflac["manager_position"].id,
        })

        assert response.status_code == 200
        assert response.json()["position_id"] == aflac["manager_position"].id
        assert client.post("/deals", json=deal).status_code == 201

    def test_assign_position_from_other_agency_is_400(self, client, db, seed, aflac):
        other = seed.position("Agent", agency=seed.agency("Other Agency"))
        db.commit()

        response = client.post("/agents/assign-position", json={
            "agentId": aflac["writer"].id,
            "positionId": other.id,
        })

        assert response.status_code == 400
        db.refresh(aflac["writer"])
        assert aflac["writer"].position_id == aflac["agent_position"].id

    def test_assign_unknown_position_is_404(self, client, aflac):
        response = client.post("/agents/assign-position", json={
            "agentId": aflac["writer"].id,
            "positionId": "missing",
        })
        assert response.status_code == 404


class TestCommissionStructuresApi:
    """Create and list commission structures."""

    def test_create_and_list(self, client, aflac):
        response = client.post("/commission-structures", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": aflac["agent_position"].id,
            "product_id": aflac["product"].id,
            "percentage": "55.5",
            "commission_type": "renewal",
        })
        assert response.status_code == 201
        assert response.json()["level"] == 0

        listed = client.get("/commission-structures", params={
            "carrier_id": aflac["carrier"].id,
            "commission_type": "renewal",
        })
        assert [float(s["percentage"]) for s in listed.json()] == [55.5]

    def test_percentage_out_of_range(self, client, aflac):
        response = client.post("/commission-structures", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": aflac["agent_position"].id,
            "product_id": aflac["product"].id,
            "percentage": "1000",
        })
        assert response.status_code == 422

    def test_update_keeps_existing_deal_snapshot(self, client, db, aflac):
        deal_id = client.post("/deals", json={
            "policy_number": "P-99",
            "carrier_id": aflac["carrier"].id,
            "agent_id": aflac["writer"].id,
            "product_id": aflac["product"].id,
        }).json()["deal"]["deal_id"]
        structure = db.query(CommissionStructureDB).filter_by(position_id=aflac["agent_position"].id).one()

        response = client.put(f"/commission-structures/{structure.id}", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": aflac["agent_position"].id,
            "product_id": aflac["product"].id,
            "commission_type": "advance",
            "percentage": "90",
        })

        assert response.status_code == 200
        assert float(response.json()["percentage"]) == 90.0
        snapshot = client.get(f"/deals/{deal_id}").json()["snapshot"]
        assert [float(entry["percentage"]) for entry in snapshot] == [40.0, 60.0]

    def test_update_can_retire_a_structure(self, client, db, aflac):
        structure = db.query(CommissionStructureDB).filter_by(position_id=aflac["agent_position"].id).one()

        response = client.put(f"/commission-structures/{structure.id}", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": aflac["agent_position"].id,
            "product_id": aflac["product"].id,
            "percentage": "40",
            "is_active": False,
        })

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        listed = client.get("/commission-structures", params={"carrier_id": aflac["carrier"].id})
        assert [s["id"] for s in listed.json()] == [
            s.id for s in db.query(CommissionStructureDB).filter_by(position_id=aflac["manager_position"].id)
        ]

    def test_update_unknown_structure_is_404(self, client, aflac):
        response = client.put("/commission-structures/missing", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": aflac["agent_position"].id,
            "product_id": aflac["product"].id,
            "percentage": "10",
        })
        assert response.status_code == 404

    def test_unknown_position_is_404(self, client, aflac):
        response = client.post("/commission-structures", json={
            "carrier_id": aflac["carrier"].id,
            "position_id": "missing",
            "product_id": aflac["product"].id,
            "percentage": "10",
        })
        assert response.status_code == 404
