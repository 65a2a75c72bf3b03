"""Tests for beds and alerts."""

from hospital_app_pkg.models import ActivityLog, Bed


class TestBeds:
    """/api/beds"""

    def _create(self, client, headers, **fields):
        payload = {"bed_number": "B-101", "department": "general", "daily_rate": 120.5}
        payload.update(fields)
        resp = client.post("/api/beds", json=payload, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    def test_create_defaults(self, client, nurse_headers):
        bed = self._create(client, nurse_headers)
        assert bed["status"] == "available"
        assert bed["bed_type"] == "standard"
        assert bed["daily_rate"] == 120.5
        assert bed["patient_id"] is None

    def test_duplicate_bed_number(self, client, nurse_headers):
        self._create(client, nurse_headers)
        resp = client.post("/api/beds", json={"bed_number": "B-101"}, headers=nurse_headers)
        assert resp.status_code == 409

    def test_assign_patient_occupies_bed(self, client, nurse_headers, patient):
        bed = self._create(client, nurse_headers)
        resp = client.put(f"/api/beds/{bed['id']}", json={"patient_id": patient.id}, headers=nurse_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "occupied"
        assert body["patient_name"] == "Ada Lovelace"
        assert body["admitted_at"] is not None
        assert ActivityLog.query.filter_by(activity_type="bed_assigned").count() == 1

    def test_release_clears_patient(self, client, nurse_headers, patient):
        bed = self._create(client, nurse_headers)
        client.put(f"/api/beds/{bed['id']}", json={"patient_id": patient.id}, headers=nurse_headers)
        resp = client.put(f"/api/beds/{bed['id']}", json={"status": "available"}, headers=nurse_headers)
        body = resp.get_json()
        assert body["status"] == "available"
        assert body["patient_id"] is None
        assert body["admitted_at"] is None
        assert ActivityLog.query.filter_by(activity_type="bed_released").count() == 1

    def test_unknown_patient(self, client, nurse_headers):
        bed = self._create(client, nurse_headers)
        resp = client.put(f"/api/beds/{bed['id']}", json={"patient_id": "00000000-0000-0000-0000-000000000000"},
                          headers=nurse_headers)
        assert resp.status_code == 404

    def test_filters(self, client, nurse_headers):
        self._create(client, nurse_headers, bed_number="A", department="icu", bed_type="icu")
        self._create(client, nurse_headers, bed_number="B", department="general", status="maintenance")
        beds = client.get("/api/beds?department=icu", headers=nurse_headers).get_json()["beds"]
        assert [b["bed_number"] for b in beds] == ["A"]
        beds = client.get("/api/beds?status=maintenance", headers=nurse_headers).get_json()["beds"]
        assert [b["bed_number"] for b in beds] == ["B"]

    def test_receptionist_cannot_edit_beds(self, client, receptionist_headers):
        resp = client.post("/api/beds", json={"bed_number": "X"}, headers=receptionist_headers)
        assert resp.status_code == 403

    def test_delete(self, client, nurse_headers, admin_headers):
        bed = self._create(client, nurse_headers)
        assert client.delete(f"/api/beds/{bed['id']}", headers=nurse_headers).status_code == 403
        assert client.delete(f"/api/beds/{bed['id']}", headers=admin_headers).status_code == 200
        assert Bed.query.count() == 0


class TestAlerts:
    """/api/alerts"""

    def _create(self, client, headers, **fields):
        payload = {"alert_type": "warning", "title": "Low oxygen stock", "message": "Ward 3 below 20%"}
        payload.update(fields)
        resp = client.post("/api/alerts", json=payload, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    def test_create(self, client, receptionist_headers, receptionist):
        alert = self._create(client, receptionist_headers)
        assert alert["status"] == "active"
        assert alert["priority"] == 3
        assert alert["created_by"] == receptionist.id
        assert ActivityLog.query.filter_by(activity_type="alert_created").count() == 1

    def test_staff_entity(self, client, receptionist_headers, nurse):
        alert = self._create(client, receptionist_headers, entity_type="staff", entity_id=str(nurse.id))
        assert alert["entity_id"] == str(nurse.id)

    def test_invalid_type(self, client, receptionist_headers):
        resp = client.post("/api/alerts", json={"alert_type": "meh", "title": "t", "message": "m"},
                           headers=receptionist_headers)
        assert resp.status_code == 400

    def test_list_ordered_by_priority(self, client, nurse_headers):
        self._create(client, nurse_headers, title="low", priority=4)
        self._create(client, nurse_headers, title="high", priority=1)
        alerts = client.get("/api/alerts", headers=nurse_headers).get_json()["alerts"]
        assert [a["title"] for a in alerts] == ["high", "low"]
        alerts = client.get("/api/alerts?priority=4", headers=nurse_headers).get_json()["alerts"]
        assert [a["title"] for a in alerts] == ["low"]

    def test_acknowledge_and_resolve(self, client, nurse_headers, nurse):
        alert = self._create(client, nurse_headers)
        resp = client.put(f"/api/alerts/{alert['id']}/acknowledge", headers=nurse_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "acknowledged"
        assert resp.get_json()["acknowledged_by"] == nurse.id

        resp = client.put(f"/api/alerts/{alert['id']}/resolve", headers=nurse_headers)
        body = resp.get_json()
        assert body["status"] == "resolved"
        assert body["resolved_at"] is not None
        assert ActivityLog.query.filter_by(activity_type="alert_resolved").count() == 1

    def test_resolve_missing(self, client, nurse_headers):
        assert client.put("/api/alerts/missing/resolve", headers=nurse_headers).status_code == 404

    def test_receptionist_cannot_resolve(self, client, receptionist_headers):
        alert = self._create(client, receptionist_headers)
        resp = client.put(f"/api/alerts/{alert['id']}/resolve", headers=receptionist_headers)
        assert resp.status_code == 403
