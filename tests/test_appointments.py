"""Tests for appointment scheduling."""

import datetime

from hospital_app_pkg.models import Appointment, ActivityLog


def _at(hour, minute=0, days=1):
    day = datetime.date.today() + datetime.timedelta(days=days)
    return datetime.datetime.combine(day, datetime.time(hour, minute)).isoformat()


class TestCreateAppointment:
    """POST /api/appointments"""

    def _book(self, client, headers, patient, provider, start, end=None, **fields):
        payload = {"patient_id": patient.id, "provider_user_id": provider.id, "start_datetime": start}
        if end:
            payload["end_datetime"] = end
        payload.update(fields)
        return client.post("/api/appointments", json=payload, headers=headers)

    def test_create(self, client, receptionist_headers, patient, doctor):
        resp = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(9, 30),
                          appointment_type="follow_up")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "scheduled"
        assert body["appointment_type"] == "follow_up"
        assert body["provider_name"] == "Dan Doctor"
        assert body["patient_name"] == "Ada Lovelace"
        assert ActivityLog.query.filter_by(activity_type="appointment_scheduled").count() == 1

    def test_default_duration(self, client, receptionist_headers, patient, doctor):
        body = self._book(client, receptionist_headers, patient, doctor, _at(9)).get_json()
        assert body["end_datetime"] == _at(9, 30)

    def test_overlap_conflicts(self, client, receptionist_headers, patient, doctor):
        self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        resp = self._book(client, receptionist_headers, patient, doctor, _at(9, 30), _at(10, 30))
        assert resp.status_code == 409
        assert Appointment.query.count() == 1

    def test_back_to_back_is_fine(self, client, receptionist_headers, patient, doctor):
        self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        resp = self._book(client, receptionist_headers, patient, doctor, _at(10), _at(11))
        assert resp.status_code == 201

    def test_cancelled_slot_is_free(self, client, receptionist_headers, patient, doctor):
        first = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10)).get_json()
        client.post(f"/api/appointments/{first['id']}/cancel", json={"reason": "sick"},
                    headers=receptionist_headers)
        resp = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        assert resp.status_code == 201

    def test_end_before_start(self, client, receptionist_headers, patient, doctor):
        resp = self._book(client, receptionist_headers, patient, doctor, _at(10), _at(9))
        assert resp.status_code == 400

    def test_unknown_provider(self, client, receptionist_headers, patient, doctor):
        resp = client.post("/api/appointments", json={
            "patient_id": patient.id, "provider_user_id": 9999, "start_datetime": _at(9),
        }, headers=receptionist_headers)
        assert resp.status_code == 404

    def test_nurse_cannot_book(self, client, nurse_headers, patient, doctor):
        resp = self._book(client, nurse_headers, patient, doctor, _at(9))
        assert resp.status_code == 403


class TestManageAppointments:
    """GET, PUT, cancel and DELETE"""

    def _book(self, client, headers, patient, provider, start, end):
        resp = client.post("/api/appointments", json={
            "patient_id": patient.id, "provider_user_id": provider.id,
            "start_datetime": start, "end_datetime": end,
        }, headers=headers)
        assert resp.status_code == 201
        return resp.get_json()

    def test_list_filters(self, client, receptionist_headers, make_patient, doctor):
        ada = make_patient()
        grace = make_patient(first_name="Grace", last_name="Hopper")
        self._book(client, receptionist_headers, ada, doctor, _at(9), _at(10))
        self._book(client, receptionist_headers, grace, doctor, _at(9, days=2), _at(10, days=2))
        body = client.get(f"/api/appointments?patient_id={grace.id}", headers=receptionist_headers).get_json()
        assert body["total"] == 1
        day = (datetime.date.today() + datetime.timedelta(days=1)).isoformat()
        body = client.get(f"/api/appointments?date={day}", headers=receptionist_headers).get_json()
        assert [a["patient_id"] for a in body["appointments"]] == [ada.id]

    def test_reschedule_into_conflict(self, client, receptionist_headers, patient, doctor):
        self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        second = self._book(client, receptionist_headers, patient, doctor, _at(11), _at(12))
        resp = client.put(f"/api/appointments/{second['id']}",
                          json={"start_datetime": _at(9, 30), "end_datetime": _at(10, 30)},
                          headers=receptionist_headers)
        assert resp.status_code == 409

    def test_update_notes_and_complete(self, client, receptionist_headers, patient, doctor):
        appt = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        resp = client.put(f"/api/appointments/{appt['id']}", json={"notes": "bring x-rays", "status": "completed"},
                          headers=receptionist_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["notes"] == "bring x-rays"
        assert body["end_datetime"] == _at(10)
        assert ActivityLog.query.filter_by(activity_type="appointment_completed").count() == 1

    def test_cancel(self, client, receptionist_headers, patient, doctor):
        appt = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        resp = client.post(f"/api/appointments/{appt['id']}/cancel", json={"reason": "Patient request"},
                           headers=receptionist_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "cancelled"
        assert "Patient request" in body["notes"]
        resp = client.post(f"/api/appointments/{appt['id']}/cancel", headers=receptionist_headers)
        assert resp.status_code == 409

    def test_get_missing(self, client, receptionist_headers):
        assert client.get("/api/appointments/missing", headers=receptionist_headers).status_code == 404

    def test_delete_is_admin_only(self, client, receptionist_headers, admin_headers, patient, doctor):
        appt = self._book(client, receptionist_headers, patient, doctor, _at(9), _at(10))
        assert client.delete(f"/api/appointments/{appt['id']}", headers=receptionist_headers).status_code == 403
        assert client.delete(f"/api/appointments/{appt['id']}", headers=admin_headers).status_code == 200
        assert Appointment.query.count() == 0
