"""Pytest fixtures for the hospital backend tests."""

import itertools

import pytest

from hospital_app_pkg import create_app, db
from hospital_app_pkg.auth.routes import create_user
from hospital_app_pkg.models import Patient
from hospital_app_pkg.utils import create_access_token

PASSWORD = "correct-horse-battery"

_patient_numbers = itertools.count(1)


@pytest.fixture
def app():
    """App on a fresh in-memory database, with its app context pushed."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin(app):
    return create_user("admin@hospital.test", PASSWORD, "Alice", "Admin", roles=["admin"])


@pytest.fixture
def nurse(app):
    return create_user("nurse@hospital.test", PASSWORD, "Nora", "Nurse", roles=["nurse"])


@pytest.fixture
def doctor(app):
    return create_user("doctor@hospital.test", PASSWORD, "Dan", "Doctor", roles=["doctor"])


@pytest.fixture
def receptionist(app):
    return create_user("desk@hospital.test", PASSWORD, "Rita", "Reception", roles=["receptionist"])


@pytest.fixture
def cashier(app):
    return create_user("cash@hospital.test", PASSWORD, "Carl", "Cashier", roles=["cashier"])


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def nurse_headers(nurse):
    return _headers(nurse)


@pytest.fixture
def doctor_headers(doctor):
    return _headers(doctor)


@pytest.fixture
def receptionist_headers(receptionist):
    return _headers(receptionist)


@pytest.fixture
def cashier_headers(cashier):
    return _headers(cashier)


@pytest.fixture
def make_patient(app):
    """Factory inserting a patient directly."""
    def _make(first_name="Ada", last_name="Lovelace", **fields):
        patient = Patient(
            patient_number=f"P-TEST{next(_patient_numbers):05d}",
            first_name=first_name,
            last_name=last_name,
            **fields,
        )
        db.session.add(patient)
        db.session.commit()
        return patient
    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def check_in(client, nurse_headers):
    """Factory checking a patient in through the API; returns the response JSON."""
    def _check_in(patient, department="general", **fields):
        resp = client.post(
            "/api/queue",
            json={"patient_id": patient.id, "department": department, **fields},
            headers=nurse_headers,
        )
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _check_in
