# hospital_app_pkg/patients/routes.py
import uuid
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from .. import db
from ..models import Patient, Bed
from ..utils import permission_required, get_json_body, get_limit_offset
from ..validation import Field, validate_payload

patients_bp = Blueprint('patients_bp', __name__)

PATIENT_STATUSES = ['active', 'inactive', 'deceased']

PATIENT_SCHEMA = {
    'patient_number': Field('string', nullable=False, min_length=1),
    'first_name': Field('string', required=True, min_length=1),
    'last_name': Field('string', required=True, min_length=1),
    'date_of_birth': Field('date'),
    'gender': Field('string', choices=['male', 'female', 'other']),
    'phone': Field('string'),
    'email': Field('email'),
    'address': Field('string'),
    'emergency_contact_name': Field('string'),
    'emergency_contact_phone': Field('string'),
    'insurance_info': Field('dict'),
    'allergies': Field('string_list'),
    'status': Field('string', nullable=False, choices=PATIENT_STATUSES),
}


def generate_patient_number():
    return f"P-{uuid.uuid4().hex[:10].upper()}"


@patients_bp.route('/patients', methods=['GET'])
@permission_required('patient:read')
def get_patients():
    limit, offset = get_limit_offset()
    query = Patient.query

    status = request.args.get('status')
    if status:
        query = query.filter(Patient.status == status)

    search = request.args.get('search')
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Patient.first_name.ilike(pattern),
            Patient.last_name.ilike(pattern),
            Patient.patient_number.ilike(pattern),
        ))

    total = query.count()
    patients = query.order_by(Patient.created_at.desc()).limit(limit).offset(offset).all()
    return jsonify({
        "patients": [p.to_dict() for p in patients],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@patients_bp.route('/patients/<string:patient_id>', methods=['GET'])
@permission_required('patient:read')
def get_patient(patient_id):
    patient = db.get_or_404(Patient, patient_id, description="Patient not found.")
    return jsonify(patient.to_dict()), 200


@patients_bp.route('/patients', methods=['POST'])
@permission_required('patient:write')
def create_patient():
    data, errors = validate_payload(get_json_body(), PATIENT_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    data['patient_number'] = data.get('patient_number') or generate_patient_number()
    data['allergies'] = data.get('allergies') or []
    data['insurance_info'] = data.get('insurance_info') or {}
    data['status'] = data.get('status') or 'active'

    try:
        patient = Patient(created_by=g.current_user.id, **data)
        db.session.add(patient)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": f"Patient number '{data['patient_number']}' is already in use."}), 409
    current_app.logger.info(f"Patient {patient.patient_number} created by user {g.current_user.id}")
    return jsonify(patient.to_dict()), 201


@patients_bp.route('/patients/<string:patient_id>', methods=['PUT'])
@permission_required('patient:write')
def update_patient(patient_id):
    patient = db.get_or_404(Patient, patient_id, description="Patient not found.")
    changes, errors = validate_payload(get_json_body(), PATIENT_SCHEMA, partial=True)
    if errors:
        return jsonify({"error": errors}), 400
    if not changes:
        return jsonify({"error": "No fields to update."}), 400

    for field, value in changes.items():
        setattr(patient, field, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Patient number is already in use."}), 409
    return jsonify(patient.to_dict()), 200


@patients_bp.route('/patients/<string:patient_id>', methods=['DELETE'])
@permission_required('patient:delete')
def delete_patient(patient_id):
    patient = db.get_or_404(Patient, patient_id, description="Patient not found.")
    # Queue, triage and appointment rows go with the patient; beds are freed.
    for bed in Bed.query.filter_by(patient_id=patient.id):
        bed.patient_id = None
        bed.status = 'available'
        bed.admitted_at = None
        bed.expected_discharge = None
    db.session.delete(patient)
    db.session.commit()
    return jsonify({"success": True}), 200
