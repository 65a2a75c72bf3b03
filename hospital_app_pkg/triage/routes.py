# hospital_app_pkg/triage/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.orm import joinedload
from .. import db
from ..models import TriageAssessment, Patient, Appointment
from ..utils import permission_required, get_json_body, get_limit_offset, utc_day_bounds
from ..validation import Field, validate_payload, parse_iso_date
from .services import TRIAGE_CATEGORIES, record_assessment, update_assessment, resolve_queue_entry

triage_bp = Blueprint('triage_bp', __name__)

TRIAGE_SCHEMA = {
    'patient_id': Field('uuid', required=True),
    'appointment_id': Field('uuid'),
    'queue_id': Field('uuid'),
    'triage_level': Field('integer', required=True, min_value=1, max_value=5),
    'triage_category': Field('string', required=True, choices=TRIAGE_CATEGORIES),
    'chief_complaint': Field('string', required=True, min_length=1),
    'presenting_symptoms': Field('string_list'),
    'pain_level': Field('integer', min_value=0, max_value=10),
    'temperature': Field('number'),
    'blood_pressure_systolic': Field('integer'),
    'blood_pressure_diastolic': Field('integer'),
    'pulse_rate': Field('integer'),
    'respiratory_rate': Field('integer'),
    'oxygen_saturation': Field('number', min_value=0, max_value=100),
    'weight': Field('number'),
    'height': Field('number'),
    'blood_glucose': Field('number'),
    'allergies': Field('string_list'),
    'current_medications': Field('string_list'),
    'notes': Field('string'),
}

LIST_FIELDS = ('presenting_symptoms', 'allergies', 'current_medications')


def _with_related(query):
    return query.options(joinedload(TriageAssessment.patient), joinedload(TriageAssessment.assessor))


@triage_bp.route('/triage', methods=['GET'])
@permission_required('triage:read')
def get_triage_assessments():
    limit, offset = get_limit_offset()
    query = _with_related(TriageAssessment.query)

    patient_id = request.args.get('patient_id')
    if patient_id:
        query = query.filter(TriageAssessment.patient_id == patient_id)

    date_str = request.args.get('date')
    if date_str:
        day = parse_iso_date(date_str)
        if not day:
            return jsonify({"error": {"date": "Must be a date in YYYY-MM-DD format."}}), 400
        start, end = utc_day_bounds(day)
        query = query.filter(TriageAssessment.assessed_at >= start, TriageAssessment.assessed_at < end)

    assessments = query.order_by(TriageAssessment.assessed_at.desc()).limit(limit).offset(offset).all()
    return jsonify({
        "triage_assessments": [t.to_dict() for t in assessments],
        "limit": limit,
        "offset": offset,
    }), 200


@triage_bp.route('/triage/<string:triage_id>', methods=['GET'])
@permission_required('triage:read')
def get_triage_assessment(triage_id):
    assessment = db.get_or_404(TriageAssessment, triage_id, description="Triage assessment not found.")
    return jsonify(assessment.to_dict()), 200


@triage_bp.route('/triage', methods=['POST'])
@permission_required('triage:write')
def create_triage_assessment():
    data, errors = validate_payload(get_json_body(), TRIAGE_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    if not db.session.get(Patient, data['patient_id']):
        return jsonify({"error": "Patient not found."}), 404
    if data.get('appointment_id') and not db.session.get(Appointment, data['appointment_id']):
        return jsonify({"error": "Appointment not found."}), 404

    queue_entry = None
    if data.get('queue_id'):
        queue_entry = resolve_queue_entry(data['queue_id'], data['patient_id'])
        if queue_entry is None:
            return jsonify({"error": "Queue entry not found."}), 404

    for field in LIST_FIELDS:
        data[field] = data.get(field) or []

    assessment = record_assessment(data, g.current_user, queue_entry=queue_entry)
    return jsonify(assessment.to_dict()), 201


@triage_bp.route('/triage/<string:triage_id>', methods=['PUT'])
@permission_required('triage:write')
def update_triage_assessment(triage_id):
    assessment = db.get_or_404(TriageAssessment, triage_id, description="Triage assessment not found.")
    changes, errors = validate_payload(get_json_body(), TRIAGE_SCHEMA, partial=True)
    if errors:
        return jsonify({"error": errors}), 400
    if not changes:
        return jsonify({"error": "No fields to update."}), 400

    if 'patient_id' in changes and not db.session.get(Patient, changes['patient_id']):
        return jsonify({"error": "Patient not found."}), 404
    if changes.get('queue_id') and resolve_queue_entry(changes['queue_id'], changes.get('patient_id', assessment.patient_id)) is None:
        return jsonify({"error": "Queue entry not found."}), 404

    assessment = update_assessment(assessment, changes)
    return jsonify(assessment.to_dict()), 200


@triage_bp.route('/triage/<string:triage_id>', methods=['DELETE'])
@permission_required('triage:delete')
def delete_triage_assessment(triage_id):
    assessment = db.get_or_404(TriageAssessment, triage_id, description="Triage assessment not found.")
    try:
        db.session.delete(assessment)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting triage assessment {triage_id}: {e}")
        return jsonify({"error": "Failed to delete triage assessment."}), 500
    return jsonify({"message": "Triage assessment deleted."}), 200
