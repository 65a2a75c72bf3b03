# hospital_app_pkg/beds/routes.py
import datetime
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from .. import db
from ..models import Bed, Patient
from ..utils import permission_required, get_json_body
from ..validation import Field, validate_payload

beds_bp = Blueprint('beds_bp', __name__)

BED_TYPES = ['standard', 'icu', 'emergency', 'surgery', 'maternity']
BED_STATUSES = ['available', 'occupied', 'maintenance', 'reserved']

BED_SCHEMA = {
    'bed_number': Field('string', required=True, min_length=1),
    'room_number': Field('string'),
    'department': Field('string'),
    'bed_type': Field('string', nullable=False, choices=BED_TYPES),
    'status': Field('string', nullable=False, choices=BED_STATUSES),
    'patient_id': Field('uuid'),
    'expected_discharge': Field('datetime'),
    'daily_rate': Field('number', min_value=0),
}


def _apply_occupancy(bed, changes, previous_patient_id=None):
    """
    Keeps status and patient consistent after `changes` were applied: assigning
    a patient occupies the bed, making the bed available clears the patient.
    """
    if changes.get('patient_id'):
        if 'status' not in changes:
            bed.status = 'occupied'
        if changes['patient_id'] != previous_patient_id:
            bed.admitted_at = datetime.datetime.utcnow()
    if bed.status == 'available':
        bed.patient_id = None
        bed.admitted_at = None
        bed.expected_discharge = None


@beds_bp.route('/beds', methods=['GET'])
@permission_required('bed:read')
def get_beds():
    query = Bed.query
    status = request.args.get('status')
    if status:
        query = query.filter(Bed.status == status)
    department = request.args.get('department')
    if department:
        query = query.filter(Bed.department == department)
    beds = query.order_by(Bed.bed_number.asc()).all()
    return jsonify({"beds": [b.to_dict() for b in beds]}), 200


@beds_bp.route('/beds/<string:bed_id>', methods=['GET'])
@permission_required('bed:read')
def get_bed(bed_id):
    bed = db.get_or_404(Bed, bed_id, description="Bed not found.")
    return jsonify(bed.to_dict()), 200


@beds_bp.route('/beds', methods=['POST'])
@permission_required('bed:write')
def create_bed():
    data, errors = validate_payload(get_json_body(), BED_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400
    if data.get('patient_id') and not db.session.get(Patient, data['patient_id']):
        return jsonify({"error": "Patient not found."}), 404

    bed = Bed(**data)
    _apply_occupancy(bed, data)
    try:
        db.session.add(bed)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": f"Bed number '{data['bed_number']}' already exists."}), 409
    current_app.logger.info(f"Bed {bed.bed_number} created ({bed.status})")
    return jsonify(bed.to_dict()), 201


@beds_bp.route('/beds/<string:bed_id>', methods=['PUT'])
@permission_required('bed:write')
def update_bed(bed_id):
    bed = db.get_or_404(Bed, bed_id, description="Bed not found.")
    changes, errors = validate_payload(get_json_body(), BED_SCHEMA, partial=True)
    if errors:
        return jsonify({"error": errors}), 400
    if not changes:
        return jsonify({"error": "No fields to update."}), 400
    if changes.get('patient_id') and not db.session.get(Patient, changes['patient_id']):
        return jsonify({"error": "Patient not found."}), 404

    previous_patient_id = bed.patient_id
    for field, value in changes.items():
        setattr(bed, field, value)
    _apply_occupancy(bed, changes, previous_patient_id)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Bed number already exists."}), 409
    return jsonify(bed.to_dict()), 200


@beds_bp.route('/beds/<string:bed_id>', methods=['DELETE'])
@permission_required('bed:delete')
def delete_bed(bed_id):
    bed = db.get_or_404(Bed, bed_id, description="Bed not found.")
    db.session.delete(bed)
    db.session.commit()
    return jsonify({"success": True}), 200
