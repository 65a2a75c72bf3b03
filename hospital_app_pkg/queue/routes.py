# hospital_app_pkg/queue/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from .. import db
from ..models import QueueEntry, Patient, Appointment
from ..utils import permission_required, get_json_body, utc_today
from ..validation import Field, validate_payload, parse_iso_date
from . import services
from .stages import STAGE_VALUES, STATUS_VALUES

queue_bp = Blueprint('queue_bp', __name__)

QUEUE_SCHEMA = {
    'patient_id': Field('uuid', required=True),
    'appointment_id': Field('uuid'),
    'department': Field('string', required=True, min_length=1),
    'service_type': Field('string'),
    'priority': Field('integer', min_value=1, max_value=5),
    'room_number': Field('string'),
    'notes': Field('string'),
}

CALL_NEXT_SCHEMA = {
    'department': Field('string', required=True, min_length=1),
    'room_number': Field('string'),
}

STATUS_SCHEMA = {
    'status': Field('string', required=True, choices=STATUS_VALUES),
    'room_number': Field('string'),
}

STAGE_SCHEMA = {
    'stage': Field('string', required=True, choices=STAGE_VALUES),
    'room_number': Field('string'),
}


def _requested_day():
    date_str = request.args.get('date')
    if not date_str:
        return utc_today(), None
    day = parse_iso_date(date_str)
    if not day:
        return None, (jsonify({"error": {"date": "Must be a date in YYYY-MM-DD format."}}), 400)
    return day, None


@queue_bp.route('/queue', methods=['GET'])
@permission_required('queue:read')
def get_queue():
    day, error = _requested_day()
    if error:
        return error
    query = services.entries_for_day(
        day,
        department=request.args.get('department'),
        status=request.args.get('status'),
    )
    entries = services.ordered(query).all()
    return jsonify({"date": day.isoformat(), "queue": [e.to_dict() for e in entries]}), 200


@queue_bp.route('/queue/stats', methods=['GET'])
@permission_required('queue:read')
def get_queue_stats():
    day, error = _requested_day()
    if error:
        return error
    stats = services.queue_stats(day)
    stats["date"] = day.isoformat()
    return jsonify(stats), 200


@queue_bp.route('/queue/now-serving', methods=['GET'])
@permission_required('queue:read')
def get_now_serving():
    query = services.entries_for_day(utc_today(), department=request.args.get('department')).filter(
        QueueEntry.status.in_(['called', 'in_progress'])
    )
    entries = query.order_by(QueueEntry.called_time.desc()).all()
    return jsonify({"now_serving": [e.to_dict() for e in entries]}), 200


@queue_bp.route('/queue/<string:entry_id>', methods=['GET'])
@permission_required('queue:read')
def get_queue_entry(entry_id):
    entry = db.get_or_404(QueueEntry, entry_id, description="Queue entry not found.")
    return jsonify(entry.to_dict()), 200


@queue_bp.route('/queue', methods=['POST'])
@permission_required('queue:write')
def add_to_queue():
    data, errors = validate_payload(get_json_body(), QUEUE_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    patient = db.session.get(Patient, data['patient_id'])
    if not patient:
        return jsonify({"error": "Patient not found."}), 404
    if data.get('appointment_id') and not db.session.get(Appointment, data['appointment_id']):
        return jsonify({"error": "Appointment not found."}), 404

    entry = services.check_in(
        patient,
        data['department'],
        service_type=data.get('service_type'),
        priority=data.get('priority'),
        appointment_id=data.get('appointment_id'),
        room_number=data.get('room_number'),
        notes=data.get('notes'),
    )
    return jsonify(entry.to_dict()), 201


@queue_bp.route('/queue/call-next', methods=['POST'])
@permission_required('queue:write')
def call_next_patient():
    data, errors = validate_payload(get_json_body(), CALL_NEXT_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    entry = services.call_next(data['department'], g.current_user, room_number=data.get('room_number'))
    return jsonify(entry.to_dict()), 200


@queue_bp.route('/queue/<string:entry_id>/status', methods=['PATCH'])
@permission_required('queue:write')
def update_queue_status(entry_id):
    entry = db.get_or_404(QueueEntry, entry_id, description="Queue entry not found.")
    data, errors = validate_payload(get_json_body(), STATUS_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    entry = services.set_status(entry, data['status'], g.current_user, room_number=data.get('room_number'))
    return jsonify(entry.to_dict()), 200


@queue_bp.route('/queue/<string:entry_id>/stage', methods=['PATCH'])
@permission_required('queue:write')
def update_queue_stage(entry_id):
    entry = db.get_or_404(QueueEntry, entry_id, description="Queue entry not found.")
    data, errors = validate_payload(get_json_body(), STAGE_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    entry = services.set_stage(entry, data['stage'], g.current_user, room_number=data.get('room_number'))
    return jsonify(entry.to_dict()), 200


@queue_bp.route('/queue/<string:entry_id>', methods=['DELETE'])
@permission_required('queue:delete')
def delete_queue_entry(entry_id):
    entry = db.get_or_404(QueueEntry, entry_id, description="Queue entry not found.")
    try:
        db.session.delete(entry)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting queue entry {entry_id}: {e}")
        return jsonify({"error": "Failed to delete queue entry."}), 500
    return jsonify({"message": "Queue entry deleted."}), 200
