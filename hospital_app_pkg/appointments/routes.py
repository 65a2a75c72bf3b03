# hospital_app_pkg/appointments/routes.py
import datetime
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.orm import joinedload
from .. import db
from ..models import Appointment, Patient, User
from ..utils import permission_required, get_json_body, get_limit_offset, utc_day_bounds
from ..validation import Field, validate_payload, parse_iso_date

appointments_bp = Blueprint('appointments_bp', __name__)

APPOINTMENT_TYPES = ['consultation', 'follow_up', 'emergency', 'surgery', 'lab_test', 'imaging']
APPOINTMENT_STATUSES = ['scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show']
# Appointments in these statuses no longer hold their slot.
CANCELLED_STATUSES = ['cancelled', 'no_show']
DEFAULT_DURATION_MINUTES = 30

APPOINTMENT_SCHEMA = {
    'patient_id': Field('uuid', required=True),
    'provider_user_id': Field('integer'),
    'start_datetime': Field('datetime', required=True),
    'end_datetime': Field('datetime'),
    'duration_minutes': Field('integer', min_value=1, max_value=24 * 60),
    'appointment_type': Field('string', nullable=False, choices=APPOINTMENT_TYPES),
    'status': Field('string', nullable=False, choices=APPOINTMENT_STATUSES),
    'chief_complaint': Field('string'),
    'notes': Field('string'),
}


def check_appointment_conflict(provider_user_id, start_dt, end_dt, exclude_appointment_id=None):
    """Helper: Checks for overlapping appointments for a given provider."""
    if not all([provider_user_id, start_dt, end_dt]):
        return None

    query = Appointment.query.filter(
        Appointment.provider_user_id == provider_user_id,
        Appointment.status.notin_(CANCELLED_STATUSES),
        Appointment.start_datetime < end_dt,
        Appointment.end_datetime > start_dt
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.first()


def _end_of(start_dt, end_dt, duration_minutes):
    if end_dt:
        return end_dt
    return start_dt + datetime.timedelta(minutes=duration_minutes or DEFAULT_DURATION_MINUTES)


@appointments_bp.route('/appointments', methods=['GET'])
@permission_required('appointment:read')
def get_appointments():
    limit, offset = get_limit_offset()
    query = Appointment.query.options(
        joinedload(Appointment.patient),
        joinedload(Appointment.provider),
    )

    patient_id = request.args.get('patient_id')
    if patient_id:
        query = query.filter(Appointment.patient_id == patient_id)

    provider_user_id = request.args.get('provider_user_id')
    if provider_user_id:
        try:
            query = query.filter(Appointment.provider_user_id == int(provider_user_id))
        except ValueError:
            return jsonify({"error": "Invalid provider_user_id format."}), 400

    status = request.args.get('status')
    if status:
        query = query.filter(Appointment.status == status)

    date_str = request.args.get('date')
    if date_str:
        day = parse_iso_date(date_str)
        if not day:
            return jsonify({"error": {"date": "Must be a date in YYYY-MM-DD format."}}), 400
        start, end = utc_day_bounds(day)
        query = query.filter(Appointment.start_datetime >= start, Appointment.start_datetime < end)

    total = query.count()
    appointments = query.order_by(Appointment.start_datetime.asc()).limit(limit).offset(offset).all()
    return jsonify({
        "appointments": [a.to_dict(include_related=True) for a in appointments],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@appointments_bp.route('/appointments/<string:appointment_id>', methods=['GET'])
@permission_required('appointment:read')
def get_appointment(appointment_id):
    appointment = db.get_or_404(Appointment, appointment_id, description="Appointment not found.")
    return jsonify(appointment.to_dict(include_related=True)), 200


@appointments_bp.route('/appointments', methods=['POST'])
@permission_required('appointment:write')
def create_appointment():
    data, errors = validate_payload(get_json_body(), APPOINTMENT_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    if not db.session.get(Patient, data['patient_id']):
        return jsonify({"error": "Patient not found."}), 404
    provider_id = data.get('provider_user_id')
    if provider_id is not None and not db.session.get(User, provider_id):
        return jsonify({"error": "Provider not found."}), 404

    start_dt = data['start_datetime']
    end_dt = _end_of(start_dt, data.pop('end_datetime', None), data.pop('duration_minutes', None))
    if end_dt <= start_dt:
        return jsonify({"error": {"end_datetime": "Must be after start_datetime."}}), 400

    if check_appointment_conflict(provider_id, start_dt, end_dt):
        return jsonify({"error": "Provider has a conflicting appointment in the selected time slot."}), 409

    appointment = Appointment(end_datetime=end_dt, created_by=g.current_user.id, **data)
    db.session.add(appointment)
    db.session.commit()
    current_app.logger.info(f"Appointment {appointment.id} scheduled for patient {appointment.patient_id} at {start_dt}")
    return jsonify(appointment.to_dict(include_related=True)), 201


@appointments_bp.route('/appointments/<string:appointment_id>', methods=['PUT'])
@permission_required('appointment:write')
def update_appointment(appointment_id):
    appointment = db.get_or_404(Appointment, appointment_id, description="Appointment not found.")
    changes, errors = validate_payload(get_json_body(), APPOINTMENT_SCHEMA, partial=True)
    if errors:
        return jsonify({"error": errors}), 400
    if not changes:
        return jsonify({"error": "No fields to update."}), 400

    if 'patient_id' in changes and not db.session.get(Patient, changes['patient_id']):
        return jsonify({"error": "Patient not found."}), 404
    if changes.get('provider_user_id') is not None and not db.session.get(User, changes['provider_user_id']):
        return jsonify({"error": "Provider not found."}), 404

    check_start_dt = changes.get('start_datetime', appointment.start_datetime)
    duration = changes.pop('duration_minutes', None)
    if 'end_datetime' in changes or duration:
        check_end_dt = _end_of(check_start_dt, changes.pop('end_datetime', None), duration)
    else:
        check_end_dt = appointment.end_datetime
    check_provider_id = changes.get('provider_user_id', appointment.provider_user_id)

    if check_end_dt <= check_start_dt:
        return jsonify({"error": {"end_datetime": "Must be after start_datetime."}}), 400

    moved = any(k in changes for k in ('start_datetime', 'provider_user_id')) or check_end_dt != appointment.end_datetime
    if moved and check_appointment_conflict(check_provider_id, check_start_dt, check_end_dt,
                                            exclude_appointment_id=appointment.id):
        return jsonify({"error": "Proposed change conflicts with another appointment for the provider."}), 409

    for field, value in changes.items():
        setattr(appointment, field, value)
    appointment.end_datetime = check_end_dt
    db.session.commit()
    return jsonify(appointment.to_dict(include_related=True)), 200


@appointments_bp.route('/appointments/<string:appointment_id>/cancel', methods=['POST'])
@permission_required('appointment:write')
def cancel_appointment(appointment_id):
    appointment = db.get_or_404(Appointment, appointment_id, description="Appointment not found.")
    data = get_json_body() or {}
    cancel_reason = data.get('reason') or 'Cancelled by user action.'

    if appointment.status in CANCELLED_STATUSES:
        return jsonify({"error": f"Appointment is already {appointment.status}."}), 409

    appointment.status = 'cancelled'
    appointment.notes = f"[CANCELLED on {datetime.datetime.utcnow():%Y-%m-%d %H:%M:%S} UTC] Reason: {cancel_reason}\n---\n{appointment.notes or ''}".strip()
    db.session.commit()
    current_app.logger.info(f"Appointment {appointment_id} cancelled by user {g.current_user.id}")
    return jsonify(appointment.to_dict(include_related=True)), 200


@appointments_bp.route('/appointments/<string:appointment_id>', methods=['DELETE'])
@permission_required('appointment:delete')
def delete_appointment(appointment_id):
    appointment = db.get_or_404(Appointment, appointment_id, description="Appointment not found.")
    db.session.delete(appointment)
    db.session.commit()
    return jsonify({"success": True}), 200
