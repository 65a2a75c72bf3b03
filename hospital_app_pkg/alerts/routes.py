# hospital_app_pkg/alerts/routes.py
import datetime
from flask import Blueprint, request, jsonify, current_app, g
from .. import db
from ..models import Alert
from ..utils import permission_required, get_json_body
from ..validation import Field, validate_payload

alerts_bp = Blueprint('alerts_bp', __name__)

ALERT_TYPES = ['critical', 'warning', 'info', 'emergency']
ALERT_STATUSES = ['active', 'acknowledged', 'resolved', 'escalated']
ALERT_ENTITY_TYPES = ['patient', 'bed', 'staff', 'equipment', 'system']

ALERT_SCHEMA = {
    'alert_type': Field('string', required=True, choices=ALERT_TYPES),
    'priority': Field('integer', nullable=False, min_value=1, max_value=5, default=3),
    'title': Field('string', required=True, min_length=1),
    'message': Field('string', required=True, min_length=1),
    'entity_type': Field('string', choices=ALERT_ENTITY_TYPES),
    'entity_id': Field('string', min_length=1),
}

ALERT_LIST_LIMIT = 50


def active_alerts_query():
    """Unresolved alerts, most urgent first, newest first within a priority."""
    return Alert.query.filter(Alert.status == 'active').order_by(
        Alert.priority.asc(), Alert.created_at.desc()
    )


@alerts_bp.route('/alerts', methods=['GET'])
@permission_required('alert:read')
def get_alerts():
    query = Alert.query
    status = request.args.get('status')
    if status:
        query = query.filter(Alert.status == status)
    priority = request.args.get('priority', type=int)
    if priority:
        query = query.filter(Alert.priority == priority)
    alerts = query.order_by(Alert.priority.asc(), Alert.created_at.desc()).limit(ALERT_LIST_LIMIT).all()
    return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200


@alerts_bp.route('/alerts', methods=['POST'])
@permission_required('alert:create')
def create_alert():
    data, errors = validate_payload(get_json_body(), ALERT_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    alert = Alert(created_by=g.current_user.id, status='active', **data)
    db.session.add(alert)
    db.session.commit()
    current_app.logger.info(f"Alert '{alert.title}' ({alert.alert_type}, p{alert.priority}) raised by user {g.current_user.id}")
    return jsonify(alert.to_dict()), 201


@alerts_bp.route('/alerts/<string:alert_id>/acknowledge', methods=['PUT'])
@permission_required('alert:update')
def acknowledge_alert(alert_id):
    alert = db.get_or_404(Alert, alert_id, description="Alert not found.")
    alert.status = 'acknowledged'
    alert.acknowledged_by = g.current_user.id
    alert.acknowledged_at = datetime.datetime.utcnow()
    db.session.commit()
    return jsonify(alert.to_dict()), 200


@alerts_bp.route('/alerts/<string:alert_id>/resolve', methods=['PUT'])
@permission_required('alert:update')
def resolve_alert(alert_id):
    alert = db.get_or_404(Alert, alert_id, description="Alert not found.")
    alert.status = 'resolved'
    alert.resolved_by = g.current_user.id
    alert.resolved_at = datetime.datetime.utcnow()
    db.session.commit()
    return jsonify(alert.to_dict()), 200
