# hospital_app_pkg/activities/routes.py
from flask import Blueprint, request, jsonify
from sqlalchemy.orm import joinedload
from .. import db
from ..models import ActivityLog
from ..utils import permission_required, get_json_body, get_limit_offset
from ..validation import Field, validate_payload
from .services import ACTIVITY_TYPES, ENTITY_TYPES, record_activity

activities_bp = Blueprint('activities_bp', __name__)

ACTIVITY_SCHEMA = {
    'activity_type': Field('string', required=True, choices=ACTIVITY_TYPES),
    'entity_type': Field('string', choices=ENTITY_TYPES),
    'entity_id': Field('string', min_length=1),
    'description': Field('string', required=True, min_length=1),
    'metadata': Field('dict'),
}


def recent_activities(limit):
    return ActivityLog.query.options(joinedload(ActivityLog.user)).order_by(
        ActivityLog.created_at.desc()
    ).limit(limit).all()


@activities_bp.route('/activities', methods=['GET'])
@permission_required('activity:read')
def get_activities():
    limit, _ = get_limit_offset()
    query = ActivityLog.query.options(joinedload(ActivityLog.user))

    activity_type = request.args.get('activity_type')
    if activity_type:
        query = query.filter(ActivityLog.activity_type == activity_type)
    entity_type = request.args.get('entity_type')
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)

    activities = query.order_by(ActivityLog.created_at.desc()).limit(limit).all()
    return jsonify({"activities": [a.to_dict() for a in activities]}), 200


@activities_bp.route('/activities', methods=['POST'])
@permission_required('activity:create')
def create_activity():
    data, errors = validate_payload(get_json_body(), ACTIVITY_SCHEMA)
    if errors:
        return jsonify({"error": errors}), 400

    activity = record_activity(
        data['activity_type'],
        data['description'],
        entity_type=data.get('entity_type'),
        entity_id=data.get('entity_id'),
        metadata=data.get('metadata'),
    )
    db.session.commit()
    return jsonify(activity.to_dict()), 201
