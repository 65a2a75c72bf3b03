# hospital_app_pkg/activities/services.py
from flask import g, has_app_context
from .. import db
from ..models import ActivityLog

ACTIVITY_TYPES = [
    'patient_created', 'appointment_scheduled', 'appointment_completed',
    'bed_assigned', 'bed_released', 'alert_created', 'alert_resolved',
    'revenue_recorded', 'user_login', 'user_logout',
    'queue_checked_in', 'queue_stage_changed', 'triage_recorded',
]

ENTITY_TYPES = ['patient', 'appointment', 'bed', 'alert', 'revenue', 'user', 'queue', 'triage']


def _acting_user_id():
    if has_app_context() and getattr(g, 'current_user', None) is not None:
        return g.current_user.id
    return None


def record_activity(activity_type, description, entity_type=None, entity_id=None,
                    metadata=None, user_id=None, connection=None):
    """
    Adds an activity feed entry.

    Inside a flush (model event listeners) pass the listener's `connection`;
    the row is then inserted on that connection and shares the transaction of
    the change being recorded. Otherwise the entry is added to the session and
    committed with the caller's next commit.
    """
    values = dict(
        activity_type=activity_type,
        description=description,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        details=metadata or {},
        user_id=user_id if user_id is not None else _acting_user_id(),
    )
    if connection is not None:
        table_values = dict(values)
        table_values['metadata'] = table_values.pop('details')
        connection.execute(ActivityLog.__table__.insert().values(**table_values))
        return None

    entry = ActivityLog(**values)
    db.session.add(entry)
    return entry
