# hospital_app_pkg/activities/listeners.py
from sqlalchemy import event, inspect
from ..models import Patient, QueueEntry, TriageAssessment, Bed, Alert, Appointment, RevenueTransaction
from .services import record_activity


def _changed_to(target, attr_name):
    """New value of `attr_name` if it changed in this flush, else None."""
    history = inspect(target).attrs[attr_name].history
    if history.has_changes() and history.added:
        old = history.deleted[0] if history.deleted else None
        new = history.added[0]
        if new != old:
            return new
    return None


def after_patient_insert(mapper, connection, target):
    record_activity(
        'patient_created',
        f"New patient '{target.first_name} {target.last_name}' registered ({target.patient_number}).",
        entity_type='patient', entity_id=target.id, connection=connection,
    )


def after_queue_insert(mapper, connection, target):
    record_activity(
        'queue_checked_in',
        f"Patient checked in to {target.department} queue (#{target.queue_number}).",
        entity_type='queue', entity_id=target.id,
        metadata={"patient_id": target.patient_id, "priority": target.priority},
        connection=connection,
    )


def after_queue_update(mapper, connection, target):
    new_stage = _changed_to(target, 'current_stage')
    if new_stage:
        record_activity(
            'queue_stage_changed',
            f"Queue #{target.queue_number} ({target.department}) moved to stage '{new_stage}'.",
            entity_type='queue', entity_id=target.id,
            metadata={"patient_id": target.patient_id, "stage": new_stage, "status": target.status},
            connection=connection,
        )


def after_triage_insert(mapper, connection, target):
    record_activity(
        'triage_recorded',
        f"Triage level {target.triage_level} ({target.triage_category}) recorded.",
        entity_type='triage', entity_id=target.id,
        metadata={"patient_id": target.patient_id, "queue_id": target.queue_id},
        connection=connection,
    )


def after_bed_update(mapper, connection, target):
    new_status = _changed_to(target, 'status')
    if new_status == 'occupied':
        record_activity('bed_assigned', f"Bed {target.bed_number} assigned.",
                        entity_type='bed', entity_id=target.id,
                        metadata={"patient_id": target.patient_id}, connection=connection)
    elif new_status == 'available':
        record_activity('bed_released', f"Bed {target.bed_number} released.",
                        entity_type='bed', entity_id=target.id, connection=connection)


def after_alert_insert(mapper, connection, target):
    record_activity('alert_created', f"Alert raised: {target.title}",
                    entity_type='alert', entity_id=target.id,
                    metadata={"alert_type": target.alert_type, "priority": target.priority},
                    connection=connection)


def after_alert_update(mapper, connection, target):
    if _changed_to(target, 'status') == 'resolved':
        record_activity('alert_resolved', f"Alert resolved: {target.title}",
                        entity_type='alert', entity_id=target.id, connection=connection)


def after_appointment_insert(mapper, connection, target):
    record_activity('appointment_scheduled',
                    f"Appointment scheduled for {target.start_datetime:%Y-%m-%d %H:%M}.",
                    entity_type='appointment', entity_id=target.id,
                    metadata={"patient_id": target.patient_id}, connection=connection)


def after_appointment_update(mapper, connection, target):
    if _changed_to(target, 'status') == 'completed':
        record_activity('appointment_completed', "Appointment completed.",
                        entity_type='appointment', entity_id=target.id,
                        metadata={"patient_id": target.patient_id}, connection=connection)


def after_revenue_insert(mapper, connection, target):
    record_activity('revenue_recorded',
                    f"{target.revenue_type.replace('_', ' ').capitalize()} revenue of {target.amount} {target.currency} recorded.",
                    entity_type='revenue', entity_id=target.id, connection=connection)


LISTENERS = [
    (Patient, 'after_insert', after_patient_insert),
    (QueueEntry, 'after_insert', after_queue_insert),
    (QueueEntry, 'after_update', after_queue_update),
    (TriageAssessment, 'after_insert', after_triage_insert),
    (Bed, 'after_update', after_bed_update),
    (Alert, 'after_insert', after_alert_insert),
    (Alert, 'after_update', after_alert_update),
    (Appointment, 'after_insert', after_appointment_insert),
    (Appointment, 'after_update', after_appointment_update),
    (RevenueTransaction, 'after_insert', after_revenue_insert),
]


def register_activity_listeners():
    """Called by the app factory. Safe to call more than once."""
    for model, identifier, fn in LISTENERS:
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
