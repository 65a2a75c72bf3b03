# hospital_app_pkg/triage/services.py
from flask import current_app
from .. import db
from ..models import TriageAssessment, QueueEntry
from ..exceptions import TriageQueueMismatch

TRIAGE_CATEGORIES = ['resuscitation', 'emergency', 'urgent', 'less_urgent', 'non_urgent']

MOST_URGENT_LEVEL = 1
LEAST_URGENT_LEVEL = 5


def priority_for_triage_level(triage_level):
    """
    Queue priority for a clinical triage level.

    Both scales run 1..5 with 1 the most urgent, and the queue lists lower
    priority values first, so the mapping is one-to-one.
    """
    if not MOST_URGENT_LEVEL <= triage_level <= LEAST_URGENT_LEVEL:
        raise ValueError(f"triage_level must be between {MOST_URGENT_LEVEL} and {LEAST_URGENT_LEVEL}")
    return triage_level


def _linked_queue_entry(queue_id, patient_id):
    entry = db.session.get(QueueEntry, queue_id)
    if entry is None:
        return None
    if entry.patient_id != patient_id:
        raise TriageQueueMismatch("Queue entry belongs to a different patient.", queue_id=queue_id)
    return entry


def _propagate_priority(assessment, entry):
    entry.priority = priority_for_triage_level(assessment.triage_level)


def record_assessment(data, assessed_by, queue_entry=None):
    """
    Stores a triage assessment and, when it is tied to a queue entry, sets the
    entry's priority from the triage level. Both writes share one transaction:
    on any failure neither is kept.
    """
    assessment = TriageAssessment(assessed_by=assessed_by.id if assessed_by else None, **data)
    try:
        db.session.add(assessment)
        db.session.flush()
        if queue_entry is not None:
            _propagate_priority(assessment, queue_entry)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        f"Triage {assessment.id} recorded for patient {assessment.patient_id} "
        f"(level {assessment.triage_level}, queue {assessment.queue_id or '-'})"
    )
    return assessment


def update_assessment(assessment, changes):
    """
    Applies a partial update. If the update touches the level, the patient or
    the queue link and the assessment is linked to a queue entry, the entry
    must belong to the resulting patient and its priority is re-derived in the
    same transaction.
    """
    patient_id = changes.get('patient_id', assessment.patient_id)
    queue_id = changes.get('queue_id', assessment.queue_id)
    queue_entry = None
    if queue_id and any(field in changes for field in ('triage_level', 'queue_id', 'patient_id')):
        queue_entry = _linked_queue_entry(queue_id, patient_id)

    try:
        for field, value in changes.items():
            setattr(assessment, field, value)
        if queue_entry is not None:
            _propagate_priority(assessment, queue_entry)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return assessment


def resolve_queue_entry(queue_id, patient_id):
    """Returns the queue entry for a triage submission, or None if it does not exist."""
    return _linked_queue_entry(queue_id, patient_id)
