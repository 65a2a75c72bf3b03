# hospital_app_pkg/queue/services.py
# Patient queue operations shared by the queue routes and the CLI.

import datetime
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from .. import db
from ..models import QueueEntry
from ..exceptions import ActiveQueueEntryExists, InvalidStageTransition, QueueEntryClosed, NoPatientsWaiting
from ..utils import utc_day_bounds
from .stages import (
    ACTIVE_STATUSES, CLOSED_STATUSES, STATUS_VALUES, QueueStage, QueueStatus,
    allowed_next_stages, can_transition, status_for_stage,
)


def ordered(query):
    """Most urgent first (lowest priority value), then first come first served."""
    return query.order_by(
        QueueEntry.priority.asc(),
        QueueEntry.check_in_time.asc(),
        QueueEntry.queue_number.asc(),
    )


def entries_for_day(day, department=None, status=None):
    start, end = utc_day_bounds(day)
    query = QueueEntry.query.filter(QueueEntry.check_in_time >= start, QueueEntry.check_in_time < end)
    if department:
        query = query.filter(QueueEntry.department == department)
    if status:
        query = query.filter(QueueEntry.status == status)
    return query


def find_active_entry(patient_id):
    return QueueEntry.query.filter(
        QueueEntry.patient_id == patient_id,
        QueueEntry.status.in_(ACTIVE_STATUSES),
    ).first()


def next_queue_number(department, day):
    start, end = utc_day_bounds(day)
    current_max = db.session.query(func.max(QueueEntry.queue_number)).filter(
        QueueEntry.department == department,
        QueueEntry.check_in_time >= start,
        QueueEntry.check_in_time < end,
    ).scalar()
    return (current_max or 0) + 1


def _already_queued(patient_id):
    existing = find_active_entry(patient_id)
    return ActiveQueueEntryExists(
        "Patient is already in the active queue.",
        existing_entry=existing.to_dict() if existing else None,
    )


def check_in(patient, department, service_type=None, priority=None, appointment_id=None,
             room_number=None, notes=None):
    """
    Adds `patient` to today's queue for `department`.

    Raises ActiveQueueEntryExists when the patient already has an active
    entry, whether found up front or reported by the unique index on commit.
    """
    if find_active_entry(patient.id):
        raise _already_queued(patient.id)

    now = datetime.datetime.utcnow()
    entry = QueueEntry(
        patient_id=patient.id,
        appointment_id=appointment_id,
        queue_number=next_queue_number(department, now.date()),
        department=department,
        service_type=service_type or 'consultation',
        priority=priority or current_app.config['DEFAULT_QUEUE_PRIORITY'],
        status=QueueStatus.WAITING.value,
        current_stage=QueueStage.WAITING.value,
        check_in_time=now,
        room_number=room_number,
        notes=notes,
    )
    db.session.add(entry)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"Duplicate active queue entry rejected for patient {patient.id}")
        raise _already_queued(patient.id)
    current_app.logger.info(f"Patient {patient.id} checked in to {department} as #{entry.queue_number}")
    return entry


def _commit_status_change(entry):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise _already_queued(entry.patient_id)


def call_next(department, staff, room_number=None):
    """Marks the most urgent waiting patient of today's `department` queue as called."""
    today = datetime.datetime.utcnow().date()
    entry = ordered(entries_for_day(today, department=department, status=QueueStatus.WAITING.value)).first()
    if not entry:
        raise NoPatientsWaiting("No patients waiting.")

    entry.status = QueueStatus.CALLED.value
    entry.called_time = datetime.datetime.utcnow()
    entry.serving_staff_id = staff.id
    entry.room_number = room_number
    db.session.commit()
    current_app.logger.info(f"Called queue #{entry.queue_number} ({department}) by user {staff.id}")
    return entry


def set_status(entry, status, staff, room_number=None):
    if status not in STATUS_VALUES:
        raise ValueError(f"Unknown queue status '{status}'")

    now = datetime.datetime.utcnow()
    entry.status = status
    if status == QueueStatus.CALLED.value:
        entry.called_time = now
        entry.serving_staff_id = staff.id
    elif status == QueueStatus.IN_PROGRESS.value:
        entry.start_time = now
    elif status in (QueueStatus.COMPLETED.value, QueueStatus.NO_SHOW.value):
        entry.end_time = now
    if room_number:
        entry.room_number = room_number

    _commit_status_change(entry)
    return entry


def set_stage(entry, stage, staff, room_number=None):
    """
    Moves `entry` to workflow `stage` along the transition table and derives
    the matching status. Raises QueueEntryClosed or InvalidStageTransition
    without touching the entry.
    """
    if entry.status in CLOSED_STATUSES:
        raise QueueEntryClosed(f"Queue entry is {entry.status} and cannot change stage.")
    if not can_transition(entry.current_stage, stage):
        raise InvalidStageTransition(
            f"Cannot move from stage '{entry.current_stage}' to '{stage}'.",
            current_stage=entry.current_stage,
            allowed_stages=allowed_next_stages(entry.current_stage),
        )

    previous = entry.current_stage
    new_status = status_for_stage(stage)
    now = datetime.datetime.utcnow()
    if new_status == QueueStatus.IN_PROGRESS.value and entry.start_time is None:
        entry.start_time = now
    if new_status == QueueStatus.COMPLETED.value and entry.end_time is None:
        entry.end_time = now

    entry.current_stage = stage
    entry.status = new_status
    entry.serving_staff_id = staff.id
    if room_number:
        entry.room_number = room_number

    _commit_status_change(entry)
    current_app.logger.info(f"Queue entry {entry.id} moved {previous} -> {stage} by user {staff.id}")
    return entry


def queue_stats(day):
    counts = dict(
        entries_for_day(day)
        .with_entities(QueueEntry.status, func.count(QueueEntry.id))
        .group_by(QueueEntry.status)
        .all()
    )
    stats = {status: counts.get(status, 0) for status in STATUS_VALUES}
    stats["total"] = sum(counts.values())

    called = entries_for_day(day).filter(QueueEntry.called_time.isnot(None)).with_entities(
        QueueEntry.check_in_time, QueueEntry.called_time
    ).all()
    waits = [(called_time - check_in).total_seconds() / 60 for check_in, called_time in called]
    stats["avg_wait_minutes"] = round(sum(waits) / len(waits), 1) if waits else None
    return stats


def remove_duplicate_active_entries():
    """
    One-shot repair for data created before the unique index existed: for each
    patient keep only the most recently checked-in active entry.
    Returns the number of deleted rows.
    """
    active = QueueEntry.query.filter(QueueEntry.status.in_(ACTIVE_STATUSES)).order_by(
        QueueEntry.patient_id, QueueEntry.check_in_time.desc()
    ).all()

    seen = set()
    removed = 0
    for entry in active:
        if entry.patient_id in seen:
            db.session.delete(entry)
            removed += 1
        else:
            seen.add(entry.patient_id)
    db.session.commit()
    return removed
