# hospital_app_pkg/queue/stages.py
"""
Queue status and workflow stage values for patient queue entries.

`status` drives the queue itself (who is waiting, who has been called) and
`current_stage` records where in the visit the patient is. Stage changes are
only allowed along STAGE_TRANSITIONS.
"""
from enum import Enum


class QueueStatus(str, Enum):
    WAITING = 'waiting'
    CALLED = 'called'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    NO_SHOW = 'no_show'
    CANCELLED = 'cancelled'


class QueueStage(str, Enum):
    WAITING = 'waiting'
    TRIAGE = 'triage'
    NURSE = 'nurse'
    DOCTOR = 'doctor'
    LAB = 'lab'
    PHARMACY = 'pharmacy'
    BILLING = 'billing'
    COMPLETED = 'completed'
    DISCHARGED = 'discharged'


# At most one entry per patient may be in one of these (partial unique index).
ACTIVE_STATUSES = (QueueStatus.WAITING.value, QueueStatus.CALLED.value, QueueStatus.IN_PROGRESS.value)

# Entries in these statuses no longer accept stage changes.
CLOSED_STATUSES = (QueueStatus.NO_SHOW.value, QueueStatus.CANCELLED.value)

STATUS_VALUES = [s.value for s in QueueStatus]
STAGE_VALUES = [s.value for s in QueueStage]

STAGE_TRANSITIONS = {
    QueueStage.WAITING: {QueueStage.TRIAGE, QueueStage.NURSE, QueueStage.DOCTOR},
    QueueStage.TRIAGE: {QueueStage.WAITING, QueueStage.NURSE, QueueStage.DOCTOR},
    QueueStage.NURSE: {QueueStage.WAITING, QueueStage.TRIAGE, QueueStage.DOCTOR, QueueStage.LAB},
    QueueStage.DOCTOR: {
        QueueStage.WAITING, QueueStage.LAB, QueueStage.PHARMACY,
        QueueStage.BILLING, QueueStage.COMPLETED, QueueStage.DISCHARGED,
    },
    QueueStage.LAB: {QueueStage.WAITING, QueueStage.DOCTOR, QueueStage.PHARMACY, QueueStage.BILLING},
    QueueStage.PHARMACY: {QueueStage.BILLING, QueueStage.COMPLETED},
    QueueStage.BILLING: {QueueStage.PHARMACY, QueueStage.COMPLETED, QueueStage.DISCHARGED},
    QueueStage.COMPLETED: {QueueStage.DISCHARGED},
    QueueStage.DISCHARGED: set(),  # terminal
}


def allowed_next_stages(current):
    """Sorted list of stage values reachable from `current`."""
    return sorted(s.value for s in STAGE_TRANSITIONS.get(QueueStage(current), set()))


def can_transition(current, target):
    try:
        current, target = QueueStage(current), QueueStage(target)
    except ValueError:
        return False
    return target in STAGE_TRANSITIONS[current]


def status_for_stage(stage):
    """Queue status implied by moving an entry into `stage`."""
    stage = QueueStage(stage)
    if stage == QueueStage.WAITING:
        return QueueStatus.WAITING.value
    if stage in (QueueStage.COMPLETED, QueueStage.DISCHARGED):
        return QueueStatus.COMPLETED.value
    return QueueStatus.IN_PROGRESS.value
