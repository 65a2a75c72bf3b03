# hospital_app_pkg/exceptions.py
"""
Workflow exceptions raised by the queue and triage services.

Routes translate them into JSON error responses; `status_code` is the HTTP
status each one maps to.
"""


class WorkflowError(Exception):
    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        data = {"error": self.message}
        data.update(self.details)
        return data


class ActiveQueueEntryExists(WorkflowError):
    """The patient already has a waiting/called/in-progress queue entry."""
    status_code = 409


class InvalidStageTransition(WorkflowError):
    status_code = 409


class QueueEntryClosed(WorkflowError):
    """The queue entry is no_show/cancelled and no longer moves through stages."""
    status_code = 409


class NoPatientsWaiting(WorkflowError):
    status_code = 404


class TriageQueueMismatch(WorkflowError):
    """The referenced queue entry belongs to a different patient."""
    status_code = 400
