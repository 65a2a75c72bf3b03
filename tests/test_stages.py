"""Tests for queue stage transitions."""

import pytest

from hospital_app_pkg.queue.stages import (
    QueueStage, QueueStatus, STAGE_TRANSITIONS,
    allowed_next_stages, can_transition, status_for_stage,
)


class TestTransitionTable:
    """The stage transition table."""

    def test_every_stage_has_an_entry(self):
        """Each stage appears as a source in the table."""
        assert set(STAGE_TRANSITIONS) == set(QueueStage)

    def test_no_self_transitions(self):
        """A stage never transitions to itself."""
        for stage, targets in STAGE_TRANSITIONS.items():
            assert stage not in targets

    def test_discharged_is_terminal(self):
        """Nothing leaves discharged."""
        assert allowed_next_stages('discharged') == []

    def test_completed_only_to_discharged(self):
        """Completed may only move to discharged."""
        assert allowed_next_stages('completed') == ['discharged']

    @pytest.mark.parametrize("current,target", [
        ('waiting', 'triage'),
        ('triage', 'nurse'),
        ('nurse', 'doctor'),
        ('doctor', 'lab'),
        ('lab', 'pharmacy'),
        ('pharmacy', 'billing'),
        ('billing', 'completed'),
        ('completed', 'discharged'),
    ])
    def test_typical_visit_path(self, current, target):
        """The usual path through a visit is allowed."""
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ('waiting', 'pharmacy'),
        ('waiting', 'discharged'),
        ('discharged', 'waiting'),
        ('completed', 'doctor'),
        ('doctor', 'doctor'),
    ])
    def test_rejected_transitions(self, current, target):
        """Pairs outside the table are rejected."""
        assert not can_transition(current, target)

    def test_unknown_values_rejected(self):
        """Unknown stage names are never valid."""
        assert not can_transition('waiting', 'surgery')
        assert not can_transition('limbo', 'doctor')


class TestStatusForStage:
    """Status derived from a stage change."""

    def test_waiting(self):
        assert status_for_stage('waiting') == QueueStatus.WAITING.value

    def test_terminal_stages_complete_the_entry(self):
        assert status_for_stage('completed') == QueueStatus.COMPLETED.value
        assert status_for_stage('discharged') == QueueStatus.COMPLETED.value

    def test_working_stages_are_in_progress(self):
        for stage in ('triage', 'nurse', 'doctor', 'lab', 'pharmacy', 'billing'):
            assert status_for_stage(stage) == QueueStatus.IN_PROGRESS.value
