"""
Unit tests for the job state machine.

Covers the legal transition table, the operator-action predicates and the
error raised for illegal moves.
"""

import pytest

from quizforge.enums.job import JobStatus
from quizforge.middleware.error_handling import InvalidTransitionError
from quizforge.services.pipeline.state_machine import (
    ALLOWED_TRANSITIONS,
    can_archive,
    can_regenerate,
    can_reset,
    can_transition,
    can_unarchive,
    validate_transition,
)


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(JobStatus)

    @pytest.mark.parametrize(
        "current,target",
        [
            (JobStatus.PENDING_UPLOAD, JobStatus.PROCESSING_OCR),
            (JobStatus.PROCESSING_OCR, JobStatus.PENDING_PLANNING),
            (JobStatus.PENDING_PLANNING, JobStatus.PENDING_GENERATION),
            (JobStatus.PENDING_PLANNING, JobStatus.PENDING_GENERATION_DECISION),
            (JobStatus.PENDING_GENERATION, JobStatus.GENERATING_CONTENT),
            (JobStatus.GENERATING_CONTENT, JobStatus.PENDING_ASSIGNMENT),
            (JobStatus.GENERATING_CONTENT, JobStatus.GENERATION_FAILED_PARTIALLY),
            (JobStatus.GENERATION_FAILED_PARTIALLY, JobStatus.PENDING_GENERATION),
            (JobStatus.PENDING_GENERATION_DECISION, JobStatus.PENDING_ASSIGNMENT),
            (JobStatus.PENDING_ASSIGNMENT, JobStatus.PENDING_ASSIGNMENT),
            (JobStatus.PENDING_ASSIGNMENT, JobStatus.COMPLETED),
            (JobStatus.ERROR, JobStatus.PENDING_PLANNING),
            (JobStatus.ERROR, JobStatus.ARCHIVED),
        ],
    )
    def test_legal(self, current, target):
        assert can_transition(current, target)
        validate_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (JobStatus.PENDING_PLANNING, JobStatus.GENERATING_CONTENT),
            (JobStatus.GENERATION_FAILED_PARTIALLY, JobStatus.PENDING_ASSIGNMENT),
            (JobStatus.GENERATING_CONTENT, JobStatus.COMPLETED),
            (JobStatus.COMPLETED, JobStatus.PENDING_PLANNING),
            (JobStatus.COMPLETED, JobStatus.ARCHIVED),
            (JobStatus.ARCHIVED, JobStatus.PENDING_PLANNING),
            (JobStatus.ERROR, JobStatus.PENDING_GENERATION),
        ],
    )
    def test_illegal(self, current, target):
        assert not can_transition(current, target)

    def test_every_non_terminal_status_can_reach_error_or_is_error(self):
        for status in JobStatus:
            if status in (JobStatus.COMPLETED, JobStatus.ARCHIVED, JobStatus.ERROR):
                continue
            assert can_transition(status, JobStatus.ERROR), status

    def test_validate_transition_raises_with_details(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(JobStatus.COMPLETED, JobStatus.PENDING_PLANNING)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {
            "current_status": "completed",
            "target_status": "pending_planning",
        }


class TestOperatorPredicates:
    @pytest.mark.parametrize("status", [s for s in JobStatus if s not in (JobStatus.COMPLETED, JobStatus.ARCHIVED)])
    def test_archive_allowed_from_non_terminal(self, status):
        assert can_archive(status)

    def test_archive_rejected_for_completed_and_archived(self):
        assert not can_archive(JobStatus.COMPLETED)
        assert not can_archive(JobStatus.ARCHIVED)

    def test_reset_rules(self):
        assert can_reset(JobStatus.GENERATION_FAILED_PARTIALLY)
        assert can_reset(JobStatus.GENERATING_CONTENT)
        assert can_reset(JobStatus.ERROR)
        assert not can_reset(JobStatus.COMPLETED)
        assert not can_reset(JobStatus.ARCHIVED)

    def test_regenerate_rules(self):
        assert can_regenerate(JobStatus.GENERATION_FAILED_PARTIALLY)
        assert can_regenerate(JobStatus.PENDING_ASSIGNMENT)
        assert can_regenerate(JobStatus.ERROR)
        assert not can_regenerate(JobStatus.GENERATING_CONTENT)
        assert not can_regenerate(JobStatus.COMPLETED)
        assert not can_regenerate(JobStatus.ARCHIVED)

    def test_unarchive_needs_remembered_status(self):
        assert can_unarchive(JobStatus.ARCHIVED, JobStatus.PENDING_ASSIGNMENT)
        assert not can_unarchive(JobStatus.ARCHIVED, None)
        assert not can_unarchive(JobStatus.PENDING_ASSIGNMENT, JobStatus.PENDING_PLANNING)
        assert not can_unarchive(JobStatus.ARCHIVED, JobStatus.COMPLETED)
