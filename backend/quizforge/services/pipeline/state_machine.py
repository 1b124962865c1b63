"""
Job State Machine

Declares the legal status transitions of a generation job. Every status
change in the pipeline is checked here before it is written.

Usage:
    from quizforge.services.pipeline.state_machine import validate_transition

    validate_transition(job.status, JobStatus.PENDING_GENERATION)
"""

from quizforge.enums.job import JobStatus
from quizforge.middleware.error_handling import InvalidTransitionError

# Statuses an operator may reset back to pending_planning
NON_RESETTABLE_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.ARCHIVED})

# Statuses whose generated content an operator may discard and re-generate
REGENERATABLE_STATUSES = frozenset(
    {JobStatus.GENERATION_FAILED_PARTIALLY, JobStatus.PENDING_ASSIGNMENT, JobStatus.ERROR}
)

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING_UPLOAD: frozenset(
        {JobStatus.PROCESSING_OCR, JobStatus.PENDING_PLANNING, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.PROCESSING_OCR: frozenset(
        {JobStatus.PENDING_PLANNING, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.PENDING_PLANNING: frozenset(
        {
            JobStatus.PENDING_GENERATION,
            JobStatus.PENDING_GENERATION_DECISION,
            JobStatus.ERROR,
            JobStatus.ARCHIVED,
        }
    ),
    JobStatus.PENDING_GENERATION: frozenset(
        {JobStatus.GENERATING_CONTENT, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.GENERATING_CONTENT: frozenset(
        {
            JobStatus.PENDING_ASSIGNMENT,
            JobStatus.GENERATION_FAILED_PARTIALLY,
            JobStatus.ERROR,
            JobStatus.ARCHIVED,
        }
    ),
    JobStatus.GENERATION_FAILED_PARTIALLY: frozenset(
        {JobStatus.PENDING_GENERATION, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.PENDING_GENERATION_DECISION: frozenset(
        {JobStatus.PENDING_ASSIGNMENT, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.PENDING_ASSIGNMENT: frozenset(
        {JobStatus.PENDING_ASSIGNMENT, JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.ARCHIVED}
    ),
    JobStatus.ERROR: frozenset({JobStatus.PENDING_PLANNING, JobStatus.ARCHIVED}),
    # Leaving ARCHIVED is only possible through unarchive, which restores
    # the remembered pre-archive status (see can_unarchive).
    JobStatus.ARCHIVED: frozenset(),
    JobStatus.COMPLETED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True if ``current -> target`` is a legal transition."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: JobStatus, target: JobStatus) -> None:
    """
    Raise if ``current -> target`` is not a legal transition.

    Raises:
        InvalidTransitionError: With both statuses in the details
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move job from '{current.value}' to '{target.value}'",
            details={"current_status": current.value, "target_status": target.value},
        )


def can_archive(current: JobStatus) -> bool:
    """Archiving is a soft hide allowed from any non-terminal, non-archived status."""
    return can_transition(current, JobStatus.ARCHIVED)


def can_reset(current: JobStatus) -> bool:
    """Reset forces pending_planning from anything but completed or archived."""
    return current not in NON_RESETTABLE_STATUSES


def can_regenerate(current: JobStatus) -> bool:
    """Regenerating re-enters pending_generation by way of pending_planning."""
    return current in REGENERATABLE_STATUSES


def can_unarchive(current: JobStatus, restore_to: JobStatus | None) -> bool:
    """Un-archiving needs an archived job that remembers a restorable status."""
    return (
        current == JobStatus.ARCHIVED
        and restore_to is not None
        and restore_to not in (JobStatus.ARCHIVED, JobStatus.COMPLETED)
    )
