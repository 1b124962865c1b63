"""
Assignment Resolver

Turns the suggester's raw (topic, chapter, indexes) groups into clean
AssignmentSuggestions for a pending_assignment job.

Guarantees for each suggestion batch:
- Totality: every staged index not yet merged appears in some group
- Disjointness: no index appears in two groups
- Groups are keyed by normalized (topic, chapter); names that match the
  taxonomy snapshot take its canonical display names
- is_new_chapter reflects the snapshot, not the suggester's claim

Raw output is sanitized rather than trusted: out-of-range and repeated
indexes are dropped, colliding groups are merged, empty groups vanish and
anything left over lands in a fallback group.
"""

import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.enums.job import JobStatus
from quizforge.middleware.error_handling import InvalidTransitionError, ValidationError
from quizforge.models.content import Topic
from quizforge.models.job import AssignmentSuggestion, Job, RawAssignmentGroup
from quizforge.services.pipeline.controller import PipelineController
from quizforge.utils.text_utils import normalize_id

logger = logging.getLogger(__name__)


class _GroupBuilder:
    """Accumulates indexes for one normalized (topic, chapter) key."""

    def __init__(self, topic_name: str, chapter_name: str):
        self.topic_name = topic_name
        self.chapter_name = chapter_name
        self.mcq_indexes: list[int] = []
        self.flashcard_indexes: list[int] = []


def _claim(
    indexes: list[int],
    available: set[int],
    kind: str,
    group_label: str,
) -> list[int]:
    """Take the indexes still available, logging any that are dropped."""
    claimed = []
    for index in indexes:
        if index in available:
            available.discard(index)
            claimed.append(index)
        else:
            logger.warning(
                f"Dropping {kind} index {index} from group {group_label!r}: "
                "out of range, already merged or already assigned"
            )
    return claimed


class AssignmentResolver:
    """Sanitizes suggester output and records it on the job."""

    def __init__(self, controller: PipelineController):
        self.controller = controller

    def check_can_suggest(self, job: Job) -> None:
        """
        Raises:
            InvalidTransitionError: Job is not pending_assignment
            ValidationError: Job has no staged content
        """
        if job.status != JobStatus.PENDING_ASSIGNMENT:
            raise InvalidTransitionError(
                f"Assignment can only be suggested for jobs pending assignment "
                f"(job is '{job.status.value}')"
            )
        if job.staged.is_empty():
            raise ValidationError(f"Job {job.id} has no staged content to assign")

    def fallback_names(self, job: Job) -> tuple[str, str]:
        """Topic and chapter used for indexes the suggester left out."""
        topic = job.suggested_topic or generation_settings.FALLBACK_TOPIC_NAME
        chapter = job.suggested_chapter or job.title or generation_settings.FALLBACK_CHAPTER_NAME
        return topic, chapter

    def build_suggestions(
        self,
        job: Job,
        raw_groups: list[RawAssignmentGroup],
        taxonomy: list[Topic],
        scope_to_topic_name: Optional[str] = None,
        batch: int = 1,
    ) -> list[AssignmentSuggestion]:
        """
        Sanitize ``raw_groups`` into a partition of the job's unmerged indexes.

        Args:
            job: Job whose staged data the indexes address
            raw_groups: Suggester output, trusted for nothing
            taxonomy: Snapshot of existing topics and chapters
            scope_to_topic_name: Force every group under this topic
            batch: Suggestion batch number stamped on each group

        Returns:
            Suggestions in first-seen order, fallback group last
        """
        staged = job.staged
        available_mcqs = set(range(len(staged.mcqs))) - set(job.merged_mcq_indexes)
        available_fcs = set(range(len(staged.flashcards))) - set(job.merged_flashcard_indexes)

        builders: dict[tuple[str, str], _GroupBuilder] = {}

        def builder_for(topic_name: str, chapter_name: str) -> Optional[_GroupBuilder]:
            if scope_to_topic_name:
                topic_name = scope_to_topic_name
            key = (normalize_id(topic_name), normalize_id(chapter_name))
            if not key[0] or not key[1]:
                return None
            if key not in builders:
                builders[key] = _GroupBuilder(topic_name.strip(), chapter_name.strip())
            return builders[key]

        for raw in raw_groups:
            label = f"{raw.topic_name}/{raw.chapter_name}"
            builder = builder_for(raw.topic_name, raw.chapter_name)
            if builder is None:
                logger.warning(f"Ignoring group {label!r} without a usable topic or chapter name")
                continue
            builder.mcq_indexes += _claim(raw.mcq_indexes, available_mcqs, "MCQ", label)
            builder.flashcard_indexes += _claim(
                raw.flashcard_indexes, available_fcs, "flashcard", label
            )

        if available_mcqs or available_fcs:
            topic_name, chapter_name = self.fallback_names(job)
            logger.warning(
                f"Job {job.id}: {len(available_mcqs)} MCQs and {len(available_fcs)} flashcards "
                f"unassigned, placing them in {topic_name}/{chapter_name}"
            )
            builder = builder_for(topic_name, chapter_name)
            if builder is None:
                builder = builder_for(
                    generation_settings.FALLBACK_TOPIC_NAME,
                    generation_settings.FALLBACK_CHAPTER_NAME,
                )
            builder.mcq_indexes += sorted(available_mcqs)
            builder.flashcard_indexes += sorted(available_fcs)

        topics_by_id = {t.id: t for t in taxonomy}
        suggestions = []
        for (topic_id, chapter_id), builder in builders.items():
            if not builder.mcq_indexes and not builder.flashcard_indexes:
                continue

            topic = topics_by_id.get(topic_id)
            chapter = topic.find_chapter(chapter_id) if topic else None
            suggestions.append(
                AssignmentSuggestion(
                    topic_name=topic.name if topic else builder.topic_name,
                    chapter_name=chapter.name if chapter else builder.chapter_name,
                    topic_id=topic_id,
                    chapter_id=chapter_id,
                    is_new_chapter=chapter is None,
                    mcq_indexes=sorted(builder.mcq_indexes),
                    flashcard_indexes=sorted(builder.flashcard_indexes),
                    batch=batch,
                )
            )
        return suggestions

    async def record(
        self,
        job: Job,
        raw_groups: list[RawAssignmentGroup],
        taxonomy: list[Topic],
        scope_to_topic_name: Optional[str] = None,
    ) -> Job:
        """
        Append a new suggestion batch to ``job``.

        The write is conditional on the job as passed in, so a concurrent
        approval or reassign surfaces as ConflictError.
        """
        self.check_can_suggest(job)

        batch = max((s.batch for s in job.assignment_suggestions), default=0) + 1
        suggestions = self.build_suggestions(
            job, raw_groups, taxonomy, scope_to_topic_name=scope_to_topic_name, batch=batch
        )
        logger.info(f"Job {job.id}: suggestion batch {batch} with {len(suggestions)} groups")
        return await self.controller.transition(
            job,
            JobStatus.PENDING_ASSIGNMENT,
            {"assignment_suggestions": [*job.assignment_suggestions, *suggestions]},
        )
