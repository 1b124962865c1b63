"""
Unit tests for merging approved content into canonical storage.
"""

import pytest

from quizforge.enums.content import ContentStatus, TopicSource
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import (
    InvalidTransitionError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from quizforge.models.job import AssignmentSuggestion
from quizforge.models.job_api import ApprovalRequest
from quizforge.services.pipeline.merger import ApprovalMerger
from tests.factories import make_mcq


@pytest.fixture
def merger(controller, content_store) -> ApprovalMerger:
    return ApprovalMerger(controller, content_store)


def _request(**overrides) -> ApprovalRequest:
    data = {
        "topic_name": "Neonatology",
        "chapter_name": "Neonatal Jaundice",
        "is_new_chapter": True,
        "mcq_indexes": [0, 1],
    }
    data.update(overrides)
    return ApprovalRequest(**data)


class TestApprovalRequest:
    def test_requires_an_index(self):
        with pytest.raises(ValueError):
            _request(mcq_indexes=[])

    def test_edits_must_align(self):
        with pytest.raises(ValueError):
            _request(edited_mcqs=[make_mcq(0)])

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            _request(chapter="Neonatal Jaundice")


class TestApprove:
    @pytest.mark.asyncio
    async def test_merge_into_new_chapter_of_existing_topic(
        self, merger, create_staged_job, neonatology_taxonomy
    ):
        before = await neonatology_taxonomy.get_topic("neonatology")
        job = await create_staged_job(mcq_count=2)

        result = await merger.approve(job.id, _request())

        assert result.mcqs_inserted == 2
        assert result.job.status == JobStatus.COMPLETED
        assert result.job.merged_mcq_indexes == [0, 1]
        assert result.message == "Merged 2 MCQs and 0 flashcards into Neonatology / Neonatal Jaundice"

        topic = await neonatology_taxonomy.get_topic("neonatology")
        chapter = topic.find_chapter("neonatal_jaundice")
        assert chapter.name == "Neonatal Jaundice"
        assert chapter.mcq_count == 2
        assert chapter.source_upload_ids == [job.id]
        assert topic.chapter_count == before.chapter_count + 1
        assert topic.total_mcq_count == 2

        mcqs, _ = await neonatology_taxonomy.list_items_by_upload(job.id)
        assert [m.id for m in mcqs] == [f"{job.id}_mcq_0", f"{job.id}_mcq_1"]
        assert all(m.status == ContentStatus.APPROVED for m in mcqs)
        assert all(m.creator_id == "user-1" for m in mcqs)

    @pytest.mark.asyncio
    async def test_repeated_approval_is_idempotent(self, merger, create_staged_job, neonatology_taxonomy):
        job = await create_staged_job(mcq_count=2)
        await merger.approve(job.id, _request())

        again = await merger.approve(job.id, _request())

        assert again.already_merged
        assert again.mcqs_inserted == 0
        topic = await neonatology_taxonomy.get_topic("neonatology")
        assert topic.chapter_count == 2
        assert topic.total_mcq_count == 2

    @pytest.mark.asyncio
    async def test_repeated_partial_approval_inserts_nothing(self, merger, create_staged_job, content_store):
        job = await create_staged_job(mcq_count=3)
        await merger.approve(job.id, _request(mcq_indexes=[0]))

        again = await merger.approve(job.id, _request(mcq_indexes=[0]))

        assert again.mcqs_inserted == 0
        assert again.job.status == JobStatus.PENDING_ASSIGNMENT
        assert (await content_store.get_chapter("neonatology", "neonatal_jaundice")).mcq_count == 1

    @pytest.mark.asyncio
    async def test_group_by_group_approval_completes_job(self, merger, create_staged_job):
        suggestions = [
            AssignmentSuggestion(topic_name="Neonatology", chapter_name="Neonatal Jaundice", mcq_indexes=[0]),
            AssignmentSuggestion(topic_name="Neonatology", chapter_name="Phototherapy", mcq_indexes=[1], flashcard_indexes=[0]),
        ]
        job = await create_staged_job(mcq_count=2, flashcard_count=1, assignment_suggestions=suggestions)

        first = await merger.approve(job.id, _request(mcq_indexes=[0], suggestion_index=0))
        assert first.job.status == JobStatus.PENDING_ASSIGNMENT
        assert [s.approved for s in first.job.assignment_suggestions] == [True, False]

        second = await merger.approve(
            job.id,
            _request(chapter_name="Phototherapy", mcq_indexes=[1], flashcard_indexes=[0]),
        )
        assert second.job.status == JobStatus.COMPLETED
        assert [s.approved for s in second.job.assignment_suggestions] == [True, True]
        assert second.job.approved_chapter == "Phototherapy"
        assert second.flashcards_inserted == 1

    @pytest.mark.asyncio
    async def test_edited_bodies_replace_staged_items(self, merger, create_staged_job, content_store):
        job = await create_staged_job(mcq_count=2)
        edited = make_mcq(0, question="Edited: peak bilirubin day in term infants?")

        await merger.approve(job.id, _request(mcq_indexes=[1], edited_mcqs=[edited], tags=["Bilirubin"]))

        mcqs, _ = await content_store.list_items_by_upload(job.id)
        assert mcqs[0].id == f"{job.id}_mcq_1"
        assert mcqs[0].question.startswith("Edited:")
        assert mcqs[0].tags == ["neonatology", "bilirubin"]

    @pytest.mark.asyncio
    async def test_existing_chapter_keeps_canonical_names(self, merger, create_staged_job, neonatology_taxonomy):
        job = await create_staged_job(mcq_count=1)

        result = await merger.approve(
            job.id,
            _request(topic_name="neonatology", chapter_name="neonatal  sepsis", is_new_chapter=False, mcq_indexes=[0]),
        )

        assert result.topic_name == "Neonatology"
        assert result.chapter_name == "Neonatal Sepsis"
        topic = await neonatology_taxonomy.get_topic("neonatology")
        assert topic.chapter_count == 1

    @pytest.mark.asyncio
    async def test_missing_chapter_without_new_flag(self, merger, create_staged_job, content_store):
        job = await create_staged_job(mcq_count=1)

        with pytest.raises(NotFoundError):
            await merger.approve(job.id, _request(is_new_chapter=False, mcq_indexes=[0]))

        assert await content_store.get_topic("neonatology") is None

    @pytest.mark.asyncio
    async def test_marrow_jobs_create_marrow_taxonomy(self, merger, create_staged_job, content_store):
        job = await create_staged_job(mcq_count=1, pipeline=PipelineType.MARROW)

        await merger.approve(job.id, _request(mcq_indexes=[0]))

        topic = await content_store.get_topic("neonatology")
        assert topic.source == TopicSource.MARROW

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,error",
        [
            ({"topic_id": "neonatal"}, ValidationError),
            ({"chapter_name": "!!!"}, ValidationError),
            ({"mcq_indexes": [0, 0]}, ValidationError),
            ({"mcq_indexes": [5]}, InvariantViolationError),
        ],
    )
    async def test_rejects_bad_requests(self, merger, create_staged_job, content_store, overrides, error):
        job = await create_staged_job(mcq_count=2)

        with pytest.raises(error):
            await merger.approve(job.id, _request(**overrides))

        assert (await merger.controller.get_job(job.id)).merged_mcq_indexes == []
        assert await content_store.list_topics() == []

    @pytest.mark.asyncio
    async def test_requires_pending_assignment(self, merger, create_job):
        job = await create_job(status=JobStatus.GENERATION_FAILED_PARTIALLY)

        with pytest.raises(InvalidTransitionError):
            await merger.approve(job.id, _request())
