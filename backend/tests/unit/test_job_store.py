"""
Unit tests for the in-memory job store.

The conditional update is the pipeline's only coordination mechanism, so
these tests pin down its conflict semantics.
"""

from datetime import datetime, timezone

import pytest

from quizforge.enums.job import JobStatus
from quizforge.middleware.error_handling import ConflictError, NotFoundError
from quizforge.models.job import Job, SuggestedPlan, apply_job_update


def _job(**fields) -> Job:
    return Job(user_id="user-1", title="Notes", source_text="text", **fields)


class TestApplyJobUpdate:
    def test_bumps_version_and_updated_at(self):
        job = _job()
        updated = apply_job_update(job, {"status": JobStatus.PENDING_GENERATION})

        assert updated.version == job.version + 1
        assert updated.updated_at >= job.updated_at
        assert updated.status == JobStatus.PENDING_GENERATION
        assert job.status == JobStatus.PENDING_PLANNING

    def test_validates_nested_models(self):
        updated = apply_job_update(_job(), {"suggested_plan": {"mcq_count": 3, "flashcard_count": 2}})

        assert updated.suggested_plan == SuggestedPlan(mcq_count=3, flashcard_count=2)

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Unknown"):
            apply_job_update(_job(), {"colour": "blue"})

    def test_rejects_store_owned_fields(self):
        with pytest.raises(ValueError, match="managed by the store"):
            apply_job_update(_job(), {"version": 99})


class TestInMemoryJobStore:
    @pytest.mark.asyncio
    async def test_create_and_get(self, job_store):
        job = _job()
        job_id = await job_store.create(job)

        fetched = await job_store.get(job_id)
        assert fetched == job

    @pytest.mark.asyncio
    async def test_get_returns_copies(self, job_store):
        job_id = await job_store.create(_job())

        fetched = await job_store.get(job_id)
        fetched.errors.append("mutated outside the store")

        assert (await job_store.get(job_id)).errors == []

    @pytest.mark.asyncio
    async def test_create_duplicate_id_conflicts(self, job_store):
        job = _job()
        await job_store.create(job)

        with pytest.raises(ConflictError):
            await job_store.create(job)

    @pytest.mark.asyncio
    async def test_get_missing(self, job_store):
        with pytest.raises(NotFoundError):
            await job_store.get("missing")

    @pytest.mark.asyncio
    async def test_unconditional_update(self, job_store):
        job_id = await job_store.create(_job())

        updated = await job_store.update(job_id, {"errors": ["boom"]})

        assert updated.errors == ["boom"]
        assert updated.version == 1

    @pytest.mark.asyncio
    async def test_conditional_update_on_status(self, job_store):
        job_id = await job_store.create(_job())

        await job_store.update(
            job_id,
            {"status": JobStatus.PENDING_GENERATION},
            expected_status=JobStatus.PENDING_PLANNING,
        )

        with pytest.raises(ConflictError) as exc_info:
            await job_store.update(
                job_id,
                {"status": JobStatus.PENDING_GENERATION},
                expected_status=JobStatus.PENDING_PLANNING,
            )
        assert exc_info.value.details["current_status"] == "pending_generation"

    @pytest.mark.asyncio
    async def test_conditional_update_on_version(self, job_store):
        job_id = await job_store.create(_job())
        stale = await job_store.get(job_id)

        await job_store.update(job_id, {"errors": ["first"]}, expected_version=stale.version)

        with pytest.raises(ConflictError):
            await job_store.update(job_id, {"errors": ["second"]}, expected_version=stale.version)
        assert (await job_store.get(job_id)).errors == ["first"]

    @pytest.mark.asyncio
    async def test_update_missing(self, job_store):
        with pytest.raises(NotFoundError):
            await job_store.update("missing", {"errors": []})

    @pytest.mark.asyncio
    async def test_list_excludes_archived_by_default(self, job_store):
        active = _job()
        archived = _job(status=JobStatus.ARCHIVED)
        await job_store.create(active)
        await job_store.create(archived)

        listed = await job_store.list_by_status()

        assert [j.id for j in listed] == [active.id]

    @pytest.mark.asyncio
    async def test_list_by_status_filters_and_sorts_newest_first(self, job_store):
        first = _job(status=JobStatus.ERROR, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        second = _job(status=JobStatus.ERROR, created_at=datetime(2026, 1, 2, tzinfo=timezone.utc))
        other = _job(status=JobStatus.PENDING_PLANNING)
        for job in (first, second, other):
            await job_store.create(job)

        listed = await job_store.list_by_status([JobStatus.ERROR])

        assert [j.id for j in listed] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_archived_explicitly(self, job_store):
        archived = _job(status=JobStatus.ARCHIVED)
        await job_store.create(archived)

        listed = await job_store.list_by_status([JobStatus.ARCHIVED])

        assert [j.id for j in listed] == [archived.id]
