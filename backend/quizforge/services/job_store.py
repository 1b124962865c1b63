"""
Job Store

Durable keyed storage for generation jobs. Every write is a partial,
optionally conditional update: callers pass the status and/or version they
read, and the store refuses the write with ConflictError if the record has
moved on. This is the only coordination mechanism in the pipeline; there is
no lock or owning process per job.

Implementations:
- InMemoryJobStore: asyncio-lock guarded dict (local runs and unit tests)
- SQLJobStore: PostgreSQL via async SQLAlchemy, compare-and-set on version

Usage:
    from quizforge.services.job_store import InMemoryJobStore

    store = InMemoryJobStore()
    job_id = await store.create(Job(user_id="u1", title="Cardiology notes"))
    job = await store.update(
        job_id,
        {"status": JobStatus.PENDING_GENERATION},
        expected_status=JobStatus.PENDING_PLANNING,
    )
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, Optional

from sqlalchemy import select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quizforge.enums.job import JobStatus
from quizforge.middleware.error_handling import ConflictError, NotFoundError
from quizforge.models.job import Job, apply_job_update

logger = logging.getLogger(__name__)


def _check_expectations(
    job: Job,
    expected_status: Optional[JobStatus],
    expected_version: Optional[int],
) -> None:
    """Raise ConflictError if the stored job no longer matches what the caller read."""
    if expected_status is not None and job.status != expected_status:
        raise ConflictError(
            f"Job {job.id} is '{job.status.value}', expected '{expected_status.value}'",
            details={"current_status": job.status.value, "expected_status": expected_status.value},
        )
    if expected_version is not None and job.version != expected_version:
        raise ConflictError(
            f"Job {job.id} was modified concurrently (version {job.version}, expected {expected_version})",
            details={"current_version": job.version, "expected_version": expected_version},
        )


class JobStore(ABC):
    """Storage contract for generation jobs."""

    @abstractmethod
    async def create(self, job: Job) -> str:
        """Persist a new job and return its id."""

    @abstractmethod
    async def get(self, job_id: str) -> Job:
        """
        Fetch a job by id.

        Raises:
            NotFoundError: If no job has this id
        """

    @abstractmethod
    async def update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: Optional[JobStatus] = None,
        expected_version: Optional[int] = None,
    ) -> Job:
        """
        Apply a partial update and return the new job.

        The write succeeds only if the stored status equals expected_status
        and the stored version equals expected_version (each when given).
        Always increments version and refreshes updated_at.

        Raises:
            NotFoundError: If no job has this id
            ConflictError: If an expectation does not hold
        """

    @abstractmethod
    async def list_by_status(self, statuses: Optional[Iterable[JobStatus]] = None) -> list[Job]:
        """
        List jobs in any of the given statuses, newest first.

        With no statuses, lists every job that is not archived.
        """


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryJobStore(JobStore):
    """
    Job store backed by a dict.

    A single asyncio.Lock serializes writes, which makes the conditional
    update atomic within one event loop. Jobs are deep-copied on the way in
    and out so callers never share mutable state with the store.
    """

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._lock = asyncio.Lock()

    async def create(self, job: Job) -> str:
        async with self._lock:
            if job.id in self._jobs:
                raise ConflictError(f"Job {job.id} already exists")
            self._jobs[job.id] = job.model_copy(deep=True)
        logger.debug(f"Created job {job.id} ({job.pipeline.value}, {job.status.value})")
        return job.id

    async def get(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job.model_copy(deep=True)

    async def update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: Optional[JobStatus] = None,
        expected_version: Optional[int] = None,
    ) -> Job:
        async with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise NotFoundError(f"Job {job_id} not found")
            _check_expectations(current, expected_status, expected_version)
            updated = apply_job_update(current, fields)
            self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def list_by_status(self, statuses: Optional[Iterable[JobStatus]] = None) -> list[Job]:
        wanted = set(statuses) if statuses else None
        jobs = [
            job.model_copy(deep=True)
            for job in self._jobs.values()
            if (job.status in wanted if wanted else job.status != JobStatus.ARCHIVED)
        ]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)


# =============================================================================
# PostgreSQL implementation
# =============================================================================


def _job_to_row_values(job: Job) -> dict[str, Any]:
    """Column values for a job; JSONB columns get JSON-safe structures."""
    values = job.model_dump(mode="json")
    values["created_at"] = job.created_at
    values["updated_at"] = job.updated_at
    return values


def _row_to_job(row) -> Job:
    """Build a Job from a GenerationJob row."""
    from quizforge.db.models import GenerationJob

    return Job.model_validate(
        {column.key: getattr(row, column.key) for column in GenerationJob.__table__.columns}
    )


class SQLJobStore(JobStore):
    """
    Job store backed by the generation_jobs table.

    Conditional updates are a single compare-and-set statement:

        UPDATE generation_jobs SET ... WHERE id = :id AND version = :read_version
            [AND status = :expected_status]

    A zero row count means another writer got there first, which surfaces
    as ConflictError exactly like a failed expectation.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_maker is None:
            from quizforge.db.base import async_session_maker

            session_maker = async_session_maker
        self._session_maker = session_maker

    async def create(self, job: Job) -> str:
        from quizforge.db.models import GenerationJob

        async with self._session_maker() as session:
            session.add(GenerationJob(**_job_to_row_values(job)))
            await session.commit()
        logger.debug(f"Created job {job.id} ({job.pipeline.value}, {job.status.value})")
        return job.id

    async def _load(self, session: AsyncSession, job_id: str) -> Job:
        from quizforge.db.models import GenerationJob

        result = await session.execute(select(GenerationJob).where(GenerationJob.id == job_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Job {job_id} not found")
        return _row_to_job(row)

    async def get(self, job_id: str) -> Job:
        async with self._session_maker() as session:
            return await self._load(session, job_id)

    async def update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: Optional[JobStatus] = None,
        expected_version: Optional[int] = None,
    ) -> Job:
        from quizforge.db.models import GenerationJob

        async with self._session_maker() as session:
            current = await self._load(session, job_id)
            _check_expectations(current, expected_status, expected_version)
            updated = apply_job_update(current, fields)

            values = _job_to_row_values(updated)
            values.pop("id")
            values.pop("created_at")

            stmt = (
                sql_update(GenerationJob)
                .where(GenerationJob.id == job_id)
                .where(GenerationJob.version == current.version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if expected_status is not None:
                stmt = stmt.where(GenerationJob.status == expected_status.value)

            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                raise ConflictError(
                    f"Job {job_id} was modified concurrently (read version {current.version})",
                    details={"read_version": current.version},
                )
            await session.commit()
        return updated

    async def list_by_status(self, statuses: Optional[Iterable[JobStatus]] = None) -> list[Job]:
        from quizforge.db.models import GenerationJob

        stmt = select(GenerationJob).order_by(GenerationJob.created_at.desc())
        wanted = [s.value for s in statuses] if statuses else None
        if wanted:
            stmt = stmt.where(GenerationJob.status.in_(wanted))
        else:
            stmt = stmt.where(GenerationJob.status != JobStatus.ARCHIVED.value)

        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [_row_to_job(row) for row in result.scalars().all()]
