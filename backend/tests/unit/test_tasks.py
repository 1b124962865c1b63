"""
Unit tests for the Celery task wrappers.

Tasks are called directly (Task.__call__ runs in-process), so no broker is
needed. build_job_service is patched to hand back the in-memory service.
"""

import asyncio
from unittest.mock import patch

import pytest

from quizforge.enums.job import JobStatus, PipelineType
from quizforge.services import tasks
from quizforge.services.queue import celery_app


@pytest.fixture
def patched_service(service):
    with patch("quizforge.services.tasks.build_job_service", return_value=service) as builder:
        yield builder


# =============================================================================
# Queue configuration
# =============================================================================


class TestCeleryConfig:
    def test_generation_tasks_routed_to_generation_queue(self):
        routes = celery_app.conf.task_routes
        for name in (
            "plan_content",
            "execute_generation",
            "suggest_assignment",
            "extract_marrow",
            "generate_marrow",
        ):
            assert routes[f"quizforge.services.tasks.{name}"] == {"queue": "generation"}

    def test_json_only_serialization(self):
        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.accept_content == ["json"]

    def test_time_limits_from_yaml(self):
        assert celery_app.conf.task_soft_time_limit < celery_app.conf.task_time_limit


# =============================================================================
# Task wrappers
# =============================================================================


class TestTasks:
    def test_plan_content_success(self, patched_service, create_job, service):
        job = asyncio.run(create_job())

        result = tasks.plan_content(job.id)

        assert result["success"] is True
        assert result["job_id"] == job.id
        assert result["plan"]["mcq_count"] == 20
        patched_service.assert_called_once_with(task_context=True)
        assert asyncio.run(service.get_job(job.id)).status == JobStatus.PENDING_GENERATION

    def test_plan_content_reports_service_error(self, patched_service, create_job):
        job = asyncio.run(create_job(pipeline=PipelineType.MARROW))

        result = tasks.plan_content(job.id)

        assert result["success"] is False
        assert result["error"] == "invalid_transition"
        assert job.id in result["message"]

    def test_missing_job_reports_not_found(self, patched_service):
        result = tasks.extract_marrow("no-such-job")

        assert result == {
            "success": False,
            "job_id": "no-such-job",
            "error": "not_found",
            "message": result["message"],
        }

    def test_execute_generation_single_batch(self, patched_service, create_job, service):
        job = asyncio.run(create_job(status=JobStatus.PENDING_GENERATION))

        result = tasks.execute_generation(job.id, 2, 1, batch_size=10)

        assert result["success"] is True
        assert result["status"] == JobStatus.PENDING_ASSIGNMENT.value
        assert result["completed_batches"] == 1
        assert result["failed_batches"] == []
        staged = asyncio.run(service.get_job(job.id)).staged
        assert len(staged.mcqs) == 2
        assert len(staged.flashcards) == 1

    def test_extract_and_generate_marrow(self, patched_service, create_job):
        job = asyncio.run(create_job(pipeline=PipelineType.MARROW))

        extracted = tasks.extract_marrow(job.id)
        generated = tasks.generate_marrow(job.id, 2)

        assert extracted["success"] is True
        assert extracted["status"] == JobStatus.PENDING_GENERATION_DECISION.value
        assert extracted["suggested_new_mcq_count"] == 3
        assert generated["success"] is True
        assert generated["status"] == JobStatus.PENDING_ASSIGNMENT.value
        assert generated["key_topics"] == ["bilirubin", "phototherapy"]
