"""
Celery Queue Configuration

Runs long generation steps (planning, batch generation, marrow extraction)
outside the API process. Every task re-reads the job and goes through the
same conditional writes as the API, so a task that lost a race to an
operator action fails with a conflict instead of overwriting it.

Task Time Limits:
- Configured in config/default.yaml (celery.task_time_limit and
  celery.task_soft_time_limit); batch generation of a large upload is the
  longest-running task.

Usage:
    from quizforge.services.tasks import execute_generation

    execute_generation.delay(job_id, 20, 10)

    # Run worker: celery -A quizforge.services.queue worker -l info
"""

from typing import Any

from celery import Celery

from quizforge.config import settings, yaml_config

celery_config: dict[str, Any] = yaml_config.get("celery", {})

celery_app = Celery(
    "quizforge",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["quizforge.services.tasks"],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task routing
    task_routes={
        "quizforge.services.tasks.plan_content": {"queue": "generation"},
        "quizforge.services.tasks.execute_generation": {"queue": "generation"},
        "quizforge.services.tasks.suggest_assignment": {"queue": "generation"},
        "quizforge.services.tasks.extract_marrow": {"queue": "generation"},
        "quizforge.services.tasks.generate_marrow": {"queue": "generation"},
    },
    # Result expiration (24 hours)
    result_expires=86400,
    task_soft_time_limit=celery_config.get("task_soft_time_limit", 1500),
    task_time_limit=celery_config.get("task_time_limit", 1800),
    # Concurrency
    worker_prefetch_multiplier=1,
    # Task acknowledgment
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
