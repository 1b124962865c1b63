"""
Batch Dispatcher

Runs the batch generation worker for every dispatched batch of a job,
concurrently and bounded by a semaphore. Each batch is independent: one
failing or timing out is reported to the controller as a failed batch and
never cancels its siblings.

Usage:
    dispatcher = BatchDispatcher(controller, workers.batch_generator)
    job, batches = await controller.begin_generation(job_id, 20, 10)
    await dispatcher.dispatch(job, batches)
"""

import asyncio
import logging
from typing import Optional

from quizforge.config.generation import generation_settings
from quizforge.models.job import Job
from quizforge.services.generation.workers import BatchGenerator
from quizforge.services.pipeline.controller import PipelineController

logger = logging.getLogger(__name__)


class BatchDispatcher:
    """Fan-out of batch generation calls with per-batch reporting."""

    def __init__(
        self,
        controller: PipelineController,
        batch_generator: BatchGenerator,
        max_concurrency: Optional[int] = None,
        batch_timeout: Optional[float] = None,
    ):
        self.controller = controller
        self.batch_generator = batch_generator
        self.max_concurrency = max_concurrency or generation_settings.MAX_CONCURRENT_BATCHES
        self.batch_timeout = batch_timeout or generation_settings.BATCH_TIMEOUT_SECONDS

    async def dispatch(self, job: Job, batch_numbers: list[int]) -> Optional[Job]:
        """
        Generate and report every batch in ``batch_numbers``.

        Returns the job as left by the last report, or None when every
        report was discarded (job archived or reset mid-flight, or a newer
        generation run started). Reports are tagged with the run of ``job``.

        Raises:
            ServiceError: Bookkeeping failures (conflicts that never
                resolved, corrupt batch numbers). Worker failures are
                reported per batch and never raised.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        targets = {t.batch_number: t for t in job.batch_plan}
        run = job.generation_run

        async def run_one(batch_number: int) -> Optional[Job]:
            target = targets[batch_number]
            chunk = job.text_chunks[batch_number - 1]
            async with semaphore:
                logger.debug(
                    f"Job {job.id}: batch {batch_number} "
                    f"({target.mcq_count} MCQs, {target.flashcard_count} flashcards)"
                )
                try:
                    output = await asyncio.wait_for(
                        self.batch_generator(
                            chunk,
                            batch_number,
                            target.mcq_count,
                            target.flashcard_count,
                            job_id=job.id,
                        ),
                        timeout=self.batch_timeout,
                    )
                except asyncio.TimeoutError:
                    message = f"Batch {batch_number} timed out after {self.batch_timeout:g}s"
                    return await self.controller.record_batch_failure(
                        job.id, batch_number, message, run=run
                    )
                except Exception as e:
                    logger.error(f"Job {job.id}: batch {batch_number} failed: {e}")
                    message = f"Batch {batch_number} failed: {e}"
                    return await self.controller.record_batch_failure(
                        job.id, batch_number, message, run=run
                    )

            return await self.controller.record_batch_success(
                job.id, batch_number, output, run=run
            )

        results = await asyncio.gather(
            *(run_one(n) for n in batch_numbers), return_exceptions=True
        )

        latest: Optional[Job] = None
        for result in results:
            if isinstance(result, BaseException):
                raise result
            if result is not None and (latest is None or result.version > latest.version):
                latest = result
        return latest
