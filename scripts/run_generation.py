#!/usr/bin/env python3
"""
Content Generation Job Script

Drive generation jobs from the command line, without the API or Celery.

Setup:
    1. Ensure PostgreSQL is running and migrated (cd backend && alembic upgrade head),
       or set JOB_STORE_BACKEND=memory for a throwaway run of the `run` command
    2. Copy .env.example to .env in the project root and fill in API keys
    3. Run any command below

Usage:
    # List jobs (archived hidden unless --status archived)
    python scripts/run_generation.py list
    python scripts/run_generation.py list --status pending_assignment

    # Create a job from a text file
    python scripts/run_generation.py create notes.txt --title "Neonatology" --user u1
    python scripts/run_generation.py create qbank.txt --title "Qbank 3" --user u1 --marrow

    # Step through the general pipeline
    python scripts/run_generation.py plan <job_id>
    python scripts/run_generation.py generate <job_id> --mcqs 20 --flashcards 10 --batch-size 10
    python scripts/run_generation.py suggest <job_id>
    python scripts/run_generation.py approve-suggestions <job_id>

    # Marrow pipeline
    python scripts/run_generation.py marrow-extract <job_id>
    python scripts/run_generation.py marrow-generate <job_id> --count 5

    # Operator actions
    python scripts/run_generation.py reset <job_id>
    python scripts/run_generation.py archive <job_id>
    python scripts/run_generation.py regenerate <job_id>
    python scripts/run_generation.py archive-item mcq <item_id>

    # Everything from text file to approved content in one go
    python scripts/run_generation.py run notes.txt --title "Neonatology" --user u1
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# Add backend to path for imports (must be before quizforge.* imports)
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from dotenv import load_dotenv

# Load environment variables from project root .env
project_root = Path(__file__).parent.parent
if (project_root / ".env").exists():
    load_dotenv(project_root / ".env")
else:
    load_dotenv(project_root / "backend" / ".env")

# Override DEBUG to suppress SQLAlchemy echo (engine uses echo=settings.DEBUG)
os.environ["DEBUG"] = "false"

from quizforge.dependencies import build_job_service
from quizforge.enums.content import ContentKind
from quizforge.enums.job import JobStatus, PipelineType
from quizforge.middleware.error_handling import ServiceError
from quizforge.models.job import Job
from quizforge.models.job_api import ApprovalRequest
from quizforge.services.pipeline.service import GenerationJobService


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def print_job(job: Job, output_format: str = "summary") -> None:
    if output_format == "json":
        print(job.model_dump_json(indent=2))
        return

    print(f"{job.id}  [{job.status.value}]  {job.title}  ({job.pipeline.value})")
    if job.total_batches:
        print(
            f"  batches: {job.completed_batches}/{job.total_batches} succeeded"
            + (f", failed {job.failed_batches}" if job.failed_batches else "")
        )
    staged = job.staged
    if not staged.is_empty():
        print(f"  staged: {len(staged.mcqs)} MCQs, {len(staged.flashcards)} flashcards")
    for i, s in enumerate(job.assignment_suggestions):
        mark = "x" if s.approved else " "
        print(
            f"  [{mark}] #{i} (batch {s.batch}) {s.topic_name} / {s.chapter_name}"
            f"{' (new)' if s.is_new_chapter else ''}: "
            f"{len(s.mcq_indexes)} MCQs, {len(s.flashcard_indexes)} flashcards"
        )
    for error in job.errors:
        print(f"  ! {error}")


# =============================================================================
# Commands
# =============================================================================


async def approve_suggestions(service: GenerationJobService, job_id: str) -> Job:
    """Approve every unapproved suggestion of the latest batch."""
    job = await service.get_job(job_id)
    if not job.assignment_suggestions:
        await service.suggest_assignment(job_id)
        job = await service.get_job(job_id)

    latest = max(s.batch for s in job.assignment_suggestions)
    for index, suggestion in enumerate(job.assignment_suggestions):
        if suggestion.approved or suggestion.batch != latest:
            continue
        result = await service.approve_generated_content(
            job_id,
            ApprovalRequest(
                topic_name=suggestion.topic_name,
                chapter_name=suggestion.chapter_name,
                is_new_chapter=suggestion.is_new_chapter,
                mcq_indexes=suggestion.mcq_indexes,
                flashcard_indexes=suggestion.flashcard_indexes,
                suggestion_index=index,
            ),
        )
        print(result.message)
    return await service.get_job(job_id)


async def run_end_to_end(service: GenerationJobService, args: argparse.Namespace) -> Job:
    """Create, plan, generate, suggest and approve in one run."""
    job = await service.create_job(
        title=args.title,
        raw_text=Path(args.file).read_text(),
        user_id=args.user,
        file_name=Path(args.file).name,
    )
    plan = await service.plan_content_generation(job.id)
    print(f"Plan: {plan.mcq_count} MCQs, {plan.flashcard_count} flashcards")

    mcqs = args.mcqs if args.mcqs is not None else plan.mcq_count
    flashcards = args.flashcards if args.flashcards is not None else plan.flashcard_count
    result = await service.execute_content_generation(job.id, mcqs, flashcards, args.batch_size)
    print(result.message)
    if result.job.status != JobStatus.PENDING_ASSIGNMENT:
        return result.job
    return await approve_suggestions(service, job.id)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Drive quiz content generation jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--format",
        "-f",
        choices=["summary", "json"],
        default="summary",
        help="Output format (default: summary)",
    )
    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List jobs")
    list_parser.add_argument(
        "--status",
        action="append",
        choices=[s.value for s in JobStatus],
        help="Filter by status (repeatable)",
    )

    for name in ("create", "run"):
        p = subparsers.add_parser(name, help=f"{name.capitalize()} a job from a text file")
        p.add_argument("file", help="UTF-8 text file with the source material")
        p.add_argument("--title", required=True)
        p.add_argument("--user", required=True, help="Owning user id")
        if name == "create":
            p.add_argument("--marrow", action="store_true", help="Use the marrow pipeline")
        else:
            p.add_argument("--mcqs", type=int, help="Override the planned MCQ count")
            p.add_argument("--flashcards", type=int, help="Override the planned flashcard count")
            p.add_argument("--batch-size", type=int, default=None)

    for name in ("show", "plan", "suggest", "approve-suggestions", "marrow-extract",
                 "reset", "archive", "unarchive", "retry", "regenerate", "reassign"):
        p = subparsers.add_parser(name)
        p.add_argument("job_id")

    generate_parser = subparsers.add_parser("generate", help="Run batch generation")
    generate_parser.add_argument("job_id")
    generate_parser.add_argument("--mcqs", type=int, default=0)
    generate_parser.add_argument("--flashcards", type=int, default=0)
    generate_parser.add_argument("--batch-size", type=int, default=None)

    item_parser = subparsers.add_parser("archive-item", help="Archive an approved MCQ or flashcard")
    item_parser.add_argument("kind", choices=[k.value for k in ContentKind])
    item_parser.add_argument("item_id")

    marrow_parser = subparsers.add_parser("marrow-generate", help="Generate from orphan explanations")
    marrow_parser.add_argument("job_id")
    marrow_parser.add_argument("--count", type=int, required=True)

    return parser


async def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.debug)
    service = build_job_service()

    try:
        if args.command == "list":
            statuses = [JobStatus(s) for s in args.status] if args.status else None
            for job in await service.list_jobs(statuses):
                print_job(job)
            return

        if args.command == "archive-item":
            topic = await service.archive_content_item(ContentKind(args.kind), args.item_id)
            print(
                f"Archived {args.item_id}; {topic.name} now has {topic.total_mcq_count} MCQs "
                f"and {topic.total_flashcard_count} flashcards"
            )
            return

        if args.command == "create":
            job = await service.create_job(
                title=args.title,
                raw_text=Path(args.file).read_text(),
                user_id=args.user,
                pipeline=PipelineType.MARROW if args.marrow else PipelineType.GENERAL,
                file_name=Path(args.file).name,
            )
        elif args.command == "run":
            job = await run_end_to_end(service, args)
        elif args.command == "show":
            job = await service.get_job(args.job_id)
        elif args.command == "plan":
            plan = await service.plan_content_generation(args.job_id)
            print(json.dumps(plan.model_dump(), indent=2))
            job = await service.get_job(args.job_id)
        elif args.command == "generate":
            result = await service.execute_content_generation(
                args.job_id, args.mcqs, args.flashcards, args.batch_size
            )
            print(result.message)
            job = result.job
        elif args.command == "suggest":
            await service.suggest_assignment(args.job_id)
            job = await service.get_job(args.job_id)
        elif args.command == "approve-suggestions":
            job = await approve_suggestions(service, args.job_id)
        elif args.command == "marrow-extract":
            job = await service.extract_marrow_content(args.job_id)
        elif args.command == "marrow-generate":
            job = await service.generate_and_analyze_marrow_content(args.job_id, args.count)
        else:
            action = {
                "reset": service.reset_upload,
                "archive": service.archive_upload,
                "unarchive": service.unarchive_upload,
                "retry": service.retry_generation,
                "regenerate": service.regenerate_content,
                "reassign": service.reassign_content,
            }[args.command]
            result = await action(args.job_id)
            print(result.message)
            job = result.job
    except ServiceError as e:
        print(f"❌ {e.error_code}: {e.message}")
        sys.exit(1)

    print_job(job, args.format)


if __name__ == "__main__":
    asyncio.run(main())
