"""
Integration Test Fixtures

Provides fixtures for integration tests that require a running PostgreSQL.
Tables are recreated from the SQLAlchemy models once per session and
truncated around every test.

IMPORTANT: All integration tests use the TEST database only (via
POSTGRES_TEST_* env vars). A safety check fixture (verify_test_database)
runs at session start to fail fast if production credentials are detected.
Tests are skipped when the test database is unreachable.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from urllib.parse import quote_plus

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Load .env file FIRST, before reading any environment variables
_project_root = Path(__file__).parent.parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

pytestmark = pytest.mark.integration

# Tables to clean (children before parents)
TABLES_TO_CLEAN = ["mcqs", "flashcards", "chapters", "topics", "generation_jobs"]


# =============================================================================
# Safety Check - Runs before any integration tests
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def verify_test_database():
    """
    Safety check: Verify we're using test database credentials.

    Set ALLOW_PROD_DB_TESTS=1 to skip this check (for local development only).
    """
    if os.environ.get("ALLOW_PROD_DB_TESTS", "").lower() in ("1", "true", "yes"):
        return

    config = get_test_db_config()
    for indicator in ["prod", "production"]:
        assert indicator not in config["db"].lower(), (
            f"SAFETY CHECK FAILED: Database name '{config['db']}' looks like production! "
            "Set POSTGRES_TEST_DB environment variable or ALLOW_PROD_DB_TESTS=1."
        )


# =============================================================================
# Database Configuration
# =============================================================================


def get_test_db_config() -> dict:
    """
    Get test database configuration from environment variables.

    Priority: POSTGRES_TEST_* > POSTGRES_* > defaults
    """
    return {
        "host": os.environ.get("POSTGRES_HOST", "localhost"),
        "port": os.environ.get("POSTGRES_PORT", "5432"),
        "user": os.environ.get("POSTGRES_TEST_USER", os.environ.get("POSTGRES_USER", "testuser")),
        "password": os.environ.get(
            "POSTGRES_TEST_PASSWORD", os.environ.get("POSTGRES_PASSWORD", "testpass")
        ),
        "db": os.environ.get("POSTGRES_TEST_DB", os.environ.get("POSTGRES_DB", "quizforge_test")),
    }


def get_test_db_url() -> str:
    """Build the asyncpg database URL from test config environment variables."""
    config = get_test_db_config()
    encoded_password = quote_plus(config["password"])
    return (
        f"postgresql+asyncpg://{config['user']}:{encoded_password}"
        f"@{config['host']}:{config['port']}/{config['db']}"
    )


_tables_created = False


@pytest_asyncio.fixture(scope="function")
async def session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    Session factory bound to the test database, with clean tables.

    Creates a fresh engine per test to avoid event loop issues. Tables are
    dropped and recreated on first use so the schema matches the models.
    """
    global _tables_created

    from quizforge.db.base import Base

    test_engine = create_async_engine(get_test_db_url(), echo=False)
    try:
        async with test_engine.begin() as conn:
            if not _tables_created:
                await conn.run_sync(Base.metadata.drop_all)
                await conn.run_sync(Base.metadata.create_all)
                _tables_created = True
            for table in TABLES_TO_CLEAN:
                await conn.execute(text(f"TRUNCATE TABLE {table} CASCADE"))
    except (OSError, ConnectionError) as e:
        await test_engine.dispose()
        pytest.skip(f"Test database unavailable: {e}")

    yield async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    await test_engine.dispose()


@pytest.fixture
def sql_job_store(session_maker):
    from quizforge.services.job_store import SQLJobStore

    return SQLJobStore(session_maker)


@pytest.fixture
def sql_content_store(session_maker):
    from quizforge.services.content_store import SQLContentStore

    return SQLContentStore(session_maker)
