"""
Content Store

Canonical quiz content (MCQs and flashcards) and the topic/chapter
taxonomy. Only the approval merger writes here.

All writes are idempotent:
- topics and chapters are upserted on their normalized id and never renamed
- items are inserted only if their deterministic id is absent
- counts are recomputed from approved items, never incremented blindly

Implementations:
- InMemoryContentStore: dict-backed (local runs and unit tests)
- SQLContentStore: PostgreSQL, INSERT ... ON CONFLICT for every write

Usage:
    from quizforge.services.content_store import InMemoryContentStore

    store = InMemoryContentStore()
    await store.upsert_topic("neonatology", "Neonatology", TopicSource.GENERAL)
    inserted = await store.insert_mcq_if_absent(mcq)
    topic = await store.recount("neonatology", "neonatal_jaundice")
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import func, select, update as sql_update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quizforge.enums.content import ContentKind, ContentStatus, TopicSource
from quizforge.middleware.error_handling import InvalidTransitionError, NotFoundError
from quizforge.models.content import MCQ, Chapter, Flashcard, Topic

logger = logging.getLogger(__name__)


class ContentStore(ABC):
    """Storage contract for canonical content and taxonomy."""

    @abstractmethod
    async def list_topics(self) -> list[Topic]:
        """Return every topic with its chapters (the taxonomy snapshot)."""

    @abstractmethod
    async def get_topic(self, topic_id: str) -> Optional[Topic]:
        """Return a topic with its chapters, or None."""

    @abstractmethod
    async def get_chapter(self, topic_id: str, chapter_id: str) -> Optional[Chapter]:
        """Return a chapter, or None."""

    @abstractmethod
    async def upsert_topic(self, topic_id: str, name: str, source: TopicSource) -> Topic:
        """Create the topic if absent; an existing topic is returned unchanged."""

    @abstractmethod
    async def upsert_chapter(
        self,
        topic_id: str,
        chapter_id: str,
        name: str,
        source: TopicSource,
        upload_id: Optional[str] = None,
    ) -> Chapter:
        """
        Create the chapter if absent and record ``upload_id`` as a source.

        Raises:
            NotFoundError: If the parent topic does not exist
        """

    @abstractmethod
    async def insert_mcq_if_absent(self, mcq: MCQ) -> bool:
        """Insert a canonical MCQ; return False if the id already exists."""

    @abstractmethod
    async def insert_flashcard_if_absent(self, flashcard: Flashcard) -> bool:
        """Insert a canonical flashcard; return False if the id already exists."""

    @abstractmethod
    async def list_items_by_upload(self, upload_id: str) -> tuple[list[MCQ], list[Flashcard]]:
        """Return all canonical items created from one job."""

    @abstractmethod
    async def recount(self, topic_id: str, chapter_id: str) -> Topic:
        """
        Recompute the chapter's counts from approved items, then roll the
        topic's chapter_count and totals up from its chapters.

        Raises:
            NotFoundError: If the topic or chapter does not exist
        """

    @abstractmethod
    async def archive_item(self, kind: ContentKind, item_id: str) -> Topic:
        """
        Move an approved item to archived and recount its chapter.

        Returns:
            The item's topic with refreshed counts

        Raises:
            NotFoundError: If the item does not exist
            InvalidTransitionError: If the item is not approved
        """


def _check_archivable(item_id: str, status: ContentStatus) -> None:
    if status != ContentStatus.APPROVED:
        raise InvalidTransitionError(
            f"Item {item_id} is '{status.value}'; only approved items can be archived"
        )


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryContentStore(ContentStore):
    """Dict-backed content store guarded by one asyncio.Lock."""

    def __init__(self):
        self._topics: dict[str, Topic] = {}
        self._chapters: dict[tuple[str, str], Chapter] = {}
        self._mcqs: dict[str, MCQ] = {}
        self._flashcards: dict[str, Flashcard] = {}
        self._lock = asyncio.Lock()

    def _topic_with_chapters(self, topic_id: str) -> Optional[Topic]:
        topic = self._topics.get(topic_id)
        if topic is None:
            return None
        chapters = sorted(
            (c.model_copy(deep=True) for (tid, _), c in self._chapters.items() if tid == topic_id),
            key=lambda c: c.name,
        )
        return topic.model_copy(update={"chapters": chapters}, deep=True)

    async def list_topics(self) -> list[Topic]:
        topics = [self._topic_with_chapters(topic_id) for topic_id in self._topics]
        return sorted(topics, key=lambda t: t.name)

    async def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self._topic_with_chapters(topic_id)

    async def get_chapter(self, topic_id: str, chapter_id: str) -> Optional[Chapter]:
        chapter = self._chapters.get((topic_id, chapter_id))
        return chapter.model_copy(deep=True) if chapter else None

    async def upsert_topic(self, topic_id: str, name: str, source: TopicSource) -> Topic:
        async with self._lock:
            if topic_id not in self._topics:
                self._topics[topic_id] = Topic(id=topic_id, name=name, source=source)
                logger.info(f"Created topic {topic_id!r} ({name})")
        return self._topic_with_chapters(topic_id)

    async def upsert_chapter(
        self,
        topic_id: str,
        chapter_id: str,
        name: str,
        source: TopicSource,
        upload_id: Optional[str] = None,
    ) -> Chapter:
        async with self._lock:
            if topic_id not in self._topics:
                raise NotFoundError(f"Topic {topic_id} not found")
            key = (topic_id, chapter_id)
            chapter = self._chapters.get(key)
            if chapter is None:
                chapter = Chapter(id=chapter_id, topic_id=topic_id, name=name, source=source)
                self._chapters[key] = chapter
                logger.info(f"Created chapter {topic_id}/{chapter_id} ({name})")
            if upload_id and upload_id not in chapter.source_upload_ids:
                chapter.source_upload_ids.append(upload_id)
            return chapter.model_copy(deep=True)

    async def insert_mcq_if_absent(self, mcq: MCQ) -> bool:
        async with self._lock:
            if mcq.id in self._mcqs:
                return False
            self._mcqs[mcq.id] = mcq.model_copy(deep=True)
            return True

    async def insert_flashcard_if_absent(self, flashcard: Flashcard) -> bool:
        async with self._lock:
            if flashcard.id in self._flashcards:
                return False
            self._flashcards[flashcard.id] = flashcard.model_copy(deep=True)
            return True

    async def list_items_by_upload(self, upload_id: str) -> tuple[list[MCQ], list[Flashcard]]:
        mcqs = [m.model_copy(deep=True) for m in self._mcqs.values() if m.upload_id == upload_id]
        flashcards = [
            f.model_copy(deep=True) for f in self._flashcards.values() if f.upload_id == upload_id
        ]
        return sorted(mcqs, key=lambda m: m.id), sorted(flashcards, key=lambda f: f.id)

    async def recount(self, topic_id: str, chapter_id: str) -> Topic:
        async with self._lock:
            topic = self._topics.get(topic_id)
            chapter = self._chapters.get((topic_id, chapter_id))
            if topic is None or chapter is None:
                raise NotFoundError(f"Chapter {topic_id}/{chapter_id} not found")

            def _in_chapter(item) -> bool:
                return (
                    item.topic_id == topic_id
                    and item.chapter_id == chapter_id
                    and item.status == ContentStatus.APPROVED
                )

            chapter.mcq_count = sum(1 for m in self._mcqs.values() if _in_chapter(m))
            chapter.flashcard_count = sum(1 for f in self._flashcards.values() if _in_chapter(f))

            chapters = [c for (tid, _), c in self._chapters.items() if tid == topic_id]
            topic.chapter_count = len(chapters)
            topic.total_mcq_count = sum(c.mcq_count for c in chapters)
            topic.total_flashcard_count = sum(c.flashcard_count for c in chapters)

        return self._topic_with_chapters(topic_id)

    async def archive_item(self, kind: ContentKind, item_id: str) -> Topic:
        items = self._mcqs if kind == ContentKind.MCQ else self._flashcards
        async with self._lock:
            item = items.get(item_id)
            if item is None:
                raise NotFoundError(f"{kind.value} {item_id} not found")
            _check_archivable(item_id, item.status)
            item.status = ContentStatus.ARCHIVED
            topic_id, chapter_id = item.topic_id, item.chapter_id
        return await self.recount(topic_id, chapter_id)


# =============================================================================
# PostgreSQL implementation
# =============================================================================


def _chapter_from_record(record) -> Chapter:
    return Chapter(
        id=record.id,
        topic_id=record.topic_id,
        name=record.name,
        source=record.source,
        mcq_count=record.mcq_count,
        flashcard_count=record.flashcard_count,
        source_upload_ids=list(record.source_upload_ids or []),
    )


def _topic_from_record(record, chapters: list[Chapter]) -> Topic:
    return Topic(
        id=record.id,
        name=record.name,
        source=record.source,
        chapter_count=record.chapter_count,
        total_mcq_count=record.total_mcq_count,
        total_flashcard_count=record.total_flashcard_count,
        chapters=chapters,
    )


def _item_columns(item: MCQ | Flashcard) -> dict:
    values = item.model_dump(mode="json")
    values["created_at"] = item.created_at
    return values


class SQLContentStore(ContentStore):
    """Content store backed by the topics, chapters, mcqs and flashcards tables."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        if session_maker is None:
            from quizforge.db.base import async_session_maker

            session_maker = async_session_maker
        self._session_maker = session_maker

    async def _load_topic(self, session: AsyncSession, topic_id: str) -> Optional[Topic]:
        from quizforge.db.models import ChapterRecord, TopicRecord

        record = await session.get(TopicRecord, topic_id)
        if record is None:
            return None
        result = await session.execute(
            select(ChapterRecord)
            .where(ChapterRecord.topic_id == topic_id)
            .order_by(ChapterRecord.name)
        )
        chapters = [_chapter_from_record(c) for c in result.scalars().all()]
        return _topic_from_record(record, chapters)

    async def list_topics(self) -> list[Topic]:
        from quizforge.db.models import ChapterRecord, TopicRecord

        async with self._session_maker() as session:
            topics_result = await session.execute(select(TopicRecord).order_by(TopicRecord.name))
            chapters_result = await session.execute(
                select(ChapterRecord).order_by(ChapterRecord.name)
            )

            by_topic: dict[str, list[Chapter]] = {}
            for record in chapters_result.scalars().all():
                by_topic.setdefault(record.topic_id, []).append(_chapter_from_record(record))

            return [
                _topic_from_record(record, by_topic.get(record.id, []))
                for record in topics_result.scalars().all()
            ]

    async def get_topic(self, topic_id: str) -> Optional[Topic]:
        async with self._session_maker() as session:
            return await self._load_topic(session, topic_id)

    async def get_chapter(self, topic_id: str, chapter_id: str) -> Optional[Chapter]:
        from quizforge.db.models import ChapterRecord

        async with self._session_maker() as session:
            record = await session.get(ChapterRecord, (topic_id, chapter_id))
            return _chapter_from_record(record) if record else None

    async def upsert_topic(self, topic_id: str, name: str, source: TopicSource) -> Topic:
        from quizforge.db.models import TopicRecord

        async with self._session_maker() as session:
            stmt = (
                insert(TopicRecord)
                .values(id=topic_id, name=name, source=source.value)
                .on_conflict_do_nothing(index_elements=["id"])
            )
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount:
                logger.info(f"Created topic {topic_id!r} ({name})")
            return await self._load_topic(session, topic_id)

    async def upsert_chapter(
        self,
        topic_id: str,
        chapter_id: str,
        name: str,
        source: TopicSource,
        upload_id: Optional[str] = None,
    ) -> Chapter:
        from quizforge.db.models import ChapterRecord, TopicRecord

        async with self._session_maker() as session:
            if await session.get(TopicRecord, topic_id) is None:
                raise NotFoundError(f"Topic {topic_id} not found")

            stmt = (
                insert(ChapterRecord)
                .values(
                    topic_id=topic_id,
                    id=chapter_id,
                    name=name,
                    source=source.value,
                    source_upload_ids=[upload_id] if upload_id else [],
                )
                .on_conflict_do_nothing(index_elements=["topic_id", "id"])
            )
            result = await session.execute(stmt)
            if result.rowcount:
                logger.info(f"Created chapter {topic_id}/{chapter_id} ({name})")
            elif upload_id:
                await session.execute(
                    sql_update(ChapterRecord)
                    .where(ChapterRecord.topic_id == topic_id)
                    .where(ChapterRecord.id == chapter_id)
                    .where(~ChapterRecord.source_upload_ids.any(upload_id))
                    .values(
                        source_upload_ids=func.array_append(
                            ChapterRecord.source_upload_ids, upload_id
                        )
                    )
                )
            await session.commit()

            record = await session.get(ChapterRecord, (topic_id, chapter_id), populate_existing=True)
            return _chapter_from_record(record)

    async def _insert_if_absent(self, model, item: MCQ | Flashcard) -> bool:
        async with self._session_maker() as session:
            stmt = insert(model).values(**_item_columns(item)).on_conflict_do_nothing(
                index_elements=["id"]
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount == 1

    async def insert_mcq_if_absent(self, mcq: MCQ) -> bool:
        from quizforge.db.models import MCQRecord

        return await self._insert_if_absent(MCQRecord, mcq)

    async def insert_flashcard_if_absent(self, flashcard: Flashcard) -> bool:
        from quizforge.db.models import FlashcardRecord

        return await self._insert_if_absent(FlashcardRecord, flashcard)

    async def list_items_by_upload(self, upload_id: str) -> tuple[list[MCQ], list[Flashcard]]:
        from quizforge.db.models import FlashcardRecord, MCQRecord

        async with self._session_maker() as session:
            mcq_rows = await session.execute(
                select(MCQRecord).where(MCQRecord.upload_id == upload_id).order_by(MCQRecord.id)
            )
            fc_rows = await session.execute(
                select(FlashcardRecord)
                .where(FlashcardRecord.upload_id == upload_id)
                .order_by(FlashcardRecord.id)
            )
            mcqs = [MCQ.model_validate(r, from_attributes=True) for r in mcq_rows.scalars().all()]
            flashcards = [
                Flashcard.model_validate(r, from_attributes=True) for r in fc_rows.scalars().all()
            ]
            return mcqs, flashcards

    async def recount(self, topic_id: str, chapter_id: str) -> Topic:
        from quizforge.db.models import ChapterRecord, FlashcardRecord, MCQRecord, TopicRecord

        async with self._session_maker() as session:
            chapter = await session.get(ChapterRecord, (topic_id, chapter_id))
            if chapter is None:
                raise NotFoundError(f"Chapter {topic_id}/{chapter_id} not found")

            async def _approved(model) -> int:
                return await session.scalar(
                    select(func.count())
                    .select_from(model)
                    .where(model.topic_id == topic_id)
                    .where(model.chapter_id == chapter_id)
                    .where(model.status == ContentStatus.APPROVED.value)
                )

            chapter.mcq_count = await _approved(MCQRecord)
            chapter.flashcard_count = await _approved(FlashcardRecord)
            await session.flush()

            totals = await session.execute(
                select(
                    func.count(ChapterRecord.id),
                    func.coalesce(func.sum(ChapterRecord.mcq_count), 0),
                    func.coalesce(func.sum(ChapterRecord.flashcard_count), 0),
                ).where(ChapterRecord.topic_id == topic_id)
            )
            chapter_count, mcq_total, fc_total = totals.one()

            await session.execute(
                sql_update(TopicRecord)
                .where(TopicRecord.id == topic_id)
                .values(
                    chapter_count=chapter_count,
                    total_mcq_count=mcq_total,
                    total_flashcard_count=fc_total,
                )
            )
            await session.commit()

            session.expire_all()
            return await self._load_topic(session, topic_id)

    async def archive_item(self, kind: ContentKind, item_id: str) -> Topic:
        from quizforge.db.models import FlashcardRecord, MCQRecord

        model = MCQRecord if kind == ContentKind.MCQ else FlashcardRecord
        async with self._session_maker() as session:
            record = await session.get(model, item_id)
            if record is None:
                raise NotFoundError(f"{kind.value} {item_id} not found")
            _check_archivable(item_id, ContentStatus(record.status))
            record.status = ContentStatus.ARCHIVED.value
            topic_id, chapter_id = record.topic_id, record.chapter_id
            await session.commit()
        return await self.recount(topic_id, chapter_id)
