"""
Unit tests for the in-memory content store.
"""

import pytest
import pytest_asyncio

from quizforge.enums.content import ContentKind, ContentStatus, TopicSource
from quizforge.middleware.error_handling import InvalidTransitionError, NotFoundError
from quizforge.models.content import MCQ, Flashcard


def _mcq(item_id: str, chapter_id: str = "neonatal_jaundice", **overrides) -> MCQ:
    data = dict(
        id=item_id,
        topic_id="neonatology",
        chapter_id=chapter_id,
        topic_name="Neonatology",
        chapter_name="Neonatal Jaundice",
        upload_id="job-1",
        question="Which bilirubin fraction causes kernicterus?",
        options=["A. Unconjugated", "B. Conjugated"],
        answer="A",
    )
    data.update(overrides)
    return MCQ(**data)


def _flashcard(item_id: str) -> Flashcard:
    return Flashcard(
        id=item_id,
        topic_id="neonatology",
        chapter_id="neonatal_jaundice",
        topic_name="Neonatology",
        chapter_name="Neonatal Jaundice",
        upload_id="job-1",
        front="Phototherapy target?",
        back="Unconjugated bilirubin",
    )


@pytest_asyncio.fixture
async def taxonomy(content_store):
    await content_store.upsert_topic("neonatology", "Neonatology", TopicSource.GENERAL)
    await content_store.upsert_chapter(
        "neonatology", "neonatal_jaundice", "Neonatal Jaundice", TopicSource.GENERAL
    )
    return content_store


class TestTaxonomyUpserts:
    @pytest.mark.asyncio
    async def test_upsert_topic_is_idempotent_and_never_renames(self, content_store):
        await content_store.upsert_topic("neonatology", "Neonatology", TopicSource.GENERAL)
        topic = await content_store.upsert_topic("neonatology", "NEONATOLOGY", TopicSource.MARROW)

        assert topic.name == "Neonatology"
        assert topic.source == TopicSource.GENERAL
        assert len(await content_store.list_topics()) == 1

    @pytest.mark.asyncio
    async def test_upsert_chapter_requires_topic(self, content_store):
        with pytest.raises(NotFoundError):
            await content_store.upsert_chapter(
                "missing", "neonatal_jaundice", "Neonatal Jaundice", TopicSource.GENERAL
            )

    @pytest.mark.asyncio
    async def test_upsert_chapter_records_each_upload_once(self, content_store):
        await content_store.upsert_topic("neonatology", "Neonatology", TopicSource.GENERAL)
        for upload_id in ("job-1", "job-1", "job-2"):
            chapter = await content_store.upsert_chapter(
                "neonatology", "neonatal_jaundice", "Neonatal Jaundice",
                TopicSource.GENERAL, upload_id=upload_id,
            )

        assert chapter.source_upload_ids == ["job-1", "job-2"]

    @pytest.mark.asyncio
    async def test_get_topic_includes_chapters(self, taxonomy):
        topic = await taxonomy.get_topic("neonatology")

        assert [c.id for c in topic.chapters] == ["neonatal_jaundice"]
        assert topic.find_chapter("neonatal_jaundice").name == "Neonatal Jaundice"
        assert await taxonomy.get_topic("cardiology") is None


class TestItemsAndCounts:
    @pytest.mark.asyncio
    async def test_insert_if_absent(self, taxonomy):
        assert await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0"))
        assert not await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0", question="Changed?"))

        mcqs, flashcards = await taxonomy.list_items_by_upload("job-1")
        assert [m.question for m in mcqs] == ["Which bilirubin fraction causes kernicterus?"]
        assert flashcards == []

    @pytest.mark.asyncio
    async def test_recount_counts_approved_items_only(self, taxonomy):
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0"))
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_1"))
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_2", status=ContentStatus.PENDING))
        await taxonomy.insert_flashcard_if_absent(_flashcard("job-1_fc_0"))

        topic = await taxonomy.recount("neonatology", "neonatal_jaundice")

        chapter = topic.find_chapter("neonatal_jaundice")
        assert chapter.mcq_count == 2
        assert chapter.flashcard_count == 1
        assert topic.chapter_count == 1
        assert topic.total_mcq_count == 2
        assert topic.total_flashcard_count == 1

    @pytest.mark.asyncio
    async def test_recount_is_stable(self, taxonomy):
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0"))

        first = await taxonomy.recount("neonatology", "neonatal_jaundice")
        second = await taxonomy.recount("neonatology", "neonatal_jaundice")

        assert first == second

    @pytest.mark.asyncio
    async def test_recount_missing_chapter(self, taxonomy):
        with pytest.raises(NotFoundError):
            await taxonomy.recount("neonatology", "neonatal_sepsis")

    @pytest.mark.asyncio
    async def test_archive_item_updates_counts(self, taxonomy):
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0"))
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_1"))
        await taxonomy.recount("neonatology", "neonatal_jaundice")

        returned = await taxonomy.archive_item(ContentKind.MCQ, "job-1_mcq_0")

        topic = await taxonomy.get_topic("neonatology")
        assert topic.total_mcq_count == 1
        assert returned == topic

    @pytest.mark.asyncio
    async def test_archive_requires_approved(self, taxonomy):
        await taxonomy.insert_mcq_if_absent(_mcq("job-1_mcq_0"))
        await taxonomy.archive_item(ContentKind.MCQ, "job-1_mcq_0")

        with pytest.raises(InvalidTransitionError):
            await taxonomy.archive_item(ContentKind.MCQ, "job-1_mcq_0")

    @pytest.mark.asyncio
    async def test_archive_missing_item(self, taxonomy):
        with pytest.raises(NotFoundError):
            await taxonomy.archive_item(ContentKind.FLASHCARD, "job-1_fc_9")
