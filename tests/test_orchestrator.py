"""Tests for the generation orchestrator."""

import asyncio
import json

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from trendsbox.core import repositories
from trendsbox.core.database import build_sessionmaker
from trendsbox.core.models import HistoryItem
from trendsbox.generator.errors import GenerationError, PersistenceError, QuotaExceededError
from trendsbox.generator.images import placeholder_image_url
from trendsbox.generator.orchestrator import GenerationOrchestrator
from trendsbox.generator.models import (
    Category,
    ContentType,
    GenerationRecord,
    GenerationRequest,
    RecordStatus,
)

from conftest import TODAY, FakeImages, FakeLLM, FakeSearch

USER = "user-1"


async def usage_of(session_factory, user_id=USER):
    async with session_factory() as session:
        return await repositories.get_usage_count(session, user_id, TODAY)


async def history_of(session_factory, user_id=USER):
    async with session_factory() as session:
        return await repositories.list_history(session, user_id)


async def fill_quota(session_factory, times, user_id=USER):
    for _ in range(times):
        async with session_factory() as session:
            async with session.begin():
                await repositories.increment_usage(session, user_id, TODAY)


class TestQuota:

    async def test_quota_exceeded_calls_nothing(self, make_orchestrator, session_factory):
        llm, search, images = FakeLLM(), FakeSearch(), FakeImages()
        orchestrator = make_orchestrator(llm=llm, search=search, images=images, daily_limit=2)
        await fill_quota(session_factory, 2)

        with pytest.raises(QuotaExceededError) as exc_info:
            await orchestrator.generate(USER, GenerationRequest())

        assert exc_info.value.used == 2
        assert exc_info.value.limit == 2
        assert llm.calls == [] and search.calls == [] and images.calls == []
        assert await usage_of(session_factory) == 2

    async def test_quota_is_per_user(self, make_orchestrator, session_factory):
        orchestrator = make_orchestrator(daily_limit=1)
        await fill_quota(session_factory, 1, user_id="someone-else")

        record = await orchestrator.generate(USER, GenerationRequest(guidance="fuel prices"))

        assert record.status == RecordStatus.CONFIRMED

    async def test_remaining_quota(self, make_orchestrator, session_factory):
        orchestrator = make_orchestrator(daily_limit=20)
        await fill_quota(session_factory, 3)

        assert await orchestrator.remaining_quota(USER) == {"used": 3, "limit": 20, "remaining": 17}


class TestLatestNews:

    async def test_full_pipeline(self, make_orchestrator, session_factory, search_results):
        llm, search, images = FakeLLM(), FakeSearch(search_results), FakeImages()
        orchestrator = make_orchestrator(llm=llm, search=search, images=images)

        record = await orchestrator.generate(USER, GenerationRequest(category=Category.TECHNOLOGY))

        assert record.status == RecordStatus.CONFIRMED
        assert record.title == "MTN Bids $6.2B for Full Control of IHS Towers"
        assert record.content_type == ContentType.BLOG
        assert record.category == Category.TECHNOLOGY
        assert record.image_url == "data:image/png;base64,aGVsbG8="
        # model cited [1] only
        assert [s.url for s in record.sources] == [search_results[1].url]
        assert record.sources[0].origin_domain_label == "The Punch"
        assert record.sources[0].reliability_score == 88

        call = search.calls[0]
        assert call["search_depth"] == "advanced"
        assert call["max_results"] == 5
        assert "premiumtimesng.com" in call["include_domains"]
        assert "Technology" in call["query"]

        prompt = llm.calls[0]
        assert prompt["json_mode"] is True
        assert "[Source 1] Title: MTN bids for IHS Towers" in prompt["user_prompt"]
        assert "relevantSourceIds" in prompt["system_prompt"]
        assert images.calls[0]["aspect_ratio"] == "16:9"
        assert record.title in images.calls[0]["description"]

        assert await usage_of(session_factory) == 1

    async def test_first_hit_kept_when_model_cites_nothing(self, make_orchestrator, search_results):
        llm = FakeLLM(json.dumps({"title": "T", "excerpt": "E", "content": "C"}))
        orchestrator = make_orchestrator(llm=llm, search=FakeSearch(search_results))

        record = await orchestrator.generate(USER, GenerationRequest())

        assert [s.url for s in record.sources] == [search_results[0].url]

    async def test_zero_search_results_gives_empty_sources(self, make_orchestrator, session_factory):
        llm = FakeLLM()
        orchestrator = make_orchestrator(llm=llm, search=FakeSearch([]))

        record = await orchestrator.generate(USER, GenerationRequest())

        assert record.sources == []
        assert "relevantSourceIds" not in llm.calls[0]["system_prompt"]
        assert await usage_of(session_factory) == 1

    async def test_search_failure_degrades(self, make_orchestrator, session_factory):
        search = FakeSearch(fail=True)
        orchestrator = make_orchestrator(search=search)

        record = await orchestrator.generate(USER, GenerationRequest())

        assert len(search.calls) == 1
        assert record.sources == []
        assert record.status == RecordStatus.CONFIRMED

    async def test_search_and_image_failure_still_produce_record(self, make_orchestrator, session_factory):
        orchestrator = make_orchestrator(search=FakeSearch(fail=True), images=FakeImages(fail=True))

        record = await orchestrator.generate(USER, GenerationRequest())

        assert record.sources == []
        assert record.image_url == placeholder_image_url(record.title)
        assert await usage_of(session_factory) == 1


class TestGuidance:

    async def test_guidance_skips_search(self, make_orchestrator, session_factory):
        search, llm = FakeSearch(), FakeLLM()
        orchestrator = make_orchestrator(llm=llm, search=search)
        request = GenerationRequest(
            content_type=ContentType.SOCIAL,
            category=Category.TECHNOLOGY,
            guidance="new telecom tariffs",
        )

        record = await orchestrator.generate(USER, request)

        assert search.calls == []
        assert record.sources == []
        assert record.content_type == ContentType.SOCIAL
        assert "new telecom tariffs" in llm.calls[0]["user_prompt"]
        assert "Context:" not in llm.calls[0]["user_prompt"]


class TestFailures:

    async def test_completion_failure_fails_request(self, make_orchestrator, session_factory, search_results):
        orchestrator = make_orchestrator(llm=FakeLLM(fail=True), search=FakeSearch(search_results))

        with pytest.raises(GenerationError):
            await orchestrator.generate(USER, GenerationRequest())

        assert await usage_of(session_factory) == 0
        assert await history_of(session_factory) == []

    async def test_malformed_json_fails_without_record_or_increment(self, make_orchestrator, session_factory):
        images = FakeImages()
        orchestrator = make_orchestrator(llm=FakeLLM("not json at all"), images=images)

        with pytest.raises(GenerationError):
            await orchestrator.generate(USER, GenerationRequest())

        assert images.calls == []
        assert await usage_of(session_factory) == 0
        assert await history_of(session_factory) == []

    async def test_missing_fields_degrade(self, make_orchestrator):
        orchestrator = make_orchestrator(llm=FakeLLM(json.dumps({"excerpt": "only this"})))

        record = await orchestrator.generate(USER, GenerationRequest())

        assert record.title == "Untitled story"
        assert record.body == ""
        assert record.excerpt == "only this"

    async def test_missing_image_generator_uses_placeholder(self, make_orchestrator):
        orchestrator = make_orchestrator(images=None)

        record = await orchestrator.generate(USER, GenerationRequest())

        assert record.image_url.startswith("https://picsum.photos/seed/")
        assert record.image_url == placeholder_image_url(record.title)

    async def test_persistence_failure_fails_request(self, make_orchestrator, session_factory, engine: AsyncEngine):
        async with engine.begin() as conn:
            await conn.run_sync(HistoryItem.__table__.drop)
        orchestrator = make_orchestrator()

        with pytest.raises(PersistenceError):
            await orchestrator.generate(USER, GenerationRequest())

        assert await usage_of(session_factory) == 0


class TestPersistence:

    async def test_each_success_increments_by_exactly_one(self, make_orchestrator, session_factory):
        orchestrator = make_orchestrator()

        for expected in range(1, 4):
            await orchestrator.generate(USER, GenerationRequest(guidance=f"topic {expected}"))
            assert await usage_of(session_factory) == expected

    async def test_record_round_trips_through_history(self, make_orchestrator, session_factory, search_results):
        llm = FakeLLM(json.dumps({
            "title": "Title", "excerpt": "Excerpt", "content": "Body", "relevantSourceIds": [0, 2],
        }))
        orchestrator = make_orchestrator(llm=llm, search=FakeSearch(search_results), images=FakeImages())

        record = await orchestrator.generate(USER, GenerationRequest(category=Category.SPORTS))

        async with session_factory() as session:
            item = await repositories.get_history_item(session, USER, record.id)
        stored = GenerationRecord(status=RecordStatus.CONFIRMED, **repositories.history_row_to_dict(item))

        for field in ("title", "excerpt", "body", "category", "content_type", "sources", "image_url"):
            assert getattr(stored, field) == getattr(record, field)
        assert len(stored.sources) == 2


class CeilingRaceLLM(FakeLLM):
    """Uses up the caller's remaining quota while the completion is in flight."""

    def __init__(self, session_factory, limit):
        super().__init__()
        self.session_factory = session_factory
        self.limit = limit

    async def complete(self, system_prompt, user_prompt, model, json_mode=True):
        await fill_quota(self.session_factory, self.limit)
        return await super().complete(system_prompt, user_prompt, model, json_mode)


class TestQuotaCeiling:

    async def test_ceiling_enforced_at_storage_time(self, make_orchestrator, session_factory):
        orchestrator = make_orchestrator(llm=CeilingRaceLLM(session_factory, limit=2), daily_limit=2)

        with pytest.raises(QuotaExceededError) as exc_info:
            await orchestrator.generate(USER, GenerationRequest(guidance="fuel prices"))

        assert exc_info.value.limit == 2
        assert await usage_of(session_factory) == 2
        assert await history_of(session_factory) == []


class TestConcurrency:

    @pytest.fixture
    def file_orchestrator(self, file_engine, config):
        def _make(daily_limit=20):
            return GenerationOrchestrator(
                llm=FakeLLM(),
                session_factory=build_sessionmaker(file_engine),
                config=config.model_copy(update={"daily_limit": daily_limit}),
                today=lambda: TODAY,
            )
        return _make

    async def test_concurrent_successes_each_count_once(self, file_orchestrator, file_engine):
        orchestrator = file_orchestrator()
        session_factory = build_sessionmaker(file_engine)

        records = await asyncio.gather(*[
            orchestrator.generate(USER, GenerationRequest(guidance=f"topic {i}")) for i in range(8)
        ])

        assert all(record.status == RecordStatus.CONFIRMED for record in records)
        stored = await history_of(session_factory)
        assert sorted(item.id for item in stored) == sorted(record.id for record in records)
        assert await usage_of(session_factory) == 8

    async def test_concurrent_requests_never_pass_the_limit(self, file_orchestrator, file_engine):
        orchestrator = file_orchestrator(daily_limit=3)
        session_factory = build_sessionmaker(file_engine)

        outcomes = await asyncio.gather(*[
            orchestrator.generate(USER, GenerationRequest(guidance=f"topic {i}")) for i in range(6)
        ], return_exceptions=True)

        confirmed = [o for o in outcomes if isinstance(o, GenerationRecord)]
        refused = [o for o in outcomes if isinstance(o, QuotaExceededError)]
        assert len(confirmed) == 3
        assert len(refused) == 3
        assert len(await history_of(session_factory)) == 3
        assert await usage_of(session_factory) == 3


class TestConfiguration:

    async def test_image_model_and_prompt_template_come_from_config(self, make_orchestrator, config):
        llm, images = FakeLLM(), FakeImages()
        orchestrator = make_orchestrator(llm=llm, images=images)
        orchestrator.config = config.model_copy(update={
            "image_model": "imagen-test",
            "system_template": "Desk editor for {region}. {guidelines}{sources_rule} Fields: {fields}",
        })

        await orchestrator.generate(USER, GenerationRequest(guidance="fuel prices"))

        assert images.calls[0]["model"] == "imagen-test"
        assert llm.calls[0]["system_prompt"].startswith("Desk editor for Nigeria.")
        assert llm.calls[0]["system_prompt"].endswith("Fields: title, excerpt, content")
