"""Shared fixtures: in-memory database and fake collaborators."""

import json
from datetime import date
from typing import List, Optional

import pytest

from trendsbox.core.database import build_engine, build_sessionmaker, create_all, drop_all
from trendsbox.generator.errors import CompletionError, ImageGenerationError, SearchError
from trendsbox.generator.images import ImageGenerator
from trendsbox.generator.llm_provider import LLMProvider
from trendsbox.generator.models import OrchestratorConfig, SearchResult
from trendsbox.generator.orchestrator import GenerationOrchestrator
from trendsbox.generator.search import SearchProvider

TODAY = date(2026, 10, 18)


class FakeSearch(SearchProvider):
    def __init__(self, results: Optional[List[SearchResult]] = None, fail: bool = False):
        self.results = results or []
        self.fail = fail
        self.calls = []

    async def search(self, query, include_domains, max_results, search_depth="advanced"):
        self.calls.append({
            "query": query,
            "include_domains": include_domains,
            "max_results": max_results,
            "search_depth": search_depth,
        })
        if self.fail:
            raise SearchError("search backend down")
        return list(self.results)


class FakeLLM(LLMProvider):
    def __init__(self, response: Optional[str] = None, fail: bool = False):
        self.response = response if response is not None else json.dumps({
            "title": "MTN Bids $6.2B for Full Control of IHS Towers",
            "excerpt": "A landmark telecom deal reshapes the tower market.",
            "content": "MTN has tabled a bid for the remaining stake in IHS Towers.",
            "relevantSourceIds": [1],
        })
        self.fail = fail
        self.calls = []

    @property
    def provider_name(self) -> str:
        return "FakeLLM"

    async def health_check(self):
        return {"status": "healthy", "provider": self.provider_name}

    async def complete(self, system_prompt, user_prompt, model, json_mode=True):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "model": model,
            "json_mode": json_mode,
        })
        if self.fail:
            raise CompletionError("model unavailable")
        return self.response


class FakeImages(ImageGenerator):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def generate(self, description, aspect_ratio="16:9", model=None):
        self.calls.append({"description": description, "aspect_ratio": aspect_ratio, "model": model})
        if self.fail:
            raise ImageGenerationError("no image")
        return "data:image/png;base64,aGVsbG8="


@pytest.fixture
def search_results():
    return [
        SearchResult(
            title="Senate passes new telecom bill",
            url="https://www.premiumtimesng.com/news/telecom-bill.html",
            content="The Senate on Monday passed the telecom bill...",
        ),
        SearchResult(
            title="MTN bids for IHS Towers",
            url="https://punchng.com/mtn-bids-for-ihs/",
            content="MTN Group has offered $6.2B...",
        ),
        SearchResult(
            title="Super Eagles qualify",
            url="https://www.vanguardngr.com/sports/super-eagles/",
            content="The Super Eagles booked their ticket...",
        ),
    ]


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await create_all(engine)
    yield engine
    await drop_all(engine)
    await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed SQLite with a real connection pool, for concurrent sessions."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'trendsbox.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def config():
    return OrchestratorConfig(max_search_results=5, daily_limit=20)


@pytest.fixture
def make_orchestrator(session_factory, config):
    def _make(llm=None, search=None, images=None, daily_limit=None):
        cfg = config if daily_limit is None else config.model_copy(update={"daily_limit": daily_limit})
        return GenerationOrchestrator(
            llm=llm or FakeLLM(),
            session_factory=session_factory,
            config=cfg,
            search=search,
            images=images,
            today=lambda: TODAY,
        )
    return _make
