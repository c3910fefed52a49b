"""
Generation orchestrator.

Sequences one generation for one user:
1. Checks the daily quota
2. Searches for the latest news (only when the user gave no topic)
3. Asks the LLM for a structured story
4. Keeps the sources the model actually used
5. Illustrates the story (placeholder on any failure)
6. Stores the record and bumps the usage counter in one transaction,
   refusing to go past the daily limit

Search and illustration degrade silently; only the completion step and
persistence can fail the request. Each external call is made once.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from trendsbox.core import repositories
from trendsbox.core.logging import get_logger
from trendsbox.core.time import quota_today
from .errors import (
    CompletionError,
    GenerationError,
    ImageGenerationError,
    PersistenceError,
    QuotaExceededError,
    SearchError,
)
from .images import ImageGenerator, image_prompt, placeholder_image_url
from .llm_provider import LLMProvider
from .models import (
    GenerationRecord,
    GenerationRequest,
    OrchestratorConfig,
    RecordStatus,
    SearchResult,
)
from .outlets import reconcile_sources
from .parser import parse_completion
from .prompts import (
    build_request_prompt,
    build_search_query,
    build_system_prompt,
    build_user_prompt,
    format_context,
)
from .search import SearchProvider

logger = get_logger(__name__)


class GenerationOrchestrator:
    """
    Runs the search -> completion -> image -> persistence sequence.

    All collaborators are passed in; the orchestrator holds no global state.
    ``search`` and ``images`` may be None, in which case that step is skipped
    and its fallback applies.
    """

    def __init__(
        self,
        llm: LLMProvider,
        session_factory: async_sessionmaker,
        config: Optional[OrchestratorConfig] = None,
        search: Optional[SearchProvider] = None,
        images: Optional[ImageGenerator] = None,
        today: Callable[[], date] = quota_today,
    ):
        self.llm = llm
        self.session_factory = session_factory
        self.config = config or OrchestratorConfig()
        self.search = search
        self.images = images
        self.today = today

    async def remaining_quota(self, user_id: str) -> Dict[str, int]:
        async with self.session_factory() as session:
            used = await repositories.get_usage_count(session, user_id, self.today())
        return {
            "used": used,
            "limit": self.config.daily_limit,
            "remaining": max(self.config.daily_limit - used, 0),
        }

    async def generate(self, user_id: str, request: GenerationRequest) -> GenerationRecord:
        """
        Produce, store and return one record.

        Raises:
            QuotaExceededError: daily limit reached; raised before any external
                call, or at storage time if concurrent requests used the last slot
            GenerationError: completion failed or returned unusable output
            PersistenceError: the record could not be stored
        """
        day = self.today()
        await self._check_quota(user_id, day)

        results = await self._gather_context(request, day) if request.wants_latest_news else []
        if not request.wants_latest_news:
            logger.info("Explicit guidance given, skipping search")

        parsed = await self._complete(request, results, day)
        sources = reconcile_sources(results, parsed.relevant_source_ids)
        image_url = await self._illustrate(parsed.title)

        record = GenerationRecord(
            id=uuid.uuid4().hex,
            title=parsed.title,
            excerpt=parsed.excerpt,
            body=parsed.content,
            content_type=request.content_type,
            category=request.category,
            image_url=image_url,
            sources=sources,
            created_at=datetime.now(timezone.utc),
            status=RecordStatus.PENDING,
        )
        return await self._persist(user_id, record, day)

    async def _check_quota(self, user_id: str, day: date) -> None:
        async with self.session_factory() as session:
            used = await repositories.get_usage_count(session, user_id, day)
        if used >= self.config.daily_limit:
            logger.info(f"Quota exceeded for user {user_id}: {used}/{self.config.daily_limit}")
            raise QuotaExceededError(user_id, used, self.config.daily_limit)

    async def _gather_context(self, request: GenerationRequest, day: date) -> List[SearchResult]:
        if self.search is None:
            return []

        query = build_search_query(request, self.config.region, day)
        try:
            return await self.search.search(
                query,
                include_domains=self.config.include_domains,
                max_results=self.config.max_search_results,
                search_depth=self.config.search_depth,
            )
        except SearchError as e:
            logger.warning(f"Search failed, continuing without context: {e}")
            return []

    async def _complete(self, request: GenerationRequest, results: List[SearchResult], day: date):
        system_prompt = build_system_prompt(
            request.content_type,
            self.config.region,
            has_context=bool(results),
            template=self.config.system_template,
        )
        user_prompt = build_user_prompt(
            build_request_prompt(request, self.config.region),
            format_context(results, day),
        )

        try:
            raw = await self.llm.complete(
                system_prompt,
                user_prompt,
                model=self.config.completion_model,
                json_mode=True,
            )
        except CompletionError as e:
            logger.error(f"Completion failed: {e}")
            raise GenerationError("Completion request failed") from e

        parsed = parse_completion(raw)
        if not parsed.ok:
            logger.error(f"Completion rejected: {parsed.reason}")
            raise GenerationError(f"Completion output rejected: {parsed.reason}")
        return parsed

    async def _illustrate(self, title: str) -> str:
        if self.images is None:
            return placeholder_image_url(title)

        try:
            return await self.images.generate(
                image_prompt(title, self.config.region),
                aspect_ratio=self.config.aspect_ratio,
                model=self.config.image_model,
            )
        except ImageGenerationError as e:
            logger.warning(f"Image generation failed, using placeholder: {e}")
            return placeholder_image_url(title)

    async def _persist(self, user_id: str, record: GenerationRecord, day: date) -> GenerationRecord:
        row: Dict[str, Any] = record.model_dump(mode="json")
        row["created_at"] = record.created_at

        limit = self.config.daily_limit
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await repositories.add_history_item(session, user_id, row)
                    counted = await repositories.increment_usage(session, user_id, day, limit=limit)
                    if not counted:
                        # a concurrent request used the last slot; roll the row back
                        raise QuotaExceededError(user_id, limit, limit)
        except QuotaExceededError:
            record.status = RecordStatus.FAILED
            logger.info(f"Quota reached while storing record {record.id} for user {user_id}")
            raise
        except SQLAlchemyError as e:
            record.status = RecordStatus.FAILED
            logger.error(f"Failed to store record {record.id} for user {user_id}: {e}")
            raise PersistenceError("Generated content could not be saved") from e

        record.status = RecordStatus.CONFIRMED
        logger.info(f"Stored record {record.id} for user {user_id}: '{record.title}' ({len(record.sources)} sources)")
        return record
