"""
Trends Box generation module.

Turns a category/content-type request into a stored, illustrated post.

Main Components:
- models: Pydantic models for requests, sources and records
- outlets: outlet reputation table and source reconciliation
- search: Tavily search collaborator
- llm_provider: LLM abstraction (Groq, dummy, none)
- parser: schema validation of completion output
- prompts: system and user prompt construction
- images: Gemini illustration with placeholder fallback
- orchestrator: the generation sequence
- app: FastAPI application with REST endpoints
"""

from .models import (
    Category,
    ContentType,
    GenerationRecord,
    GenerationRequest,
    OrchestratorConfig,
    RecordStatus,
    SearchResult,
    SourceAttribution,
)
from .llm_provider import LLMProvider, DummyLLMProvider, GroqLLMProvider, LLMProviderFactory
from .outlets import reliability_score, reconcile_sources
from .parser import parse_completion, ParsedCompletion, CompletionRejection
from .orchestrator import GenerationOrchestrator

__all__ = [
    # Models
    "Category",
    "ContentType",
    "GenerationRecord",
    "GenerationRequest",
    "OrchestratorConfig",
    "RecordStatus",
    "SearchResult",
    "SourceAttribution",

    # LLM Providers
    "LLMProvider",
    "DummyLLMProvider",
    "GroqLLMProvider",
    "LLMProviderFactory",

    # Sources
    "reliability_score",
    "reconcile_sources",

    # Parsing
    "parse_completion",
    "ParsedCompletion",
    "CompletionRejection",

    # Orchestration
    "GenerationOrchestrator",
]
