"""
LLM provider interface and implementations for content generation.

Providers take a system instruction and user content and return the raw
model text. Parsing and validation of that text happen in `parser`.
Includes a dummy provider for local development without API keys.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Any, List

import httpx

from trendsbox.core.logging import get_logger
from .errors import CompletionError

logger = get_logger(__name__)

SOURCE_MARKER = re.compile(r"\[Source (\d+)\]")


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        json_mode: bool = True,
    ) -> str:
        """
        Run one chat completion.

        Args:
            system_prompt: Instruction fixing persona and output shape
            user_prompt: Context and request
            model: Model identifier
            json_mode: Ask the provider for a JSON object response

        Returns:
            Raw text of the first choice

        Raises:
            CompletionError: transport or API failure
        """
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check provider health and availability."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identification name."""
        pass


class GroqLLMProvider(LLMProvider):
    """Groq chat completions through its OpenAI-compatible endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://api.groq.com/openai/v1",
    ):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return "Groq"

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "configured" if self.api_key else "unavailable",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        json_mode: bool = True,
    ) -> str:
        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        self.call_count += 1
        start_time = time.time()
        try:
            response = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise CompletionError(
                f"Groq returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise CompletionError(f"Groq request failed: {e}") from e
        except ValueError as e:
            raise CompletionError(f"Groq returned invalid JSON envelope: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"Unexpected Groq response shape: {e}") from e

        logger.info(f"Groq completion from {model} in {time.time() - start_time:.2f}s")
        return content or ""


class DummyLLMProvider(LLMProvider):
    """
    Dummy LLM provider for development and testing.

    Produces a well-formed JSON answer without external calls, citing the
    first source present in the prompt.
    """

    def __init__(self):
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return "DummyLLM"

    async def health_check(self) -> Dict[str, Any]:
        """Always healthy for dummy provider."""
        return {
            "status": "healthy",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        json_mode: bool = True,
    ) -> str:
        self.call_count += 1
        source_ids: List[int] = sorted({int(m) for m in SOURCE_MARKER.findall(user_prompt)})

        headline = user_prompt.strip().splitlines()[-1] if user_prompt.strip() else "Today's story"
        headline = headline.replace("Prompt:", "").strip()[:70]

        return json.dumps({
            "title": f"Briefing: {headline}",
            "excerpt": "A concise look at the story everyone is talking about today.",
            "content": (
                "This is placeholder copy produced without a language model. "
                "Configure GROQ_API_KEY to generate real content."
            ),
            "relevantSourceIds": source_ids[:1],
        })


class NoLLMProvider(LLMProvider):
    """
    Minimal provider that always fails.

    Used when no LLM service is configured.
    """

    @property
    def provider_name(self) -> str:
        return "NoLLM"

    async def health_check(self) -> Dict[str, Any]:
        """Always returns unavailable status."""
        return {
            "status": "unavailable",
            "provider": self.provider_name,
            "message": "No LLM provider configured",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        json_mode: bool = True,
    ) -> str:
        raise CompletionError("No LLM provider available; set GROQ_API_KEY")


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    _providers = {
        "groq": GroqLLMProvider,
        "dummy": DummyLLMProvider,
        "nollm": NoLLMProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: str = "groq", **config) -> LLMProvider:
        """
        Create LLM provider instance.

        Args:
            provider_type: Type of provider ("groq", "dummy", "nollm")
            **config: Provider-specific configuration (client, api_key, base_url)

        Returns:
            LLMProvider instance
        """
        if provider_type not in cls._providers:
            logger.warning(f"Unknown provider type: {provider_type}, falling back to nollm")
            provider_type = "nollm"

        if provider_type == "groq":
            if not config.get("api_key"):
                logger.warning("GROQ_API_KEY not set, completions will fail")
                return NoLLMProvider()
            return GroqLLMProvider(
                client=config["client"],
                api_key=config["api_key"],
                base_url=config.get("base_url", "https://api.groq.com/openai/v1"),
            )

        return cls._providers[provider_type]()

    @classmethod
    def register_provider(cls, name: str, provider_class):
        """Register a new provider type."""
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> List[str]:
        """List available provider types."""
        return list(cls._providers.keys())
