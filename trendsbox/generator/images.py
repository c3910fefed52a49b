"""Illustration collaborator backed by Gemini image generation."""

import hashlib
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import httpx

from trendsbox.core.logging import get_logger
from .errors import ImageGenerationError

logger = get_logger(__name__)

PLACEHOLDER_TEMPLATE = "https://picsum.photos/seed/{seed}/1200/630"


def placeholder_image_url(title: str) -> str:
    """Deterministic stock image for ``title``."""
    seed = hashlib.sha1((title or "news").encode("utf-8")).hexdigest()[:16]
    return PLACEHOLDER_TEMPLATE.format(seed=seed)


def image_prompt(title: str, region: str) -> str:
    return (
        f'A high-end editorial news graphic for a story titled: "{title}". '
        "The image should look like a professional magazine cover or a lead digital journalism header. "
        f"Incorporate relevant {region} corporate or urban elements, a clean typography-friendly "
        "composition and a sophisticated color palette. "
        "Style: photorealistic, cinematic lighting, professional branding."
    )


class ImageGenerator(ABC):
    """Abstract base class for image collaborators."""

    @abstractmethod
    async def generate(self, description: str, aspect_ratio: str = "16:9", model: Optional[str] = None) -> str:
        """Return a data URI for the generated image or raise ImageGenerationError."""
        pass


def extract_inline_image(data: Any) -> Optional[Tuple[str, str]]:
    """
    First ``(mime_type, base64_data)`` pair in a generateContent response.

    Returns None when there is no image part. Raises ImageGenerationError
    when the payload does not have the documented candidates/content/parts
    shape.
    """
    if not isinstance(data, dict):
        raise ImageGenerationError(f"expected JSON object, got {type(data).__name__}")

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ImageGenerationError("'candidates' is not a list")

    for candidate in candidates:
        if not isinstance(candidate, dict):
            raise ImageGenerationError("candidate is not an object")
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise ImageGenerationError("candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ImageGenerationError("content parts is not a list")

        for part in parts:
            if not isinstance(part, dict):
                raise ImageGenerationError("content part is not an object")
            inline = part.get("inlineData") or part.get("inline_data")
            if inline is None:
                continue
            if not isinstance(inline, dict):
                raise ImageGenerationError("inlineData is not an object")
            payload = inline.get("data")
            if isinstance(payload, str) and payload:
                mime_type = inline.get("mimeType") or inline.get("mime_type")
                if not isinstance(mime_type, str) or not mime_type:
                    mime_type = "image/png"
                return mime_type, payload

    return None


class GeminiImageGenerator(ImageGenerator):
    """Gemini ``generateContent`` with image output."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str = "gemini-2.5-flash-image",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    ):
        self.client = client
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")

    async def generate(self, description: str, aspect_ratio: str = "16:9", model: Optional[str] = None) -> str:
        payload = {
            "contents": [{"parts": [{"text": description}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        }
        try:
            response = await self.client.post(
                f"{self.base_url}/models/{model or self.model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ImageGenerationError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise ImageGenerationError(f"Gemini returned invalid JSON: {e}") from e

        image = extract_inline_image(data)
        if image is None:
            raise ImageGenerationError("Gemini response contained no image")

        mime_type, encoded = image
        logger.info(f"Gemini image generated ({mime_type})")
        return f"data:{mime_type};base64,{encoded}"


def create_image_generator(
    client: httpx.AsyncClient,
    api_key: str,
    model: str,
    base_url: str,
) -> Optional[ImageGenerator]:
    """Gemini generator when a key is configured, otherwise None (placeholders only)."""
    if not api_key:
        logger.warning("GEMINI_API_KEY not set, using placeholder images")
        return None
    return GeminiImageGenerator(client, api_key, model=model, base_url=base_url)
