"""
Schema validation of raw completion text.

`parse_completion` never raises. It returns either a `ParsedCompletion`
(the model produced a JSON object; missing or ill-typed fields fall back to
defaults) or a `CompletionRejection` (the text is not a JSON object at all).
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Union

from pydantic import BaseModel, Field, field_validator

from trendsbox.core.logging import get_logger

logger = get_logger(__name__)

UNTITLED = "Untitled story"

CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class CompletionPayload(BaseModel):
    """Expected shape of the model's JSON answer."""
    title: str = UNTITLED
    excerpt: str = ""
    content: str = ""
    relevant_source_ids: List[int] = Field(default_factory=list, alias="relevantSourceIds")

    @field_validator('title', mode='before')
    @classmethod
    def coerce_title(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return UNTITLED

    @field_validator('excerpt', 'content', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator('relevant_source_ids', mode='before')
    @classmethod
    def coerce_ids(cls, v: Any) -> List[int]:
        if not isinstance(v, list):
            return []
        ids = []
        for item in v:
            # bool is an int subclass; "true" is not a source id
            if isinstance(item, bool):
                continue
            if isinstance(item, int):
                ids.append(item)
            elif isinstance(item, str) and item.strip().isdigit():
                ids.append(int(item.strip()))
        return ids


@dataclass
class ParsedCompletion:
    title: str
    excerpt: str
    content: str
    relevant_source_ids: List[int] = field(default_factory=list)
    ok: bool = True


@dataclass
class CompletionRejection:
    reason: str
    raw: str = ""
    ok: bool = False


CompletionResult = Union[ParsedCompletion, CompletionRejection]


def _strip_fences(text: str) -> str:
    match = CODE_FENCE.match(text)
    return match.group(1) if match else text


def parse_completion(raw: str) -> CompletionResult:
    """Validate raw completion text against `CompletionPayload`."""
    text = _strip_fences((raw or "").strip())
    if not text:
        return CompletionRejection(reason="empty completion", raw=raw or "")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Completion is not valid JSON: {e}")
        return CompletionRejection(reason=f"invalid JSON: {e.msg}", raw=raw)

    if not isinstance(data, dict):
        return CompletionRejection(reason=f"expected JSON object, got {type(data).__name__}", raw=raw)

    payload = CompletionPayload.model_validate(data)
    missing = [name for name in ("title", "excerpt", "content") if name not in data]
    if missing:
        logger.warning(f"Completion missing fields {missing}, using defaults")

    return ParsedCompletion(
        title=payload.title,
        excerpt=payload.excerpt,
        content=payload.content,
        relevant_source_ids=payload.relevant_source_ids,
    )
