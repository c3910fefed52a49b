"""Prompt construction for the completion step."""

from datetime import date
from typing import List, Optional

from .models import ContentType, GenerationRequest, SearchResult

BLOG_STYLE = "Provide a full, detailed blog post with an attractive title and human-like delivery."
SOCIAL_STYLE = "Keep it extremely minimal: just a catchy title and 1-2 sentences of key details."

BLOG_GUIDELINES = """STYLE GUIDELINES:
- TITLE: Punchy, specific, and authoritative (e.g., "MTN Bids $6.2B for Full Control of IHS Towers").
- EXCERPT: A single, elegant, sophisticated sentence capturing the core significance.
- CONTENT: Professional, human-like delivery with sophisticated vocabulary."""

SOCIAL_GUIDELINES = """STYLE GUIDELINES:
- TITLE: Catchy and specific.
- EXCERPT: One short sentence.
- CONTENT: One or two sentences with the key details only."""

SYSTEM_TEMPLATE = """You are an elite {region} investigative journalist and senior news editor.
Your task is to transform raw news data into a crafted editorial piece.

CRITICAL REQUIREMENTS:
- RECENCY: Prioritise information from today's date given in the context. If the context contains multiple dates, focus on the most recent one.
- FOCUS: Select ONE specific, cohesive news story from the provided context or prompt.
- COHESION: The title, excerpt and content must all cover that SINGLE story. Do not mix unrelated news items.

{guidelines}
{sources_rule}
- FORMAT: Return ONLY a JSON object with fields: {fields}. No markdown outside the JSON."""

SOURCES_RULE = (
    "- SOURCES: Identify which sources from the context (e.g., [Source 0], [Source 1]) "
    "are directly relevant to the specific story you generated."
)


def style_for(content_type: ContentType) -> str:
    return SOCIAL_STYLE if content_type == ContentType.SOCIAL else BLOG_STYLE


def build_system_prompt(
    content_type: ContentType,
    region: str,
    has_context: bool,
    template: Optional[str] = None,
) -> str:
    """System instruction: persona, single-story focus, recency and output shape."""
    if has_context:
        fields = ("title, excerpt, content, and relevantSourceIds "
                  "(an array of numbers corresponding to the [Source X] IDs)")
    else:
        fields = "title, excerpt, content"

    guidelines = SOCIAL_GUIDELINES if content_type == ContentType.SOCIAL else BLOG_GUIDELINES
    return (template or SYSTEM_TEMPLATE).format(
        region=region,
        guidelines=guidelines,
        sources_rule=SOURCES_RULE if has_context else "",
        fields=fields,
    )


def build_request_prompt(request: GenerationRequest, region: str) -> str:
    """The user's ask in plain words."""
    kind = request.content_type.value
    category = request.category.value
    style = style_for(request.content_type)

    if request.guidance:
        return (
            f"Generate a {kind} post about: {request.guidance}. Category: {category}. "
            f"Focus on {region} context if applicable. {style}"
        )
    return (
        f"Find the latest news in {category} from popular {region} sources "
        f"and generate a {kind} post. {style}"
    )


def build_search_query(request: GenerationRequest, region: str, today: date) -> str:
    """Date-stamped query for the single most trending story in the category."""
    return (
        f"latest {request.category.value} news {region}: "
        f"single most trending story published today {today.strftime('%d %B %Y')}"
    )


def format_context(results: List[SearchResult], today: date) -> str:
    """Numbered context block; the numbers are the ids the model cites back."""
    if not results:
        return ""
    blocks = [
        f"[Source {index}] Title: {result.title}\nContent: {result.content}"
        for index, result in enumerate(results)
    ]
    return f"TODAY'S DATE: {today.strftime('%d %B %Y')}\n\n" + "\n\n".join(blocks)


def build_user_prompt(request_prompt: str, context: str) -> str:
    if context:
        return f"Context: {context}\n\nPrompt: {request_prompt}"
    return request_prompt
