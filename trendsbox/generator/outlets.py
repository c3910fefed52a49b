"""
Outlet reputation table and source attribution helpers.

Maps known news outlets to a trust score and turns raw search hits into
`SourceAttribution` objects with a friendly outlet label.
"""

from typing import Dict, List, NamedTuple, Optional
from urllib.parse import urlparse

from .models import SearchResult, SourceAttribution

DEFAULT_RELIABILITY_SCORE = 70


class OutletReputation(NamedTuple):
    name: str
    score: int
    description: str


OUTLET_REPUTATION: List[OutletReputation] = [
    OutletReputation("Premium Times", 95, "High investigative standards and factual accuracy."),
    OutletReputation("The Cable", 92, "Reliable real-time reporting and balanced views."),
    OutletReputation("Channels TV", 94, "Leading broadcast news with strong editorial standards."),
    OutletReputation("Punch", 88, "Widely read with strong historical presence."),
    OutletReputation("Daily Trust", 87, "Strong regional coverage and reliable reporting."),
    OutletReputation("Guardian Nigeria", 90, "Intellectual depth and high editorial quality."),
    OutletReputation("Arise News", 91, "Global perspective on Nigerian news."),
    OutletReputation("Vanguard", 85, "Popular news source with broad coverage."),
    OutletReputation("Sahara Reporters", 80, "Aggressive reporting, occasionally controversial."),
    OutletReputation("BellaNaija", 85, "Top-tier entertainment and lifestyle coverage."),
]

# First host label -> display label
DOMAIN_LABELS: Dict[str, str] = {
    "punchng": "The Punch",
    "vanguardngr": "Vanguard",
    "dailypost": "Daily Post",
    "premiumtimesng": "Premium Times",
    "guardian": "The Guardian NG",
    "independent": "Independent",
    "thenationonlineng": "The Nation",
    "thisdaylive": "ThisDay",
}


def find_outlet(source_name: str) -> Optional[OutletReputation]:
    """
    Look up an outlet by name.

    Matching is case-insensitive and works both ways (the name contains the
    outlet, or the outlet contains the name). When several outlets match,
    the longest outlet name wins.
    """
    needle = (source_name or "").strip().lower()
    if not needle:
        return None

    matches = [
        outlet for outlet in OUTLET_REPUTATION
        if outlet.name.lower() in needle or needle in outlet.name.lower()
    ]
    if not matches:
        return None
    return max(matches, key=lambda outlet: len(outlet.name))


def reliability_score(source_name: str) -> int:
    """Trust score for ``source_name``, 70 when the outlet is unknown."""
    outlet = find_outlet(source_name)
    return outlet.score if outlet else DEFAULT_RELIABILITY_SCORE


def domain_label(url: str) -> str:
    """Friendly outlet label derived from the URL host."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    first = host.split(".")[0] if host else ""
    if not first:
        return "Unknown"
    return DOMAIN_LABELS.get(first, first.capitalize())


def attribute(result: SearchResult) -> SourceAttribution:
    """Build the attribution for one search hit."""
    label = domain_label(result.url)
    outlet = find_outlet(label) or find_outlet(result.title)
    return SourceAttribution(
        display_name=result.title or label,
        origin_domain_label=label,
        url=result.url,
        reliability_score=outlet.score if outlet else DEFAULT_RELIABILITY_SCORE,
    )


def reconcile_sources(
    results: List[SearchResult],
    relevant_ids: List[int],
) -> List[SourceAttribution]:
    """
    Keep only the search hits the model cited.

    Order follows the search ranking. Ids outside the result range are ignored.
    If nothing survives but there were results, the first hit is kept.
    """
    wanted = set(relevant_ids)
    kept = [result for index, result in enumerate(results) if index in wanted]
    if not kept and results:
        kept = [results[0]]
    return [attribute(result) for result in kept]
