#!/usr/bin/env python3
"""
Ranking and cross-source deduplication.

The score balances engagement against freshness: engagement is logarithmic
and capped at 50 so a single viral item cannot dominate, and recency decays
exponentially on a two-week scale. No source gets its own weight; points,
reactions and likes share one numeric scale.
"""

import math
from time import time
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from config import get_logger
from models import Item, ScoredItem

logger = get_logger("scoring")

ENGAGEMENT_CAP = 50
RECENCY_WEIGHT = 50
RECENCY_SCALE_HOURS = 14 * 24
POINTS_WEIGHT = 5
COMMENTS_WEIGHT = 3
SECONDS_PER_HOUR = 3600


def score(points: float, comments: float, age_seconds: float) -> int:
    """Score an item from its engagement counts and age; range is roughly 0..100."""
    points = max(0.0, points)
    comments = max(0.0, comments)
    age_hours = max(0.0, age_seconds) / SECONDS_PER_HOUR

    engagement = min(
        ENGAGEMENT_CAP,
        math.log2(1 + points) * POINTS_WEIGHT + math.log2(1 + comments) * COMMENTS_WEIGHT,
    )
    recency = RECENCY_WEIGHT * math.exp(-age_hours / RECENCY_SCALE_HOURS)
    # Half-up rounding; round() would send .5 to the even neighbour
    return int(math.floor(engagement + recency + 0.5))


def score_item(item: Item, now: Optional[float] = None) -> int:
    now = time() if now is None else now
    return score(item.points, item.comments, item.age(now))


def origin_of(url: str) -> Optional[str]:
    """Normalized host of ``url`` used as the dedup key, or None when it cannot be parsed."""
    try:
        host = urlparse(url.strip()).hostname
    except (AttributeError, ValueError):
        return None
    if not host:
        return None
    host = host.lower().rstrip('.')
    if host.startswith('www.'):
        host = host[4:]
    return host or None


def merge_items(
    source_lists: Iterable[Sequence[Item]],
    max_results: int = 3,
    now: Optional[float] = None,
) -> List[ScoredItem]:
    """Merge per-source lists into at most ``max_results`` items, one per origin.

    Items are scored, sorted by descending score (ties keep source-list order,
    then position within the list) and walked keeping the first item seen for
    each origin. Items whose origin cannot be determined are always kept.
    """
    now = time() if now is None else now
    scored = [
        ScoredItem.from_item(item, score_item(item, now))
        for items in source_lists
        for item in items
    ]
    # sorted() is stable, so equal scores keep their concatenation order
    ranked = sorted(scored, key=lambda item: item.score, reverse=True)

    seen = set()
    unique: List[ScoredItem] = []
    for item in ranked:
        if len(unique) >= max_results:
            break
        origin = origin_of(item.url)
        if origin is None:
            logger.debug(f"Keeping item with unparseable origin: {item.url}")
            unique.append(item)
            continue
        if origin in seen:
            continue
        seen.add(origin)
        unique.append(item)

    logger.debug(f"Merged {len(scored)} items into {len(unique)} results")
    return unique
