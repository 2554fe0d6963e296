#!/usr/bin/env python3
"""
Data model for the aggregation pipeline.

Items are normalized by the source adapters, scored only inside the merge
step, and handed to the rendering layer wrapped in an AggregateResult.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Item:
    """A normalized unit of content produced by a source adapter."""

    title: str
    url: str
    points: int = 0
    comments: int = 0
    source: str = ""
    published_at: int = 0
    description: str = ""
    author: str = ""
    thumbnail: str = ""
    tags: Tuple[str, ...] = ()
    kind: str = "article"

    def age(self, now: float) -> float:
        """Seconds elapsed since publication, never negative."""
        return max(0.0, now - self.published_at)


@dataclass(frozen=True)
class ScoredItem(Item):
    score: int = 0

    @classmethod
    def from_item(cls, item: Item, score: int) -> "ScoredItem":
        values = {f.name: getattr(item, f.name) for f in fields(Item)}
        return cls(score=score, **values)


@dataclass
class CacheEntry:
    key: str
    value: object
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


@dataclass(frozen=True)
class FetchOutcome:
    """Tagged result of one retrieval task: either items or the error that stopped it."""

    items: List[Item] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, items: List[Item]) -> "FetchOutcome":
        return cls(items=list(items))

    @classmethod
    def failure(cls, error: BaseException) -> "FetchOutcome":
        return cls(error=error)


class QueryState(Enum):
    """Orchestrator states for one logical query."""

    IDLE = "idle"
    CACHE_CHECK = "cache_check"
    FETCHING = "fetching"
    MERGING = "merging"
    CACHE_STORE = "cache_store"
    DONE = "done"
    ERROR = "error"


class ResultState(Enum):
    """What the rendering layer should show."""

    LOADING = "loading"
    RESULTS = "results"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class AggregateResult:
    state: ResultState
    items: List[ScoredItem] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def can_retry(self) -> bool:
        # Only a failure offers a retry; "no results" is a final state
        return self.state is ResultState.FAILED

    @classmethod
    def loading(cls) -> "AggregateResult":
        return cls(ResultState.LOADING)

    @classmethod
    def from_items(cls, items: List[ScoredItem]) -> "AggregateResult":
        if not items:
            return cls(ResultState.EMPTY)
        return cls(ResultState.RESULTS, list(items))

    @classmethod
    def failed(cls, reason: str) -> "AggregateResult":
        return cls(ResultState.FAILED, reason=reason)


ChannelResult = Union[List[Item], Exception]


@dataclass
class ChannelBatch:
    """Per-channel results of a batched fan-out; failures are kept per key."""

    results: Dict[str, ChannelResult] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for value in self.results.values() if isinstance(value, Exception))

    def items_by_channel(self) -> Dict[str, List[Item]]:
        """Flatten to lists, mapping failed channels to an empty list."""
        return {
            key: ([] if isinstance(value, Exception) else value)
            for key, value in self.results.items()
        }
