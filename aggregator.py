#!/usr/bin/env python3
"""
Aggregation orchestrator.

Drives one logical query through the pipeline:

    cache check -> concurrent multi-source fetch -> merge/score/dedupe -> cache store

A cache hit returns immediately without touching the network. Each source is
retried and timeout-bounded independently; a source that exhausts its retries
contributes nothing instead of failing the query. Only when every source fails
(and nothing was cached) does the query fail, with AllSourcesFailed, so callers
can tell "could not load" apart from "no results".

Concurrent duplicate queries for the same key are not coalesced: a second call
issued before the first finishes performs its own fetch.
"""

from contextlib import asynccontextmanager
from time import time
from typing import Callable, Dict, List, Optional, Sequence

from aiohttp import ClientSession

from cache import TTLCache
from config import config, get_logger
from errors import AllSourcesFailed, FetchError
from models import AggregateResult, ChannelBatch, Item, QueryState, ScoredItem
from scheduler import BatchScheduler
from scoring import merge_items
from sources import ReleasesSource, Source, YouTubeFeedSource, default_sources
from telemetry import init_telemetry, trace_span
from utils import RetryHelper, settle_all

logger = get_logger("aggregator")
init_telemetry("trend-aggregator")


def trending_key(topic: str) -> str:
    return f"trending:{' '.join(topic.split())}"


def channel_key(channel_id: str) -> str:
    return f"feed:{channel_id.strip()}"


class TrendAggregator:
    """Fetches, merges and caches recency-ranked items from several sources."""

    def __init__(
        self,
        sources: Optional[Sequence[Source]] = None,
        cache: Optional[TTLCache] = None,
        session: Optional[ClientSession] = None,
        retry: Optional[RetryHelper] = None,
        scheduler: Optional[BatchScheduler] = None,
        channel_source: Optional[Source] = None,
        releases_source: Optional[Source] = None,
        max_results: Optional[int] = None,
        clock: Callable[[], float] = time,
    ) -> None:
        """Initialize the aggregator.

        Args:
            sources: Adapters queried for a trending topic (HN and Dev.to by default)
            cache: Shared TTL cache; a private one is created when omitted
            session: aiohttp session to reuse; otherwise one is opened per call
            retry: Retry policy wrapped around every source call
            scheduler: Batch scheduler used by aggregate_many
            channel_source: Adapter used for per-channel feeds
            releases_source: Adapter for the curated releases document
            max_results: Maximum merged results per topic
            clock: Wall clock used for scoring ages
        """
        self.sources: List[Source] = list(sources) if sources is not None else default_sources()
        self.cache = cache if cache is not None else TTLCache()
        self.session = session
        self.retry = retry or RetryHelper(max_attempts=config.MAX_ATTEMPTS, delay=config.RETRY_DELAY)
        self.scheduler = scheduler or BatchScheduler()
        self.channel_source = channel_source or YouTubeFeedSource()
        self.releases_source = releases_source or ReleasesSource()
        self.max_results = max_results if max_results is not None else config.MAX_RESULTS
        self._clock = clock
        self.states: Dict[str, QueryState] = {}

    def _transition(self, key: str, state: QueryState) -> None:
        previous = self.states.get(key, QueryState.IDLE)
        self.states[key] = state
        logger.debug(f"{key}: {previous.value} -> {state.value}")

    @asynccontextmanager
    async def _session_scope(self):
        if self.session is not None:
            yield self.session
            return
        async with ClientSession() as session:
            yield session

    def _retrying(self, source: Source, query: str, session: ClientSession):
        """Zero-argument task running one source call under the retry policy."""
        async def _task() -> List[Item]:
            return await self.retry.run(
                lambda: source.fetch(query, session),
                label=f"{source.name} '{query}'",
            )
        return _task

    def is_cached(self, topic: str) -> bool:
        """True when a fresh result exists, i.e. the UI need not show a loading state."""
        return self.cache.contains(trending_key(topic))

    @trace_span(
        "aggregate",
        tracer_name="aggregator",
        attr_from_args=lambda self, topic: {"query.topic": topic},
    )
    async def aggregate(self, topic: str) -> List[ScoredItem]:
        """Return the top merged items for ``topic``.

        Raises:
            AllSourcesFailed: every source failed and no cached value exists.
        """
        key = trending_key(topic)
        self._transition(key, QueryState.CACHE_CHECK)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            self._transition(key, QueryState.DONE)
            return list(cached)

        self._transition(key, QueryState.FETCHING)
        logger.info(f"Fetching '{topic}' from {len(self.sources)} sources")
        async with self._session_scope() as session:
            outcomes = await settle_all(self._retrying(source, topic, session) for source in self.sources)

        source_lists: List[List[Item]] = []
        errors: Dict[str, Exception] = {}
        for source, outcome in zip(self.sources, outcomes):
            if outcome.ok:
                source_lists.append(outcome.items)
                logger.debug(f"{source.name} returned {len(outcome.items)} items for '{topic}'")
            else:
                source_lists.append([])
                errors[source.name] = outcome.error
                logger.warning(f"{source.name} contributed nothing for '{topic}': {outcome.error}")

        if self.sources and len(errors) == len(self.sources):
            self._transition(key, QueryState.ERROR)
            logger.error(f"All {len(errors)} sources failed for '{topic}'")
            raise AllSourcesFailed(topic, errors)

        self._transition(key, QueryState.MERGING)
        merged = merge_items(source_lists, max_results=self.max_results, now=self._clock())

        self._transition(key, QueryState.CACHE_STORE)
        self.cache.set(key, tuple(merged), config.TRENDING_CACHE_TTL)
        self._transition(key, QueryState.DONE)
        logger.info(
            "'%s': %d results (%d/%d sources failed)",
            topic,
            len(merged),
            len(errors),
            len(self.sources),
        )
        return list(merged)

    async def aggregate_result(self, topic: str) -> AggregateResult:
        """Like aggregate(), folded into the state the rendering layer displays."""
        try:
            items = await self.aggregate(topic)
        except AllSourcesFailed as e:
            return AggregateResult.failed(str(e))
        return AggregateResult.from_items(items)

    def _channel_task(self, channel_id: str, session: ClientSession):
        async def _task() -> List[Item]:
            key = channel_key(channel_id)
            cached = self.cache.get(key)
            if cached is not None:
                return list(cached)
            items = await self._retrying(self.channel_source, channel_id, session)()
            self.cache.set(key, tuple(items), config.CHANNEL_CACHE_TTL)
            return items
        return _task

    @trace_span(
        "aggregate_many",
        tracer_name="aggregator",
        attr_from_args=lambda self, channel_ids: {"query.keys": len(channel_ids)},
    )
    async def aggregate_many(self, channel_ids: Sequence[str]) -> ChannelBatch:
        """Fetch many channel feeds through the batch scheduler.

        Each channel is served from cache when fresh, otherwise fetched with
        retries; failures are recorded per channel rather than raised.
        """
        batch = ChannelBatch()
        if not channel_ids:
            return batch
        async with self._session_scope() as session:
            outcomes = await self.scheduler.run([self._channel_task(cid, session) for cid in channel_ids])
        for channel_id, outcome in zip(channel_ids, outcomes):
            batch.results[channel_id] = outcome.items if outcome.ok else outcome.error
        if batch.error_count:
            logger.warning(f"{batch.error_count} of {len(channel_ids)} channels failed to load")
        return batch

    async def releases(self) -> List[Item]:
        """Best-effort curated releases; any fetch failure yields an empty list."""
        if not getattr(self.releases_source, 'url', None):
            logger.info("No releases endpoint configured; skipping")
            return []
        try:
            async with self._session_scope() as session:
                return await self._retrying(self.releases_source, "", session)()
        except FetchError as e:
            logger.warning(f"Major releases fetch failed, skipping: {e}")
            return []
