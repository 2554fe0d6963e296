#!/usr/bin/env python3
"""
Source adapters.

Each adapter builds its own request for a query, performs a timeout-bounded
fetch and turns the raw response into normalized Items. ``parse`` never
raises: an unexpected payload shape yields an empty list and records that lack
a usable title or link are dropped one by one. Fetch-level failures do
propagate out of ``fetch`` so the caller's retry policy can see them.
"""

from dataclasses import replace
from datetime import datetime, timezone
from time import time
from typing import Any, Dict, Iterable, List, Optional

import feedparser
from aiohttp import ClientSession

from config import config, get_logger
from errors import ParseError
from fetcher import fetch_bytes, fetch_json
from models import Item
from utils import html_to_text, safe_int, to_timestamp

logger = get_logger("sources")

DAY_IN_SECONDS = 24 * 60 * 60


def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.strip().startswith(('http://', 'https://'))


def _clean_title(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return " ".join(value.split())


class Source:
    """Base adapter: subclasses provide ``fetch`` and ``parse``."""

    name = "source"

    async def fetch(self, query: str, session: ClientSession) -> List[Item]:
        raise NotImplementedError

    def parse(self, raw: Any) -> List[Item]:
        raise NotImplementedError

    def _collect(self, records: Iterable[Any]) -> List[Item]:
        """Convert records one at a time, dropping the ones that cannot be normalized."""
        items: List[Item] = []
        dropped = 0
        for record in records:
            try:
                item = self._to_item(record)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"{self.name}: dropping malformed record: {e}")
                item = None
            if item is None:
                dropped += 1
                continue
            items.append(item)
        if dropped:
            logger.debug(f"{self.name}: dropped {dropped} records without a usable title or link")
        return items

    def _to_item(self, record: Any) -> Optional[Item]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class HackerNewsSource(Source):
    """Hacker News stories via the Algolia search API (accepts a multi-word phrase)."""

    name = "HN"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        lookback_days: Optional[int] = None,
        hits_per_page: Optional[int] = None,
    ):
        self.base_url = base_url if base_url is not None else config.HN_SEARCH_URL
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self.lookback_days = lookback_days if lookback_days is not None else config.LOOKBACK_DAYS
        self.hits_per_page = hits_per_page if hits_per_page is not None else config.HN_HITS_PER_PAGE

    def build_params(self, query: str, now: Optional[float] = None) -> Dict[str, str]:
        since = int((now if now is not None else time()) - self.lookback_days * DAY_IN_SECONDS)
        return {
            'query': " ".join(query.split()),
            'tags': 'story',
            'numericFilters': f'created_at_i>{since}',
            'hitsPerPage': str(self.hits_per_page),
        }

    async def fetch(self, query: str, session: ClientSession) -> List[Item]:
        data = await fetch_json(session, self.base_url, params=self.build_params(query), timeout=self.timeout)
        return self.parse(data)

    def parse(self, raw: Any) -> List[Item]:
        if not isinstance(raw, dict):
            logger.warning(f"{self.name}: unexpected response shape {type(raw).__name__}")
            return []
        hits = raw.get('hits') or []
        if not isinstance(hits, list):
            return []
        return self._collect(hits)

    def _to_item(self, hit: Dict[str, Any]) -> Optional[Item]:
        title = _clean_title(hit.get('title'))
        url = hit.get('url')
        if not title or not _is_http_url(url):
            return None
        published = hit.get('created_at') or hit.get('created_at_i')
        return Item(
            title=title,
            url=url.strip(),
            points=safe_int(hit.get('points')),
            comments=safe_int(hit.get('num_comments')),
            source=self.name,
            published_at=to_timestamp(published),
            author=hit.get('author') or "",
        )


class DevToSource(Source):
    """Dev.to articles via the tag API; only the first keyword of the query is usable as a tag."""

    name = "Dev.to"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        per_page: Optional[int] = None,
        top_days: Optional[int] = None,
    ):
        self.base_url = base_url if base_url is not None else config.DEVTO_ARTICLES_URL
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self.per_page = per_page if per_page is not None else config.DEVTO_PER_PAGE
        self.top_days = top_days if top_days is not None else config.DEVTO_TOP_DAYS

    def build_params(self, query: str) -> Dict[str, str]:
        keywords = query.replace('+', ' ').split()
        return {
            'tag': keywords[0] if keywords else "",
            'per_page': str(self.per_page),
            'top': str(self.top_days),
        }

    async def fetch(self, query: str, session: ClientSession) -> List[Item]:
        data = await fetch_json(session, self.base_url, params=self.build_params(query), timeout=self.timeout)
        return self.parse(data)

    def parse(self, raw: Any) -> List[Item]:
        if not isinstance(raw, list):
            logger.warning(f"{self.name}: unexpected response shape {type(raw).__name__}")
            return []
        return self._collect(raw)

    def _to_item(self, article: Dict[str, Any]) -> Optional[Item]:
        title = _clean_title(article.get('title'))
        url = article.get('url')
        if not title or not _is_http_url(url):
            return None
        user = article.get('user') if isinstance(article.get('user'), dict) else {}
        tags = article.get('tag_list') if isinstance(article.get('tag_list'), list) else []
        return Item(
            title=title,
            url=url.strip(),
            points=safe_int(article.get('positive_reactions_count')),
            comments=safe_int(article.get('comments_count')),
            source=self.name,
            published_at=to_timestamp(article.get('published_at')),
            description=html_to_text(article.get('description')),
            author=user.get('name') or "",
            tags=tuple(str(t) for t in tags),
        )


class YouTubeFeedSource(Source):
    """Latest uploads of a YouTube channel from its Atom feed; the query is the channel id."""

    name = "YouTube"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_videos: Optional[int] = None,
    ):
        self.base_url = base_url if base_url is not None else config.YOUTUBE_FEED_URL
        self.timeout = timeout if timeout is not None else config.FEED_FETCH_TIMEOUT
        self.max_videos = max_videos if max_videos is not None else config.MAX_VIDEOS

    async def fetch(self, query: str, session: ClientSession) -> List[Item]:
        content = await fetch_bytes(
            session,
            self.base_url,
            params={'channel_id': query.strip()},
            timeout=self.timeout,
        )
        feed = feedparser.parse(content)
        if feed.bozo and not feed.entries:
            raise ParseError(self.base_url, str(getattr(feed, 'bozo_exception', 'malformed feed')))
        return self._from_feed(feed)

    def parse(self, raw: Any) -> List[Item]:
        feed = feedparser.parse(raw)
        if feed.bozo and not feed.entries:
            logger.warning(f"{self.name}: feed parsing failed: {getattr(feed, 'bozo_exception', 'unknown error')}")
            return []
        return self._from_feed(feed)

    def _from_feed(self, feed) -> List[Item]:
        author = feed.feed.get('title', "") if 'feed' in feed else ""
        items = self._collect(feed.entries[:self.max_videos])
        if author:
            items = [item if item.author else replace(item, author=author) for item in items]
        return items

    def _video_id(self, entry) -> str:
        video_id = entry.get('yt_videoid')
        if not video_id:
            entry_id = entry.get('id') or ""
            video_id = entry_id.split(':')[-1] if entry_id else ""
        return video_id.strip()

    def _to_item(self, entry) -> Optional[Item]:
        title = _clean_title(entry.get('title'))
        video_id = self._video_id(entry)
        if not title or not video_id:
            return None
        thumbnails = entry.get('media_thumbnail') or []
        thumbnail = ""
        if thumbnails and isinstance(thumbnails[0], dict):
            thumbnail = thumbnails[0].get('url') or ""
        stats = entry.get('media_statistics') or {}
        rating = entry.get('media_starrating') or {}
        published = entry.get('published') or entry.get('published_parsed') or entry.get('updated')
        return Item(
            title=title,
            url=f"https://www.youtube.com/watch?v={video_id}",
            points=safe_int(rating.get('count')),
            comments=0,
            source=self.name,
            published_at=to_timestamp(published),
            description=html_to_text(entry.get('summary') or entry.get('media_description')),
            author=entry.get('author') or "",
            thumbnail=thumbnail or f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg",
            tags=(f"views:{safe_int(stats.get('views'))}",) if stats.get('views') else (),
            kind="video",
        )


class ReleasesSource(Source):
    """Curated major releases from a static JSON document (``{"releases": [...]}``)."""

    name = "major_releases"

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None):
        self.url = url if url is not None else config.RELEASES_URL
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT

    async def fetch(self, query: str, session: ClientSession) -> List[Item]:
        # Cache-busting parameter so intermediaries never serve a stale document
        data = await fetch_json(session, self.url, params={'v': str(int(time() * 1000))}, timeout=self.timeout)
        return self.parse(data)

    def parse(self, raw: Any) -> List[Item]:
        if not isinstance(raw, dict):
            logger.warning(f"{self.name}: unexpected response shape {type(raw).__name__}")
            return []
        releases = raw.get('releases') or []
        if not isinstance(releases, list):
            return []
        return self._collect(releases)

    def _to_item(self, release: Dict[str, Any]) -> Optional[Item]:
        title = _clean_title(release.get('title'))
        url = release.get('url')
        if not title or not _is_http_url(url):
            return None
        company = release.get('company') or ""
        category = release.get('category') or ""
        return Item(
            title=title,
            url=url.strip(),
            points=safe_int(release.get('significance')),
            comments=0,
            source=self.name,
            published_at=_release_timestamp(release.get('date')),
            description=release.get('description') or "",
            author=company,
            tags=tuple(t for t in (category, company) if t),
            kind="release",
        )


def _release_timestamp(value: Any) -> int:
    """Release dates are calendar days; pin them to noon UTC."""
    if isinstance(value, str):
        try:
            day = datetime.strptime(value.strip(), "%Y-%m-%d")
            return int(day.replace(hour=12, tzinfo=timezone.utc).timestamp())
        except ValueError:
            pass
    return to_timestamp(value)


def default_sources() -> List[Source]:
    """Sources queried for a trending topic."""
    return [HackerNewsSource(), DevToSource()]
