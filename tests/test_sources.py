from datetime import datetime, timezone

import pytest

from errors import ParseError
from sources import DevToSource, HackerNewsSource, ReleasesSource, YouTubeFeedSource

NOW = int(datetime(2024, 5, 2, tzinfo=timezone.utc).timestamp())


def test_hn_params_join_phrase_and_bound_lookback():
    source = HackerNewsSource(base_url="https://hn.example/search", lookback_days=14, hits_per_page=10)

    params = source.build_params("  machine   learning ", now=NOW)

    assert params["query"] == "machine learning"
    assert params["tags"] == "story"
    assert params["numericFilters"] == f"created_at_i>{NOW - 14 * 86400}"
    assert params["hitsPerPage"] == "10"


def test_hn_parse_maps_fields_and_drops_unusable_hits():
    payload = {
        "hits": [
            {
                "title": "Rust 2.0 announced",
                "url": "https://blog.rust-lang.org/2024/05/01/rust.html",
                "points": 321,
                "num_comments": 87,
                "created_at": "2024-05-01T12:00:00.000Z",
                "author": "steveklabnik",
            },
            {"title": "Ask HN: no link", "url": None, "points": 10},
            {"title": "", "url": "https://example.com/x"},
            {"title": "Relative link", "url": "/item?id=1"},
        ]
    }

    items = HackerNewsSource().parse(payload)

    assert len(items) == 1
    item = items[0]
    assert item.title == "Rust 2.0 announced"
    assert item.points == 321
    assert item.comments == 87
    assert item.source == "HN"
    assert item.author == "steveklabnik"
    assert item.published_at == int(datetime(2024, 5, 1, 12, tzinfo=timezone.utc).timestamp())


def test_hn_parse_tolerates_unexpected_shapes():
    source = HackerNewsSource()
    assert source.parse([]) == []
    assert source.parse({"hits": "nope"}) == []
    assert source.parse({}) == []


def test_devto_uses_first_keyword_as_tag():
    source = DevToSource(per_page=5, top_days=7)

    params = source.build_params("machine+learning")

    assert params == {"tag": "machine", "per_page": "5", "top": "7"}


def test_devto_parse_maps_reactions_and_description():
    payload = [
        {
            "title": "Async Rust in practice",
            "url": "https://dev.to/someone/async-rust",
            "positive_reactions_count": 42,
            "comments_count": 6,
            "published_at": "2024-04-30T08:00:00Z",
            "description": "<p>Futures, <b>executors</b> and pinning</p>",
            "user": {"name": "Some One"},
            "tag_list": ["rust", "async"],
        },
        {"title": "missing url"},
    ]

    items = DevToSource().parse(payload)

    assert len(items) == 1
    item = items[0]
    assert item.points == 42
    assert item.comments == 6
    assert item.source == "Dev.to"
    assert item.description == "Futures, executors and pinning"
    assert item.author == "Some One"
    assert item.tags == ("rust", "async")


def test_devto_parse_rejects_mapping_payload():
    assert DevToSource().parse({"error": "rate limited"}) == []


ATOM_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
  <title>Example Channel</title>
  <entry>
    <id>yt:video:abc123XYZ00</id>
    <yt:videoId>abc123XYZ00</yt:videoId>
    <yt:channelId>UCexample</yt:channelId>
    <title>Building a compiler in a weekend</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=abc123XYZ00"/>
    <published>2024-05-01T10:00:00+00:00</published>
    <updated>2024-05-01T11:00:00+00:00</updated>
  </entry>
  <entry>
    <id>yt:video:def456UVW11</id>
    <yt:videoId>def456UVW11</yt:videoId>
    <title>Second video</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=def456UVW11"/>
    <published>2024-04-28T10:00:00+00:00</published>
  </entry>
</feed>
"""


def test_youtube_feed_parse_core_fields():
    items = YouTubeFeedSource(max_videos=5).parse(ATOM_FEED)

    assert [item.url for item in items] == [
        "https://www.youtube.com/watch?v=abc123XYZ00",
        "https://www.youtube.com/watch?v=def456UVW11",
    ]
    first = items[0]
    assert first.title == "Building a compiler in a weekend"
    assert first.kind == "video"
    assert first.source == "YouTube"
    assert first.published_at == int(datetime(2024, 5, 1, 10, tzinfo=timezone.utc).timestamp())
    assert first.thumbnail


def test_youtube_feed_respects_max_videos():
    items = YouTubeFeedSource(max_videos=1).parse(ATOM_FEED)
    assert len(items) == 1


def test_youtube_feed_parse_garbage_is_empty():
    assert YouTubeFeedSource().parse(b"this is not xml at all") == []


def test_releases_parse():
    payload = {
        "releases": [
            {
                "title": "Python 3.13",
                "url": "https://www.python.org/downloads/release/python-3130/",
                "date": "2024-10-07",
                "company": "PSF",
                "category": "language",
                "significance": 9,
                "description": "Free-threaded build",
            },
            {"title": "no url", "date": "2024-10-07"},
        ]
    }

    items = ReleasesSource(url="https://data.example/releases.json").parse(payload)

    assert len(items) == 1
    item = items[0]
    assert item.points == 9
    assert item.kind == "release"
    assert item.tags == ("language", "PSF")
    assert item.published_at == int(datetime(2024, 10, 7, 12, tzinfo=timezone.utc).timestamp())


def test_releases_parse_unexpected_shape():
    source = ReleasesSource(url="https://data.example/releases.json")
    assert source.parse([]) == []
    assert source.parse({"releases": {}}) == []


class FakeResponse:
    def __init__(self, body, status=200):
        self.status = status
        self._body = body

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, body, status=200):
        self.response = FakeResponse(body, status)
        self.requests = []

    def get(self, url, params=None, headers=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        return self.response


@pytest.mark.asyncio
async def test_releases_fetch_sends_cache_busting_parameter():
    session = FakeSession(
        b'{"releases": [{"title": "Go 1.23", "url": "https://go.dev/doc/go1.23", "date": "2024-08-13"}]}'
    )
    source = ReleasesSource(url="https://data.example/releases.json", timeout=1.0)

    items = await source.fetch("", session)

    request = session.requests[0]
    assert request["url"] == "https://data.example/releases.json"
    assert request["params"]["v"].isdigit()
    assert [item.title for item in items] == ["Go 1.23"]


@pytest.mark.asyncio
async def test_youtube_fetch_queries_channel_feed():
    session = FakeSession(ATOM_FEED)
    source = YouTubeFeedSource(base_url="https://yt.example/feeds/videos.xml", timeout=1.0, max_videos=5)

    items = await source.fetch(" UCexample ", session)

    assert session.requests[0]["params"] == {"channel_id": "UCexample"}
    assert len(items) == 2


@pytest.mark.asyncio
async def test_youtube_fetch_malformed_feed_raises_parse_error():
    session = FakeSession(b"this is not a feed")
    source = YouTubeFeedSource(base_url="https://yt.example/feeds/videos.xml", timeout=1.0)

    with pytest.raises(ParseError):
        await source.fetch("UCexample", session)


FEED_WITH_MEDIA = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:media="http://search.yahoo.com/mrss/" xmlns="http://www.w3.org/2005/Atom">
  <title>Media Channel</title>
  <entry>
    <id>yt:video:noVideoIdTag</id>
    <title>Entry without a videoId element</title>
    <link rel="alternate" href="https://www.youtube.com/watch?v=noVideoIdTag"/>
    <published>2024-05-01T10:00:00+00:00</published>
    <media:group>
      <media:title>Entry without a videoId element</media:title>
      <media:thumbnail url="https://i4.ytimg.com/vi/noVideoIdTag/hqdefault.jpg" width="480" height="360"/>
    </media:group>
  </entry>
</feed>
"""


def test_youtube_video_id_falls_back_to_entry_id():
    items = YouTubeFeedSource().parse(FEED_WITH_MEDIA)

    assert len(items) == 1
    assert items[0].url == "https://www.youtube.com/watch?v=noVideoIdTag"


def test_youtube_thumbnail_from_media_thumbnail():
    items = YouTubeFeedSource().parse(FEED_WITH_MEDIA)

    assert items[0].thumbnail == "https://i4.ytimg.com/vi/noVideoIdTag/hqdefault.jpg"


def test_youtube_thumbnail_falls_back_to_default_image():
    items = YouTubeFeedSource().parse(ATOM_FEED)

    assert items[0].thumbnail == "https://i.ytimg.com/vi/abc123XYZ00/mqdefault.jpg"
    assert items[1].thumbnail == "https://i.ytimg.com/vi/def456UVW11/mqdefault.jpg"


def test_explicit_zero_settings_are_not_replaced_by_defaults():
    assert HackerNewsSource(hits_per_page=0).build_params("rust", now=NOW)["hitsPerPage"] == "0"
    assert DevToSource(top_days=0).build_params("rust")["top"] == "0"
    assert YouTubeFeedSource(max_videos=0).parse(ATOM_FEED) == []
