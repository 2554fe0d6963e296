#!/usr/bin/env python3
"""
Command-line entry point for the Trend Aggregator.

Modes:
  trending TOPIC...   top merged items for each topic (defaults to the catalog topics)
  channels [ID...]    latest videos per channel (defaults to the catalog channels)
  releases            curated major releases
  status              configuration summary
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import List

from aiohttp import ClientSession

from aggregator import TrendAggregator
from config import config, get_logger
from models import AggregateResult, Item, ResultState

logger = get_logger("main")


def _format_item(item: Item) -> str:
    when = datetime.fromtimestamp(item.published_at, tz=timezone.utc).strftime("%Y-%m-%d")
    score = getattr(item, 'score', None)
    prefix = f"[{score:>3}] " if score is not None else ""
    return f"  {prefix}{item.title} ({item.points} pts · {item.source} · {when})\n        {item.url}"


def render_result(result: AggregateResult) -> List[str]:
    """Lines shown for one topic in a given result state."""
    if result.state is ResultState.LOADING:
        return ["  Loading..."]
    if result.state is ResultState.FAILED:
        return [f"  Could not load trending items: {result.reason}"]
    if result.state is ResultState.EMPTY:
        return ["  No trending resources found"]
    return [_format_item(item) for item in result.items]


async def run_trending(topics: List[str]) -> bool:
    ok = True
    async with ClientSession() as session:
        aggregator = TrendAggregator(session=session)
        for topic in topics:
            print(f"# {topic}")
            if not aggregator.is_cached(topic):
                print("\n".join(render_result(AggregateResult.loading())))
            result = await aggregator.aggregate_result(topic)
            print("\n".join(render_result(result)))
            ok = ok and not result.can_retry
    return ok


async def run_channels(channel_ids: List[str]) -> bool:
    async with ClientSession() as session:
        aggregator = TrendAggregator(session=session)
        batch = await aggregator.aggregate_many(channel_ids)
    names = {cid: name for name, cid in config.CHANNELS.items()}
    for channel_id, value in batch.results.items():
        print(f"# {names.get(channel_id, channel_id)}")
        if isinstance(value, Exception):
            print(f"  Failed: {value}")
            continue
        for item in value:
            print(_format_item(item))
    return batch.error_count < len(batch.results)


async def run_releases() -> bool:
    async with ClientSession() as session:
        items = await TrendAggregator(session=session).releases()
    for item in items:
        print(_format_item(item))
    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Trend Aggregator')
    parser.add_argument('mode', choices=['trending', 'channels', 'releases', 'status'],
                        help='Operation mode')
    parser.add_argument('keys', nargs='*',
                        help='Topics (trending) or channel ids (channels); defaults come from sources.yaml')

    args = parser.parse_args()

    try:
        if args.mode == 'trending':
            topics = args.keys or config.TOPICS
            if not topics:
                parser.error("no topics given and none configured in sources.yaml")
            success = asyncio.run(run_trending(topics))
            sys.exit(0 if success else 1)

        elif args.mode == 'channels':
            channel_ids = args.keys or list(config.CHANNELS.values())
            if not channel_ids:
                parser.error("no channel ids given and none configured in sources.yaml")
            success = asyncio.run(run_channels(channel_ids))
            sys.exit(0 if success else 1)

        elif args.mode == 'releases':
            success = asyncio.run(run_releases())
            sys.exit(0 if success else 1)

        elif args.mode == 'status':
            print(json.dumps(config.get_config_summary(), indent=2))

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
