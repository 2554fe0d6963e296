#!/usr/bin/env python3
"""
Batched fan-out for many independent retrieval tasks.

Tasks run in fixed-size groups: every task in a group runs concurrently, the
group is awaited in full (successes and failures alike), and a short pause
separates groups to stay under upstream rate limits. One task failing never
affects its siblings or later groups, and outcomes come back in task order.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from config import config, get_logger
from models import FetchOutcome
from telemetry import trace_span
from utils import settle_all

logger = get_logger("scheduler")

Task = Callable[[], Awaitable[List[Any]]]


class BatchScheduler:
    """Runs zero-argument coroutine factories in batches of ``batch_size``."""

    def __init__(
        self,
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
        sleep_func: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the scheduler.

        Args:
            batch_size: Tasks per batch (defaults to config.BATCH_SIZE)
            delay: Seconds to pause between batches (defaults to config.BATCH_DELAY)
            sleep_func: Awaitable sleep, injectable for tests
        """
        self.batch_size = max(1, batch_size if batch_size is not None else config.BATCH_SIZE)
        self.delay = config.BATCH_DELAY if delay is None else delay
        self._sleep = sleep_func
        self.batch_count = 0

    def plan(self, count: int) -> List[range]:
        """Index ranges of the batches that ``count`` tasks are split into."""
        return [range(start, min(start + self.batch_size, count)) for start in range(0, count, self.batch_size)]

    @trace_span(
        "scheduler.run_batched",
        tracer_name="scheduler",
        attr_from_args=lambda self, tasks: {"batch.tasks": len(tasks), "batch.size": self.batch_size},
    )
    async def run(self, tasks: Sequence[Task]) -> List[FetchOutcome]:
        """Run all tasks and return one FetchOutcome per task, in input order."""
        batches = self.plan(len(tasks))
        self.batch_count = len(batches)
        outcomes: List[FetchOutcome] = []
        for number, batch in enumerate(batches, start=1):
            logger.debug(f"Running batch {number}/{len(batches)} ({len(batch)} tasks)")
            outcomes.extend(await settle_all(tasks[i] for i in batch))
            if number < len(batches) and self.delay > 0:
                await self._sleep(self.delay)

        failures = sum(1 for outcome in outcomes if not outcome.ok)
        if failures:
            logger.warning(f"{failures} of {len(tasks)} batched tasks failed")
        return outcomes
