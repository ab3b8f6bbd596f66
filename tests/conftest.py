"""
Shared fixtures: a virtual-clock timer double and an in-memory index
"""

import heapq
import itertools
import os
import random
import sys

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from logtrace.log_index import BulkResult
from logtrace.utils.timers import ScheduledTask


class ManualTimers:
    """Same interface as AsyncioTimers, driven by advance() instead of a clock"""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def _push(self, due, task, callback, period):
        heapq.heappush(self._queue, (due, next(self._seq), task, callback, period))

    def call_later(self, delay, callback):
        task = ScheduledTask()
        self._push(self.now + delay, task, callback, None)
        return task

    def call_every(self, period, callback):
        task = ScheduledTask()
        self._push(self.now + period, task, callback, period)
        return task

    def advance(self, seconds):
        """Fire every callback due within the next `seconds`, in order"""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, task, callback, period = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self.now = due
            if period is not None:
                self._push(due + period, task, callback, period)
            callback()
        self.now = target

    @property
    def pending(self):
        return sum(1 for entry in self._queue if not entry[2].cancelled)


class FixedRandom(random.Random):
    """random() always returns the same value; everything else is seeded"""

    def __init__(self, value, seed=0):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value


class FakeIndex:
    """Records submitted batches; can fail or partially fail per service"""

    index_name = "logs"

    def __init__(self, fail_services=(), partial_services=()):
        self.fail_services = set(fail_services)
        self.partial_services = set(partial_services)
        self.batches = []

    async def submit_batch(self, index_name, records):
        records = list(records)
        self.batches.append((index_name, records))
        service = records[0].service
        if service in self.fail_services:
            raise ConnectionError("cluster unreachable")
        if service in self.partial_services:
            return BulkResult(
                errors=True,
                item_errors=[{"index": {"status": 400, "error": {"type": "mapper_parsing_exception"}}}],
            )
        return BulkResult(errors=False)

    def records_for(self, service):
        return [r for _, batch in self.batches for r in batch if r.service == service]

    def clear(self):
        self.batches = []


@pytest.fixture
def timers():
    return ManualTimers()


@pytest.fixture
def fake_index():
    return FakeIndex()
