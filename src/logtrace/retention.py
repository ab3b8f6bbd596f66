#!/usr/bin/env python3
"""
Log retention for LogTrace

Two mechanisms:
- RetentionManager: per-service policies (7-90 days) with an on-demand
  cleanup triggered from the API
- RetentionJob: daily global cleanup of everything older than
  RETENTION_DAYS
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from .simulator import SERVICES, isoformat_ms
from .utils.timers import AsyncioTimers, ScheduledTask

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
MIN_RETENTION_DAYS = 7
MAX_RETENTION_DAYS = 90


class RetentionManager:
    """In-memory per-service retention policies"""

    def __init__(self, log_index, services: Optional[Iterable[str]] = None):
        self.log_index = log_index
        self.services = list(services or SERVICES)
        self.policies: Dict[str, Dict[str, Any]] = {
            service: {
                "retentionDays": DEFAULT_RETENTION_DAYS,
                "lastCleanupRun": None,
                "logsDeletedLastRun": 0,
            }
            for service in self.services
        }

    def update_policies(self, incoming: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """
        Apply retention changes

        Entries for unknown services, without retentionDays, or outside
        7-90 days are skipped.

        Args:
            incoming: [{"service": ..., "retentionDays": ...}, ...]

        Returns:
            The full policy map
        """
        for entry in incoming:
            service = entry.get("service")
            days = entry.get("retentionDays")
            if service not in self.policies or days is None:
                continue
            try:
                days = int(days)
            except (TypeError, ValueError):
                continue
            if MIN_RETENTION_DAYS <= days <= MAX_RETENTION_DAYS:
                self.policies[service]["retentionDays"] = days
        return self.policies

    def cleanup(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete each service's logs older than its retention

        Returns:
            {deleted, savedBytes, before: {docs, size}, after: {docs, size}}
        """
        now = now or datetime.now(timezone.utc)
        before = self.log_index.index_stats()

        total_deleted = 0
        for service in self.services:
            policy = self.policies[service]
            cutoff = now - timedelta(days=policy["retentionDays"])
            deleted = self.log_index.delete_older_than(isoformat_ms(cutoff), service=service)
            total_deleted += deleted
            policy["lastCleanupRun"] = isoformat_ms(now)
            policy["logsDeletedLastRun"] = deleted

        after = self.log_index.index_stats()
        logger.info(f"[Retention] Per-service cleanup removed {total_deleted} logs")

        return {
            "deleted": total_deleted,
            "savedBytes": max(0, before["size"] - after["size"]),
            "before": {"docs": before["docs"], "size": before["size"]},
            "after": {"docs": after["docs"], "size": after["size"]},
        }


def run_retention_cleanup(log_index, retention_days: int = DEFAULT_RETENTION_DAYS,
                          now: Optional[datetime] = None) -> int:
    """
    Delete every log older than retention_days

    Returns:
        Number of deleted documents
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)
    deleted = log_index.delete_older_than(isoformat_ms(cutoff))
    if deleted > 0:
        logger.info(f"[Retention] Deleted {deleted} logs older than {retention_days} days")
    return deleted


def seconds_until(hour: int, now: datetime) -> float:
    """Seconds from now until the next local hour:00 (tomorrow if already past)"""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    # Compare in UTC so a DST change between now and target is counted
    return (target.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()


def local_now() -> datetime:
    return datetime.now().astimezone()


class RetentionJob:
    """
    Runs the global retention cleanup once a day at a fixed local hour

    Each run is scheduled from the wall clock rather than a fixed 24h
    period, so the job stays on its hour across DST changes and host
    suspends.
    """

    def __init__(self, log_index, retention_days: int = DEFAULT_RETENTION_DAYS,
                 hour: int = 2, timers=None, clock: Optional[Callable[[], datetime]] = None):
        self.log_index = log_index
        self.retention_days = retention_days
        self.hour = hour
        self.timers = timers or AsyncioTimers()
        self.clock = clock or local_now
        self._next_run: Optional[ScheduledTask] = None
        self._inflight = set()

    def start(self, now: Optional[datetime] = None):
        if self._next_run is not None:
            return
        self._schedule(now)
        logger.info(
            f"[Retention] Job scheduled daily at {self.hour:02d}:00 "
            f"({self.retention_days} days retention)"
        )

    def stop(self):
        if self._next_run is not None:
            self._next_run.cancel()
        self._next_run = None

    def _schedule(self, now: Optional[datetime] = None):
        delay = seconds_until(self.hour, now or self.clock())
        self._next_run = self.timers.call_later(delay, self._on_time)

    def _on_time(self):
        self._schedule()
        self.fire()

    def fire(self):
        """Run one cleanup in a worker thread"""
        task = asyncio.get_running_loop().create_task(self._run())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self):
        try:
            await asyncio.to_thread(run_retention_cleanup, self.log_index, self.retention_days)
        except Exception as e:
            logger.error(f"[Retention] Cleanup failed: {e}")
