#!/usr/bin/env python3
"""
Synthetic log simulator for LogTrace

Every tick (1s) each simulated service emits a small batch of templated
logs into the log index. An incident chain runs alongside: every 2-3
minutes the incident service switches to an error flood for 30 seconds.

Usage:
    simulator = LogSimulator(index)
    simulator.start()     # inside a running event loop
    simulator.status()    # {"enabled": True}
    simulator.stop()
"""

import asyncio
import logging
import random
import string
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from .utils.timers import AsyncioTimers, ScheduledTask

logger = logging.getLogger(__name__)

SERVICES = [
    "auth-service",
    "payment-service",
    "api-gateway",
    "user-service",
    "notification-service",
]

LOG_TEMPLATES = {
    "auth-service": [
        ("info", "User login attempt for user_id={userId}"),
        ("info", "JWT token refreshed successfully"),
        ("info", "Session created for user_id={userId}"),
        ("debug", "OAuth callback received from provider"),
        ("warn", "Failed login attempt - invalid credentials"),
        ("info", "Password reset token generated"),
        ("info", "MFA verification passed"),
        ("debug", "Token validation cache hit"),
    ],
    "payment-service": [
        ("info", "Processing payment for order_id={orderId}"),
        ("info", "Stripe webhook received: payment_intent.succeeded"),
        ("info", "Refund initiated for transaction {txId}"),
        ("debug", "Payment method validated"),
        ("info", "Subscription renewal processed"),
        ("warn", "Retry attempt for failed payment"),
        ("info", "Balance check completed"),
        ("info", "Invoice generated for customer"),
    ],
    "api-gateway": [
        ("info", "Request routed to {service} - status 200"),
        ("info", "Rate limit check passed for client"),
        ("debug", "Request authenticated via API key"),
        ("warn", "Rate limit exceeded for IP {ip}"),
        ("info", "Circuit breaker closed for downstream service"),
        ("info", "Request timeout after 30s - returning 504"),
        ("debug", "Request ID propagated to downstream"),
        ("info", "Health check passed for /api/users"),
    ],
    "user-service": [
        ("info", "User profile updated for user_id={userId}"),
        ("debug", "Cache hit for user profile"),
        ("info", "New user registered"),
        ("info", "Avatar upload completed"),
        ("warn", "Cache miss - fetching from database"),
        ("info", "Preferences synced across devices"),
        ("debug", "Elasticsearch query executed in {ms}ms"),
        ("info", "Bulk user import started"),
    ],
    "notification-service": [
        ("info", "Email queued for delivery"),
        ("info", "Push notification sent to device"),
        ("debug", "SMS delivery confirmed"),
        ("warn", "Email bounce received - marking invalid"),
        ("info", "Webhook delivered to subscriber"),
        ("info", "In-app notification created"),
        ("debug", "Template rendered successfully"),
        ("info", "Batch notification job completed"),
    ],
}

INCIDENT_MESSAGE = "DB connection timeout — max pool size reached"
DOWNSTREAM_SERVICES = ["user-service", "payment-service"]

# Incident timing (seconds)
INCIDENT_MIN_DELAY = 2 * 60
INCIDENT_MAX_DELAY = 3 * 60
INCIDENT_DURATION = 30

NORMAL_BATCH_SIZE = 5
INCIDENT_BATCH_SIZE = 25

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    """Encode a non-negative integer in lowercase base 36"""
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_ms(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class LogRecord:
    """One synthetic log event"""
    timestamp: str
    level: str
    service: str
    message: str
    trace_id: str
    duration: int
    archived: bool = False

    def to_document(self) -> Dict[str, Any]:
        """Index document (camelCase keys, as mapped on the log index)"""
        doc = asdict(self)
        doc["traceId"] = doc.pop("trace_id")
        return doc


class LogGenerator:
    """Builds synthetic log records from per-service templates"""

    def __init__(self, rng: Optional[random.Random] = None,
                 clock: Callable[[], datetime] = utc_now,
                 templates: Optional[Dict[str, List[tuple]]] = None):
        """
        Args:
            rng: Random source (seed it for reproducible output)
            clock: Returns the current UTC datetime
            templates: {service: [(level, message), ...]}
        """
        self.rng = rng or random.Random()
        self.clock = clock
        self.templates = templates or LOG_TEMPLATES

        self._placeholders = {
            "userId": lambda: str(self.rng.randrange(10000)),
            "orderId": self._order_id,
            "txId": lambda: "txn_" + "".join(self.rng.choice(_BASE36) for _ in range(10)),
            "service": lambda: self.rng.choice(DOWNSTREAM_SERVICES),
            "ip": lambda: f"192.168.1.{self.rng.randrange(255)}",
            "ms": lambda: str(self.rng.randrange(150)),
        }

    def _order_id(self) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"ORD-{to_base36(millis).upper()}"

    def _trace_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def interpolate(self, message: str) -> str:
        """Fill every known {placeholder} in message with a fresh value"""
        for name, make_value in self._placeholders.items():
            token = "{" + name + "}"
            while token in message:
                message = message.replace(token, make_value(), 1)
        return message

    def create_log(self, service: str, is_incident: bool = False) -> LogRecord:
        """
        Create one log record for service

        Args:
            service: One of SERVICES
            is_incident: Emit the fixed incident error instead of a template

        Returns:
            LogRecord
        """
        timestamp = isoformat_ms(self.clock())
        trace_id = self._trace_id()
        duration = self.rng.randrange(500)

        if is_incident:
            return LogRecord(
                timestamp=timestamp,
                level="error",
                service=service,
                message=INCIDENT_MESSAGE,
                trace_id=trace_id,
                duration=duration,
            )

        level, message = self.rng.choice(self.templates[service])
        return LogRecord(
            timestamp=timestamp,
            level=level,
            service=service,
            message=self.interpolate(message),
            trace_id=trace_id,
            duration=duration,
        )

    def create_batch(self, service: str, count: int, is_incident: bool = False) -> List[LogRecord]:
        return [self.create_log(service, is_incident) for _ in range(count)]


class IncidentScheduler:
    """
    Toggles the incident flag for one service

    Idle for a random 2-3 minutes, active for 30 seconds, repeat. Only the
    scheduler writes `active`; the tick driver reads it.
    """

    def __init__(self, timers, rng: Optional[random.Random] = None,
                 service: str = "payment-service",
                 min_delay: float = INCIDENT_MIN_DELAY,
                 max_delay: float = INCIDENT_MAX_DELAY,
                 duration: float = INCIDENT_DURATION):
        self.timers = timers
        self.rng = rng or random.Random()
        self.service = service
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.duration = duration

        self.active = False
        self._start_task: Optional[ScheduledTask] = None
        self._end_task: Optional[ScheduledTask] = None

    def next_delay(self) -> float:
        """Seconds until the next incident, uniform in [min_delay, max_delay)"""
        return self.min_delay + self.rng.random() * (self.max_delay - self.min_delay)

    def start(self):
        """Begin idle, with the first incident already scheduled (no-op when already cycling)"""
        if self._start_task is not None or self._end_task is not None:
            return
        self.active = False
        self._schedule_next()

    def stop(self):
        """Cancel pending transitions and force idle"""
        for task in (self._start_task, self._end_task):
            if task is not None:
                task.cancel()
        self._start_task = None
        self._end_task = None
        self.active = False

    def _schedule_next(self):
        delay = self.next_delay()
        self._start_task = self.timers.call_later(delay, self._begin_incident)
        logger.debug(f"[Simulator] Next {self.service} incident in {delay:.0f}s")

    def _begin_incident(self):
        self._start_task = None
        self.active = True
        logger.warning(f"[Simulator] 🚨 {self.service} incident started - ERROR flood for {self.duration:.0f}s")
        self._end_task = self.timers.call_later(self.duration, self._end_incident)

    def _end_incident(self):
        self._end_task = None
        self.active = False
        logger.info(f"[Simulator] ✅ {self.service} incident ended")
        self._schedule_next()


class LogSimulator:
    """
    Tick driver and control surface for the synthetic log stream

    start()/stop() are idempotent. Submissions are fire-and-forget tasks:
    a tick never waits for the previous one, and a failed batch is logged
    without affecting other services or later ticks.
    """

    def __init__(self, index, timers=None,
                 generator: Optional[LogGenerator] = None,
                 incidents: Optional[IncidentScheduler] = None,
                 services: Optional[List[str]] = None,
                 index_name: Optional[str] = None,
                 tick_seconds: float = 1.0,
                 batch_size: int = NORMAL_BATCH_SIZE,
                 incident_batch_size: int = INCIDENT_BATCH_SIZE):
        """
        Args:
            index: Anything with `async submit_batch(index_name, records)`
            timers: Timer factory (defaults to AsyncioTimers)
            generator: Log generator
            incidents: Incident scheduler sharing the same timers
            services: Simulated services
            index_name: Target index (defaults to index.index_name)
            tick_seconds: Tick period
            batch_size: Records per service per tick
            incident_batch_size: Records for the incident service during an incident
        """
        self.index = index
        self.timers = timers or AsyncioTimers()
        self.generator = generator or LogGenerator()
        self.incidents = incidents or IncidentScheduler(self.timers)
        self.services = services or list(SERVICES)
        self.index_name = index_name or getattr(index, "index_name", "logs")
        self.tick_seconds = tick_seconds
        self.batch_size = batch_size
        self.incident_batch_size = incident_batch_size

        self.running = False
        self.ticks = 0
        self.records_submitted = 0
        self.failed_batches = 0
        self._tick_task: Optional[ScheduledTask] = None
        self._inflight: Set[asyncio.Task] = set()

    def start(self):
        """Start ticking and the incident chain (no-op when running)"""
        if self.running:
            return
        self.running = True
        self._tick_task = self.timers.call_every(self.tick_seconds, self.tick)
        self.incidents.start()
        per_second = len(self.services) * self.batch_size / self.tick_seconds
        logger.info(
            f"[Simulator] Started - {len(self.services)} services × {self.batch_size} logs "
            f"= {per_second:.0f} logs/sec ({self.incidents.service} incident every 2-3 min)"
        )

    def stop(self):
        """Cancel every timer and clear the incident (no-op when stopped)"""
        if not self.running:
            return
        self.running = False
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None
        self.incidents.stop()
        logger.info("[Simulator] Stopped")

    def status(self) -> Dict[str, bool]:
        return {"enabled": self.running}

    def tick(self):
        """Generate one batch per service and submit them concurrently"""
        self.ticks += 1
        incident_active = self.incidents.active

        for service in self.services:
            if incident_active and service == self.incidents.service:
                records = self.generator.create_batch(service, self.incident_batch_size, is_incident=True)
            else:
                records = self.generator.create_batch(service, self.batch_size)
            self._spawn(self._send(service, records))

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _send(self, service: str, records: List[LogRecord]):
        try:
            result = await self.index.submit_batch(self.index_name, records)
        except Exception as e:
            self.failed_batches += 1
            logger.error(f"[Simulator] Failed to index logs for {service}: {e}")
            return

        if result.errors:
            self.failed_batches += 1
            logger.error(f"[Simulator] Bulk index errors for {service}: {result.item_errors}")

        self.records_submitted += len(records) - len(result.item_errors)

    async def drain(self):
        """Wait for every in-flight submission to finish"""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
