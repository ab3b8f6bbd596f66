"""
Unit tests for the tick driver and control surface.
"""

import random

import pytest

from conftest import FakeIndex, FixedRandom, ManualTimers
from logtrace.simulator import (
    INCIDENT_MESSAGE,
    SERVICES,
    IncidentScheduler,
    LogGenerator,
    LogSimulator,
)


def make_simulator(timers, index, incident_random=0.0, **kwargs):
    return LogSimulator(
        index,
        timers=timers,
        generator=LogGenerator(rng=random.Random(3)),
        incidents=IncidentScheduler(timers, rng=FixedRandom(incident_random)),
        **kwargs,
    )


class TestControlSurface:
    """start/stop/status behaviour."""

    def test_status_before_start(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        assert simulator.status() == {"enabled": False}

    def test_start_and_stop(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()
        assert simulator.status() == {"enabled": True}
        simulator.stop()
        assert simulator.status() == {"enabled": False}
        assert timers.pending == 0

    def test_start_is_idempotent(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()
        simulator.start()
        # one tick timer + one incident delay
        assert timers.pending == 2

    def test_stop_when_not_running(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.stop()
        assert simulator.status() == {"enabled": False}

    def test_stop_clears_active_incident(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.incidents.start = lambda: None  # keep the tick timer only
        simulator.start()
        simulator.incidents.active = True
        simulator.stop()
        assert simulator.incidents.active is False


@pytest.mark.asyncio
class TestTickDriver:
    """Per-tick batches and failure isolation."""

    async def test_one_tick_submits_five_per_service(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()

        timers.advance(1)
        await simulator.drain()

        assert len(fake_index.batches) == len(SERVICES)
        for service in SERVICES:
            records = fake_index.records_for(service)
            assert len(records) == 5
            assert all(r.message != INCIDENT_MESSAGE for r in records)
        assert all(name == "logs" for name, _ in fake_index.batches)
        simulator.stop()

    async def test_no_submission_before_first_tick(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()
        timers.advance(0.5)
        await simulator.drain()
        assert fake_index.batches == []
        simulator.stop()

    async def test_incident_window_floods_incident_service(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index, incident_random=0.0)
        simulator.start()

        timers.advance(120)
        await simulator.drain()
        assert simulator.incidents.active is True
        fake_index.clear()

        timers.advance(1)
        await simulator.drain()

        payment = fake_index.records_for("payment-service")
        assert len(payment) == 25
        assert all(r.level == "error" and r.message == INCIDENT_MESSAGE for r in payment)
        for service in SERVICES:
            if service != "payment-service":
                assert len(fake_index.records_for(service)) == 5
        simulator.stop()

    async def test_incident_window_ends(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index, incident_random=0.0)
        simulator.start()

        timers.advance(150)
        await simulator.drain()
        fake_index.clear()

        timers.advance(1)
        await simulator.drain()
        assert len(fake_index.records_for("payment-service")) == 5
        simulator.stop()

    async def test_incident_service_is_configurable(self, timers, fake_index):
        simulator = LogSimulator(
            fake_index,
            timers=timers,
            incidents=IncidentScheduler(timers, rng=FixedRandom(0.0), service="api-gateway"),
        )
        simulator.start()
        timers.advance(121)
        await simulator.drain()
        fake_index.clear()

        timers.advance(1)
        await simulator.drain()
        assert len(fake_index.records_for("api-gateway")) == 25
        assert len(fake_index.records_for("payment-service")) == 5
        simulator.stop()

    async def test_failed_submission_does_not_stop_driver(self, timers):
        index = FakeIndex(fail_services={"auth-service"}, partial_services={"user-service"})
        simulator = make_simulator(timers, index)
        simulator.start()

        timers.advance(3)
        await simulator.drain()

        assert simulator.running is True
        assert simulator.ticks == 3
        assert len(index.batches) == 3 * len(SERVICES)
        assert simulator.failed_batches == 6
        # 3 healthy services in full, user-service minus one failed item per tick
        assert simulator.records_submitted == 3 * (3 * 5 + 4)
        simulator.stop()

    async def test_restart_does_not_duplicate_timers(self, timers, fake_index):
        fresh_timers = ManualTimers()
        fresh_index = FakeIndex()
        fresh = make_simulator(fresh_timers, fresh_index)
        fresh.start()
        fresh_timers.advance(10)
        await fresh.drain()

        restarted = make_simulator(timers, fake_index)
        restarted.start()
        restarted.stop()
        restarted.start()
        timers.advance(10)
        await restarted.drain()

        assert restarted.ticks == fresh.ticks == 10
        assert len(fake_index.batches) == len(fresh_index.batches)
        assert timers.pending == 2
        fresh.stop()
        restarted.stop()

    async def test_ticks_after_stop_are_cancelled(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()
        timers.advance(2)
        simulator.stop()
        timers.advance(10)
        await simulator.drain()
        assert simulator.ticks == 2
        assert len(fake_index.batches) == 2 * len(SERVICES)

    async def test_tick_does_not_wait_for_submissions(self, timers, fake_index):
        simulator = make_simulator(timers, fake_index)
        simulator.start()
        timers.advance(3)
        # nothing has been awaited yet, every tick already ran
        assert simulator.ticks == 3
        assert len(simulator._inflight) == 3 * len(SERVICES)
        await simulator.drain()
        assert not simulator._inflight
        simulator.stop()
