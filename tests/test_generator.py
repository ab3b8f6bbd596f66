"""
Unit tests for the synthetic log generator.
"""

import random
import re
import uuid
from datetime import datetime, timezone

import pytest

from logtrace.simulator import (
    INCIDENT_MESSAGE,
    LOG_TEMPLATES,
    SERVICES,
    LogGenerator,
    LogRecord,
    isoformat_ms,
    to_base36,
)

FIXED_NOW = datetime(2024, 1, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)


class TestLogGenerator:
    """Test cases for LogGenerator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.generator = LogGenerator(rng=random.Random(42), clock=lambda: FIXED_NOW)

    @pytest.mark.parametrize("service", SERVICES)
    def test_normal_logs_use_service_templates(self, service):
        levels = {level for level, _ in LOG_TEMPLATES[service]}
        for _ in range(200):
            record = self.generator.create_log(service)
            assert isinstance(record, LogRecord)
            assert record.service == service
            assert record.level in levels
            assert "{" not in record.message
            assert record.archived is False

    @pytest.mark.parametrize("service", SERVICES)
    def test_incident_logs_are_fixed_errors(self, service):
        record = self.generator.create_log(service, is_incident=True)
        assert record.level == "error"
        assert record.message == INCIDENT_MESSAGE
        assert record.service == service

    def test_duration_range(self):
        durations = [
            self.generator.create_log(service, is_incident=flag).duration
            for service in SERVICES
            for flag in (False, True)
            for _ in range(100)
        ]
        assert all(isinstance(d, int) and 0 <= d <= 499 for d in durations)

    def test_trace_ids_unique_and_valid(self):
        ids = [self.generator.create_log("auth-service").trace_id for _ in range(500)]
        assert len(set(ids)) == len(ids)
        for trace_id in ids[:10]:
            assert uuid.UUID(trace_id).version == 4

    def test_timestamp_format(self):
        record = self.generator.create_log("api-gateway")
        assert record.timestamp == "2024-01-15T10:30:45.123Z"

    def test_same_seed_same_output(self):
        a = LogGenerator(rng=random.Random(7), clock=lambda: FIXED_NOW)
        b = LogGenerator(rng=random.Random(7), clock=lambda: FIXED_NOW)
        assert [a.create_log("payment-service") for _ in range(20)] == \
               [b.create_log("payment-service") for _ in range(20)]

    def test_placeholder_values(self):
        message = self.generator.interpolate(
            "{userId}|{orderId}|{txId}|{service}|{ip}|{ms}"
        )
        user_id, order_id, tx_id, service, ip, ms = message.split("|")

        assert 0 <= int(user_id) <= 9999
        expected_order = "ORD-" + to_base36(int(FIXED_NOW.timestamp() * 1000)).upper()
        assert order_id == expected_order
        assert re.fullmatch(r"txn_[0-9a-z]{10}", tx_id)
        assert service in ("user-service", "payment-service")
        assert re.fullmatch(r"192\.168\.1\.(\d+)", ip)
        assert 0 <= int(ip.rsplit(".", 1)[1]) <= 254
        assert 0 <= int(ms) <= 149

    def test_unknown_placeholder_left_alone(self):
        assert self.generator.interpolate("value={nope}") == "value={nope}"

    def test_create_batch(self):
        batch = self.generator.create_batch("user-service", 5)
        assert len(batch) == 5
        assert all(r.service == "user-service" for r in batch)


class TestLogRecord:
    """Test cases for LogRecord serialisation."""

    def test_to_document_uses_index_field_names(self):
        record = LogRecord(
            timestamp="2024-01-15T10:30:45.123Z",
            level="info",
            service="auth-service",
            message="MFA verification passed",
            trace_id="abc",
            duration=12,
        )
        assert record.to_document() == {
            "timestamp": "2024-01-15T10:30:45.123Z",
            "level": "info",
            "service": "auth-service",
            "message": "MFA verification passed",
            "traceId": "abc",
            "duration": 12,
            "archived": False,
        }

    def test_records_are_immutable(self):
        record = LogGenerator(rng=random.Random(1)).create_log("auth-service")
        with pytest.raises(AttributeError):
            record.level = "error"


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
    assert int(to_base36(1705314645123), 36) == 1705314645123


def test_isoformat_ms_converts_to_utc():
    local = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc).astimezone()
    assert isoformat_ms(local) == "2024-01-15T12:00:00.000Z"
