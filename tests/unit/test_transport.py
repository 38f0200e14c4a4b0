"""Unit tests for transport policies."""

import asyncio
import random

import pytest

from taskflow.config import Settings
from taskflow.errors import TransientTransportError
from taskflow.transport import (
    DEFAULT_LATENCY_MS,
    DirectTransport,
    SimulatedTransport,
    TransportPolicy,
    build_transport,
)


class FixedRandom(random.Random):
    """Random source returning a fixed value."""

    def __init__(self, value):
        super().__init__()
        self.value = value

    def random(self):
        return self.value


class TestDirectTransport:
    """Test cases for the deterministic transport."""

    def test_records_calls(self):
        transport = DirectTransport()
        asyncio.run(transport.perform("add_task"))
        asyncio.run(transport.perform("delete_task"))
        assert transport.calls == ["add_task", "delete_task"]

    def test_satisfies_protocol(self):
        assert isinstance(DirectTransport(), TransportPolicy)
        assert isinstance(SimulatedTransport(), TransportPolicy)


class TestSimulatedTransport:
    """Test cases for latency and failure injection."""

    def test_default_latencies(self):
        transport = SimulatedTransport()
        assert transport.delay_for("add_task") == 0.8
        assert transport.delay_for("load_tasks") == 1.0
        assert transport.delay_for("unknown") == 0
        assert DEFAULT_LATENCY_MS["move_status"] == 400

    def test_latency_scale(self):
        assert SimulatedTransport(latency_scale=0.5).delay_for("update_task") == 0.3
        assert SimulatedTransport(latency_scale=0).delay_for("update_task") == 0

    def test_sleeps_for_latency(self):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        transport = SimulatedTransport(failure_rates={"add_task": 0.0}, sleep=fake_sleep)
        asyncio.run(transport.perform("add_task"))
        assert slept == [0.8]

    def test_failure_raises_transient_error(self):
        transport = SimulatedTransport(latency_scale=0, rng=FixedRandom(0.05))
        with pytest.raises(TransientTransportError) as exc:
            asyncio.run(transport.perform("add_task"))
        assert exc.value.message == "Network timeout"
        assert exc.value.retryable
        assert exc.value.operation == "add_task"

    def test_no_failure_above_rate(self):
        transport = SimulatedTransport(latency_scale=0, rng=FixedRandom(0.5))
        asyncio.run(transport.perform("add_task"))

    def test_operations_without_failure_rate_never_fail(self):
        transport = SimulatedTransport(latency_scale=0, rng=FixedRandom(0.0))
        asyncio.run(transport.perform("move_status"))
        asyncio.run(transport.perform("delete_task"))

    def test_seeded_sequences_repeat(self):
        def outcomes(seed):
            transport = SimulatedTransport(latency_scale=0, failure_rates={"add_task": 0.5}, seed=seed)
            results = []
            for _ in range(20):
                try:
                    asyncio.run(transport.perform("add_task"))
                    results.append(True)
                except TransientTransportError:
                    results.append(False)
            return results

        assert outcomes(7) == outcomes(7)

    def test_invalid_rates_rejected(self):
        with pytest.raises(ValueError):
            SimulatedTransport(failure_rates={"add_task": 1.5})
        with pytest.raises(ValueError):
            SimulatedTransport(latency_scale=-1)


class TestBuildTransport:
    """Test cases for picking a transport from settings."""

    def test_default_is_direct(self):
        assert isinstance(build_transport(Settings()), DirectTransport)

    def test_simulated_failures(self):
        transport = build_transport(Settings(simulate_failures=True, random_seed=3))
        assert isinstance(transport, SimulatedTransport)
        assert transport.failure_rates["add_task"] == 0.10

    def test_latency_only(self):
        transport = build_transport(Settings(latency_scale=0.1))
        assert isinstance(transport, SimulatedTransport)
        assert all(rate == 0.0 for rate in transport.failure_rates.values())
