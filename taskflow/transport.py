"""Transport policies for the mutation pipeline.

Every mutation performs one "remote effect" before it commits. The
pipeline does not know whether that effect is a real backend call, a
no-op, or a simulation with latency and random failures; it only awaits
``TransportPolicy.perform`` and treats ``TransientTransportError`` as a
retryable failure.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from .errors import TransientTransportError

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger("taskflow.transport")

# Latency in milliseconds per operation.
DEFAULT_LATENCY_MS: Dict[str, int] = {
    "load_tasks": 1000,
    "add_task": 800,
    "update_task": 600,
    "move_status": 400,
    "delete_task": 300,
    "add_comment": 200,
    "log_time": 200,
}

DEFAULT_FAILURE_RATES: Dict[str, float] = {
    "load_tasks": 0.02,
    "add_task": 0.10,
    "update_task": 0.05,
    "move_status": 0.0,
    "delete_task": 0.0,
    "add_comment": 0.0,
    "log_time": 0.0,
}

FAILURE_MESSAGES: Dict[str, str] = {
    "load_tasks": "Failed to connect to server",
    "add_task": "Network timeout",
    "update_task": "Update failed - server error",
}


@runtime_checkable
class TransportPolicy(Protocol):
    """Capability that performs the remote side of a mutation."""

    async def perform(self, operation: str) -> None:
        """Complete the remote effect or raise TransientTransportError."""
        ...


class DirectTransport:
    """Deterministic transport: no latency, never fails."""

    def __init__(self):
        self.calls: list[str] = []

    async def perform(self, operation: str) -> None:
        self.calls.append(operation)


class SimulatedTransport:
    """Transport that sleeps and fails at configurable per-operation rates.

    Passing ``seed`` (or a ``random.Random``) makes the failure sequence
    reproducible. ``latency_scale=0`` removes the sleeps entirely.
    """

    def __init__(
        self,
        latency_ms: Optional[Mapping[str, int]] = None,
        failure_rates: Optional[Mapping[str, float]] = None,
        *,
        latency_scale: float = 1.0,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.latency_ms = dict(DEFAULT_LATENCY_MS)
        self.latency_ms.update(latency_ms or {})
        self.failure_rates = dict(DEFAULT_FAILURE_RATES)
        self.failure_rates.update(failure_rates or {})
        for operation, rate in self.failure_rates.items():
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"Failure rate for '{operation}' must be within [0, 1], got {rate}")
        if latency_scale < 0:
            raise ValueError("latency_scale cannot be negative")
        self.latency_scale = latency_scale
        self.rng = rng or random.Random(seed)
        self._sleep = sleep

    def delay_for(self, operation: str) -> float:
        """Seconds to wait for the operation."""
        return self.latency_ms.get(operation, 0) * self.latency_scale / 1000

    async def perform(self, operation: str) -> None:
        delay = self.delay_for(operation)
        if delay > 0:
            await self._sleep(delay)

        rate = self.failure_rates.get(operation, 0.0)
        if rate > 0 and self.rng.random() < rate:
            message = FAILURE_MESSAGES.get(operation, f"Simulated failure during {operation}")
            logger.warning(f"Simulated transport failure for {operation}: {message}")
            raise TransientTransportError(operation, message)


def build_transport(settings: "Settings") -> TransportPolicy:
    """Pick the transport the settings ask for."""
    if not settings.simulate_failures and settings.latency_scale == 0:
        return DirectTransport()
    failure_rates = None if settings.simulate_failures else {op: 0.0 for op in DEFAULT_FAILURE_RATES}
    return SimulatedTransport(
        failure_rates=failure_rates,
        latency_scale=settings.latency_scale,
        seed=settings.random_seed,
    )
