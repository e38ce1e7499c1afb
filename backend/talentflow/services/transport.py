"""
Unreliable Transport

Stands in for the network between the client and the simulated server. Every
request waits a random delay; writes then roll a fixed-probability failure. The roll
happens before any handler runs, so a rejected write has changed nothing in the
store, which is what lets the client roll back to its snapshot without checking.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from .. import config
from ..utils.error_handlers import TransientWriteFailure
from .store import EntityStore

logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class Operation:
    kind: OperationKind
    name: str
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def read(cls, name: str, /, **payload: Any) -> "Operation":
        return cls(OperationKind.READ, name, payload)

    @classmethod
    def write(cls, name: str, /, **payload: Any) -> "Operation":
        return cls(OperationKind.WRITE, name, payload)


def should_fail(draw: float, probability: float) -> bool:
    """Failure decision for one write, given a uniform draw in [0, 1)."""
    return draw < probability


def draw_delay_ms(rng: random.Random, min_ms: float, max_ms: float) -> float:
    return rng.uniform(min_ms, max_ms)


class UnreliableTransport:
    """
    Dispatches operations to server-side handlers with latency and write failures.

    ``rng`` and ``sleep`` are injectable so tests can pin the failure roll and skip the
    wall-clock wait.
    """

    def __init__(
        self,
        store: EntityStore,
        handlers: dict | None = None,
        *,
        min_delay_ms: float = config.TRANSPORT_MIN_DELAY_MS,
        max_delay_ms: float = config.TRANSPORT_MAX_DELAY_MS,
        failure_rate: float = config.WRITE_FAILURE_RATE,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_delay_ms < 0 or max_delay_ms < min_delay_ms:
            raise ValueError("Invalid delay range")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        if handlers is None:
            from .handlers import HANDLERS

            handlers = HANDLERS
        self.store = store
        self._handlers = handlers
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max_delay_ms
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self._sleep = sleep
        self.sent: list[Operation] = []

    async def send(self, op: Operation) -> Any:
        registered = self._handlers.get(op.name)
        if registered is None:
            raise ValueError(f"Unknown operation: {op.name}")
        kind, handler = registered
        if kind != op.kind:
            raise ValueError(f"Operation {op.name} is a {kind.value}, not a {op.kind.value}")

        self.sent.append(op)
        delay_ms = draw_delay_ms(self._rng, self.min_delay_ms, self.max_delay_ms)
        logger.debug("%s %s delayed %.0fms", op.kind.value, op.name, delay_ms)
        await self._sleep(delay_ms / 1000.0)

        if op.kind == OperationKind.WRITE and should_fail(self._rng.random(), self.failure_rate):
            logger.warning("Injected failure for %s %s", op.name, op.payload)
            raise TransientWriteFailure(details={"operation": op.name})

        return handler(self.store, dict(op.payload))
