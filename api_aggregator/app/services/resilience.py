"""
Resilience policies for outbound provider calls.

Each provider client owns one ``ResiliencePipeline``. Layers, outermost first:

    statistics timing -> retry -> timeout -> circuit breaker -> transport

The pipeline records exactly one duration per logical call, covering every
retry and backoff delay.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, NamedTuple, Optional, TypeVar

import httpx

from ..api.schemas import CircuitBreakerStatus
from ..core.exceptions import (
    CircuitOpenError, ProviderTimeoutError, RateLimitError, TransientProviderError
)
from ..core.logging_config import create_logger
from .statistics import StatisticsService

logger = create_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

TRANSIENT_STATUS_CODES = {408, 429}


def is_transient_status(status_code: int) -> bool:
    """HTTP statuses that are retried and counted by the circuit breaker."""
    return status_code in TRANSIENT_STATUS_CODES or status_code >= 500


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class _Ticket(NamedTuple):
    """Admission handed to a caller: the state generation it ran under and whether it is the trial."""
    generation: int
    trial: bool


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker for one provider client.

    After ``failure_threshold`` consecutive transient failures the circuit opens
    and rejects calls for ``open_duration`` seconds. The first call after the
    cooldown is the single half-open trial; any other caller is rejected while
    it is in flight. All transitions happen under ``_lock``. Each transition
    starts a new generation, and an outcome only counts if its call was admitted
    in the current one, so a slow call from before a trip cannot reset the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 3,
        open_duration: float = 30.0,
        clock: Clock = time.monotonic
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._open_until: Optional[float] = None
        self._trial_in_flight = False
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Current state; an open circuit past its cooldown reports half-open."""
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _cooldown_elapsed(self) -> bool:
        return self._open_until is None or self._clock() >= self._open_until

    def _retry_after(self) -> float:
        if self._open_until is None:
            return 0.0
        return max(0.0, self._open_until - self._clock())

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` if the circuit admits it and record the outcome."""
        ticket = await self._before_call()

        try:
            result = await operation()
        except TransientProviderError:
            await self._on_failure(ticket)
            raise
        except BaseException:
            # Cancellation and non-transient errors say nothing about provider health
            await self._release_trial(ticket)
            raise

        await self._on_success(ticket)
        return result

    async def _before_call(self) -> _Ticket:
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return _Ticket(self._generation, trial=False)

            if self._state == CircuitState.OPEN:
                if not self._cooldown_elapsed():
                    raise CircuitOpenError(self.name, self._retry_after())
                self._transition_to(CircuitState.HALF_OPEN)

            if self._trial_in_flight:
                raise CircuitOpenError(self.name, 0.0)
            self._trial_in_flight = True
            return _Ticket(self._generation, trial=True)

    async def _on_success(self, ticket: _Ticket) -> None:
        async with self._lock:
            # Calls admitted before the last transition no longer speak for the circuit
            if ticket.generation != self._generation:
                return

            self._failure_count = 0
            if ticket.trial:
                self._trial_in_flight = False
                self._open_until = None
                self._transition_to(CircuitState.CLOSED)

    async def _on_failure(self, ticket: _Ticket) -> None:
        async with self._lock:
            if ticket.generation != self._generation:
                return

            self._failure_count += 1
            if ticket.trial:
                self._trial_in_flight = False

            if ticket.trial or self._failure_count >= self.failure_threshold:
                self._open_until = self._clock() + self.open_duration
                self._transition_to(CircuitState.OPEN)

    async def _release_trial(self, ticket: _Ticket) -> None:
        async with self._lock:
            if ticket.trial and ticket.generation == self._generation:
                self._trial_in_flight = False

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log("Circuit breaker state changed", extra={
            "provider": self.name,
            "from_state": old_state.value,
            "to_state": new_state.value,
            "failure_count": self._failure_count
        })

    def status(self) -> CircuitBreakerStatus:
        """Snapshot of the breaker for health reporting."""
        state = self.state
        open_until = None
        if state == CircuitState.OPEN:
            open_until = datetime.now(timezone.utc) + timedelta(seconds=self._retry_after())

        return CircuitBreakerStatus(
            provider=self.name,
            state=state.value,
            failure_count=self._failure_count,
            open_until=open_until
        )


class ResiliencePipeline:
    """Retry, per-attempt timeout and circuit breaker around one provider's transport."""

    def __init__(
        self,
        name: str,
        statistics: StatisticsService,
        retry_count: int = 3,
        attempt_timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep
    ):
        self.name = name
        self.retry_count = retry_count
        self.attempt_timeout = attempt_timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name, clock=clock)
        self._statistics = statistics
        self._clock = clock
        self._sleep = sleep

    async def execute(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        """
        Send a request through the policy stack.

        Args:
            send: Zero-argument coroutine factory performing one transport call

        Returns:
            The first non-transient response

        Raises:
            CircuitOpenError: The circuit rejected the call
            TransientProviderError: Every attempt failed transiently
        """
        started = self._clock()
        try:
            return await self._execute_with_retry(send)
        finally:
            self._statistics.record(self.name, (self._clock() - started) * 1000.0)

    async def _execute_with_retry(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        attempt = 0
        while True:
            try:
                return await self.circuit_breaker.call(lambda: self._attempt(send))
            except TransientProviderError as e:
                if attempt >= self.retry_count:
                    logger.warning("Retries exhausted", extra={
                        "provider": self.name,
                        "attempts": attempt + 1,
                        "error": str(e)
                    })
                    raise

                attempt += 1
                delay = 2 ** attempt
                logger.warning("Transient provider failure, retrying", extra={
                    "provider": self.name,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "error": str(e)
                })
                await self._sleep(delay)

    async def _attempt(self, send: Callable[[], Awaitable[httpx.Response]]) -> httpx.Response:
        """One transport call bounded by the attempt timeout."""
        try:
            response = await asyncio.wait_for(send(), timeout=self.attempt_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"Request timeout for {self.name} after {self.attempt_timeout}s",
                self.name
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Request timeout for {self.name}", self.name) from e
        except httpx.TransportError as e:
            raise TransientProviderError(f"HTTP error for {self.name}: {str(e)}", self.name) from e

        if response.status_code == 429:
            raise RateLimitError(f"Rate limited by {self.name}", self.name, status_code=429)
        if is_transient_status(response.status_code):
            raise TransientProviderError(
                f"Transient HTTP {response.status_code} from {self.name}",
                self.name,
                status_code=response.status_code
            )

        return response
