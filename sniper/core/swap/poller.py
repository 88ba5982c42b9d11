"""
Bundle Status Poller

Waits for a submitted bundle to land:

    AWAITING_FIRST_CHECK -> POLLING -> LANDED | FAILED | TIMED_OUT | CANCELLED

Bundles are not visible in the relay's status index right away, so the first
query happens after a warm-up delay. Query errors while polling are logged
and do not change state; only an explicit Failed status, the deadline or the
cancellation event end the loop on the failure side.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from ...providers.jito import JitoRelayProvider
from ..errors import BundleFailed, PollingCancelled, PollingTimeout, UpstreamError
from ..execution.models import BundleState

logger = structlog.stdlib.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class PollState(str, Enum):
    AWAITING_FIRST_CHECK = "awaiting_first_check"
    POLLING = "polling"
    LANDED = "landed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({
    PollState.LANDED,
    PollState.FAILED,
    PollState.TIMED_OUT,
    PollState.CANCELLED,
})


@dataclass(frozen=True)
class PollPolicy:
    """Timing of the status loop. ``timeout_s`` is the budget from the first call, warm-up included."""

    warmup_s: float = 5.0
    interval_s: float = 3.0
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        if self.interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if self.warmup_s < 0 or self.timeout_s < self.warmup_s:
            raise ValueError("timeout_s must be >= warmup_s >= 0")

    @property
    def polling_window_s(self) -> float:
        return self.timeout_s - self.warmup_s

    @property
    def worst_case_s(self) -> float:
        """Upper bound on the wall-clock time of one poll() call."""
        return self.warmup_s + self.interval_s * math.ceil(self.polling_window_s / self.interval_s)


@dataclass
class PollResult:
    bundle_id: str
    landed_slot: Optional[int]
    attempts: int
    elapsed_s: float


class BundleStatusPoller:
    """Polls ``getInflightBundleStatuses`` for a single bundle id."""

    def __init__(
        self,
        relay: JitoRelayProvider,
        policy: Optional[PollPolicy] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self._relay = relay
        self.policy = policy or PollPolicy()
        self._clock = clock
        self._sleep = sleep
        self.state = PollState.AWAITING_FIRST_CHECK

    async def poll(
        self,
        bundle_id: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> PollResult:
        """Block until the bundle lands; raise BundleFailed, PollingTimeout or PollingCancelled otherwise."""
        policy = self.policy
        log = logger.bind(bundle_id=bundle_id)
        started = self._clock()

        self.state = PollState.AWAITING_FIRST_CHECK
        await self._sleep(policy.warmup_s)

        deadline = self._clock() + policy.polling_window_s
        self.state = PollState.POLLING

        last_state: Optional[BundleState] = None
        attempts = 0

        while True:
            if cancel is not None and cancel.is_set():
                self.state = PollState.CANCELLED
                log.warning("bundle_poll_cancelled", attempts=attempts)
                raise PollingCancelled(bundle_id)

            remaining = deadline - self._clock()
            if remaining <= 0:
                self.state = PollState.TIMED_OUT
                log.warning("bundle_poll_timeout", attempts=attempts, last_status=_value(last_state))
                raise PollingTimeout(bundle_id, policy.timeout_s, last_status=_value(last_state))

            attempts += 1
            status = None
            try:
                status = await asyncio.wait_for(self._relay.get_bundle_status(bundle_id), timeout=remaining)
            except asyncio.TimeoutError:
                log.warning("bundle_status_query_timeout", attempt=attempts)
            except UpstreamError as exc:
                log.warning("bundle_status_query_error", attempt=attempts, error=str(exc))

            if status is not None:
                if status.state != last_state:
                    last_state = status.state
                    log.info("bundle_status", status=status.state.value, attempt=attempts)

                if status.state == BundleState.LANDED:
                    self.state = PollState.LANDED
                    elapsed = self._clock() - started
                    log.info("bundle_landed", slot=status.landed_slot, elapsed_s=round(elapsed, 3))
                    return PollResult(
                        bundle_id=bundle_id,
                        landed_slot=status.landed_slot,
                        attempts=attempts,
                        elapsed_s=elapsed,
                    )

                if status.state == BundleState.FAILED:
                    self.state = PollState.FAILED
                    raise BundleFailed(bundle_id)

            remaining = deadline - self._clock()
            if remaining > 0:
                await self._sleep(min(policy.interval_s, remaining))


def _value(state: Optional[BundleState]) -> Optional[str]:
    return state.value if state is not None else None
