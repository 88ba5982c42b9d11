"""
Tests for the bundle status poller.

A fake clock drives the loop so no test actually sleeps.
"""

import asyncio

import pytest
from structlog.testing import capture_logs
from unittest.mock import AsyncMock, MagicMock

from sniper.core.errors import (
    BundleFailed,
    PollingCancelled,
    PollingTimeout,
    SwapStage,
    UpstreamError,
)
from sniper.core.execution.models import BundleState, BundleStatus
from sniper.core.swap.poller import BundleStatusPoller, PollPolicy, PollState


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _status(state: BundleState, slot=None) -> BundleStatus:
    return BundleStatus(bundle_id="bundle-1", state=state, landed_slot=slot)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def relay():
    mock = MagicMock()
    mock.get_bundle_status = AsyncMock(return_value=_status(BundleState.PENDING))
    return mock


def _poller(relay, clock, **policy) -> BundleStatusPoller:
    return BundleStatusPoller(relay, PollPolicy(**policy), clock=clock, sleep=clock.sleep)


class TestPollPolicy:
    def test_defaults(self):
        policy = PollPolicy()

        assert (policy.warmup_s, policy.interval_s, policy.timeout_s) == (5.0, 3.0, 30.0)
        assert policy.polling_window_s == 25.0
        assert policy.worst_case_s == 32.0

    def test_rejects_timeout_shorter_than_warmup(self):
        with pytest.raises(ValueError):
            PollPolicy(warmup_s=10, timeout_s=5)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollPolicy(interval_s=0)


class TestBundleStatusPoller:
    @pytest.mark.asyncio
    async def test_landed_on_first_check(self, relay, clock):
        relay.get_bundle_status.return_value = _status(BundleState.LANDED, slot=280_000_000)
        poller = _poller(relay, clock)

        result = await poller.poll("bundle-1")

        assert result.landed_slot == 280_000_000
        assert result.attempts == 1
        assert clock.sleeps == [5.0]
        assert poller.state == PollState.LANDED

    @pytest.mark.asyncio
    async def test_waits_through_pending(self, relay, clock):
        relay.get_bundle_status.side_effect = [
            _status(BundleState.INVALID),
            _status(BundleState.PENDING),
            _status(BundleState.LANDED, slot=42),
        ]

        result = await _poller(relay, clock).poll("bundle-1")

        assert result.landed_slot == 42
        assert result.attempts == 3
        assert clock.sleeps == [5.0, 3.0, 3.0]
        assert result.elapsed_s == 11.0

    @pytest.mark.asyncio
    async def test_failed_status(self, relay, clock):
        relay.get_bundle_status.return_value = _status(BundleState.FAILED)
        poller = _poller(relay, clock)

        with pytest.raises(BundleFailed) as exc_info:
            await poller.poll("bundle-1")

        assert exc_info.value.details["bundle_id"] == "bundle-1"
        assert exc_info.value.stage == SwapStage.POLL
        assert poller.state == PollState.FAILED

    @pytest.mark.asyncio
    async def test_timeout_within_worst_case(self, relay, clock):
        poller = _poller(relay, clock)

        with pytest.raises(PollingTimeout) as exc_info:
            await poller.poll("bundle-1")

        assert clock.now <= poller.policy.worst_case_s
        assert clock.now == 30.0
        assert exc_info.value.details["last_status"] == "Pending"
        assert relay.get_bundle_status.await_count == 9
        assert poller.state == PollState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_query_errors_do_not_end_polling(self, relay, clock):
        relay.get_bundle_status.side_effect = [
            UpstreamError("502 Bad Gateway", stage=SwapStage.POLL, status_code=502),
            asyncio.TimeoutError(),
            _status(BundleState.LANDED, slot=7),
        ]

        result = await _poller(relay, clock).poll("bundle-1")

        assert result.landed_slot == 7
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_zero_warmup_polls_immediately(self, relay, clock):
        relay.get_bundle_status.return_value = _status(BundleState.LANDED, slot=1)

        await _poller(relay, clock, warmup_s=0, interval_s=1, timeout_s=10).poll("bundle-1")

        assert clock.sleeps == [0]

    @pytest.mark.asyncio
    async def test_cancelled(self, relay, clock):
        cancel = asyncio.Event()
        cancel.set()
        poller = _poller(relay, clock)

        with pytest.raises(PollingCancelled):
            await poller.poll("bundle-1", cancel=cancel)

        relay.get_bundle_status.assert_not_awaited()
        assert poller.state == PollState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancelled_mid_polling(self, relay, clock):
        cancel = asyncio.Event()

        async def pending_then_cancel(bundle_id):
            if relay.get_bundle_status.await_count == 2:
                cancel.set()
            return _status(BundleState.PENDING)

        relay.get_bundle_status.side_effect = pending_then_cancel

        with pytest.raises(PollingCancelled) as exc_info:
            await _poller(relay, clock).poll("bundle-1", cancel=cancel)

        assert exc_info.value.details["bundle_id"] == "bundle-1"
        assert relay.get_bundle_status.await_count == 2

    @pytest.mark.asyncio
    async def test_status_changes_logged_once(self, relay, clock):
        relay.get_bundle_status.side_effect = [
            _status(BundleState.PENDING),
            _status(BundleState.PENDING),
            _status(BundleState.LANDED, slot=12345),
        ]

        with capture_logs() as logs:
            result = await _poller(relay, clock).poll("bundle-1")

        status_events = [entry for entry in logs if entry["event"] == "bundle_status"]
        assert [(e["status"], e["attempt"]) for e in status_events] == [("Pending", 1), ("Landed", 3)]
        assert status_events[0]["bundle_id"] == "bundle-1"
        assert result.landed_slot == 12345
