"""
Tests for the Jito relay client against a mocked HTTP transport.
"""

import json

import httpx
import pytest
from unittest.mock import MagicMock

from sniper.core.errors import RelayRejected, SwapStage, UpstreamError
from sniper.core.execution.models import BundleState
from sniper.providers.jito import JitoRelayProvider

TIP_ACCOUNTS = [
    "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
    "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
    "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
]


def _relay(handler, rng=None) -> JitoRelayProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return JitoRelayProvider("https://jito.example.com/api/v1/bundles", client=client, rng=rng)


def _rpc_handler(responses, calls):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append(body)
        status, payload = responses[body["method"]]
        return httpx.Response(status, json={"jsonrpc": "2.0", "id": body["id"], **payload})
    return handler


class TestTipAccounts:
    @pytest.mark.asyncio
    async def test_random_tip_account(self):
        calls = []
        rng = MagicMock()
        rng.choice.side_effect = lambda accounts: accounts[-1]
        relay = _relay(_rpc_handler({"getTipAccounts": (200, {"result": TIP_ACCOUNTS})}, calls), rng=rng)

        account = await relay.get_tip_account()

        assert account == TIP_ACCOUNTS[-1]
        rng.choice.assert_called_once_with(TIP_ACCOUNTS)
        assert calls[0]["method"] == "getTipAccounts"
        assert calls[0]["params"] == []

    @pytest.mark.asyncio
    async def test_default_rng_picks_a_listed_account(self):
        calls = []
        relay = _relay(_rpc_handler({"getTipAccounts": (200, {"result": TIP_ACCOUNTS})}, calls))

        assert await relay.get_tip_account() in TIP_ACCOUNTS

    @pytest.mark.asyncio
    async def test_empty_tip_accounts(self):
        relay = _relay(_rpc_handler({"getTipAccounts": (200, {"result": []})}, []))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.get_tip_account()

        assert exc_info.value.stage == SwapStage.TIP_ACCOUNT


class TestSendBundle:
    @pytest.mark.asyncio
    async def test_returns_bundle_id(self):
        calls = []
        relay = _relay(_rpc_handler({"sendBundle": (200, {"result": "bundle-123"})}, calls))

        bundle_id = await relay.send_bundle(["swapB58", "tipB58"])

        assert bundle_id == "bundle-123"
        assert calls[0]["params"] == [["swapB58", "tipB58"]]

    @pytest.mark.asyncio
    async def test_relay_error_is_rejection(self):
        error = {"code": -32602, "message": "bundle contains an already processed transaction"}
        relay = _relay(_rpc_handler({"sendBundle": (400, {"error": error})}, []))

        with pytest.raises(RelayRejected) as exc_info:
            await relay.send_bundle(["swapB58", "tipB58"])

        assert exc_info.value.error == error
        assert exc_info.value.stage == SwapStage.SUBMIT
        assert "already processed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error_with_rpc_body_is_upstream(self):
        error = {"code": -32603, "message": "internal error"}
        relay = _relay(_rpc_handler({"sendBundle": (503, {"error": error})}, []))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.send_bundle(["swapB58", "tipB58"])

        assert not isinstance(exc_info.value, RelayRejected)
        assert exc_info.value.status_code == 503
        assert exc_info.value.to_record()["upstreamStatus"] == 503

    @pytest.mark.asyncio
    async def test_rate_limited_without_rpc_body(self):
        def handler(request):
            return httpx.Response(429, text="Too Many Requests")

        with pytest.raises(UpstreamError) as exc_info:
            await _relay(handler).send_bundle(["swapB58"])

        assert exc_info.value.status_code == 429
        assert exc_info.value.stage == SwapStage.SUBMIT

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamError):
            await _relay(handler).send_bundle(["swapB58"])

    @pytest.mark.asyncio
    async def test_bundle_size_limits(self):
        relay = _relay(_rpc_handler({}, []))

        with pytest.raises(ValueError):
            await relay.send_bundle([])
        with pytest.raises(ValueError):
            await relay.send_bundle(["tx"] * 6)


class TestBundleStatuses:
    @pytest.mark.asyncio
    async def test_landed(self):
        calls = []
        result = {
            "context": {"slot": 280000001},
            "value": [{"bundle_id": "b1", "status": "Landed", "landed_slot": 280000000}],
        }
        relay = _relay(_rpc_handler({"getInflightBundleStatuses": (200, {"result": result})}, calls))

        status = await relay.get_bundle_status("b1")

        assert status.state == BundleState.LANDED
        assert status.landed_slot == 280000000
        assert calls[0]["params"] == [["b1"]]

    @pytest.mark.asyncio
    async def test_unknown_bundle_is_invalid(self):
        result = {"context": {"slot": 1}, "value": []}
        relay = _relay(_rpc_handler({"getInflightBundleStatuses": (200, {"result": result})}, []))

        status = await relay.get_bundle_status("b1")

        assert status.bundle_id == "b1"
        assert status.state == BundleState.INVALID

    @pytest.mark.asyncio
    async def test_statuses_follow_requested_order(self):
        result = {
            "value": [
                {"bundle_id": "b2", "status": "Failed", "landed_slot": None},
                {"bundle_id": "b1", "status": "Pending", "landed_slot": None},
            ]
        }
        relay = _relay(_rpc_handler({"getInflightBundleStatuses": (200, {"result": result})}, []))

        statuses = await relay.get_inflight_bundle_statuses(["b1", "b2"])

        assert [s.state for s in statuses] == [BundleState.PENDING, BundleState.FAILED]

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        error = {"code": -32000, "message": "internal"}
        relay = _relay(_rpc_handler({"getInflightBundleStatuses": (200, {"error": error})}, []))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.get_bundle_status("b1")

        assert exc_info.value.stage == SwapStage.POLL

    @pytest.mark.asyncio
    async def test_client_error_keeps_http_status(self):
        error = {"code": -32602, "message": "invalid bundle id"}
        relay = _relay(_rpc_handler({"getInflightBundleStatuses": (400, {"error": error})}, []))

        with pytest.raises(UpstreamError) as exc_info:
            await relay.get_bundle_status("b1")

        assert exc_info.value.status_code == 400
        assert exc_info.value.to_record()["upstreamStatus"] == 400
