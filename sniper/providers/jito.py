"""
Jito block engine client.

Jito exposes bundle methods over JSON-RPC next to (not instead of) the
standard chain RPC. Bundles are atomic: every transaction lands in order or
none do.
"""

from __future__ import annotations

import logging
import random
from typing import Any, List, Optional, Sequence

import httpx

from ..core.errors import RelayRejected, SwapStage, UpstreamError
from ..core.execution.models import BundleStatus
from .rpc import JsonRpcProvider, rpc_error_message

logger = logging.getLogger(__name__)

MAX_BUNDLE_SIZE = 5


class JitoRelayProvider(JsonRpcProvider):
    """
    Typed client for the Jito relay methods.

    Usage:
        relay = JitoRelayProvider("https://mainnet.block-engine.jito.wtf/api/v1/bundles")

        tip_account = await relay.get_tip_account()
        bundle_id = await relay.send_bundle([swap_b58, tip_b58])
        statuses = await relay.get_inflight_bundle_statuses([bundle_id])
    """

    name = "jito"

    def __init__(
        self,
        endpoint: str,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(endpoint, timeout_s=timeout_s, client=client)
        self._rng = rng or random.SystemRandom()

    async def get_tip_accounts(self) -> List[str]:
        """Tip-recipient accounts currently accepted by the relay."""
        result = await self._rpc_result("getTipAccounts", [], stage=SwapStage.TIP_ACCOUNT)
        if not isinstance(result, list):
            raise UpstreamError(
                f"getTipAccounts returned unexpected payload: {result!r}",
                stage=SwapStage.TIP_ACCOUNT,
            )
        return [str(account) for account in result if account]

    async def get_tip_account(self) -> str:
        """Pick one tip account uniformly at random to spread tips across accounts."""
        accounts = await self.get_tip_accounts()
        if not accounts:
            raise UpstreamError("Relay returned no tip accounts", stage=SwapStage.TIP_ACCOUNT)
        return self._rng.choice(accounts)

    async def send_bundle(self, transactions: Sequence[str]) -> str:
        """
        Submit base58-encoded signed transactions as one atomic bundle.

        Returns:
            The bundle id assigned by the relay
        """
        if not transactions:
            raise ValueError("Bundle must contain at least one transaction")
        if len(transactions) > MAX_BUNDLE_SIZE:
            raise ValueError(f"Jito bundles are limited to {MAX_BUNDLE_SIZE} transactions")

        data, _ = await self._rpc_call("sendBundle", [list(transactions)], stage=SwapStage.SUBMIT)

        error = data.get("error")
        if error is not None:
            raise RelayRejected(f"Relay rejected bundle: {rpc_error_message(error)}", error=error)

        bundle_id = data.get("result")
        if not bundle_id:
            raise RelayRejected("Relay returned no bundle id", error=data)

        logger.info("Bundle submitted: %s (%d transactions)", bundle_id, len(transactions))
        return str(bundle_id)

    async def get_inflight_bundle_statuses(self, bundle_ids: Sequence[str]) -> List[BundleStatus]:
        """Status of bundles submitted within the last five minutes."""
        result = await self._rpc_result(
            "getInflightBundleStatuses",
            [list(bundle_ids)],
            stage=SwapStage.POLL,
        )

        items: Any = (result or {}).get("value") if isinstance(result, dict) else result
        items = items or []

        by_id = {item.get("bundle_id"): item for item in items if isinstance(item, dict)}
        return [BundleStatus.from_rpc(bundle_id, by_id.get(bundle_id)) for bundle_id in bundle_ids]

    async def get_bundle_status(self, bundle_id: str) -> BundleStatus:
        statuses = await self.get_inflight_bundle_statuses([bundle_id])
        return statuses[0]
