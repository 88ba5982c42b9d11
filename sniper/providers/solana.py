"""Standard Solana JSON-RPC client (blockhashes, simulation, parsed transactions)."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import httpx
from solders.hash import Hash

from ..core.errors import SwapStage, UpstreamError
from .rpc import JsonRpcProvider


class SolanaRpcProvider(JsonRpcProvider):
    """Typed wrapper over the standard chain RPC surface used by the pipeline."""

    name = "solana-rpc"

    def __init__(
        self,
        endpoint: str,
        commitment: str = "confirmed",
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(endpoint, timeout_s=timeout_s, client=client)
        self.commitment = commitment

    async def get_latest_blockhash(
        self,
        stage: Optional[SwapStage] = None,
    ) -> Tuple[Hash, int]:
        """
        Fetch a recent blockhash for transaction building.

        Returns:
            Tuple of (blockhash, lastValidBlockHeight)
        """
        result = await self._rpc_result(
            "getLatestBlockhash",
            [{"commitment": self.commitment}],
            stage=stage,
        )

        value = (result or {}).get("value") or {}
        blockhash = value.get("blockhash")
        if not blockhash:
            raise UpstreamError("getLatestBlockhash returned no blockhash", stage=stage)

        try:
            parsed = Hash.from_string(blockhash)
        except ValueError as exc:
            raise UpstreamError(f"getLatestBlockhash returned an invalid hash: {blockhash}", stage=stage) from exc

        return parsed, int(value.get("lastValidBlockHeight") or 0)

    async def simulate_transaction(
        self,
        transaction: str,
        stage: Optional[SwapStage] = SwapStage.SIMULATE,
    ) -> Dict[str, Any]:
        """
        Simulate a signed transaction without sending it.

        Args:
            transaction: Base64 encoded transaction

        Returns:
            Simulation result with logs and error info
        """
        options = {
            "encoding": "base64",
            "commitment": self.commitment,
            "sigVerify": False,
            "replaceRecentBlockhash": False,
        }

        result = await self._rpc_result(
            "simulateTransaction",
            [transaction, options],
            stage=stage,
        )

        sim_result = (result or {}).get("value") or {}
        return {
            "error": sim_result.get("err"),
            "logs": sim_result.get("logs") or [],
            "units_consumed": sim_result.get("unitsConsumed"),
        }

    async def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        """Fetch a confirmed transaction in jsonParsed encoding, or None if unknown."""
        return await self._rpc_result(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
