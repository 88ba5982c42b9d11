"""
Raydium new-pool listener.

Subscribes to program logs over the Solana WebSocket API, picks out pool
initialisations, resolves the pool's two mints from the parsed transaction
and appends a swap request to the work-queue.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from ...core.errors import SwapError
from ...core.execution.models import SwapRequest
from ...providers.solana import SolanaRpcProvider

logger = logging.getLogger(__name__)

# Account positions of the two pool mints in Raydium's initialize2 instruction
TOKEN_A_INDEX = 8
TOKEN_B_INDEX = 9

MAX_SEEN_SIGNATURES = 10_000

PoolCallback = Callable[[SwapRequest], Union[None, Awaitable[None]]]


def is_pool_creation(logs: List[str], instruction: str) -> bool:
    return any(instruction in line for line in logs or [])


def extract_pool_mints(tx: Any, program_id: str) -> Optional[Tuple[str, str]]:
    """Return (token A, token B) from a jsonParsed transaction, or None."""
    if not isinstance(tx, dict):
        return None
    transaction = tx.get("transaction")
    message = transaction.get("message") if isinstance(transaction, dict) else None
    if not isinstance(message, dict):
        return None
    for instruction in message.get("instructions") or []:
        if not isinstance(instruction, dict) or instruction.get("programId") != program_id:
            continue
        accounts = instruction.get("accounts") or []
        if len(accounts) <= TOKEN_B_INDEX:
            return None
        return str(accounts[TOKEN_A_INDEX]), str(accounts[TOKEN_B_INDEX])
    return None


class RaydiumPoolListener:
    """
    Watch a Raydium program for new liquidity pools.

    Usage:
        listener = RaydiumPoolListener(ws_url, rpc, program_id, request_defaults)
        listener.on_pool(queue.append)
        await listener.start()
    """

    def __init__(
        self,
        ws_url: str,
        rpc: SolanaRpcProvider,
        program_id: str,
        request_defaults: Dict[str, int],
        instruction: str = "initialize2",
        commitment: str = "finalized",
    ):
        self.ws_url = ws_url
        self.rpc = rpc
        self.program_id = program_id
        self.instruction = instruction
        self.commitment = commitment
        self.request_defaults = dict(request_defaults)
        self._callbacks: List[PoolCallback] = []
        self._running = False
        self._seen: set = set()

    def on_pool(self, callback: PoolCallback) -> None:
        """Register a callback for newly detected pools."""
        self._callbacks.append(callback)

    def subscribe_message(self) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self.program_id]},
                {"commitment": self.commitment},
            ],
        }

    def build_request(self, token_a: str, token_b: str) -> SwapRequest:
        # Buy the newly listed token (A) with the pool's quote side (B)
        return SwapRequest(
            inputMint=token_b,
            outputMint=token_a,
            amount=self.request_defaults["amount"],
            slippageBps=self.request_defaults["slippageBps"],
            priorityFee=self.request_defaults["priorityFee"],
            computeUnits=self.request_defaults["computeUnits"],
            jitoTip=self.request_defaults["jitoTip"],
        )

    async def start(self) -> None:
        """Run the subscription with auto-reconnect until stop() is called."""
        self._running = True
        retry_delay = 1
        max_retry_delay = 60

        while self._running:
            try:
                async with websockets.connect(self.ws_url) as ws:
                    await ws.send(json.dumps(self.subscribe_message()))
                    retry_delay = 1
                    logger.info("Monitoring logs for program %s", self.program_id)
                    await self._listen(ws)

            except ConnectionClosed as e:
                logger.warning(f"WebSocket closed: {e}")
            except (OSError, WebSocketException) as e:
                logger.error(f"WebSocket error: {e}")

            if self._running:
                logger.info(f"Reconnecting in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)

    def stop(self) -> None:
        self._running = False

    async def _listen(self, ws) -> None:
        async for message in ws:
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received: {message[:100]}")
                continue

            if data.get("method") == "logsNotification":
                await self.handle_notification(data)
            elif "error" in data:
                logger.error(f"Subscription error: {data['error']}")
            elif "result" in data:
                logger.info(f"Subscribed (id={data['result']})")

    async def handle_notification(self, data: Dict[str, Any]) -> Optional[SwapRequest]:
        """Process one logsNotification; return the queued request, if any."""
        value = ((data.get("params") or {}).get("result") or {}).get("value") or {}
        if value.get("err") is not None:
            return None

        signature = value.get("signature")
        if not signature or signature in self._seen:
            return None
        if not is_pool_creation(value.get("logs") or [], self.instruction):
            return None
        if len(self._seen) >= MAX_SEEN_SIGNATURES:
            self._seen.clear()
        self._seen.add(signature)

        logger.info("New pool transaction: https://explorer.solana.com/tx/%s", signature)

        try:
            tx = await self.rpc.get_parsed_transaction(signature)
        except SwapError as e:
            logger.error(f"Error fetching transaction {signature}: {e}")
            return None

        mints = extract_pool_mints(tx, self.program_id)
        if not mints:
            logger.warning("No pool accounts found in transaction %s", signature)
            return None

        try:
            request = self.build_request(*mints)
        except ValidationError as e:
            logger.error(f"Invalid pool accounts in transaction {signature}: {e}")
            return None

        logger.info("New LP found: %s", request.describe())

        for callback in self._callbacks:
            try:
                result = callback(request)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Callback error: {e}")

        return request
