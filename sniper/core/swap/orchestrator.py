"""
Swap Orchestrator

Runs one swap request through the bundle pipeline:

    quote -> build swap -> sign -> simulate -> tip account -> build tip
          -> sign -> sendBundle([swap, tip]) -> poll status

Any stage error short-circuits the rest and propagates as a SwapError. The
orchestrator keeps no state between requests; the batch runner catches the
error at the request boundary.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from ...config import Settings
from ...providers.jito import JitoRelayProvider
from ...providers.jupiter import JupiterSwapProvider
from ...providers.solana import SolanaRpcProvider
from ..errors import SimulationRejected, SwapError, SwapStage
from ..execution.encoding import encode_base58, signature_of
from ..execution.models import SwapOutcome, SwapRequest
from ..execution.signer import TransactionSigner
from ..execution.simulator import Simulator
from ..execution.tx_builder import TransactionBuilder
from .poller import BundleStatusPoller, PollPolicy

logger = structlog.stdlib.get_logger(__name__)


class SwapOrchestrator:
    """
    Executes swap requests as Jito bundles.

    Usage:
        orchestrator = SwapOrchestrator.from_settings(settings)
        try:
            outcome = await orchestrator.execute_swap(request)
        finally:
            await orchestrator.close()
    """

    def __init__(
        self,
        jupiter: JupiterSwapProvider,
        builder: TransactionBuilder,
        signer: TransactionSigner,
        simulator: Simulator,
        relay: JitoRelayProvider,
        poller: BundleStatusPoller,
        default_tip_lamports: int = 500_000,
    ):
        self._jupiter = jupiter
        self._builder = builder
        self._signer = signer
        self._simulator = simulator
        self._relay = relay
        self._poller = poller
        self._default_tip_lamports = default_tip_lamports
        self._closeables = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        signer: Optional[TransactionSigner] = None,
    ) -> "SwapOrchestrator":
        """Wire the production collaborators from validated settings."""
        signer = signer or TransactionSigner.from_secret(settings.wallet_secret_bytes())
        timeout = settings.request_timeout_seconds

        jupiter = JupiterSwapProvider(base_url=settings.jupiter_base_url, timeout_s=timeout)
        rpc = SolanaRpcProvider(settings.rpc_endpoint, commitment=settings.commitment, timeout_s=timeout)
        relay = JitoRelayProvider(settings.jito_endpoint, timeout_s=timeout)
        policy = PollPolicy(
            warmup_s=settings.poll_warmup_seconds,
            interval_s=settings.poll_interval_seconds,
            timeout_s=settings.poll_timeout_seconds,
        )

        orchestrator = cls(
            jupiter=jupiter,
            builder=TransactionBuilder(jupiter, rpc),
            signer=signer,
            simulator=Simulator(rpc),
            relay=relay,
            poller=BundleStatusPoller(relay, policy),
            default_tip_lamports=settings.jito_tip_lamports,
        )
        orchestrator._closeables = [jupiter, rpc, relay]
        return orchestrator

    @property
    def wallet_address(self) -> str:
        return self._signer.address

    async def close(self) -> None:
        for provider in self._closeables:
            await provider.close()

    def tip_for(self, request: SwapRequest) -> int:
        return request.jito_tip or self._default_tip_lamports

    async def execute_swap(
        self,
        request: SwapRequest,
        cancel: Optional[asyncio.Event] = None,
    ) -> SwapOutcome:
        """Run the full pipeline for one request. Raises SwapError on any stage failure."""
        payer = self._signer.pubkey
        logger.info("swap_started", request=request.describe(), wallet=self._signer.address)

        with self._stage(SwapStage.QUOTE):
            quote = await self._jupiter.get_swap_quote(
                request.input_mint,
                request.output_mint,
                request.amount,
                slippage_bps=request.slippage_bps,
            )
            logger.info("quote_received", out_amount=quote.out_amount, hops=quote.hops)

        with self._stage(SwapStage.BUILD_SWAP):
            unsigned_swap = await self._builder.build_swap_transaction(
                quote,
                payer,
                priority_fee_lamports=request.priority_fee or None,
            )

        with self._stage(SwapStage.SIGN):
            swap_tx = self._signer.sign(unsigned_swap)

        # Only the swap is simulated; whole-bundle simulation is not used.
        with self._stage(SwapStage.SIMULATE):
            simulation = await self._simulator.simulate(swap_tx)
            if not simulation.ok:
                raise SimulationRejected(logs=simulation.logs, err=simulation.err)

        with self._stage(SwapStage.TIP_ACCOUNT):
            tip_account = await self._relay.get_tip_account()
            logger.info("tip_account_selected", tip_account=tip_account)

        tip_lamports = self.tip_for(request)
        with self._stage(SwapStage.BUILD_TIP):
            unsigned_tip = await self._builder.build_tip_transaction(
                payer,
                tip_account,
                tip_lamports,
                fee_payer=payer,
            )

        with self._stage(SwapStage.SIGN):
            tip_tx = self._signer.sign(unsigned_tip)

        with self._stage(SwapStage.SUBMIT):
            bundle_id = await self._relay.send_bundle([encode_base58(swap_tx), encode_base58(tip_tx)])
            logger.info("bundle_submitted", bundle_id=bundle_id)

        with self._stage(SwapStage.POLL):
            result = await self._poller.poll(bundle_id, cancel=cancel)

        outcome = SwapOutcome(
            bundle_id=bundle_id,
            landed_slot=result.landed_slot,
            swap_signature=signature_of(swap_tx),
            tip_signature=signature_of(tip_tx),
            tip_account=tip_account,
            tip_lamports=tip_lamports,
            out_amount=quote.out_amount,
        )
        logger.info(
            "swap_landed",
            bundle_id=bundle_id,
            slot=result.landed_slot,
            explorer=outcome.explorer_url,
        )
        return outcome

    @contextmanager
    def _stage(self, stage: SwapStage) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        except SwapError as exc:
            if exc.stage is None:
                exc.stage = stage
            logger.warning(
                "swap_stage_failed",
                stage=stage.value,
                error=exc.code,
                message=exc.message,
            )
            raise
        logger.info(
            "swap_stage",
            stage=stage.value,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
