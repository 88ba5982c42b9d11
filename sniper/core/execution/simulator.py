"""Dry-run execution of signed transactions against current chain state."""

from __future__ import annotations

import logging

from ...providers.solana import SolanaRpcProvider
from .encoding import encode_base64
from .models import SignedTransaction, SimulationOutcome

logger = logging.getLogger(__name__)


class Simulator:
    """Simulates transactions via ``simulateTransaction``. Nothing is committed."""

    def __init__(self, rpc: SolanaRpcProvider):
        self._rpc = rpc

    async def simulate(self, tx: SignedTransaction) -> SimulationOutcome:
        result = await self._rpc.simulate_transaction(encode_base64(tx))

        outcome = SimulationOutcome(
            ok=result["error"] is None,
            logs=list(result["logs"]),
            err=result["error"],
            units_consumed=result.get("units_consumed"),
        )

        if outcome.ok:
            logger.debug("Simulation ok (%s CU), %d log lines", outcome.units_consumed, len(outcome.logs))
        else:
            logger.warning("Simulation failed: %s; logs=%s", outcome.err, outcome.logs)
        return outcome
