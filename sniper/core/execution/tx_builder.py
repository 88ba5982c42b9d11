"""
Transaction Builder

Turns a Jupiter quote into an unsigned swap transaction, and builds the
System transfer that tips the Jito relay.
"""

from __future__ import annotations

import logging
from typing import Optional

from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from ...providers.jupiter import JupiterQuote, JupiterSwapProvider
from ...providers.solana import SolanaRpcProvider
from ..errors import InvalidTransaction, SwapStage
from .encoding import from_base64

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """
    Builds the two transactions of a bundle.

    The swap transaction already carries the blockhash Jupiter fetched while
    building it. The tip transaction is stamped with a blockhash fetched right
    before it is returned, since it is signed immediately afterwards.
    """

    def __init__(self, jupiter: JupiterSwapProvider, rpc: SolanaRpcProvider):
        self._jupiter = jupiter
        self._rpc = rpc

    async def build_swap_transaction(
        self,
        quote: JupiterQuote,
        payer: Pubkey,
        priority_fee_lamports: Optional[int] = None,
    ) -> VersionedTransaction:
        swap = await self._jupiter.build_swap_transaction(
            quote,
            user_public_key=str(payer),
            priority_fee_lamports=priority_fee_lamports,
        )

        try:
            return VersionedTransaction.from_bytes(from_base64(swap.swap_transaction))
        except Exception as exc:
            raise InvalidTransaction(
                f"Swap transaction from Jupiter could not be decoded: {exc}",
                stage=SwapStage.BUILD_SWAP,
            ) from exc

    async def build_tip_transaction(
        self,
        payer: Pubkey,
        tip_account: str,
        tip_lamports: int,
        fee_payer: Optional[Pubkey] = None,
    ) -> Transaction:
        """Single-instruction transfer of ``tip_lamports`` from payer to the tip account."""
        if tip_lamports <= 0:
            raise InvalidTransaction("Tip amount must be positive", stage=SwapStage.BUILD_TIP)

        try:
            to_pubkey = Pubkey.from_string(tip_account)
        except ValueError as exc:
            raise InvalidTransaction(
                f"Invalid tip account: {tip_account}",
                stage=SwapStage.BUILD_TIP,
            ) from exc

        instruction = transfer(
            TransferParams(from_pubkey=payer, to_pubkey=to_pubkey, lamports=tip_lamports)
        )

        blockhash, _ = await self._rpc.get_latest_blockhash(stage=SwapStage.BUILD_TIP)
        message = Message.new_with_blockhash(
            [instruction],
            fee_payer or payer,
            blockhash,
        )
        logger.debug("Tip transaction built for %s lamports to %s", tip_lamports, tip_account)
        return Transaction.new_unsigned(message)
