"""
Local transaction signing.

The keypair stays in process memory; only the public key is ever exposed or
logged.
"""

from __future__ import annotations

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction, VersionedTransaction

from ..errors import ConfigurationError, InvalidTransaction, SwapStage
from .models import SignedTransaction, UnsignedTransaction


def keypair_from_secret(secret: bytes) -> Keypair:
    """Build a keypair from a 64-byte secret key or a 32-byte seed."""
    try:
        if len(secret) == 64:
            return Keypair.from_bytes(secret)
        if len(secret) == 32:
            return Keypair.from_seed(secret)
    except ValueError as exc:
        raise ConfigurationError("WALLET_SECRET does not decode to a valid keypair") from exc
    raise ConfigurationError(
        f"WALLET_SECRET must be 64 bytes (or a 32-byte seed), got {len(secret)}"
    )


def sign_transaction(unsigned: UnsignedTransaction, keypair: Keypair) -> SignedTransaction:
    """Sign a transaction whose only required signer is ``keypair``.

    Ed25519 signatures are deterministic, so signing the same message with
    the same key always yields the same bytes.
    """
    try:
        if isinstance(unsigned, VersionedTransaction):
            return VersionedTransaction(unsigned.message, [keypair])
        if isinstance(unsigned, Transaction):
            message = unsigned.message
            signed = Transaction.new_unsigned(message)
            signed.sign([keypair], message.recent_blockhash)
            return signed
    except Exception as exc:
        raise InvalidTransaction(f"Could not sign transaction: {exc}", stage=SwapStage.SIGN) from exc

    raise InvalidTransaction(
        f"Unsupported transaction type: {type(unsigned).__name__}",
        stage=SwapStage.SIGN,
    )


class TransactionSigner:
    """Holds the wallet keypair for the lifetime of the process."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: bytes) -> "TransactionSigner":
        return cls(keypair_from_secret(secret))

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self._keypair.pubkey())

    def sign(self, unsigned: UnsignedTransaction) -> SignedTransaction:
        return sign_transaction(unsigned, self._keypair)

    def __repr__(self) -> str:
        return f"TransactionSigner(pubkey={self.address})"
