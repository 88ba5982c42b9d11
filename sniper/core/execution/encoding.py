"""
Transaction encodings.

Jupiter and the standard RPC speak base64; the Jito ``sendBundle`` method
expects base58 by default.
"""

from __future__ import annotations

import base64

import base58

from .models import SignedTransaction


def serialize(tx: SignedTransaction) -> bytes:
    """Wire bytes of a signed transaction."""
    return bytes(tx)


def to_base64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def from_base64(encoded: str) -> bytes:
    return base64.b64decode(encoded, validate=True)


def to_base58(raw: bytes) -> str:
    return base58.b58encode(raw).decode("ascii")


def from_base58(encoded: str) -> bytes:
    return base58.b58decode(encoded)


def base64_to_base58(encoded: str) -> str:
    return to_base58(from_base64(encoded))


def base58_to_base64(encoded: str) -> str:
    return to_base64(from_base58(encoded))


def encode_base64(tx: SignedTransaction) -> str:
    return to_base64(serialize(tx))


def encode_base58(tx: SignedTransaction) -> str:
    return to_base58(serialize(tx))


def signature_of(tx: SignedTransaction) -> str:
    """Base58 fee-payer signature, the transaction id on Solana."""
    return str(tx.signatures[0])
