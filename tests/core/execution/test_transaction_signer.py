"""
Tests for local signing and transaction encodings.
"""

import base64

import base58
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from sniper.core.errors import ConfigurationError, InvalidTransaction, SwapStage
from sniper.core.execution import (
    TransactionSigner,
    base58_to_base64,
    base64_to_base58,
    encode_base58,
    encode_base64,
    keypair_from_secret,
    signature_of,
)


def _unsigned_v0(payer: Pubkey) -> VersionedTransaction:
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1_000))
    message = MessageV0.try_compile(payer, [ix], [], Hash.new_unique())
    return VersionedTransaction.populate(message, [Signature.default()])


def _unsigned_legacy(payer: Pubkey) -> Transaction:
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1_000))
    return Transaction.new_unsigned(Message.new_with_blockhash([ix], payer, Hash.new_unique()))


@pytest.fixture
def signer():
    return TransactionSigner(Keypair())


class TestKeypairFromSecret:
    def test_full_secret(self):
        keypair = Keypair()

        assert keypair_from_secret(bytes(keypair)).pubkey() == keypair.pubkey()

    def test_seed(self):
        seed = bytes(range(32))

        assert keypair_from_secret(seed).pubkey() == Keypair.from_seed(seed).pubkey()

    def test_wrong_length(self):
        with pytest.raises(ConfigurationError):
            keypair_from_secret(b"\x01" * 10)


class TestTransactionSigner:
    def test_signs_versioned_transaction(self, signer):
        signed = signer.sign(_unsigned_v0(signer.pubkey))

        assert isinstance(signed, VersionedTransaction)
        assert signed.signatures[0] != Signature.default()

    def test_signs_legacy_transaction(self, signer):
        signed = signer.sign(_unsigned_legacy(signer.pubkey))

        assert isinstance(signed, Transaction)
        assert signed.signatures[0] != Signature.default()
        signed.verify()

    def test_signing_is_deterministic(self, signer):
        unsigned = _unsigned_v0(signer.pubkey)

        assert bytes(signer.sign(unsigned)) == bytes(signer.sign(unsigned))

    def test_wrong_signer_rejected(self, signer):
        other = Keypair().pubkey()

        with pytest.raises(InvalidTransaction) as exc_info:
            signer.sign(_unsigned_legacy(other))

        assert exc_info.value.stage == SwapStage.SIGN

    def test_unsupported_type(self, signer):
        with pytest.raises(InvalidTransaction):
            signer.sign("not a transaction")

    def test_repr_hides_secret(self, signer):
        assert repr(signer) == f"TransactionSigner(pubkey={signer.address})"


class TestEncoding:
    def test_base64_and_base58_encode_same_bytes(self, signer):
        signed = signer.sign(_unsigned_v0(signer.pubkey))

        raw = bytes(signed)
        assert base64.b64decode(encode_base64(signed)) == raw
        assert base58.b58decode(encode_base58(signed)) == raw

    def test_reencoding(self, signer):
        signed = signer.sign(_unsigned_legacy(signer.pubkey))
        b64 = encode_base64(signed)

        assert base64_to_base58(b64) == encode_base58(signed)
        assert base58_to_base64(base64_to_base58(b64)) == b64

    def test_invalid_base64_rejected(self):
        with pytest.raises(ValueError):
            base64_to_base58("not*base64")

    def test_signature_of(self, signer):
        signed = signer.sign(_unsigned_v0(signer.pubkey))

        assert signature_of(signed) == str(signed.signatures[0])
