"""
Transaction Execution Layer

Building blocks of the bundle pipeline:
- TransactionBuilder: swap transaction from a Jupiter quote, tip transfer to Jito
- TransactionSigner: local signing with the wallet keypair
- Simulator: dry-run of signed transactions
- encoding helpers: base64 / base58 wire formats

Usage:
    from sniper.core.execution import TransactionBuilder, TransactionSigner, Simulator

    builder = TransactionBuilder(jupiter, rpc)
    unsigned = await builder.build_swap_transaction(quote, signer.pubkey)
    signed = signer.sign(unsigned)
    outcome = await Simulator(rpc).simulate(signed)
"""

from .models import (
    RequestStatus,
    SwapRequest,
    SimulationOutcome,
    BundleState,
    BundleStatus,
    SwapOutcome,
    UnsignedTransaction,
    SignedTransaction,
)

from .encoding import (
    serialize,
    to_base64,
    from_base64,
    to_base58,
    from_base58,
    base64_to_base58,
    base58_to_base64,
    encode_base64,
    encode_base58,
    signature_of,
)

from .signer import (
    TransactionSigner,
    keypair_from_secret,
    sign_transaction,
)

from .simulator import Simulator

from .tx_builder import TransactionBuilder

__all__ = [
    # Models
    "RequestStatus",
    "SwapRequest",
    "SimulationOutcome",
    "BundleState",
    "BundleStatus",
    "SwapOutcome",
    "UnsignedTransaction",
    "SignedTransaction",
    # Encoding
    "serialize",
    "to_base64",
    "from_base64",
    "to_base58",
    "from_base58",
    "base64_to_base58",
    "base58_to_base64",
    "encode_base64",
    "encode_base58",
    "signature_of",
    # Signer
    "TransactionSigner",
    "keypair_from_secret",
    "sign_transaction",
    # Simulation
    "Simulator",
    # Builder
    "TransactionBuilder",
]
