"""On-chain event listeners feeding the swap work-queue."""

from .pool_listener import RaydiumPoolListener, extract_pool_mints, is_pool_creation

__all__ = ["RaydiumPoolListener", "extract_pool_mints", "is_pool_creation"]
