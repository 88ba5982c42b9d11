"""
Data models for the bundle execution pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from solders.transaction import Transaction, VersionedTransaction


# A swap transaction comes back from Jupiter as a v0 transaction, the tip
# transaction is built locally as a legacy transaction.
UnsignedTransaction = Union[VersionedTransaction, Transaction]
SignedTransaction = Union[VersionedTransaction, Transaction]


class RequestStatus(str, Enum):
    """Lifecycle of a work-queue entry. Terminal states are never unset."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: Any) -> "RequestStatus":
        if value is None:
            return cls.PENDING
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.PENDING


class SwapRequest(BaseModel):
    """One swap to execute, as persisted in the work-queue."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    input_mint: str = Field(alias="inputMint", min_length=32, max_length=44)
    output_mint: str = Field(alias="outputMint", min_length=32, max_length=44)
    amount: int = Field(gt=0, description="Input amount in the smallest unit")
    slippage_bps: int = Field(default=50, alias="slippageBps", ge=0, le=10_000)
    priority_fee: int = Field(default=0, alias="priorityFee", ge=0)
    compute_units: int = Field(default=0, alias="computeUnits", ge=0)
    jito_tip: Optional[int] = Field(default=None, alias="jitoTip", ge=0)
    status: RequestStatus = RequestStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> RequestStatus:
        return RequestStatus.parse(value)

    @field_validator("input_mint", "output_mint")
    @classmethod
    def _strip_mint(cls, value: str) -> str:
        return value.strip()

    def to_record(self) -> Dict[str, Any]:
        """Serialize with the camelCase field names used on disk."""
        record = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        if self.status == RequestStatus.PENDING:
            record.pop("status", None)
        return record

    def describe(self) -> str:
        return f"{self.input_mint} -> {self.output_mint} ({self.amount})"


@dataclass
class SimulationOutcome:
    """Result of dry-running a transaction."""

    ok: bool
    logs: List[str] = field(default_factory=list)
    err: Optional[Any] = None
    units_consumed: Optional[int] = None


class BundleState(str, Enum):
    """Status values returned by getInflightBundleStatuses."""

    PENDING = "Pending"
    LANDED = "Landed"
    FAILED = "Failed"
    # Not (yet) known to the relay's status index
    INVALID = "Invalid"

    @classmethod
    def parse(cls, value: Any) -> "BundleState":
        text = str(value or "").strip().lower()
        for state in cls:
            if state.value.lower() == text:
                return state
        return cls.INVALID


@dataclass
class BundleStatus:
    """Last observed status of a bundle."""

    bundle_id: str
    state: BundleState
    landed_slot: Optional[int] = None

    @classmethod
    def from_rpc(cls, bundle_id: str, item: Optional[Dict[str, Any]]) -> "BundleStatus":
        if not item:
            return cls(bundle_id=bundle_id, state=BundleState.INVALID)
        return cls(
            bundle_id=item.get("bundle_id") or bundle_id,
            state=BundleState.parse(item.get("status")),
            landed_slot=item.get("landed_slot"),
        )


@dataclass
class SwapOutcome:
    """Successful end-to-end execution of one request."""

    bundle_id: str
    landed_slot: Optional[int]
    swap_signature: str
    tip_signature: str
    tip_account: str
    tip_lamports: int
    out_amount: Optional[int] = None

    @property
    def explorer_url(self) -> str:
        return f"https://explorer.jito.wtf/bundle/{self.bundle_id}"

    def to_record(self) -> Dict[str, Any]:
        return {
            "bundleId": self.bundle_id,
            "landedSlot": self.landed_slot,
        }
