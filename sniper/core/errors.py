"""
Swap Pipeline Errors

Every stage of the bundle pipeline fails with a subclass of SwapError.
A SwapError aborts only the request being executed; the batch runner records
it on the queue entry and moves on. ConfigurationError is the only fatal error
and is raised at startup, never per request.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class SwapStage(str, Enum):
    """Pipeline stage in which an error was raised."""

    QUOTE = "quote"
    BUILD_SWAP = "build_swap"
    SIGN = "sign"
    SIMULATE = "simulate"
    TIP_ACCOUNT = "tip_account"
    BUILD_TIP = "build_tip"
    SUBMIT = "submit"
    POLL = "poll"


class ConfigurationError(Exception):
    """Missing or invalid credentials/endpoints. Fatal at startup."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing = missing or []


class SwapError(Exception):
    """Base class for per-request pipeline failures."""

    default_stage: Optional[SwapStage] = None

    def __init__(
        self,
        message: str,
        stage: Optional[SwapStage] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.details = details or {}

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_record(self) -> Dict[str, Any]:
        """Fields persisted on a failed work-queue entry."""
        record: Dict[str, Any] = {
            "error": self.code,
            "errorMessage": self.message,
        }
        if self.stage is not None:
            record["failedStage"] = self.stage.value
        return record

    def __str__(self) -> str:
        if self.stage is not None:
            return f"[{self.stage.value}] {self.message}"
        return self.message


class NoQuoteAvailable(SwapError):
    """The routing service found no route for the pair."""

    default_stage = SwapStage.QUOTE


class NoSwapTransaction(SwapError):
    """The swap-build service returned no transaction."""

    default_stage = SwapStage.BUILD_SWAP


class InvalidTransaction(SwapError):
    """A transaction payload could not be decoded or signed."""

    default_stage = SwapStage.SIGN


class SimulationRejected(SwapError):
    """Simulation of the swap transaction reported an error."""

    default_stage = SwapStage.SIMULATE

    def __init__(
        self,
        message: str = "Swap simulation failed",
        logs: Optional[List[str]] = None,
        err: Any = None,
    ):
        super().__init__(message, details={"logs": list(logs or []), "err": err})
        self.logs = list(logs or [])
        self.err = err


class RelayRejected(SwapError):
    """The relay refused the bundle. Never resubmitted unchanged."""

    default_stage = SwapStage.SUBMIT

    def __init__(self, message: str, error: Any = None):
        super().__init__(message, details={"relay_error": error})
        self.error = error


class BundleFailed(SwapError):
    """The relay reported the bundle as failed."""

    default_stage = SwapStage.POLL

    def __init__(self, bundle_id: str, message: Optional[str] = None):
        super().__init__(message or f"Bundle {bundle_id} failed", details={"bundle_id": bundle_id})
        self.bundle_id = bundle_id


class PollingTimeout(SwapError):
    """The bundle did not land before the polling deadline."""

    default_stage = SwapStage.POLL

    def __init__(
        self,
        bundle_id: str,
        timeout_s: float,
        last_status: Optional[str] = None,
    ):
        super().__init__(
            f"Bundle {bundle_id} not confirmed within {timeout_s:g}s (last status: {last_status or 'unknown'})",
            details={"bundle_id": bundle_id, "last_status": last_status},
        )
        self.bundle_id = bundle_id
        self.last_status = last_status


class PollingCancelled(SwapError):
    """Status polling was stopped by an external cancellation signal."""

    default_stage = SwapStage.POLL

    def __init__(self, bundle_id: str):
        super().__init__(f"Polling for bundle {bundle_id} cancelled", details={"bundle_id": bundle_id})
        self.bundle_id = bundle_id


class UpstreamError(SwapError):
    """Transport or HTTP failure talking to an external service."""

    def __init__(
        self,
        message: str,
        stage: Optional[SwapStage] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(
            message,
            stage=stage,
            details={"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        if self.status_code is not None:
            record["upstreamStatus"] = self.status_code
        return record


__all__ = [
    "SwapStage",
    "ConfigurationError",
    "SwapError",
    "NoQuoteAvailable",
    "NoSwapTransaction",
    "InvalidTransaction",
    "SimulationRejected",
    "RelayRejected",
    "BundleFailed",
    "PollingTimeout",
    "PollingCancelled",
    "UpstreamError",
]
