"""
Work-queue of swap requests backed by a JSON array file.

The pool listener appends pending entries; the queue runner executes them one
at a time and rewrites the whole file after every processed entry, so a crash
mid-batch loses at most the outcome of the in-flight request.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import structlog
from pydantic import ValidationError

from ..core.errors import SwapError
from ..core.execution.models import RequestStatus, SwapRequest
from ..core.swap.orchestrator import SwapOrchestrator

logger = logging.getLogger(__name__)
batch_logger = structlog.stdlib.get_logger("sniper.batch")


class WorkQueueError(Exception):
    """The queue file exists but cannot be read as a JSON array."""


class WorkQueue:
    """JSON-array file of swap request records."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.entries: List[Any] = []

    def load(self) -> "WorkQueue":
        if not self.path.exists():
            self.entries = []
            return self

        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            self.entries = []
            return self

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise WorkQueueError(f"{self.path} is not valid JSON: {exc}") from exc

        if not isinstance(data, list):
            raise WorkQueueError(f"{self.path} must contain a JSON array")

        self.entries = data
        for index, entry in enumerate(self.entries):
            if not isinstance(entry, dict):
                logger.warning("Queue entry %d is not an object and will be left untouched: %r", index, entry)
        return self

    def save(self) -> None:
        """Atomically rewrite the whole file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=str(self.path.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self.entries, handle, indent=2)
                handle.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def append(self, request: SwapRequest) -> None:
        """Reload, append one pending entry and save."""
        self.load()
        self.entries.append(request.to_record())
        self.save()
        logger.info("Queued swap %s (%d entries)", request.describe(), len(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def status_of(self, index: int) -> RequestStatus:
        entry = self.entries[index]
        if not isinstance(entry, dict):
            return RequestStatus.FAILED
        return RequestStatus.parse(entry.get("status"))

    def pending(self, include_failed: bool = False) -> Iterator[Tuple[int, Dict[str, Any]]]:
        for index, entry in enumerate(self.entries):
            # Non-object entries cannot carry an outcome and are never processed
            if not isinstance(entry, dict):
                continue
            status = self.status_of(index)
            if status == RequestStatus.PENDING or (include_failed and status == RequestStatus.FAILED):
                yield index, entry

    def mark_completed(self, index: int, outcome: Dict[str, Any]) -> None:
        entry = self.entries[index]
        _clear_outcome(entry)
        entry["status"] = RequestStatus.COMPLETED.value
        entry.update({k: v for k, v in outcome.items() if v is not None})

    def mark_failed(self, index: int, failure: Dict[str, Any]) -> None:
        entry = self.entries[index]
        _clear_outcome(entry)
        entry["status"] = RequestStatus.FAILED.value
        entry.update({k: v for k, v in failure.items() if v is not None})


_OUTCOME_KEYS = ("bundleId", "landedSlot", "error", "errorMessage", "failedStage", "upstreamStatus")


def _clear_outcome(entry: Dict[str, Any]) -> None:
    for key in _OUTCOME_KEYS:
        entry.pop(key, None)


@dataclass
class BatchSummary:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0


class SwapQueueRunner:
    """Processes pending work-queue entries sequentially through the orchestrator."""

    def __init__(
        self,
        queue: WorkQueue,
        orchestrator: SwapOrchestrator,
        retry_failed: bool = False,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.retry_failed = retry_failed

    async def run(self, cancel: Optional[asyncio.Event] = None) -> BatchSummary:
        self.queue.load()
        summary = BatchSummary()
        todo = list(self.queue.pending(include_failed=self.retry_failed))
        summary.skipped = len(self.queue) - len(todo)

        for index, entry in todo:
            if cancel is not None and cancel.is_set():
                summary.skipped += len(todo) - summary.processed
                batch_logger.warning("batch_cancelled", remaining=len(todo) - summary.processed)
                break

            ok = await self._process(index, entry, cancel)
            summary.processed += 1
            if ok:
                summary.completed += 1
            else:
                summary.failed += 1
            self.queue.save()

        batch_logger.info(
            "batch_finished",
            total=len(self.queue),
            processed=summary.processed,
            completed=summary.completed,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary

    async def _process(
        self,
        index: int,
        entry: Dict[str, Any],
        cancel: Optional[asyncio.Event],
    ) -> bool:
        with structlog.contextvars.bound_contextvars(
            request_index=index,
            input_mint=entry.get("inputMint"),
            output_mint=entry.get("outputMint"),
        ):
            try:
                request = SwapRequest.model_validate(entry)
            except ValidationError as exc:
                batch_logger.error("swap_request_invalid", errors=exc.errors(include_url=False))
                self.queue.mark_failed(index, {
                    "error": "InvalidRequest",
                    "errorMessage": _validation_message(exc),
                })
                return False

            try:
                outcome = await self.orchestrator.execute_swap(request, cancel=cancel)
            except SwapError as exc:
                failure = exc.to_record()
                failure["bundleId"] = exc.details.get("bundle_id")
                batch_logger.error(
                    "swap_failed",
                    error=exc.code,
                    stage=exc.stage.value if exc.stage else None,
                    message=exc.message,
                    details=exc.details,
                )
                self.queue.mark_failed(index, failure)
                return False
            except Exception as exc:
                batch_logger.exception("swap_crashed", error=type(exc).__name__)
                self.queue.mark_failed(index, {
                    "error": type(exc).__name__,
                    "errorMessage": str(exc),
                })
                return False

            batch_logger.info(
                "swap_completed",
                bundle_id=outcome.bundle_id,
                slot=outcome.landed_slot,
                explorer=outcome.explorer_url,
            )
            self.queue.mark_completed(index, outcome.to_record())
            return True


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'entry'}: {error['msg']}"
        for error in exc.errors(include_url=False)
    )
