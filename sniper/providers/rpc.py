"""
Minimal JSON-RPC 2.0 transport shared by the Solana and Jito clients.

Calls are single-shot: transport failures surface as UpstreamError and the
caller decides whether to retry.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..core.errors import SwapStage, UpstreamError
from .base import Provider

logger = logging.getLogger(__name__)

_BODY_PREVIEW = 2000


class JsonRpcProvider(Provider):
    """Base class for providers that talk JSON-RPC over HTTP."""

    def __init__(
        self,
        endpoint: str,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def ready(self) -> bool:
        return bool(self.endpoint)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "endpoint not configured"}
        return {"status": "configured", "endpoint": self.endpoint}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _rpc_call(
        self,
        method: str,
        params: List[Any],
        stage: Optional[SwapStage] = None,
    ) -> Tuple[Dict[str, Any], int]:
        """POST a JSON-RPC request and return the decoded envelope with the HTTP status.

        The envelope may carry an ``error`` member; interpreting it is up to
        the caller. Server errors (5xx) always raise UpstreamError.
        """
        client = await self._get_client()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            response = await client.post(
                self.endpoint,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"{self.name} {method} transport error: {exc.__class__.__name__}: {exc}",
                stage=stage,
            ) from exc

        body = response.text
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            # Relays report rejected bundles as HTTP 4xx with a JSON-RPC error body
            if response.status_code < 500 and isinstance(data, dict) and "error" in data:
                return data, response.status_code
            raise UpstreamError(
                f"{self.name} {method} HTTP error: {response.status_code}",
                stage=stage,
                status_code=response.status_code,
                body=body[:_BODY_PREVIEW],
            )

        if not isinstance(data, dict):
            raise UpstreamError(
                f"{self.name} {method} returned a non JSON-RPC response",
                stage=stage,
                status_code=response.status_code,
                body=body[:_BODY_PREVIEW],
            )

        return data, response.status_code

    async def _rpc_result(
        self,
        method: str,
        params: List[Any],
        stage: Optional[SwapStage] = None,
    ) -> Any:
        """Like _rpc_call but unwraps ``result`` and treats ``error`` as upstream failure."""
        data, status_code = await self._rpc_call(method, params, stage=stage)
        if data.get("error") is not None:
            raise UpstreamError(
                f"{self.name} {method} RPC error: {rpc_error_message(data['error'])}",
                stage=stage,
                status_code=status_code if status_code >= 400 else None,
                body=json.dumps(data["error"])[:_BODY_PREVIEW],
            )
        return data.get("result")


def rpc_error_message(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message") or str(error)
        code = error.get("code")
        return f"{message} (code {code})" if code is not None else message
    return str(error)
