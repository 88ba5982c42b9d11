"""
Jupiter quote and swap-transaction provider for Solana.

Jupiter (or a Metis-hosted mirror of its API) prices a route for a token pair
and returns a ready-to-sign v0 transaction for that route.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import NoQuoteAvailable, NoSwapTransaction, SwapStage, UpstreamError
from .base import Provider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://public.jupiterapi.com"

# Well-known token mints
NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

# errorCode values Jupiter uses when it simply has no route
NO_ROUTE_ERROR_CODES = frozenset({
    "COULD_NOT_FIND_ANY_ROUTE",
    "NO_ROUTES_FOUND",
    "TOKEN_NOT_TRADABLE",
    "ROUTE_PLAN_DOES_NOT_CONSUME_ALL_THE_AMOUNT",
})

_BODY_PREVIEW = 2000


@dataclass
class RoutePlanStep:
    """A single step in the swap route."""
    swap_info: Dict[str, Any]
    percent: int  # Percentage of input going through this route


@dataclass
class JupiterQuote:
    """Quote response from Jupiter."""
    input_mint: str
    output_mint: str
    in_amount: int                              # In smallest units (lamports)
    out_amount: int                             # In smallest units
    other_amount_threshold: int                 # Minimum output (with slippage)
    swap_mode: str                              # "ExactIn" or "ExactOut"
    slippage_bps: int
    price_impact_pct: float
    route_plan: List[RoutePlanStep] = field(default_factory=list)

    # Raw response, echoed back verbatim when building the swap transaction
    quote_response: Dict[str, Any] = field(default_factory=dict)

    @property
    def hops(self) -> int:
        return len(self.route_plan)


@dataclass
class JupiterSwapResult:
    """Result of building a swap transaction."""
    swap_transaction: str                       # Base64 encoded transaction
    last_valid_block_height: int
    priority_fee_lamports: int
    compute_unit_limit: Optional[int]


class JupiterSwapProvider(Provider):
    """
    Jupiter swap provider for Solana token swaps.

    Usage:
        provider = JupiterSwapProvider(base_url=settings.jupiter_base_url)

        quote = await provider.get_swap_quote(
            input_mint=NATIVE_SOL_MINT,
            output_mint=USDC_MINT,
            amount=1_000_000,
        )
        swap = await provider.build_swap_transaction(quote, user_public_key="...")
    """

    name = "jupiter"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    async def ready(self) -> bool:
        """Jupiter API requires no authentication."""
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "configured", "base_url": self.base_url}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_swap_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
        swap_mode: str = "ExactIn",
    ) -> JupiterQuote:
        """
        Get a swap quote from Jupiter.

        Routes are always restricted to highly liquid intermediate tokens;
        routing through thin intermediate markets fails far more often.

        Args:
            input_mint: Input token mint address
            output_mint: Output token mint address
            amount: Amount in smallest units (lamports for SOL)
            slippage_bps: Slippage tolerance in basis points (50 = 0.5%)
            swap_mode: "ExactIn" or "ExactOut"

        Returns:
            JupiterQuote with route and amounts
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": slippage_bps,
            "swapMode": swap_mode,
            "restrictIntermediateTokens": "true",
        }

        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}/quote", params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Jupiter quote transport error: {e.__class__.__name__}: {e}",
                stage=SwapStage.QUOTE,
            ) from e

        data = _json_or_none(response)

        if _is_no_route(data):
            raise NoQuoteAvailable(
                f"No route for {input_mint} -> {output_mint}: {data.get('error')}",
                details={"error_code": data.get("errorCode")},
            )

        if response.is_error:
            raise UpstreamError(
                f"Jupiter quote HTTP error: {response.status_code}",
                stage=SwapStage.QUOTE,
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            )

        if not isinstance(data, dict):
            raise UpstreamError(
                "Jupiter quote returned a non-JSON body",
                stage=SwapStage.QUOTE,
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            )

        if "error" in data or not data.get("outAmount") or not data.get("routePlan"):
            raise NoQuoteAvailable(
                f"No route for {input_mint} -> {output_mint}: {data.get('error', 'empty quote')}"
            )

        route_plan = [
            RoutePlanStep(
                swap_info=step.get("swapInfo", {}),
                percent=step.get("percent", 100),
            )
            for step in data.get("routePlan", [])
        ]

        try:
            return JupiterQuote(
                input_mint=data.get("inputMint", input_mint),
                output_mint=data.get("outputMint", output_mint),
                in_amount=int(data.get("inAmount", amount)),
                out_amount=int(data["outAmount"]),
                other_amount_threshold=int(data.get("otherAmountThreshold", data["outAmount"])),
                swap_mode=data.get("swapMode", swap_mode),
                slippage_bps=int(data.get("slippageBps", slippage_bps)),
                price_impact_pct=float(data.get("priceImpactPct") or 0),
                route_plan=route_plan,
                quote_response=data,
            )
        except (TypeError, ValueError) as e:
            raise UpstreamError(
                f"Jupiter quote payload malformed: {e}",
                stage=SwapStage.QUOTE,
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            ) from e

    async def build_swap_transaction(
        self,
        quote: JupiterQuote,
        user_public_key: str,
        priority_fee_lamports: Optional[int] = None,
        wrap_and_unwrap_sol: bool = True,
        dynamic_compute_unit_limit: bool = True,
    ) -> JupiterSwapResult:
        """
        Build a swap transaction from a quote.

        Args:
            quote: The quote to build a transaction for
            user_public_key: Fee payer and signer of the swap
            priority_fee_lamports: Fixed priority fee; Jupiter's default when omitted
            wrap_and_unwrap_sol: Automatically wrap/unwrap SOL
            dynamic_compute_unit_limit: Let Jupiter size the compute unit limit from simulation

        Returns:
            JupiterSwapResult with base64 encoded transaction
        """
        if not quote.quote_response:
            raise NoSwapTransaction("Quote response required for swap transaction")

        payload: Dict[str, Any] = {
            "quoteResponse": quote.quote_response,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": dynamic_compute_unit_limit,
        }
        if priority_fee_lamports:
            payload["prioritizationFeeLamports"] = priority_fee_lamports

        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}/swap", json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Jupiter swap transport error: {e.__class__.__name__}: {e}",
                stage=SwapStage.BUILD_SWAP,
            ) from e

        if response.is_error:
            raise UpstreamError(
                f"Jupiter swap HTTP error: {response.status_code}",
                stage=SwapStage.BUILD_SWAP,
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            )

        data = _json_or_none(response)
        if not isinstance(data, dict) or not data.get("swapTransaction"):
            error = data.get("error") if isinstance(data, dict) else None
            raise NoSwapTransaction(f"Jupiter returned no swap transaction: {error or 'empty response'}")

        logger.debug(
            "Swap transaction built; lastValidBlockHeight=%s priorityFee=%s",
            data.get("lastValidBlockHeight"),
            data.get("prioritizationFeeLamports"),
        )

        return JupiterSwapResult(
            swap_transaction=data["swapTransaction"],
            last_valid_block_height=int(data.get("lastValidBlockHeight") or 0),
            priority_fee_lamports=int(data.get("prioritizationFeeLamports") or 0),
            compute_unit_limit=data.get("computeUnitLimit"),
        )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _is_no_route(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    code = str(data.get("errorCode") or "").upper()
    if code in NO_ROUTE_ERROR_CODES:
        return True
    message = str(data.get("error") or "").lower()
    return "could not find any route" in message or "no routes found" in message


__all__ = [
    "JupiterSwapProvider",
    "JupiterQuote",
    "JupiterSwapResult",
    "RoutePlanStep",
    "NATIVE_SOL_MINT",
    "USDC_MINT",
]
