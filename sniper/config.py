import json
from pathlib import Path
from typing import Any, List

import base58
from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.errors import ConfigurationError


BASE_DIR = Path(__file__).resolve().parents[1]

# Raydium liquidity pool v4 program
RAYDIUM_AMM_V4_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # Endpoints
    jupiter_base_url: str = Field(
        default="https://public.jupiterapi.com",
        description="Jupiter (Metis) quote and swap API base URL",
        validation_alias=AliasChoices("jupiter_base_url", "metis_endpoint"),
    )
    jito_endpoint: str = Field(
        default="",
        description="Jito block engine JSON-RPC URL (bundles)",
        validation_alias=AliasChoices("jito_endpoint"),
    )
    rpc_endpoint: str = Field(
        default="",
        description="Standard Solana JSON-RPC URL used for blockhashes and simulation",
        validation_alias=AliasChoices("rpc_endpoint", "jito_endpointalternative", "http_url"),
    )
    ws_endpoint: str = Field(
        default="",
        description="Solana WebSocket URL used by the pool listener",
        validation_alias=AliasChoices("ws_endpoint", "wss_url"),
    )
    request_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    commitment: str = Field(default="confirmed", description="Commitment for RPC reads")

    # Credentials
    wallet_secret: str = Field(
        default="",
        description="Signing key as a JSON byte array or a base58 string",
        repr=False,
    )

    # Bundle policy
    jito_tip_lamports: int = Field(
        default=500_000,
        ge=0,
        description="Tip used when a request does not carry its own jitoTip",
    )
    poll_warmup_seconds: float = Field(default=5.0, ge=0, description="Delay before the first status query")
    poll_interval_seconds: float = Field(default=3.0, gt=0, description="Delay between status queries")
    poll_timeout_seconds: float = Field(default=30.0, gt=0, description="Total status polling budget")

    # Work queue
    queue_path: Path = Field(default=Path("output.json"), description="Work-queue JSON file")
    retry_failed: bool = Field(
        default=False,
        description="Re-attempt entries already marked failed (operator opt-in)",
    )

    # Pool listener
    raydium_program_id: str = Field(
        default=RAYDIUM_AMM_V4_PROGRAM_ID,
        validation_alias=AliasChoices("raydium_program_id", "raydium_public_key"),
    )
    pool_instruction: str = Field(default="initialize2", description="Log marker of a new pool")
    default_amount: int = Field(default=1_000_000_000, gt=0)
    default_slippage_bps: int = Field(default=50, ge=0)
    default_priority_fee: int = Field(default=1000, ge=0)
    default_compute_units: int = Field(default=400_000, ge=0)
    default_jito_tip: int = Field(default=100_000, ge=0)

    @property
    def has_wallet_secret(self) -> bool:
        return bool(self.wallet_secret.strip())

    def wallet_secret_bytes(self) -> bytes:
        """Decode the configured signing key into raw keypair bytes."""
        raw = self.wallet_secret.strip()
        if not raw:
            raise ConfigurationError("WALLET_SECRET is not set", missing=["WALLET_SECRET"])

        if raw.startswith("["):
            try:
                values: List[Any] = json.loads(raw)
                return bytes(int(v) for v in values)
            except (ValueError, TypeError) as exc:
                raise ConfigurationError("WALLET_SECRET is not a valid byte array") from exc

        # Comma separated list without brackets
        if "," in raw:
            try:
                return bytes(int(v) for v in raw.split(","))
            except ValueError as exc:
                raise ConfigurationError("WALLET_SECRET is not a valid byte list") from exc

        try:
            return base58.b58decode(raw)
        except ValueError as exc:
            raise ConfigurationError("WALLET_SECRET is not valid base58") from exc

    def require_swap_credentials(self) -> None:
        """Fail fast when the swap pipeline cannot run."""
        missing = []
        if not self.has_wallet_secret:
            missing.append("WALLET_SECRET")
        if not self.jito_endpoint:
            missing.append("JITO_ENDPOINT")
        if not self.rpc_endpoint:
            missing.append("RPC_ENDPOINT")
        if not self.jupiter_base_url:
            missing.append("JUPITER_BASE_URL")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )
        if self.poll_timeout_seconds < self.poll_warmup_seconds:
            raise ConfigurationError("POLL_TIMEOUT_SECONDS must not be shorter than POLL_WARMUP_SECONDS")

    def require_listener_endpoints(self) -> None:
        missing = []
        if not self.ws_endpoint:
            missing.append("WS_ENDPOINT")
        if not self.rpc_endpoint:
            missing.append("RPC_ENDPOINT")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )


def load_settings(**overrides: Any) -> Settings:
    """Build the process-wide settings once at startup."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
