from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import os

from dotenv import load_dotenv

from hedge_calculator.models import FeeSchedule


@dataclass(frozen=True)
class Settings:
    # Runtime
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # Market data
    kalshi_api_base: str = "https://api.elections.kalshi.com/trade-api/v2"
    polymarket_api_base: str = "https://gamma-api.polymarket.com"
    http_timeout_seconds: float = 10.0
    http_max_attempts: int = 3

    # Fee modeling (Kalshi does not publish these per market; estimates)
    maker_fee_rate: Decimal = Decimal("0.02")
    taker_fee_rate: Decimal = Decimal("0.05")
    transaction_fee_rate: Decimal = Decimal("0.01")

    # Strategy set
    partial_hedge_percents: tuple[Decimal, ...] = (Decimal("80"), Decimal("50"), Decimal("25"))
    expensive_hedge_threshold: Decimal = Decimal("1.05")  # held side ask + hedge ask
    profit_tolerance: Decimal = Decimal("0.01")  # one cent


def _parse_percents(raw: str) -> tuple[Decimal, ...]:
    percents = tuple(Decimal(part.strip()) for part in raw.split(",") if part.strip())
    for pct in percents:
        if pct < 0 or pct > 100:
            raise ValueError(f"PARTIAL_HEDGE_PERCENTS entries must be within 0-100, got {pct}")
    return percents


def _parse_attempts(raw: str) -> int:
    attempts = int(raw.strip())
    if attempts < 1:
        raise ValueError(f"HTTP_MAX_ATTEMPTS must be at least 1, got {attempts}")
    return attempts


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from .env and environment variables."""

    if env_file:
        load_dotenv(env_file, override=True)
    else:
        load_dotenv()

    def parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes"}

    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        log_to_file=parse_bool(os.getenv("LOG_TO_FILE"), True),
        log_dir=os.getenv("LOG_DIR", "logs").strip() or "logs",

        kalshi_api_base=os.getenv(
            "KALSHI_API_BASE", "https://api.elections.kalshi.com/trade-api/v2"
        ).strip(),
        polymarket_api_base=os.getenv("POLYMARKET_API_BASE", "https://gamma-api.polymarket.com").strip(),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10.0")),
        http_max_attempts=_parse_attempts(os.getenv("HTTP_MAX_ATTEMPTS", "3")),

        maker_fee_rate=Decimal(os.getenv("MAKER_FEE_RATE", "0.02")),
        taker_fee_rate=Decimal(os.getenv("TAKER_FEE_RATE", "0.05")),
        transaction_fee_rate=Decimal(os.getenv("TRANSACTION_FEE_RATE", "0.01")),

        partial_hedge_percents=_parse_percents(os.getenv("PARTIAL_HEDGE_PERCENTS", "80,50,25")),
        expensive_hedge_threshold=Decimal(os.getenv("EXPENSIVE_HEDGE_THRESHOLD", "1.05")),
        profit_tolerance=Decimal(os.getenv("PROFIT_TOLERANCE", "0.01")),
    )


def default_fee_schedule(settings: Settings) -> FeeSchedule:
    return FeeSchedule(
        maker_fee=settings.maker_fee_rate,
        taker_fee=settings.taker_fee_rate,
        transaction_fee=settings.transaction_fee_rate,
        source="estimated",
    )
