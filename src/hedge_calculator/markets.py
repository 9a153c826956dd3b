"""Quote resolution for Kalshi and Polymarket market URLs.

This is the only module that talks to the network. It turns a market URL
(plus an optional team name) into the held market's quote, the complementary
market's quote when one exists, a fee schedule and display metadata.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from hedge_calculator.config import Settings, default_fee_schedule
from hedge_calculator.errors import MarketDataError
from hedge_calculator.models import FeeSchedule, Quote, Side

log = logging.getLogger(__name__)

KALSHI = "kalshi"
POLYMARKET = "polymarket"

_ZERO = Decimal("0")
_CENTS = Decimal("100")

_transient = retry_if_exception_type((requests.ConnectionError, requests.Timeout))


@dataclass(frozen=True)
class MarketRef:
    platform: str
    identifier: str
    kind: str  # "event_ticker", "slug" or "id"


@dataclass(frozen=True)
class MarketMetadata:
    platform: str
    title: str
    subtitle: str = ""
    yes_label: str = "YES"
    no_label: str = "NO"
    opposite_yes_label: str = ""
    status: str = "unknown"
    close_time: str | None = None
    volume: Decimal = _ZERO
    teams: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedMarket:
    quote: Quote
    opposite_quote: Quote | None
    fees: FeeSchedule
    metadata: MarketMetadata


def parse_market_url(url: str) -> MarketRef:
    """Work out which platform and market a URL points at.

    Kalshi:     https://kalshi.com/markets/SERIES/EVENT/TICKER
    Polymarket: https://polymarket.com/event/SLUG or .../markets?id=ID
    """
    if not url or not isinstance(url, str):
        raise MarketDataError("Please provide a valid market URL")
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    if not parsed.scheme or not host:
        raise MarketDataError(f"Failed to parse URL: {url!r}")

    if "kalshi.com" in host:
        parts = [part for part in parsed.path.split("/") if part]
        ticker = parts[-1] if parts else ""
        if not ticker or ticker == "markets":
            raise MarketDataError("Invalid Kalshi URL format")
        return MarketRef(platform=KALSHI, identifier=ticker.upper(), kind="event_ticker")

    if "polymarket.com" in host:
        if "/event/" in parsed.path:
            slug = parsed.path.split("/event/", 1)[1].strip("/").split("/")[0]
            if slug:
                return MarketRef(platform=POLYMARKET, identifier=slug, kind="slug")
        ids = parse_qs(parsed.query).get("id")
        if ids and ids[0]:
            return MarketRef(platform=POLYMARKET, identifier=ids[0], kind="id")
        raise MarketDataError("Invalid Polymarket URL format")

    raise MarketDataError("Unsupported platform. Please use Kalshi or Polymarket URLs.")


def _to_decimal(value: object) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def _kalshi_price(market: dict[str, Any], field: str, *fallbacks: str) -> Decimal:
    """Price in dollars, preferring ``*_dollars`` fields over cent fields."""
    for name in (field, *fallbacks):
        dollars = _to_decimal(market.get(f"{name}_dollars"))
        if dollars is not None and dollars > 0:
            return dollars
        cents = _to_decimal(market.get(name))
        if cents is not None and cents > 0:
            return cents / _CENTS
    return _ZERO


def _has_realistic_pricing(market: dict[str, Any]) -> bool:
    yes_ask = _kalshi_price(market, "yes_ask")
    no_ask = _kalshi_price(market, "no_ask")
    return (_ZERO < yes_ask < 1) or (_ZERO < no_ask < 1)


def _kalshi_quote(market: dict[str, Any]) -> Quote:
    return Quote(
        yes_ask=_kalshi_price(market, "yes_ask", "yes_price"),
        yes_bid=_kalshi_price(market, "yes_bid"),
        no_ask=_kalshi_price(market, "no_ask", "no_price"),
        no_bid=_kalshi_price(market, "no_bid"),
    )


def available_teams(markets: list[dict[str, Any]]) -> list[str]:
    """Distinct outcome labels across an event's markets, in listing order."""
    teams: list[str] = []
    for market in markets:
        for key in ("yes_sub_title", "no_sub_title"):
            label = market.get(key)
            if label and label not in teams:
                teams.append(str(label))
    return teams


def select_target_market(markets: list[dict[str, Any]], team: str | None = None) -> dict[str, Any]:
    if not markets:
        raise MarketDataError("No markets found for this event")
    if team:
        for market in markets:
            if team in (market.get("yes_sub_title"), market.get("no_sub_title")):
                return market
        log.info("No market matches team %r; falling back to first priced market", team)
    for market in markets:
        if _has_realistic_pricing(market):
            return market
    log.warning("No market with realistic pricing, using first available market")
    return markets[0]


def select_opposite_market(
    markets: list[dict[str, Any]], target: dict[str, Any]
) -> dict[str, Any] | None:
    for market in markets:
        if market.get("ticker") != target.get("ticker"):
            return market
    return None


class _JsonApiClient:
    """GET-only JSON client with retries on connection errors and timeouts."""

    platform = ""

    def __init__(self, api_base: str, timeout: float = 10.0, max_attempts: int = 3):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=_transient,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    def _get_once(self, endpoint: str, params: dict[str, Any] | None) -> Any:
        url = f"{self.api_base}{endpoint}"
        response = requests.get(url, params=params, timeout=self.timeout)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise MarketDataError(
                f"{self.platform} API error: {response.status_code} for {endpoint}"
            ) from e
        return response.json()

    def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        return self._retrying()(self._get_once, endpoint, params)


class KalshiClient(_JsonApiClient):
    """Read-only client for Kalshi's public trade API."""

    platform = "Kalshi"

    def fetch_event(self, event_ticker: str) -> dict[str, Any]:
        payload = self._get(f"/events/{event_ticker}")
        event = payload.get("event")
        if not isinstance(event, dict):
            raise MarketDataError(f"Kalshi event {event_ticker} not found")
        return event

    def fetch_event_markets(self, event_ticker: str) -> list[dict[str, Any]]:
        payload = self._get("/markets", params={"event_ticker": event_ticker})
        markets = payload.get("markets") or []
        return [market for market in markets if isinstance(market, dict)]

    def resolve(self, event_ticker: str, team: str | None, fees: FeeSchedule) -> ResolvedMarket:
        event = self.fetch_event(event_ticker)
        markets = self.fetch_event_markets(event_ticker)
        target = select_target_market(markets, team)
        opposite = select_opposite_market(markets, target)
        log.info(
            "Kalshi event=%s market=%s opposite=%s",
            event_ticker, target.get("ticker"), opposite.get("ticker") if opposite else None,
        )

        quote = _kalshi_quote(target)
        if not _has_realistic_pricing(target):
            log.warning("Market %s has unrealistic pricing; it may be resolved", target.get("ticker"))

        metadata = MarketMetadata(
            platform="Kalshi",
            title=str(target.get("title") or event.get("title") or ""),
            subtitle=str(target.get("subtitle") or event.get("sub_title") or ""),
            yes_label=str(target.get("yes_sub_title") or "YES"),
            no_label=str(target.get("no_sub_title") or "NO"),
            opposite_yes_label=str(opposite.get("yes_sub_title") or "YES") if opposite else "",
            status=str(target.get("status") or "unknown"),
            close_time=target.get("close_time") or event.get("close_time"),
            volume=_to_decimal(target.get("volume")) or _ZERO,
            teams=tuple(available_teams(markets)),
        )
        return ResolvedMarket(
            quote=quote,
            opposite_quote=_kalshi_quote(opposite) if opposite else None,
            fees=fees,
            metadata=metadata,
        )


def _parse_json_array(value: object) -> list[object]:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        if isinstance(parsed, list):
            return parsed
    return []


class PolymarketClient(_JsonApiClient):
    """Read-only client for Polymarket's Gamma API."""

    platform = "Polymarket"

    def fetch_market(self, identifier: str, kind: str = "slug") -> dict[str, Any]:
        key = "slug" if kind == "slug" else "id"
        payload = self._get("/markets", params={key: identifier})
        if isinstance(payload, dict) and isinstance(payload.get("markets"), list):
            payload = payload["markets"]
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], dict):
            raise MarketDataError("Market not found")
        return payload[0]

    @staticmethod
    def to_quote(market: dict[str, Any]) -> Quote:
        prices = [_to_decimal(item) for item in _parse_json_array(market.get("outcomePrices"))]
        if len(prices) < 2 or prices[0] is None or prices[1] is None:
            raise MarketDataError("Polymarket market does not include outcome prices")
        yes_price, no_price = prices[0], prices[1]
        # Gamma only publishes one price per outcome.
        return Quote(yes_ask=yes_price, yes_bid=yes_price, no_ask=no_price, no_bid=no_price)

    def resolve(self, identifier: str, kind: str, fees: FeeSchedule) -> ResolvedMarket:
        market = self.fetch_market(identifier, kind)
        outcomes = [str(item) for item in _parse_json_array(market.get("outcomes"))]
        metadata = MarketMetadata(
            platform="Polymarket",
            title=str(market.get("question") or ""),
            subtitle=str(market.get("description") or ""),
            yes_label=outcomes[0] if outcomes else "YES",
            no_label=outcomes[1] if len(outcomes) > 1 else "NO",
            status="open" if market.get("active") else "closed",
            close_time=market.get("endDate"),
            volume=_to_decimal(market.get("volume")) or _ZERO,
            teams=tuple(outcomes),
        )
        return ResolvedMarket(
            quote=self.to_quote(market),
            opposite_quote=None,
            fees=fees,
            metadata=metadata,
        )


def resolve_quotes(url: str, team: str | None = None, *, settings: Settings) -> ResolvedMarket:
    """Fetch and normalize quotes for the market behind ``url``."""
    ref = parse_market_url(url)
    fees = default_fee_schedule(settings)
    try:
        if ref.platform == KALSHI:
            client = KalshiClient(
                settings.kalshi_api_base, settings.http_timeout_seconds, settings.http_max_attempts
            )
            return client.resolve(ref.identifier, team, fees)
        client = PolymarketClient(
            settings.polymarket_api_base, settings.http_timeout_seconds, settings.http_max_attempts
        )
        return client.resolve(ref.identifier, ref.kind, fees)
    except requests.exceptions.RequestException as e:
        raise MarketDataError(f"Failed to fetch {ref.platform} market: {e}") from e


def hedge_instrument_quote(side: Side, quote: Quote, opposite_quote: Quote | None) -> Quote | None:
    """Quote whose YES pays out exactly when ``side`` loses.

    A YES holder hedges with YES in the opposite market. A NO holder's
    inverse is YES in the held market itself.
    """
    if side == Side.NO:
        return quote
    return opposite_quote


def implied_probabilities(quote: Quote) -> tuple[int, int]:
    """YES/NO asks normalized to whole percentages summing to 100."""
    total = quote.yes_ask + quote.no_ask
    if total <= 0:
        return 50, 50
    first = int((quote.yes_ask / total * _CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return first, 100 - first
