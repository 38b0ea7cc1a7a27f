"""
Client for the Boros (Pendle) funding-rate trading API.

    GET  {base}/yield-units                 -> {"yieldUnits": [...]}
    GET  {base}/funding-rates               -> {"rates": {"BTC": 0.0001, ...}}
    GET  {base}/positions/{account}         -> {"positions": [...]}
    POST {base}/trade                       -> {"tradeId": "..."}
    GET  {base}/historical-rates/{asset}?days=N
                                            -> {"rates": [{"timestamp", "rate"}, ...]}

The endpoint contract is not yet confirmed, so every read degrades to mock
data when the request fails. Results are returned as
:class:`~hype_arb.core.models.FetchResult` so callers can tell a fallback
from a genuine upstream answer.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np
import pandas as pd
from requests.utils import quote

from hype_arb.core.errors import UpstreamError
from hype_arb.core.models import FetchResult, Position, TradeResult, YieldUnit
from hype_arb.exchanges.base import HttpAdapter

DEFAULT_API_URL = "https://api.pendle.finance/core/v1"

FALLBACK_FUNDING_RATES = {
    "BTC": 0.0001,   # 0.01% per period
    "ETH": 0.00005,  # 0.005% per period
}

# Mock historical series: per-asset base plus uniform jitter of +/- half this span.
_MOCK_JITTER_SPAN = 0.00005
_MOCK_MATURITY_DAYS = 30

SIDES = ("LONG", "SHORT")
MARGIN_TYPES = ("CROSS", "ISOLATED")

HISTORICAL_COLUMNS = ["timestamp", "rate"]


# ---------------------------------------------------------------------------
# Mock data
# ---------------------------------------------------------------------------

def mock_yield_units(now: Optional[datetime] = None) -> list[YieldUnit]:
    now = now or datetime.now(timezone.utc)
    maturity = now + timedelta(days=_MOCK_MATURITY_DAYS)
    return [
        YieldUnit(
            id="yu-btc-001",
            underlying_asset="BTC",
            maturity_date=maturity,
            current_rate=0.0001,
            implied_rate=0.00012,
            price=0.98,
            volume=1_500_000,
        ),
        YieldUnit(
            id="yu-eth-001",
            underlying_asset="ETH",
            maturity_date=maturity,
            current_rate=0.00005,
            implied_rate=0.00008,
            price=0.99,
            volume=2_500_000,
        ),
    ]


def mock_historical_rates(
    asset: str,
    days: int,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
) -> pd.DataFrame:
    """Synthesize ``days + 1`` daily points ending at ``now``."""
    rng = rng or np.random.default_rng()
    now = now or datetime.now(timezone.utc)
    base = FALLBACK_FUNDING_RATES["BTC"] if asset == "BTC" else FALLBACK_FUNDING_RATES["ETH"]

    timestamps = [now - timedelta(days=i) for i in range(days, -1, -1)]
    half = _MOCK_JITTER_SPAN / 2
    rates = base + rng.uniform(-half, half, size=len(timestamps))

    return pd.DataFrame({
        "timestamp": pd.to_datetime(timestamps, utc=True),
        "rate": rates.astype(float),
    })


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> datetime:
    # Epoch milliseconds or ISO-8601 strings both occur in the wild.
    if value is None:
        raise ValueError("missing datetime")
    if isinstance(value, (int, float)):
        parsed = pd.to_datetime(value, unit="ms", utc=True)
    else:
        parsed = pd.to_datetime(value, utc=True)
    if parsed is pd.NaT:
        raise ValueError(f"unparsable datetime: {value!r}")
    return parsed.to_pydatetime()


def _yield_unit(raw: dict) -> YieldUnit:
    return YieldUnit(
        id=str(raw["id"]),
        underlying_asset=raw.get("asset") or raw.get("underlyingAsset", ""),
        maturity_date=_parse_datetime(raw.get("maturity", raw.get("maturityDate"))),
        current_rate=float(raw.get("currentRate", 0.0)),
        implied_rate=float(raw.get("impliedRate", 0.0)),
        price=float(raw.get("price", 0.0)),
        volume=float(raw.get("volume", 0.0)),
    )


def _position(raw: dict) -> Position:
    return Position(
        id=str(raw["id"]),
        asset=raw["asset"],
        side=raw["side"],
        size=float(raw.get("size", 0.0)),
        entry_rate=float(raw.get("entryRate", 0.0)),
        current_pnl=float(raw.get("currentPnL", 0.0)),
        margin=float(raw.get("margin", 0.0)),
        margin_type=raw.get("marginType", "CROSS"),
    )


def _historical_frame(rows: list) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame({
            "timestamp": pd.to_datetime([], utc=True),
            "rate": pd.Series([], dtype=float),
        })
    df = pd.DataFrame(rows)[HISTORICAL_COLUMNS]
    if pd.api.types.is_numeric_dtype(df["timestamp"]):
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    else:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["rate"] = df["rate"].astype(float)
    return df.sort_values("timestamp").reset_index(drop=True)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class BorosAdapter(HttpAdapter):
    """
    Funding-rate reference data that never fails the caller.

    Parameters
    ----------
    base_url : str
        API root; defaults to the Pendle core v1 endpoint.
    rng : numpy.random.Generator, optional
        Source of jitter for mock historical rates.
    timeout, session, logger
        See :class:`hype_arb.exchanges.base.HttpAdapter`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        rng: Optional[np.random.Generator] = None,
        **kwargs,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self._rng = rng or np.random.default_rng()

    def _get(self, path: str, params: Optional[dict] = None):
        data = self._request("GET", path, params=params)
        if not isinstance(data, dict):
            raise UpstreamError(f"Malformed response from {path}: expected an object")
        return data

    def get_yield_units(self) -> FetchResult[list[YieldUnit]]:
        try:
            data = self._get("/yield-units")
            units = [_yield_unit(raw) for raw in data.get("yieldUnits") or []]
        except (UpstreamError, KeyError, TypeError, ValueError) as exc:
            self.logger.error(f"Error fetching yield units: {exc}")
            return FetchResult.fallback(mock_yield_units(), exc)
        return FetchResult.real(units)

    def get_funding_rates(self) -> FetchResult[dict[str, float]]:
        try:
            data = self._get("/funding-rates")
            rates = {asset: float(rate) for asset, rate in (data.get("rates") or {}).items()}
        except (UpstreamError, AttributeError, TypeError, ValueError) as exc:
            self.logger.error(f"Error fetching funding rates: {exc}")
            return FetchResult.fallback(dict(FALLBACK_FUNDING_RATES), exc)
        return FetchResult.real(rates)

    def get_positions(self, account: str) -> FetchResult[list[Position]]:
        try:
            data = self._get(f"/positions/{quote(account, safe='')}")
            positions = [_position(raw) for raw in data.get("positions") or []]
        except (UpstreamError, KeyError, TypeError, ValueError) as exc:
            self.logger.error(f"Error fetching positions for {account}: {exc}")
            return FetchResult.fallback([], exc)
        return FetchResult.real(positions)

    def place_trade(
        self,
        asset: str,
        side: str,
        size: float,
        margin_type: str,
        margin: Optional[float] = None,
    ) -> TradeResult:
        """Submit a funding-rate trade. Failures come back as ``success=False``."""
        if side not in SIDES:
            return TradeResult(success=False, error=f"side must be one of {SIDES}, got {side!r}")
        if margin_type not in MARGIN_TYPES:
            return TradeResult(
                success=False,
                error=f"margin_type must be one of {MARGIN_TYPES}, got {margin_type!r}",
            )

        body = {"asset": asset, "side": side, "size": size, "marginType": margin_type}
        if margin is not None:
            body["margin"] = margin

        try:
            data = self._request("POST", "/trade", json_body=body)
            if not isinstance(data, dict):
                raise UpstreamError("Malformed trade response: expected an object")
        except UpstreamError as exc:
            self.logger.error(f"Error placing trade: {exc}")
            return TradeResult(success=False, error=str(exc))

        trade_id = data.get("tradeId")
        self.logger.info(f"Trade placed: {side} {size} {asset} ({margin_type}) -> {trade_id}")
        return TradeResult(success=True, trade_id=trade_id)

    def get_historical_rates(self, asset: str, days: int = 30) -> FetchResult[pd.DataFrame]:
        """Daily funding-rate history as a DataFrame with ``timestamp`` and ``rate``."""
        try:
            data = self._get(f"/historical-rates/{quote(asset, safe='')}", params={"days": days})
            df = _historical_frame(data.get("rates") or [])
        except (UpstreamError, KeyError, TypeError, ValueError) as exc:
            self.logger.error(f"Error fetching historical rates for {asset}: {exc}")
            return FetchResult.fallback(mock_historical_rates(asset, days, rng=self._rng), exc)
        return FetchResult.real(df)
