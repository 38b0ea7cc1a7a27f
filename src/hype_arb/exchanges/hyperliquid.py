"""
Thin client for the Hyperliquid ``/info`` REST endpoint.

    POST https://api.hyperliquid.xyz/info
        {"type": "allMids"}            -> {"BTC": "97000.5", "HYPE": "21.3", ...}
        {"type": "l2Book", "coin": c}  -> {"levels": [...]}
        {"type": "meta"}               -> {"universe": [...]}

Errors are logged and re-raised; callers decide on any fallback.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from hype_arb.core.errors import NotFoundError, UpstreamError
from hype_arb.core.models import MarketMeta, OrderBookSnapshot
from hype_arb.exchanges.base import HttpAdapter

DEFAULT_API_URL = "https://api.hyperliquid.xyz/info"
PRIMARY_SYMBOL = "HYPE"

Level = tuple[float, float]


def parse_mids(data: Any) -> dict[str, float]:
    """Parse every string-valued field of an ``allMids`` payload as a price.

    Non-string fields are skipped. A string that is not a number raises
    ``ValueError``.
    """
    if not isinstance(data, dict):
        raise ValueError(f"allMids payload must be an object, got {type(data).__name__}")
    return {
        symbol: float(price)
        for symbol, price in data.items()
        if isinstance(price, str)
    }


def split_levels(levels: Any) -> tuple[list[Level], list[Level]]:
    """Separate raw book levels into ``(bids, asks)``.

    Two shapes are accepted:

    * a flat list of ``{"px", "sz"}`` levels where the sign of ``sz`` encodes
      the side: positive sizes are bids, negative sizes are asks (flipped
      positive); zero sizes are dropped;
    * the ``[[bid levels], [ask levels]]`` pair the live API returns, where
      sizes are already positive.
    """
    if not levels:
        return [], []

    if (
        len(levels) == 2
        and all(isinstance(side, list) for side in levels)
    ):
        bid_side, ask_side = levels
        bids = [(float(lv["px"]), float(lv["sz"])) for lv in bid_side]
        asks = [(float(lv["px"]), float(lv["sz"])) for lv in ask_side]
        return [b for b in bids if b[1] > 0], [a for a in asks if a[1] > 0]

    parsed = [(float(lv["px"]), float(lv["sz"])) for lv in levels]
    bids = [(px, sz) for px, sz in parsed if sz > 0]
    asks = [(px, abs(sz)) for px, sz in parsed if sz < 0]
    return bids, asks


class HyperliquidAdapter(HttpAdapter):
    """
    REST snapshots from the Hyperliquid info endpoint.

    Parameters
    ----------
    base_url : str
        Info endpoint URL; defaults to mainnet.
    timeout, session, logger
        See :class:`hype_arb.exchanges.base.HttpAdapter`.
    """

    def __init__(self, base_url: str = DEFAULT_API_URL, **kwargs) -> None:
        super().__init__(base_url, **kwargs)

    def _info(self, payload: dict) -> Any:
        return self._request("POST", json_body=payload)

    def get_current_price(self, symbol: str = PRIMARY_SYMBOL) -> float:
        """Return the current mid price of ``symbol``.

        Raises
        ------
        UpstreamError
            Non-success status, transport failure or malformed body.
        NotFoundError
            The symbol is absent from the response.
        """
        try:
            data = self._info({"type": "allMids"})
            if not isinstance(data, dict):
                raise UpstreamError("Malformed allMids response: expected an object")

            raw = data.get(symbol)
            if not raw:
                raise NotFoundError(f"{symbol} price not found in response")

            try:
                return float(raw)
            except (TypeError, ValueError) as exc:
                raise UpstreamError(f"Malformed {symbol} price: {raw!r}") from exc
        except (UpstreamError, NotFoundError) as exc:
            self.logger.error(f"Error fetching {symbol} price: {exc}")
            raise

    def get_all_mid_prices(self) -> dict[str, float]:
        """Return ``{symbol: mid price}`` for every listed coin."""
        try:
            data = self._info({"type": "allMids"})
            try:
                return parse_mids(data)
            except ValueError as exc:
                raise UpstreamError(f"Malformed allMids response: {exc}") from exc
        except UpstreamError as exc:
            self.logger.error(f"Error fetching mid prices: {exc}")
            raise

    def get_order_book(self, symbol: str) -> OrderBookSnapshot:
        """Return the L2 book for ``symbol`` split into bids and asks."""
        try:
            data = self._info({"type": "l2Book", "coin": symbol})
            if not isinstance(data, dict):
                raise UpstreamError("Malformed l2Book response: expected an object")
            try:
                bids, asks = split_levels(data.get("levels"))
            except (KeyError, TypeError, ValueError) as exc:
                raise UpstreamError(f"Malformed l2Book levels: {exc}") from exc
        except UpstreamError as exc:
            self.logger.error(f"Error fetching order book for {symbol}: {exc}")
            raise

        return OrderBookSnapshot(
            bids=tuple(bids),
            asks=tuple(asks),
            observed_at=datetime.now(timezone.utc),
        )

    def get_market_meta(self) -> list[MarketMeta]:
        """Return one descriptor per perpetual listed in the ``meta`` universe."""
        try:
            data = self._info({"type": "meta"})
            if not isinstance(data, dict):
                raise UpstreamError("Malformed meta response: expected an object")
            universe = data.get("universe") or []
            try:
                return [_market_meta(entry) for entry in universe]
            except (AttributeError, TypeError, ValueError) as exc:
                raise UpstreamError(f"Malformed meta universe: {exc}") from exc
        except UpstreamError as exc:
            self.logger.error(f"Error fetching market meta: {exc}")
            raise


def _market_meta(entry: dict) -> MarketMeta:
    name: Optional[str] = entry.get("name") or entry.get("coin")
    return MarketMeta(
        name=name or "",
        sz_decimals=int(entry.get("szDecimals", 0)),
        max_leverage=int(entry.get("maxLeverage", 0)),
        only_isolated=bool(entry.get("onlyIsolated", False)),
    )
