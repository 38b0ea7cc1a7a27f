"""
Market overview: merges Hyperliquid prices and Boros funding rates into one
observable view for the presentation layer.

On :meth:`MarketOverview.start` the current primary-token price and the
funding-rate table are fetched once (in worker threads, concurrently), then
the ``allMids`` stream is opened and every pushed tick updates the view.
Only this class mutates the view; readers get read-only mappings or a
:class:`~hype_arb.core.models.MarketSnapshot`.
"""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from hype_arb.core.config import Settings
from hype_arb.core.errors import MarketDataError
from hype_arb.core.models import MarketSnapshot, PriceTick, ViewStatus
from hype_arb.exchanges.boros import BorosAdapter
from hype_arb.exchanges.hyperliquid import HyperliquidAdapter
from hype_arb.exchanges.hyperliquid_websocket import HyperliquidMidsStream

SnapshotListener = Callable[[MarketSnapshot], None]


def format_price(price: Optional[float]) -> str:
    if price is None:
        return "--"
    return f"${price:.4f}"


def format_rate(rate: float) -> str:
    return f"{rate * 100:.4f}%"


class MarketOverview:
    """
    Owns the venue adapter, the venue stream and the rate adapter, and
    disposes of all three in :meth:`stop`.

    Parameters
    ----------
    venue : HyperliquidAdapter
    stream : HyperliquidMidsStream
    rates : BorosAdapter
    primary_symbol : str
        Coin whose ticks also update :attr:`current_price`.
    logger : logging.Logger, optional
    """

    def __init__(
        self,
        venue: HyperliquidAdapter,
        stream: HyperliquidMidsStream,
        rates: BorosAdapter,
        primary_symbol: str = "HYPE",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.venue = venue
        self.stream = stream
        self.rates = rates
        self.primary_symbol = primary_symbol
        self.logger = logger or logging.getLogger(__name__)

        self._current_price: Optional[float] = None
        self._funding_rates: dict[str, float] = {}
        self._funding_rates_fallback = False
        self._ticks: dict[str, PriceTick] = {}
        self._status = ViewStatus.LOADING
        self._error: Optional[str] = None
        self._listeners: list[SnapshotListener] = []

    @classmethod
    def from_settings(cls, settings: Settings, logger: Optional[logging.Logger] = None) -> "MarketOverview":
        return cls(
            venue=HyperliquidAdapter(
                settings.hyperliquid_api_url,
                timeout=settings.request_timeout,
                logger=logger,
            ),
            stream=HyperliquidMidsStream(
                settings.hyperliquid_ws_url,
                reconnect_delay=settings.reconnect_delay,
                logger=logger,
            ),
            rates=BorosAdapter(
                settings.boros_api_url,
                timeout=settings.request_timeout,
                logger=logger,
            ),
            primary_symbol=settings.primary_symbol,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Observable fields
    # ------------------------------------------------------------------

    @property
    def current_price(self) -> Optional[float]:
        return self._current_price

    @property
    def funding_rates(self) -> Mapping[str, float]:
        return MappingProxyType(self._funding_rates)

    @property
    def funding_rates_fallback(self) -> bool:
        """True when :attr:`funding_rates` holds mock data."""
        return self._funding_rates_fallback

    @property
    def ticks(self) -> Mapping[str, PriceTick]:
        return MappingProxyType(self._ticks)

    @property
    def status(self) -> ViewStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    def snapshot(self) -> MarketSnapshot:
        return MarketSnapshot(
            status=self._status,
            current_price=self._current_price,
            funding_rates=dict(self._funding_rates),
            ticks=dict(self._ticks),
            error=self._error,
            funding_rates_fallback=self._funding_rates_fallback,
        )

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the initial snapshot and open the live subscription."""
        self._status = ViewStatus.LOADING
        self._error = None
        self._notify()

        price_result, rates_result = await asyncio.gather(
            asyncio.to_thread(self.venue.get_current_price, self.primary_symbol),
            asyncio.to_thread(self.rates.get_funding_rates),
            return_exceptions=True,
        )

        # The rate adapter never raises; anything else here is a bug.
        if isinstance(rates_result, BaseException):
            raise rates_result
        self._funding_rates = dict(rates_result.data)
        self._funding_rates_fallback = rates_result.is_fallback
        if rates_result.is_fallback:
            self.logger.warning("Funding rates unavailable, showing fallback values.")

        if isinstance(price_result, MarketDataError):
            self._status = ViewStatus.ERROR
            self._error = str(price_result)
            self.logger.error(f"Error loading market data: {price_result}")
            self._notify()
            return
        if isinstance(price_result, BaseException):
            raise price_result

        self._current_price = price_result
        self.logger.info(
            f"{self.primary_symbol} {format_price(price_result)} | "
            + " | ".join(f"{a} {format_rate(r)}" for a, r in self._funding_rates.items())
        )

        self.stream.subscribe(self._on_tick)
        self._status = ViewStatus.READY
        self._notify()

    async def stop(self) -> None:
        """Tear down the subscription and release both HTTP sessions."""
        self.stream.disconnect()
        await self.stream.wait_closed()
        self.venue.close()
        self.rates.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_tick(self, tick: PriceTick) -> None:
        self._ticks[tick.symbol] = tick
        if tick.symbol == self.primary_symbol:
            self._current_price = tick.price
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in self._listeners:
            listener(snap)
