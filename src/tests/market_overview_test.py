"""Tests for the market overview aggregator

Tests cover:
- Initial load of price and funding rates
- Live tick merging and primary-symbol price updates
- Venue failure surfacing as the ERROR state
- Fallback funding rates staying invisible to the status
- Teardown of owned adapters
- Formatting helpers
"""

import asyncio
from datetime import datetime, timezone
from types import MappingProxyType
from unittest.mock import Mock

import pytest

from hype_arb.core.config import Settings
from hype_arb.core.errors import NotFoundError, UpstreamError
from hype_arb.core.models import FetchResult, PriceTick, ViewStatus
from hype_arb.dashboard.market_overview import MarketOverview, format_price, format_rate
from hype_arb.exchanges.boros import BorosAdapter
from hype_arb.exchanges.hyperliquid import HyperliquidAdapter
from hype_arb.exchanges.hyperliquid_websocket import HyperliquidMidsStream


def tick(symbol, price):
    return PriceTick(symbol=symbol, price=price, observed_at=datetime.now(timezone.utc))


@pytest.fixture
def venue():
    venue = Mock(spec=HyperliquidAdapter)
    venue.get_current_price.return_value = 21.5
    return venue


@pytest.fixture
def rates():
    rates = Mock(spec=BorosAdapter)
    rates.get_funding_rates.return_value = FetchResult.real({"BTC": 0.00011, "ETH": 0.00006})
    return rates


@pytest.fixture
def stream():
    return Mock(spec=HyperliquidMidsStream)


@pytest.fixture
def overview(venue, stream, rates):
    return MarketOverview(venue=venue, stream=stream, rates=rates)


def subscribed_callback(stream):
    stream.subscribe.assert_called_once()
    return stream.subscribe.call_args.args[0]


class TestStart:
    """Test the initial load."""

    def test_initial_state_is_loading(self, overview):
        """Before start() the view is loading and empty."""
        assert overview.status is ViewStatus.LOADING
        assert overview.current_price is None
        assert dict(overview.funding_rates) == {}
        assert dict(overview.ticks) == {}

    def test_loads_price_and_rates_then_subscribes(self, overview, venue, stream):
        """start() loads the price and rates, then subscribes."""
        asyncio.run(overview.start())

        assert overview.status is ViewStatus.READY
        assert overview.error is None
        assert overview.current_price == 21.5
        assert dict(overview.funding_rates) == {"BTC": 0.00011, "ETH": 0.00006}
        assert overview.funding_rates_fallback is False
        venue.get_current_price.assert_called_once_with("HYPE")
        stream.subscribe.assert_called_once()

    def test_venue_failure_sets_error_state(self, overview, venue, stream):
        """A missing price puts the view in error and skips the stream."""
        venue.get_current_price.side_effect = NotFoundError("HYPE price not found in response")

        asyncio.run(overview.start())

        assert overview.status is ViewStatus.ERROR
        assert overview.error == "HYPE price not found in response"
        assert overview.current_price is None
        stream.subscribe.assert_not_called()

    def test_upstream_error_sets_error_state(self, overview, venue):
        """An HTTP failure message is kept on the view."""
        venue.get_current_price.side_effect = UpstreamError("HTTP error! status: 502", 502)
        asyncio.run(overview.start())
        assert overview.status is ViewStatus.ERROR
        assert "502" in overview.error

    def test_fallback_rates_are_rendered_as_ready(self, overview, rates):
        """Fallback rates keep the view ready but are flagged."""
        rates.get_funding_rates.return_value = FetchResult.fallback(
            {"BTC": 0.0001, "ETH": 0.00005}, UpstreamError("down")
        )

        asyncio.run(overview.start())

        assert overview.status is ViewStatus.READY
        assert dict(overview.funding_rates) == {"BTC": 0.0001, "ETH": 0.00005}
        assert overview.funding_rates_fallback is True

    def test_unexpected_venue_exception_propagates(self, overview, venue):
        """Programming errors are not turned into view state."""
        venue.get_current_price.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            asyncio.run(overview.start())

    def test_custom_primary_symbol(self, venue, stream, rates):
        """The headline price follows primary_symbol."""
        overview = MarketOverview(venue=venue, stream=stream, rates=rates, primary_symbol="BTC")
        asyncio.run(overview.start())
        venue.get_current_price.assert_called_once_with("BTC")


class TestTicks:
    """Test merging of pushed ticks."""

    def test_ticks_stored_per_symbol(self, overview, stream):
        """The latest tick per symbol is kept."""
        asyncio.run(overview.start())
        on_tick = subscribed_callback(stream)

        on_tick(tick("BTC", 97000.0))
        on_tick(tick("BTC", 97100.0))
        on_tick(tick("ETH", 3400.0))

        assert set(overview.ticks) == {"BTC", "ETH"}
        assert overview.ticks["BTC"].price == 97100.0
        # non-primary ticks leave the headline price alone
        assert overview.current_price == 21.5

    def test_primary_tick_updates_current_price(self, overview, stream):
        """A primary-symbol tick moves the headline price."""
        asyncio.run(overview.start())
        on_tick = subscribed_callback(stream)

        on_tick(tick("HYPE", 22.75))

        assert overview.current_price == 22.75
        assert overview.ticks["HYPE"].price == 22.75

    def test_views_are_read_only(self, overview):
        """Exposed mappings cannot be mutated."""
        assert isinstance(overview.ticks, MappingProxyType)
        with pytest.raises(TypeError):
            overview.funding_rates["BTC"] = 1.0

    def test_listeners_receive_snapshots(self, overview, stream):
        """Listeners see each state change as a snapshot."""
        snapshots = []
        overview.add_listener(snapshots.append)

        asyncio.run(overview.start())
        subscribed_callback(stream)(tick("HYPE", 23.0))

        statuses = [s.status for s in snapshots]
        assert statuses[0] is ViewStatus.LOADING
        assert ViewStatus.READY in statuses
        assert snapshots[-1].current_price == 23.0
        assert "HYPE" in snapshots[-1].ticks

    def test_snapshot_is_a_copy(self, overview, stream):
        """Snapshots do not change after later ticks."""
        asyncio.run(overview.start())
        snap = overview.snapshot()
        subscribed_callback(stream)(tick("SOL", 150.0))
        assert "SOL" not in snap.ticks
        assert "SOL" in overview.ticks


class TestStop:
    """Test teardown."""

    def test_stop_disconnects_and_closes_adapters(self, overview, venue, stream, rates):
        """stop() disconnects the stream and closes both adapters."""
        async def scenario():
            await overview.start()
            await overview.stop()

        asyncio.run(scenario())

        stream.disconnect.assert_called_once()
        stream.wait_closed.assert_awaited_once()
        venue.close.assert_called_once()
        rates.close.assert_called_once()


class TestFromSettings:
    """Test wiring from settings."""

    def test_builds_owned_components(self):
        """Settings flow into the venue, stream and rate clients."""
        settings = Settings(
            hyperliquid_api_url="https://venue.test/info",
            hyperliquid_ws_url="wss://venue.test/ws",
            boros_api_url="https://rates.test/v1",
            request_timeout=4,
            reconnect_delay=2,
            primary_symbol="ETH",
        )

        overview = MarketOverview.from_settings(settings)

        assert overview.venue.base_url == "https://venue.test/info"
        assert overview.venue.timeout == 4
        assert overview.rates.base_url == "https://rates.test/v1"
        assert overview.stream.ws_url == "wss://venue.test/ws"
        assert overview.stream.reconnect_delay == 2
        assert overview.primary_symbol == "ETH"
        overview.venue.close()
        overview.rates.close()


class TestFormatting:
    """Test display formatting."""

    def test_format_price(self):
        """Prices render with four decimals, or a dash when unknown."""
        assert format_price(None) == "--"
        assert format_price(21.5) == "$21.5000"

    def test_format_rate(self):
        """Rates render as percentages with four decimals."""
        assert format_rate(0.0001) == "0.0100%"
        assert format_rate(0.00005) == "0.0050%"
