"""
Hyperliquid ``allMids`` WebSocket subscription.

Opens one connection to the Hyperliquid WebSocket endpoint, subscribes to
the ``allMids`` channel and invokes the registered *on_tick* callback with a
:class:`~hype_arb.core.models.PriceTick` for every coin in each push.

Whenever the connection closes, cleanly or because of a transport error, the
stream waits ``reconnect_delay`` seconds (5 by default, no backoff growth)
and connects again with the same callback, forever.  :meth:`disconnect`
cancels both the live connection and any reconnect still waiting.

Usage::

    import asyncio
    from hype_arb.exchanges.hyperliquid_websocket import HyperliquidMidsStream

    def handle_tick(tick):
        print(tick.symbol, tick.price)

    async def main():
        stream = HyperliquidMidsStream()
        stream.subscribe(handle_tick)
        await asyncio.sleep(60)
        stream.disconnect()
        await stream.wait_closed()

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from hype_arb.core.models import ConnectionState, PriceTick

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_WS_URL = "wss://api.hyperliquid.xyz/ws"

# Seconds to wait after a close before attempting a reconnect.
RECONNECT_DELAY_SECS = 5

ALL_MIDS_CHANNEL = "allMids"
SUBSCRIBE_MESSAGE = {
    "method": "subscribe",
    "subscription": {"type": ALL_MIDS_CHANNEL},
}

# Type alias for the tick callback.
TickCallback = Callable[[PriceTick], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def decode_mids_message(
    raw: str | bytes,
    logger: Optional[logging.Logger] = None,
) -> list[PriceTick]:
    """Decode one inbound frame into price ticks.

    Frames on other channels (subscription acks, pongs) yield no ticks.
    A coin whose price does not parse is logged and skipped; the rest of the
    frame is still delivered. Raises ``ValueError`` for frames that are not
    valid JSON objects or whose ``data`` is not an object.
    """
    logger = logger or logging.getLogger(__name__)
    msg = json.loads(raw)
    if not isinstance(msg, dict):
        raise ValueError(f"Unexpected frame type {type(msg).__name__}")
    if msg.get("channel") != ALL_MIDS_CHANNEL:
        return []

    data = msg.get("data")
    if not data:
        return []
    # Live frames nest the mids one level deeper: {"data": {"mids": {...}}}.
    if isinstance(data, dict) and isinstance(data.get("mids"), dict):
        data = data["mids"]
    if not isinstance(data, dict):
        raise ValueError(f"allMids payload must be an object, got {type(data).__name__}")

    observed_at = datetime.now(timezone.utc)
    ticks = []
    for symbol, price in data.items():
        if not isinstance(price, str):
            continue
        try:
            ticks.append(PriceTick(symbol=symbol, price=float(price), observed_at=observed_at))
        except ValueError:
            logger.warning(f"Skipping unparsable mid for {symbol}: {price!r}")
    return ticks


# ---------------------------------------------------------------------------
# Stream client
# ---------------------------------------------------------------------------

class HyperliquidMidsStream:
    """
    Resilient subscription to Hyperliquid mid-price pushes.

    Parameters
    ----------
    ws_url : str
        WebSocket endpoint, defaults to mainnet.
    reconnect_delay : float
        Seconds between a close and the next connection attempt.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    connect : callable, optional
        Connection factory with the ``websockets.connect`` signature; swapped
        out in tests.

    Notes
    -----
    Callbacks run on the event-loop thread and must be non-blocking.
    At most one connection loop runs per instance: calling :meth:`subscribe`
    while already subscribed logs a warning and is otherwise ignored.
    """

    def __init__(
        self,
        ws_url: str = DEFAULT_WS_URL,
        reconnect_delay: float = RECONNECT_DELAY_SECS,
        logger: Optional[logging.Logger] = None,
        connect: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.ws_url = ws_url
        self.reconnect_delay = reconnect_delay
        self.logger = logger or logging.getLogger(__name__)
        self._connect = connect or websockets.connect
        self._ws = None
        self._task: asyncio.Task | None = None
        self._closing: list[asyncio.Task] = []
        self._state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    def subscribe(self, on_tick: TickCallback) -> None:
        """Start the connection loop. Must be called with a running event loop."""
        if self._task is not None and not self._task.done():
            self.logger.warning(
                "subscribe() called while a subscription is active; ignoring."
            )
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(on_tick))

    def disconnect(self) -> None:
        """Close the active connection and cancel any pending reconnect."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._closing.append(task)
            self.logger.info("Hyperliquid WebSocket disconnect requested.")
        self._ws = None
        self._state = ConnectionState.DISCONNECTED

    def is_connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def wait_closed(self) -> None:
        """Wait for cancelled connection loops to finish after :meth:`disconnect`."""
        closing, self._closing = self._closing, []
        for task in closing:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, on_tick: TickCallback) -> None:
        """Connect, listen, and reconnect after a fixed delay on every close."""
        while True:
            self._set_state(ConnectionState.CONNECTING)
            try:
                self.logger.info(f"Connecting to {self.ws_url} …")
                async with self._connect(
                    self.ws_url, ping_interval=20, ping_timeout=10
                ) as ws:
                    self._set_state(ConnectionState.CONNECTED, ws)
                    self.logger.info("Connected to Hyperliquid WebSocket")
                    await ws.send(json.dumps(SUBSCRIBE_MESSAGE))
                    await self._listen(ws, on_tick)
                self.logger.info("Disconnected from Hyperliquid WebSocket")

            except ConnectionClosed as exc:
                self.logger.warning(f"Hyperliquid WebSocket closed ({exc}).")

            except Exception as exc:
                self.logger.error(f"Hyperliquid WebSocket error: {exc}")

            finally:
                self._set_state(ConnectionState.DISCONNECTED)

            self.logger.info(f"Reconnecting in {self.reconnect_delay}s …")
            await asyncio.sleep(self.reconnect_delay)

    def _set_state(self, state: ConnectionState, ws=None) -> None:
        # A loop cancelled by disconnect() must not overwrite the state of a
        # subscription started after it.
        if asyncio.current_task() is not self._task:
            return
        self._state = state
        self._ws = ws

    async def _listen(self, ws, on_tick: TickCallback) -> None:
        """Receive frames and dispatch one tick per coin."""
        async for raw in ws:
            try:
                ticks = decode_mids_message(raw, self.logger)
            except ValueError as exc:
                self.logger.error(f"Error parsing WebSocket message: {exc}")
                continue

            for tick in ticks:
                try:
                    on_tick(tick)
                except Exception as exc:
                    self.logger.error(
                        f"Tick callback failed for {tick.symbol}: {exc}",
                        exc_info=True,
                    )
