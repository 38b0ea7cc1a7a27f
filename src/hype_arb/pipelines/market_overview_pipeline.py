import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional

from hype_arb.core.config import Settings
from hype_arb.core.models import MarketSnapshot, ViewStatus
from hype_arb.dashboard.market_overview import MarketOverview, format_price, format_rate
from hype_arb.utils.logger import setup_logger

# Project root (three levels up: src/hype_arb/pipelines/ -> repo root)
ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = ROOT / "config" / "market_overview_config.json"


# ---------------------------------------------------------------------------
# STAGE 1 - INIT
# ---------------------------------------------------------------------------

def init(config_path: Optional[Path] = None) -> tuple[Settings, logging.Logger]:
    # The bundled config is optional; an explicitly requested one is not.
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    settings = Settings.load(config_path)

    errors = settings.validate()
    if errors:
        raise ValueError("Invalid settings: " + "; ".join(errors))

    log_path = Path(settings.log_path)
    if not log_path.is_absolute():
        log_path = ROOT / log_path

    logger = setup_logger("market_overview", log_path, level=settings.log_level_value)
    logger.info("========== HYPE market overview starting ==========")
    logger.info("========== Stage 1 ==========")
    logger.info(f"Config loaded from: {config_path or 'defaults'}")
    logger.info(
        f"Venue: {settings.hyperliquid_api_url} | "
        f"Stream: {settings.hyperliquid_ws_url} | "
        f"Rates: {settings.boros_api_url}"
    )
    return settings, logger


# ---------------------------------------------------------------------------
# STAGE 2 - RUN OVERVIEW
# ---------------------------------------------------------------------------

def render(snapshot: MarketSnapshot, settings: Settings) -> str:
    """One-line console rendering of the overview cards."""
    if snapshot.status is ViewStatus.LOADING:
        return "Loading market data …"
    if snapshot.status is ViewStatus.ERROR:
        return f"Error loading market data: {snapshot.error}"

    cards = [f"{settings.primary_symbol} {format_price(snapshot.current_price)}"]
    for asset in settings.funding_assets:
        cards.append(f"{asset} funding {format_rate(snapshot.funding_rates.get(asset, 0.0))}")
    cards.append(f"{len(snapshot.ticks)} live mids")
    return " | ".join(cards)


async def heartbeat(
    overview: MarketOverview,
    settings: Settings,
    logger: logging.Logger,
    interval_sec: int = 30,
):
    while True:
        await asyncio.sleep(interval_sec)
        state = "connected" if overview.stream.is_connected() else "reconnecting"
        logger.info(f"[{state}] {render(overview.snapshot(), settings)}")


async def run_overview(settings: Settings, logger: logging.Logger, interval_sec: int = 30) -> None:
    logger.info("========== Stage 2 ==========")
    overview = MarketOverview.from_settings(settings, logger=logger)
    try:
        await overview.start()
        logger.info(render(overview.snapshot(), settings))
        if overview.status is ViewStatus.ERROR:
            return
        await heartbeat(overview, settings, logger, interval_sec)
    finally:
        await overview.stop()
        logger.info("Market overview stopped.")


# ---------------------------------------------------------------------------
# MAIN ENTRY POINT
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="HYPE market overview")
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    parser.add_argument("--interval", type=int, default=30, help="heartbeat seconds")
    args = parser.parse_args(argv)

    settings, logger = init(args.config)
    try:
        asyncio.run(run_overview(settings, logger, args.interval))
    except KeyboardInterrupt:
        logger.info("Market overview stopped by user.")


if __name__ == "__main__":
    main()
