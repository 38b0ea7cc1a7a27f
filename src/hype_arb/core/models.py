from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class PriceTick:
    symbol: str
    price: float
    observed_at: datetime  # UTC, time the tick was decoded


@dataclass
class FundingRate:
    asset_symbol: str
    rate_per_period: float  # e.g. 0.0001 == 0.01% per funding period


@dataclass(frozen=True)
class OrderBookSnapshot:
    bids: tuple[tuple[float, float], ...]  # (price, size), size > 0
    asks: tuple[tuple[float, float], ...]
    observed_at: datetime


@dataclass
class YieldUnit:
    id: str
    underlying_asset: str
    maturity_date: datetime
    current_rate: float
    implied_rate: float
    price: float
    volume: float


@dataclass
class Position:
    id: str
    asset: str
    side: str         # "LONG" or "SHORT"
    size: float
    entry_rate: float
    current_pnl: float
    margin: float
    margin_type: str  # "CROSS" or "ISOLATED"


@dataclass
class MarketMeta:
    name: str
    sz_decimals: int = 0
    max_leverage: int = 0
    only_isolated: bool = False


@dataclass
class TradeResult:
    success: bool
    trade_id: Optional[str] = None
    error: Optional[str] = None


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DataSource(Enum):
    REAL = "real"
    FALLBACK = "fallback"


@dataclass
class FetchResult(Generic[T]):
    """Payload from the rate service, tagged with where it came from.

    ``FALLBACK`` results carry the mock data served in place of the upstream
    response together with the exception that caused the substitution.
    """

    data: T
    source: DataSource = DataSource.REAL
    cause: Optional[BaseException] = None

    @property
    def is_fallback(self) -> bool:
        return self.source is DataSource.FALLBACK

    @classmethod
    def real(cls, data: T) -> "FetchResult[T]":
        return cls(data=data, source=DataSource.REAL)

    @classmethod
    def fallback(cls, data: T, cause: BaseException) -> "FetchResult[T]":
        return cls(data=data, source=DataSource.FALLBACK, cause=cause)


class ViewStatus(Enum):
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


@dataclass(frozen=True)
class MarketSnapshot:
    status: ViewStatus
    current_price: Optional[float]
    funding_rates: dict[str, float] = field(default_factory=dict)
    ticks: dict[str, PriceTick] = field(default_factory=dict)
    error: Optional[str] = None
    funding_rates_fallback: bool = False
