from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class SiteCategory(str, Enum):
    AUCTION_HOUSE = "auction_house"
    MARKETPLACE = "marketplace"
    DATABASE = "database"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "SiteCategory":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class ClientInputError(ValueError):
    """Raised when an inbound scrape request is missing required fields."""


@dataclass(frozen=True)
class SourceProfile:
    """Behavioural profile of one target domain.

    field_hints maps a logical field (price, title, description, condition,
    images) to selectors that extraction may use as soft hints."""

    domain: str
    category: SiteCategory = SiteCategory.UNKNOWN
    requires_rendering: bool = False
    has_anti_bot: bool = True
    field_hints: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    min_request_interval_ms: int = 5000
    name: Optional[str] = None
    reliability: float = 0.5

    def __post_init__(self) -> None:
        if self.min_request_interval_ms < 0:
            raise ValueError("min_request_interval_ms must be >= 0")


@dataclass(frozen=True)
class CoinQuery:
    country: str = ""
    year: Optional[int] = None
    denomination: str = ""
    name: str = ""
    text: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CoinQuery":
        """Build a query from the inbound JSON shape, tolerating loose types."""
        return cls(
            country=_as_text(raw.get("country")),
            year=_as_year(raw.get("year")),
            denomination=_as_text(raw.get("denomination")),
            name=_as_text(raw.get("name")),
            text=_as_text(raw.get("text") or raw.get("freeText") or raw.get("query")),
        )


@dataclass(frozen=True)
class BrowserIdentity:
    name: str
    user_agent: str
    headers: Dict[str, str]
    impersonate: Optional[str] = None

    def header_set(self) -> Dict[str, str]:
        """Full header bundle sent with a request, user agent included."""
        return {"User-Agent": self.user_agent, **self.headers}


@dataclass(frozen=True)
class RawResponse:
    url: str
    status_code: int
    body: str
    latency_ms: int = 0


@dataclass(frozen=True)
class TransportError:
    url: str
    error_type: str
    message: str
    status_code: Optional[int] = None
    latency_ms: int = 0

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


FetchResult = Union[RawResponse, TransportError]


@dataclass
class ScrapeAttempt:
    identity: BrowserIdentity
    started_at: float
    http_status: Optional[int] = None
    bot_defense_detected: bool = False
    response_body: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ScrapeOutcome:
    success: bool
    identity_used: Optional[BrowserIdentity]
    attempts_used: int
    body: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    bot_defense_detected: bool = False


@dataclass(frozen=True)
class ExtractionResult:
    prices: Tuple[Decimal, ...] = ()
    descriptions: Tuple[str, ...] = ()
    confidence: float = 0.0
    signals: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ExtractionResult":
        return cls()

    @property
    def data_points(self) -> int:
        return len(self.prices) + len(self.descriptions)


@dataclass(frozen=True)
class PerformanceObservation:
    domain: str
    success: bool
    response_time_ms: int
    recorded_at: float = field(default_factory=time.time)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_year(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return None
