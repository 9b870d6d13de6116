from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

import requests

from .logging_utils import log_event
from .models import SiteCategory, SourceProfile

logger = logging.getLogger(__name__)

HINT_FIELDS = ("price", "title", "description", "condition", "images")

DEFAULT_PROFILE = SourceProfile(
    domain="*",
    category=SiteCategory.UNKNOWN,
    requires_rendering=False,
    has_anti_bot=True,
    field_hints={},
    min_request_interval_ms=5000,
    name="Unknown source",
    reliability=0.5,
)

BUILTIN_PROFILES: Tuple[SourceProfile, ...] = (
    SourceProfile(
        domain="heritage.com",
        name="Heritage Auctions",
        category=SiteCategory.AUCTION_HOUSE,
        requires_rendering=True,
        has_anti_bot=True,
        field_hints={
            "price": (".price-realized", ".current-bid"),
            "title": (".lot-title", "h1"),
            "description": (".lot-description",),
            "images": (".lot-image img",),
        },
        min_request_interval_ms=3000,
        reliability=0.97,
    ),
    SourceProfile(
        domain="stacksbowers.com",
        name="Stack's Bowers",
        category=SiteCategory.AUCTION_HOUSE,
        requires_rendering=True,
        has_anti_bot=True,
        field_hints={"price": (".lot-price",), "title": (".lot-title",)},
        min_request_interval_ms=3000,
        reliability=0.95,
    ),
    SourceProfile(
        domain="greatcollections.com",
        name="GreatCollections",
        category=SiteCategory.AUCTION_HOUSE,
        requires_rendering=False,
        has_anti_bot=True,
        field_hints={"price": (".current-bid", ".price"), "title": (".coin-title",)},
        min_request_interval_ms=2500,
        reliability=0.93,
    ),
    SourceProfile(
        domain="ebay.com",
        name="eBay",
        category=SiteCategory.MARKETPLACE,
        requires_rendering=False,
        has_anti_bot=True,
        field_hints={
            "price": (".s-item__price",),
            "title": (".s-item__title",),
            "condition": (".SECONDARY_INFO",),
            "images": (".s-item__image-img",),
        },
        min_request_interval_ms=2000,
        reliability=0.85,
    ),
    SourceProfile(
        domain="vcoins.com",
        name="VCoins",
        category=SiteCategory.MARKETPLACE,
        requires_rendering=False,
        has_anti_bot=False,
        field_hints={"price": (".price",), "title": (".item-title",)},
        min_request_interval_ms=1500,
        reliability=0.84,
    ),
    SourceProfile(
        domain="ma-shops.com",
        name="MA-Shops",
        category=SiteCategory.MARKETPLACE,
        requires_rendering=False,
        has_anti_bot=False,
        field_hints={"price": (".price",), "description": (".description",)},
        min_request_interval_ms=1500,
        reliability=0.82,
    ),
    SourceProfile(
        domain="pcgs.com",
        name="PCGS CoinFacts",
        category=SiteCategory.DATABASE,
        requires_rendering=True,
        has_anti_bot=True,
        field_hints={"price": (".price-guide-value",), "description": (".coin-description",)},
        min_request_interval_ms=2500,
        reliability=0.96,
    ),
    SourceProfile(
        domain="ngccoin.com",
        name="NGC Price Guide",
        category=SiteCategory.DATABASE,
        requires_rendering=True,
        has_anti_bot=True,
        field_hints={"price": (".price-guide",), "title": (".coin-name",)},
        min_request_interval_ms=2500,
        reliability=0.94,
    ),
    SourceProfile(
        domain="numista.com",
        name="Numista",
        category=SiteCategory.DATABASE,
        requires_rendering=False,
        has_anti_bot=False,
        field_hints={"title": ("#main_title",), "description": ("#fiche_caracteristiques",)},
        min_request_interval_ms=1000,
        reliability=0.9,
    ),
    SourceProfile(
        domain="greysheet.com",
        name="Greysheet",
        category=SiteCategory.DATABASE,
        requires_rendering=True,
        has_anti_bot=True,
        field_hints={"price": (".bid", ".ask")},
        min_request_interval_ms=2500,
        reliability=0.92,
    ),
    SourceProfile(
        domain="usacoinbook.com",
        name="USA Coin Book",
        category=SiteCategory.DATABASE,
        requires_rendering=False,
        has_anti_bot=False,
        field_hints={"price": (".coin-value",)},
        min_request_interval_ms=1000,
        reliability=0.83,
    ),
)


def normalize_domain(value: str) -> str:
    """Reduce a URL or host (with optional port) to a bare lowercase host."""
    raw = (value or "").strip().lower()
    if "://" in raw:
        try:
            raw = urlsplit(raw).netloc
        except ValueError:
            raw = raw.split("://", 1)[1]
    raw = raw.split("/", 1)[0].rsplit("@", 1)[-1]
    if ":" in raw:
        raw = raw.split(":", 1)[0]
    return raw.strip(".")


class SourceProfileRegistry:
    """Read-only lookup of known target domains.

    Resolution is exact match first, then the longest matching domain suffix,
    then the conservative default profile."""

    def __init__(
        self,
        profiles: Iterable[SourceProfile] = BUILTIN_PROFILES,
        default: SourceProfile = DEFAULT_PROFILE,
    ) -> None:
        table: Dict[str, SourceProfile] = {}
        for profile in profiles:
            table[normalize_domain(profile.domain)] = profile
        self._profiles = table
        self._default = default

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        base: Iterable[SourceProfile] = BUILTIN_PROFILES,
    ) -> "SourceProfileRegistry":
        """Build a registry from backing-store records layered over a base table."""
        profiles: Dict[str, SourceProfile] = {normalize_domain(p.domain): p for p in base}
        for record in records:
            profile = profile_from_record(record)
            if profile is None:
                continue
            profiles[normalize_domain(profile.domain)] = profile
        return cls(profiles.values())

    @property
    def default(self) -> SourceProfile:
        return self._default

    def __len__(self) -> int:
        return len(self._profiles)

    def domains(self) -> List[str]:
        return sorted(self._profiles)

    def resolve(self, domain: str) -> SourceProfile:
        host = normalize_domain(domain)
        if not host:
            return self._default
        exact = self._profiles.get(host)
        if exact is not None:
            return exact
        best: Optional[SourceProfile] = None
        best_len = -1
        for key, profile in self._profiles.items():
            if host.endswith("." + key) and len(key) > best_len:
                best, best_len = profile, len(key)
        return best or self._default


def profile_from_record(record: Mapping[str, Any]) -> Optional[SourceProfile]:
    """Convert one backing-store record into a SourceProfile.

    Accepts both snake_case and camelCase keys. Returns None (and logs) for
    records that cannot be used."""
    if not isinstance(record, Mapping):
        log_event(
            logger, logging.WARNING, "profile_record_skipped", record=record, error="record is not an object"
        )
        return None
    try:
        domain = normalize_domain(str(record.get("domain") or ""))
        if not domain:
            raise ValueError("domain is required")
        interval = record.get("min_request_interval_ms", record.get("minRequestIntervalMs", 5000))
        return SourceProfile(
            domain=domain,
            category=SiteCategory.parse(record.get("category", "unknown")),
            requires_rendering=bool(
                record.get("requires_rendering", record.get("requiresRendering", False))
            ),
            has_anti_bot=bool(record.get("has_anti_bot", record.get("hasAntiBot", True))),
            field_hints=_parse_hints(record.get("field_hints", record.get("fieldHints")) or {}),
            min_request_interval_ms=int(interval),
            name=record.get("name"),
            reliability=float(record.get("reliability", 0.5)),
        )
    except (TypeError, ValueError) as exc:
        log_event(logger, logging.WARNING, "profile_record_skipped", record=dict(record), error=str(exc))
        return None


def _parse_hints(raw: Any) -> Dict[str, Tuple[str, ...]]:
    if not isinstance(raw, Mapping):
        raise TypeError("field hints must be an object")
    hints: Dict[str, Tuple[str, ...]] = {}
    for key in HINT_FIELDS:
        value = raw.get(key)
        if not value:
            continue
        if isinstance(value, str):
            hints[key] = (value,)
        else:
            hints[key] = tuple(str(v) for v in value)
    return hints


def load_profiles_from_file(path: str) -> SourceProfileRegistry:
    """Load profile records from a JSON file (a list, or {"profiles": [...]})."""
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    records = payload.get("profiles", []) if isinstance(payload, dict) else payload
    registry = SourceProfileRegistry.from_records(records)
    log_event(logger, logging.INFO, "profiles_loaded", source=path, domains=len(registry))
    return registry


def fetch_profiles_from_rest(
    url: str,
    api_key: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
) -> SourceProfileRegistry:
    """Read profile records from a REST backing store at startup."""
    headers = {"Accept": "application/json"}
    if api_key:
        headers["apikey"] = api_key
        headers["Authorization"] = f"Bearer {api_key}"
    http = session or requests.Session()
    resp = http.get(url, headers=headers, timeout=timeout)
    resp.raise_for_status()
    payload = resp.json()
    records = payload.get("profiles", []) if isinstance(payload, dict) else payload
    registry = SourceProfileRegistry.from_records(records)
    log_event(logger, logging.INFO, "profiles_loaded", source=url, domains=len(registry))
    return registry
