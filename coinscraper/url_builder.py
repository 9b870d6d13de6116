from __future__ import annotations

import re
from typing import Dict, Optional, Tuple
from urllib.parse import quote_plus

from .models import CoinQuery, SiteCategory, SourceProfile
from .profiles import normalize_domain

FALLBACK_TERM = "coin"

_NOISE_TOKENS = re.compile(r"\b(?:coin|currency|money)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

AUCTION_TEMPLATE = "q={term}&category=coins"
MARKETPLACE_TEMPLATE = "q={term}"
GENERIC_TEMPLATE = "q={term}"

# Keyed by domain substring; first match wins.
DOMAIN_TEMPLATES: Tuple[Tuple[str, str], ...] = (
    ("heritage", AUCTION_TEMPLATE),
    ("stacksbowers", AUCTION_TEMPLATE),
    ("greatcollections", AUCTION_TEMPLATE),
    ("ebay", "_nkw={term}&_sacat=11116"),
    ("vcoins", MARKETPLACE_TEMPLATE),
    ("ma-shops", MARKETPLACE_TEMPLATE),
    ("numista", "r={term}&ct=coin"),
    ("pcgs", MARKETPLACE_TEMPLATE),
    ("ngccoin", MARKETPLACE_TEMPLATE),
)

CATEGORY_TEMPLATES: Dict[SiteCategory, str] = {
    SiteCategory.AUCTION_HOUSE: AUCTION_TEMPLATE,
    SiteCategory.MARKETPLACE: MARKETPLACE_TEMPLATE,
    SiteCategory.DATABASE: GENERIC_TEMPLATE,
}


def _usable(value: object) -> Optional[str]:
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    if not text or text.lower() == "unknown":
        return None
    return text


def clean_name(name: str) -> str:
    """Drop generic noise tokens (coin, currency, money) from a coin name."""
    return _WHITESPACE.sub(" ", _NOISE_TOKENS.sub(" ", name or "")).strip()


def compose_search_term(query: CoinQuery) -> str:
    """Human-readable search term for a query; never empty."""
    parts = []
    for value in (query.country, query.year, query.denomination, clean_name(query.name)):
        usable = _usable(value)
        if usable:
            parts.append(usable)
    if parts:
        return " ".join(parts)
    free_text = _usable(clean_name(query.text))
    return free_text or FALLBACK_TERM


def select_template(base_url: str, profile: Optional[SourceProfile]) -> str:
    haystack = f"{normalize_domain(base_url)} {profile.domain if profile else ''}".lower()
    for needle, template in DOMAIN_TEMPLATES:
        if needle in haystack:
            return template
    if profile is not None:
        return CATEGORY_TEMPLATES.get(profile.category, GENERIC_TEMPLATE)
    return GENERIC_TEMPLATE


def build_search_url(base_url: str, query: CoinQuery, profile: Optional[SourceProfile] = None) -> str:
    """Compose a domain-appropriate search URL for the query."""
    base = (base_url or "").strip()
    term = quote_plus(compose_search_term(query))
    params = select_template(base, profile).format(term=term)
    if base.endswith(("?", "&")):
        separator = ""
    elif "?" in base:
        separator = "&"
    else:
        separator = "?"
    return f"{base}{separator}{params}"
