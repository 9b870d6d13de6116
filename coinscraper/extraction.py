"""Regex-based extraction of prices, descriptions and numismatic signals.

Pattern matching is used instead of a DOM parser so that malformed or
unfamiliar third-party markup still yields something. Incidental numbers on
a page may be picked up as prices; the bounds check and the confidence score
are what keep that noise in check.
"""
from __future__ import annotations

import datetime as _dt
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .logging_utils import log_event
from .models import CoinQuery, ExtractionResult, SourceProfile

logger = logging.getLogger(__name__)

MIN_PRICE = Decimal("0")
MAX_PRICE = Decimal("1000000")
MAX_PRICES = 10
MAX_DESCRIPTIONS = 10
MAX_SIGNALS = 5
MIN_DESCRIPTION_LEN = 10
MAX_DESCRIPTION_LEN = 200

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"

PRICE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("dollar", re.compile(r"\$\s?" + _AMOUNT)),
    ("usd", re.compile(r"\bUSD\s?" + _AMOUNT + r"|" + _AMOUNT + r"\s?USD\b")),
    ("euro", re.compile(r"€\s?" + _AMOUNT + r"|" + _AMOUNT + r"\s?€")),
    ("pound", re.compile(r"£\s?" + _AMOUNT)),
    ("price_label", re.compile(r"Price:\s*[$€£]?\s?" + _AMOUNT, re.IGNORECASE)),
    ("sold_for", re.compile(r"sold\s+for\s*[$€£]?\s?" + _AMOUNT, re.IGNORECASE)),
)

DESCRIPTION_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("title", re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)),
    ("h1", re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)),
    ("h2", re.compile(r"<h2[^>]*>(.*?)</h2>", re.IGNORECASE | re.DOTALL)),
)

_ENTITY = re.compile(r"&(?:#\d+|#x[0-9a-f]+|[a-z][a-z0-9]*);", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_SCRIPT_STYLE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^\d.]")

_YEAR = re.compile(r"\b(1[789]\d{2}|20\d{2})\b")
_GRADE = re.compile(r"\b(MS|PR|PF|SP|AU|XF|EF|VF|VG|AG|F|G)[-\s]?(\d{1,2})\b")
_DENOMINATION = re.compile(
    r"\b(half dollar|cent|penny|nickel|dime|quarter|dollar|eagle|sovereign|"
    r"shilling|franc|peso|pound|euro)s?\b",
    re.IGNORECASE,
)
_MINT_MARK = re.compile(r"\b(CC|[DPSOW])\s*mint\s*mark\b", re.IGNORECASE)
_ERROR_VARIETIES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("double die", re.compile(r"\bdoubled?\s*die\b", re.IGNORECASE)),
    ("off center", re.compile(r"\boff[-\s]*cent(?:er|re)\b", re.IGNORECASE)),
    ("clipped planchet", re.compile(r"\bclipped\s*planchet\b", re.IGNORECASE)),
    ("broadstrike", re.compile(r"\bbroad\s*strike\b", re.IGNORECASE)),
    ("lamination", re.compile(r"\blamination\b", re.IGNORECASE)),
    ("die crack", re.compile(r"\bdie\s*crack\b", re.IGNORECASE)),
)

_DESCRIPTION_HINT_FIELDS = ("title", "description", "condition")


def clean_text(fragment: str) -> str:
    """Strip entities and tags from an HTML fragment and collapse whitespace."""
    text = _ENTITY.sub(" ", fragment or "")
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def parse_price(raw: str) -> Optional[Decimal]:
    digits = _NON_NUMERIC.sub("", raw or "")
    if not digits:
        return None
    try:
        value = Decimal(digits)
    except InvalidOperation:
        return None
    if MIN_PRICE < value < MAX_PRICE:
        return value
    return None


def _first_group(match: "re.Match[str]") -> str:
    return next((g for g in match.groups() if g), "")


def _dedupe_capped(values: Iterable, limit: int) -> List:
    seen = set()
    out: List = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
        if len(out) >= limit:
            break
    return out


def hint_pattern(selector: str) -> Optional[Pattern[str]]:
    """Translate a simple .class or #id selector into a lenient element regex."""
    selector = selector.strip()
    m = re.fullmatch(r"(?:([a-zA-Z][\w-]*))?([.#])([\w-]+)", selector)
    if not m:
        return None
    tag, kind, name = m.groups()
    tag_re = re.escape(tag) if tag else r"[a-zA-Z][\w-]*"
    name_re = re.escape(name)
    if kind == ".":
        attr = r"""class=["'](?:[^"']*\s)?""" + name_re + r"""(?:\s[^"']*)?["']"""
    else:
        attr = r"""id=["']""" + name_re + r"""["']"""
    return re.compile(
        r"<(" + tag_re + r")\b[^>]*" + attr + r"[^>]*>(.*?)</\1\s*>",
        re.IGNORECASE | re.DOTALL,
    )


class ExtractionEngine:
    """Turns a raw page body into prices, descriptions and a confidence score."""

    def extract(
        self,
        body: Optional[str],
        query: CoinQuery,
        profile: Optional[SourceProfile] = None,
    ) -> ExtractionResult:
        try:
            return self._extract(body or "", query, profile)
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "extraction_failed", error=repr(exc))
            return ExtractionResult.empty()

    def _extract(self, body: str, query: CoinQuery, profile: Optional[SourceProfile]) -> ExtractionResult:
        hints = profile.field_hints if profile else {}
        prices = self.extract_prices(body, hints.get("price", ()))
        descriptions = self.extract_descriptions(
            body,
            [sel for key in _DESCRIPTION_HINT_FIELDS for sel in hints.get(key, ())],
        )
        return ExtractionResult(
            prices=tuple(prices),
            descriptions=tuple(descriptions),
            confidence=score_confidence(prices, descriptions, query),
            signals=self.extract_signals(body),
        )

    def extract_prices(self, body: str, hint_selectors: Sequence[str] = ()) -> List[Decimal]:
        candidates: List[Decimal] = []
        for _, pattern in PRICE_PATTERNS:
            for match in pattern.finditer(body):
                value = parse_price(_first_group(match))
                if value is not None:
                    candidates.append(value)
        for text in _hinted_texts(body, hint_selectors):
            amount = re.search(_AMOUNT, text)
            if amount:
                value = parse_price(amount.group(1))
                if value is not None:
                    candidates.append(value)
        return _dedupe_capped(candidates, MAX_PRICES)

    def extract_descriptions(self, body: str, hint_selectors: Sequence[str] = ()) -> List[str]:
        candidates: List[str] = []
        for _, pattern in DESCRIPTION_PATTERNS:
            candidates.extend(clean_text(m.group(1)) for m in pattern.finditer(body))
        candidates.extend(_hinted_texts(body, hint_selectors))
        kept = [c for c in candidates if MIN_DESCRIPTION_LEN <= len(c) <= MAX_DESCRIPTION_LEN]
        return _dedupe_capped(kept, MAX_DESCRIPTIONS)

    def extract_signals(self, body: str) -> Dict[str, Tuple[str, ...]]:
        text = clean_text(_SCRIPT_STYLE.sub(" ", body))
        this_year = _dt.date.today().year
        years = [y for y in _YEAR.findall(text) if 1792 <= int(y) <= this_year]
        grades = [f"{p.upper()}-{n}" for p, n in _GRADE.findall(text)]
        denominations = [d.lower() for d in _DENOMINATION.findall(text)]
        mint_marks = [m.upper() for m in _MINT_MARK.findall(text)]
        errors = [name for name, pattern in _ERROR_VARIETIES if pattern.search(text)]
        signals = {
            "years": years,
            "grades": grades,
            "denominations": denominations,
            "mint_marks": mint_marks,
            "error_varieties": errors,
        }
        return {k: tuple(_dedupe_capped(v, MAX_SIGNALS)) for k, v in signals.items() if v}


def _hinted_texts(body: str, selectors: Sequence[str]) -> List[str]:
    texts: List[str] = []
    for selector in selectors:
        pattern = hint_pattern(selector)
        if pattern is None:
            continue
        texts.extend(clean_text(m.group(2)) for m in pattern.finditer(body))
    return [t for t in texts if t]


def query_terms(query: CoinQuery) -> List[str]:
    terms = [query.country, str(query.year) if query.year is not None else "", query.denomination]
    return [t.strip().lower() for t in terms if t and t.strip()]


def score_confidence(prices: Sequence[Decimal], descriptions: Sequence[str], query: CoinQuery) -> float:
    """Confidence in [0, 1]; textual corroboration of the query weighs most."""
    score = Decimal("0.2")
    if prices:
        score += Decimal("0.3")
    if len(prices) >= 3:
        score += Decimal("0.2")
    if descriptions:
        score += Decimal("0.2")
    terms = query_terms(query)
    if terms and any(term in d.lower() for d in descriptions for term in terms):
        score += Decimal("0.3")
    return float(min(Decimal("1"), max(Decimal("0"), score)))
