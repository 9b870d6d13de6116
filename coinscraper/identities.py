from __future__ import annotations

from typing import Sequence, Tuple

from .models import BrowserIdentity

_HTML_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
    "image/webp,image/apng,*/*;q=0.8"
)

_CHROMIUM_FETCH = {
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}


def _headers(accept: str, language: str, **extra: str) -> dict:
    return {
        "Accept": accept,
        "Accept-Language": language,
        "Accept-Encoding": "gzip, deflate, br",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        **_CHROMIUM_FETCH,
        "Cache-Control": "max-age=0",
        **extra,
    }


# Each user agent is paired with the matching curl_cffi TLS fingerprint so the
# header set and the handshake describe the same browser.
DEFAULT_IDENTITIES: Tuple[BrowserIdentity, ...] = (
    BrowserIdentity(
        name="chrome-windows",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        headers=_headers(
            _HTML_ACCEPT + ";v=b3;q=0.7",
            "en-US,en;q=0.9",
            **{"Sec-CH-UA-Platform": '"Windows"', "Sec-CH-UA-Mobile": "?0"},
        ),
        impersonate="chrome120",
    ),
    BrowserIdentity(
        name="chrome-macos",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        headers=_headers(
            _HTML_ACCEPT + ";v=b3;q=0.7",
            "en-US,en;q=0.9",
            **{"Sec-CH-UA-Platform": '"macOS"', "Sec-CH-UA-Mobile": "?0"},
        ),
        impersonate="chrome124",
    ),
    BrowserIdentity(
        name="safari-macos",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
        ),
        headers=_headers(
            "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "en-US,en;q=0.9",
        ),
        impersonate="safari17_0",
    ),
    BrowserIdentity(
        name="edge-windows",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/101.0.4951.64 Safari/537.36 Edg/101.0.1210.47"
        ),
        headers=_headers(
            _HTML_ACCEPT + ";v=b3;q=0.9",
            "en-GB,en;q=0.9,en-US;q=0.8",
            **{"Sec-CH-UA-Platform": '"Windows"', "Sec-CH-UA-Mobile": "?0"},
        ),
        impersonate="edge101",
    ),
)


def identity_for_attempt(identities: Sequence[BrowserIdentity], attempt: int) -> BrowserIdentity:
    """Deterministic rotation: attempt i uses identity i mod N."""
    if not identities:
        raise ValueError("identity pool is empty")
    return identities[attempt % len(identities)]
