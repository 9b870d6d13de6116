from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from curl_cffi.requests import AsyncSession

from .logging_utils import log_event
from .models import BrowserIdentity, FetchResult, RawResponse, SourceProfile, TransportError
from .rate_limiter import IntervalGate

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Any]


class RequestDispatcher:
    """Performs exactly one HTTP GET per call with a given browser identity.

    Non-2xx statuses and transport failures come back as TransportError values
    instead of exceptions. Retrying is the controller's job, not this class's.
    A fresh session is opened per call so cookies never leak between
    identities."""

    def __init__(
        self,
        profile: SourceProfile,
        timeout: float = 15.0,
        session_factory: Optional[SessionFactory] = None,
        gate: Optional[IntervalGate] = None,
    ) -> None:
        self._profile = profile
        self._timeout = timeout
        self._session_factory = session_factory or AsyncSession
        self._gate = gate or IntervalGate(profile.min_request_interval_ms)

    async def fetch_once(self, url: str, identity: BrowserIdentity) -> FetchResult:
        await self._gate.acquire()
        start = time.monotonic()
        try:
            async with self._session_factory() as session:
                response = await asyncio.wait_for(
                    session.get(
                        url,
                        headers=identity.header_set(),
                        impersonate=identity.impersonate,
                        timeout=self._timeout,
                        allow_redirects=True,
                    ),
                    timeout=self._timeout + 1.0,
                )
        except asyncio.TimeoutError:
            return TransportError(
                url=url,
                error_type="Timeout",
                message=f"request exceeded {self._timeout:.1f}s",
                latency_ms=_elapsed_ms(start),
            )
        except Exception as exc:  # noqa: BLE001
            error_type = "Timeout" if "timed out" in str(exc).lower() else type(exc).__name__
            return TransportError(
                url=url,
                error_type=error_type,
                message=str(exc) or error_type,
                latency_ms=_elapsed_ms(start),
            )

        latency_ms = _elapsed_ms(start)
        status_code = int(getattr(response, "status_code", 0) or 0)
        if not 200 <= status_code < 300:
            log_event(
                logger,
                logging.DEBUG,
                "http_error_status",
                url=url,
                status_code=status_code,
                identity=identity.name,
            )
            return TransportError(
                url=url,
                error_type=f"HTTP_{status_code}",
                message=f"HTTP {status_code}",
                status_code=status_code,
                latency_ms=latency_ms,
            )
        return RawResponse(
            url=url,
            status_code=status_code,
            body=getattr(response, "text", "") or "",
            latency_ms=latency_ms,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
