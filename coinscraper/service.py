from __future__ import annotations

import asyncio
import datetime as _dt
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .backoff import LinearBackoff
from .config import ScraperConfig
from .controller import Dispatcher, RetryController
from .dispatcher import RequestDispatcher
from .extraction import ExtractionEngine
from .identities import DEFAULT_IDENTITIES
from .logging_utils import log_event
from .models import (
    BrowserIdentity,
    ClientInputError,
    CoinQuery,
    ExtractionResult,
    ScrapeOutcome,
    SourceProfile,
)
from .profiles import SourceProfileRegistry, normalize_domain
from .reporter import PerformanceReporter
from .url_builder import build_search_url

logger = logging.getLogger(__name__)

DispatcherFactory = Callable[[SourceProfile], Dispatcher]


@dataclass(frozen=True)
class ScrapeRequest:
    target_url: str
    query: CoinQuery
    max_attempts: int
    search_type: Optional[str] = None


@dataclass(frozen=True)
class ScrapeReport:
    source_url: str
    domain: str
    profile: SourceProfile
    outcome: ScrapeOutcome
    extraction: ExtractionResult
    processing_time_ms: int
    timestamp: str
    search_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome.success


@dataclass(frozen=True)
class ScrapeResponse:
    status_code: int
    body: Dict[str, Any]


def parse_request(payload: Any, default_max_attempts: int = 3) -> ScrapeRequest:
    """Validate the inbound JSON object; raises ClientInputError."""
    if not isinstance(payload, Mapping):
        raise ClientInputError("request body must be a JSON object")

    target_url = payload.get("targetUrl")
    if not isinstance(target_url, str) or not target_url.strip():
        raise ClientInputError("targetUrl is required")
    target_url = target_url.strip()
    if "://" not in target_url:
        target_url = "https://" + target_url

    raw_query = payload.get("coinQuery")
    if not isinstance(raw_query, Mapping):
        raise ClientInputError("coinQuery is required")

    max_attempts = payload.get("maxRetries", default_max_attempts)
    if max_attempts is None:
        max_attempts = default_max_attempts
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        raise ClientInputError("maxRetries must be an integer")

    search_type = payload.get("searchType")
    return ScrapeRequest(
        target_url=target_url,
        query=CoinQuery.from_dict(raw_query),
        max_attempts=max(1, max_attempts),
        search_type=str(search_type) if search_type is not None else None,
    )


class CoinScraper:
    """Runs one scrape per call: URL build, retry loop, extraction, feedback.

    The registry is read-only and shared; every other object (dispatcher,
    controller, attempts) is created per call."""

    def __init__(
        self,
        config: ScraperConfig,
        registry: SourceProfileRegistry,
        reporter: PerformanceReporter,
        extractor: Optional[ExtractionEngine] = None,
        dispatcher_factory: Optional[DispatcherFactory] = None,
        identities: Sequence[BrowserIdentity] = DEFAULT_IDENTITIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._registry = registry
        self._reporter = reporter
        self._extractor = extractor or ExtractionEngine()
        self._dispatcher_factory = dispatcher_factory or self._default_dispatcher
        self._identities = tuple(identities)
        self._backoff = LinearBackoff()
        self._sleep = sleep

    def _default_dispatcher(self, profile: SourceProfile) -> Dispatcher:
        return RequestDispatcher(profile, timeout=self._config.request_timeout_seconds)

    async def scrape(
        self,
        target_url: str,
        query: CoinQuery,
        max_attempts: Optional[int] = None,
        search_type: Optional[str] = None,
    ) -> ScrapeReport:
        start = time.monotonic()
        attempts = self._config.default_max_attempts if max_attempts is None else max_attempts
        domain = normalize_domain(target_url)
        profile = self._registry.resolve(domain)
        url = build_search_url(target_url, query, profile)

        if profile.requires_rendering:
            log_event(logger, logging.INFO, "rendering_expected", domain=domain, url=url)

        controller = RetryController(
            self._dispatcher_factory(profile),
            identities=self._identities,
            backoff=self._backoff,
            sleep=self._sleep,
        )
        outcome = await controller.scrape(url, profile, attempts)

        if outcome.success:
            extraction = self._extractor.extract(outcome.body, query, profile)
        else:
            extraction = ExtractionResult.empty()

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self._reporter.report(domain, outcome.success, elapsed_ms)

        log_event(
            logger,
            logging.INFO if outcome.success else logging.WARNING,
            "scrape_completed",
            domain=domain,
            url=url,
            success=outcome.success,
            attempts=outcome.attempts_used,
            prices=len(extraction.prices),
            descriptions=len(extraction.descriptions),
            confidence=extraction.confidence,
            processing_time_ms=elapsed_ms,
        )
        return ScrapeReport(
            source_url=url,
            domain=domain,
            profile=profile,
            outcome=outcome,
            extraction=extraction,
            processing_time_ms=elapsed_ms,
            timestamp=_dt.datetime.now(_dt.timezone.utc).isoformat(),
            search_type=search_type,
        )

    async def handle_request(self, payload: Any) -> ScrapeResponse:
        """JSON function boundary; always returns a well-formed response."""
        try:
            request = parse_request(payload, self._config.default_max_attempts)
        except ClientInputError as exc:
            log_event(logger, logging.INFO, "invalid_request", error=str(exc))
            return ScrapeResponse(
                status_code=400,
                body={"success": False, "error": "invalid_request", "message": str(exc)},
            )

        try:
            report = await self.scrape(
                request.target_url,
                request.query,
                max_attempts=request.max_attempts,
                search_type=request.search_type,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected scrape failure for %s", request.target_url)
            return ScrapeResponse(
                status_code=500,
                body={"success": False, "error": "internal_error", "message": str(exc)},
            )
        return build_response(report)

    async def scrape_many(self, payloads: Iterable[Any]) -> List[ScrapeResponse]:
        """Run several requests as independent tasks, bounded by max_concurrency."""
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def _run(payload: Any) -> ScrapeResponse:
            async with semaphore:
                return await self.handle_request(payload)

        return list(await asyncio.gather(*(_run(p) for p in payloads)))


def build_response(report: ScrapeReport) -> ScrapeResponse:
    outcome = report.outcome
    extraction = report.extraction
    metadata = {
        "source_url": report.source_url,
        "processing_time_ms": report.processing_time_ms,
        "user_agent_used": outcome.identity_used.user_agent if outcome.identity_used else None,
        "retry_count": outcome.attempts_used,
        "data_points_found": extraction.data_points,
        "timestamp": report.timestamp,
        "search_type": report.search_type,
        "source_category": report.profile.category.value,
        "rendering_expected": report.profile.requires_rendering,
    }
    if not outcome.success:
        metadata["bot_defense_detected"] = outcome.bot_defense_detected
        return ScrapeResponse(
            status_code=502,
            body={
                "success": False,
                "error": "scrape_failed",
                "message": outcome.error or "all attempts failed",
                "metadata": metadata,
            },
        )
    return ScrapeResponse(
        status_code=200,
        body={
            "success": True,
            "data": {
                "dataPoints": extraction.data_points,
                "prices": [float(p) for p in extraction.prices],
                "descriptions": list(extraction.descriptions),
                "confidence": extraction.confidence,
                "signals": {k: list(v) for k, v in extraction.signals.items()},
            },
            "metadata": metadata,
        },
    )
