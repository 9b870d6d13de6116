from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol, Sequence, Tuple

from .backoff import LinearBackoff
from .identities import DEFAULT_IDENTITIES, identity_for_attempt
from .logging_utils import log_event
from .models import (
    BrowserIdentity,
    FetchResult,
    RawResponse,
    ScrapeAttempt,
    ScrapeOutcome,
    SourceProfile,
)

logger = logging.getLogger(__name__)

BOT_DEFENSE_MARKERS: Tuple[str, ...] = ("captcha", "blocked", "access denied")

# Statuses that anti-bot sites use for challenge pages.
BOT_DEFENSE_STATUSES = frozenset({403, 429})


class Dispatcher(Protocol):
    async def fetch_once(self, url: str, identity: BrowserIdentity) -> FetchResult: ...


def detect_bot_defense(body: str) -> bool:
    lowered = (body or "").lower()
    return any(marker in lowered for marker in BOT_DEFENSE_MARKERS)


class RetryController:
    """Drives sequential fetch attempts across rotated browser identities.

    Stops at the first clean response. A 2xx body carrying a bot-defense
    marker counts as a failure. Attempts are never run in parallel."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        identities: Sequence[BrowserIdentity] = DEFAULT_IDENTITIES,
        backoff: Optional[LinearBackoff] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not identities:
            raise ValueError("identities must not be empty")
        self._dispatcher = dispatcher
        self._identities = tuple(identities)
        self._backoff = backoff or LinearBackoff()
        self._sleep = sleep

    async def scrape(self, url: str, profile: SourceProfile, max_attempts: int = 3) -> ScrapeOutcome:
        max_attempts = max(1, int(max_attempts))
        last: Optional[ScrapeAttempt] = None

        for i in range(max_attempts):
            identity = identity_for_attempt(self._identities, i)
            if i > 0:
                await self._sleep(self._backoff.get_sleep(i, profile))

            attempt = ScrapeAttempt(identity=identity, started_at=time.time())
            result = await self._dispatcher.fetch_once(url, identity)
            attempt.http_status = result.status_code
            retryable = True

            if isinstance(result, RawResponse):
                if detect_bot_defense(result.body):
                    attempt.bot_defense_detected = True
                    attempt.error = "Bot defense detected in response body"
                else:
                    attempt.response_body = result.body
                    log_event(
                        logger,
                        logging.INFO,
                        "scrape_attempt_succeeded",
                        url=url,
                        attempt=i + 1,
                        identity=identity.name,
                        status_code=result.status_code,
                        latency_ms=result.latency_ms,
                    )
                    return ScrapeOutcome(
                        success=True,
                        identity_used=identity,
                        attempts_used=i + 1,
                        body=attempt.response_body,
                        status_code=result.status_code,
                    )
            else:
                attempt.error = f"{result.error_type}: {result.message}"
                retryable = result.retryable
                attempt.bot_defense_detected = (
                    profile.has_anti_bot and result.status_code in BOT_DEFENSE_STATUSES
                )

            log_event(
                logger,
                logging.WARNING,
                "scrape_attempt_failed",
                url=url,
                attempt=i + 1,
                max_attempts=max_attempts,
                identity=identity.name,
                status_code=attempt.http_status,
                bot_defense=attempt.bot_defense_detected,
                error=attempt.error,
                retryable=retryable,
            )
            last = attempt

        return ScrapeOutcome(
            success=False,
            identity_used=last.identity if last else None,
            attempts_used=max_attempts,
            error=last.error if last else "no attempts made",
            status_code=last.http_status if last else None,
            bot_defense_detected=last.bot_defense_detected if last else False,
        )
