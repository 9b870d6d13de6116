from __future__ import annotations

from typing import Optional

from .models import SourceProfile


class LinearBackoff:
    """Linear backoff scaled by the domain's own minimum request spacing.

    Before attempt i (0-based, i > 0) the controller waits
    min_request_interval_ms * (i + 1), so more defensive sites back off harder.
    No jitter: the schedule stays deterministic."""

    def __init__(self, max_seconds: Optional[float] = None) -> None:
        self._max = max_seconds

    def get_sleep(self, attempt: int, profile: SourceProfile) -> float:
        """Seconds to wait before the given 0-based attempt."""
        if attempt <= 0:
            return 0.0
        seconds = profile.min_request_interval_ms * (attempt + 1) / 1000.0
        if self._max is not None:
            seconds = min(self._max, seconds)
        return seconds
