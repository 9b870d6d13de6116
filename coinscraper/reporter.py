from __future__ import annotations

import json
import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Optional

import requests

from .logging_utils import log_event
from .models import PerformanceObservation

logger = logging.getLogger(__name__)


class PerformanceSink(ABC):
    """External store that accepts one performance observation at a time.

    The store owns aggregation (success rate, mean response time) and must
    tolerate concurrent appends."""

    @abstractmethod
    def record(self, observation: PerformanceObservation) -> None:
        """Persist a single observation."""

    def close(self) -> None:
        """Release resources."""


class JsonlPerformanceSink(PerformanceSink):
    """Appends observations to a JSON Lines file."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._fh = open(path, "a", encoding="utf-8")

    def record(self, observation: PerformanceObservation) -> None:
        self._fh.write(json.dumps(asdict(observation), ensure_ascii=False) + "\n")
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()


class RestPerformanceSink(PerformanceSink):
    """Posts observations to a REST table such as source_performance_logs."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json", "Prefer": "return=minimal"}
        if api_key:
            self._headers["apikey"] = api_key
            self._headers["Authorization"] = f"Bearer {api_key}"

    def record(self, observation: PerformanceObservation) -> None:
        resp = self._session.post(
            self._url,
            json={
                "source_domain": observation.domain,
                "success": observation.success,
                "response_time_ms": observation.response_time_ms,
                "recorded_at": observation.recorded_at,
            },
            headers=self._headers,
            timeout=self._timeout,
        )
        resp.raise_for_status()

    def close(self) -> None:
        self._session.close()


class PerformanceReporter:
    """Best-effort, fire-and-forget feed of per-scrape observations.

    report() only enqueues; a background writer thread forwards observations
    to the sink. Sink failures are logged and dropped."""

    def __init__(self, sink: PerformanceSink) -> None:
        self._sink = sink
        self._queue: queue.Queue[Optional[PerformanceObservation]] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._writer, name="perf-reporter", daemon=True)
        self._thread.start()

    def report(self, domain: str, success: bool, response_time_ms: int) -> None:
        """Enqueue one observation; never raises."""
        try:
            if self._closed:
                raise RuntimeError("reporter is closed")
            observation = PerformanceObservation(
                domain=domain,
                success=bool(success),
                response_time_ms=max(0, int(response_time_ms)),
            )
            self._queue.put_nowait(observation)
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "performance_report_dropped", domain=domain, error=str(exc))

    def close(self, timeout: float = 5.0) -> None:
        """Signal the writer thread to flush and stop."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        self._thread.join(timeout=timeout)
        try:
            self._sink.close()
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "performance_sink_close_failed", error=str(exc))

    def _writer(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            try:
                self._sink.record(item)
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    logging.WARNING,
                    "performance_report_failed",
                    domain=item.domain,
                    success=item.success,
                    error=str(exc),
                )
