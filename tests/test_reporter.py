"""Tests for the PerformanceReporter and its sinks."""

import json
import os
import tempfile
import threading
import time
import unittest

from coinscraper.reporter import (
    JsonlPerformanceSink,
    PerformanceReporter,
    PerformanceSink,
    RestPerformanceSink,
)


class _ListSink(PerformanceSink):
    def __init__(self):
        self.observations = []

    def record(self, observation):
        self.observations.append(observation)


class _BrokenSink(PerformanceSink):
    def __init__(self, delay=0.0):
        self._delay = delay
        self.calls = 0

    def record(self, observation):
        self.calls += 1
        time.sleep(self._delay)
        raise ConnectionError("store unavailable")


class _FakeSession:
    def __init__(self):
        self.posts = []
        self.closed = False

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))

        class _Resp:
            def raise_for_status(self):
                return None

        return _Resp()

    def close(self):
        self.closed = True


class TestPerformanceReporter(unittest.TestCase):
    """Verify fire-and-forget forwarding of observations."""

    def test_observations_reach_sink(self):
        sink = _ListSink()
        reporter = PerformanceReporter(sink)
        reporter.report("heritage.com", True, 1200)
        reporter.report("ebay.com", False, 300)
        reporter.close()
        self.assertEqual([o.domain for o in sink.observations], ["heritage.com", "ebay.com"])
        self.assertTrue(sink.observations[0].success)
        self.assertEqual(sink.observations[1].response_time_ms, 300)

    def test_sink_failure_is_logged_and_swallowed(self):
        sink = _BrokenSink()
        reporter = PerformanceReporter(sink)
        with self.assertLogs("coinscraper.reporter", level="WARNING") as logs:
            reporter.report("heritage.com", True, 10)
            reporter.close()
        self.assertEqual(sink.calls, 1)
        self.assertIn("performance_report_failed", logs.output[0])

    def test_report_does_not_wait_for_slow_sink(self):
        """report() returns immediately even if the sink takes a while."""
        reporter = PerformanceReporter(_BrokenSink(delay=0.5))
        start = time.monotonic()
        reporter.report("heritage.com", True, 10)
        self.assertLess(time.monotonic() - start, 0.1)
        reporter.close()

    def test_report_after_close_is_dropped(self):
        sink = _ListSink()
        reporter = PerformanceReporter(sink)
        reporter.close()
        with self.assertLogs("coinscraper.reporter", level="WARNING"):
            reporter.report("heritage.com", True, 10)
        self.assertEqual(sink.observations, [])

    def test_negative_response_time_is_clamped(self):
        sink = _ListSink()
        reporter = PerformanceReporter(sink)
        reporter.report("heritage.com", True, -5)
        reporter.close()
        self.assertEqual(sink.observations[0].response_time_ms, 0)

    def test_concurrent_reports(self):
        sink = _ListSink()
        reporter = PerformanceReporter(sink)
        threads = [
            threading.Thread(target=reporter.report, args=(f"d{i}.example", True, i)) for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        reporter.close()
        self.assertEqual(len(sink.observations), 20)


class TestSinks(unittest.TestCase):
    """Verify the bundled sink implementations."""

    def test_jsonl_sink_appends_lines(self):
        fd, path = tempfile.mkstemp(suffix=".jsonl")
        os.close(fd)
        try:
            reporter = PerformanceReporter(JsonlPerformanceSink(path))
            reporter.report("heritage.com", True, 100)
            reporter.report("heritage.com", False, 200)
            reporter.close()
            with open(path, "r", encoding="utf-8") as f:
                rows = [json.loads(line) for line in f]
        finally:
            os.remove(path)
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]["domain"], "heritage.com")
        self.assertFalse(rows[1]["success"])

    def test_rest_sink_posts_observation(self):
        session = _FakeSession()
        reporter = PerformanceReporter(
            RestPerformanceSink("https://store.example/source_performance_logs", api_key="k", session=session)
        )
        reporter.report("ebay.com", True, 450)
        reporter.close()
        url, kwargs = session.posts[0]
        self.assertEqual(url, "https://store.example/source_performance_logs")
        self.assertEqual(kwargs["json"]["source_domain"], "ebay.com")
        self.assertEqual(kwargs["json"]["response_time_ms"], 450)
        self.assertEqual(kwargs["headers"]["apikey"], "k")
        self.assertTrue(session.closed)


if __name__ == "__main__":
    unittest.main()
