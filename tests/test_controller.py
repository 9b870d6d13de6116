"""Tests for the RetryController class."""

import unittest

from coinscraper.backoff import LinearBackoff
from coinscraper.controller import RetryController, detect_bot_defense
from coinscraper.identities import DEFAULT_IDENTITIES
from coinscraper.models import RawResponse, SourceProfile, TransportError

URL = "https://coins.example/search?q=coin"


def _ok(body="<title>1921 Morgan Dollar</title>"):
    return RawResponse(url=URL, status_code=200, body=body)


def _fail(status=503):
    return TransportError(url=URL, error_type=f"HTTP_{status}", message=f"HTTP {status}", status_code=status)


class _ScriptedDispatcher:
    """Returns a fixed sequence of outcomes and records identities used."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.identities = []

    async def fetch_once(self, url, identity):
        self.identities.append(identity)
        return self._outcomes.pop(0)


class _SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class TestRetryController(unittest.IsolatedAsyncioTestCase):
    """Verify attempt sequencing, rotation and bot-defense handling."""

    def setUp(self):
        self.profile = SourceProfile(domain="coins.example", min_request_interval_ms=1000, has_anti_bot=True)
        self.sleep = _SleepRecorder()

    def _controller(self, dispatcher):
        return RetryController(dispatcher, DEFAULT_IDENTITIES, LinearBackoff(), sleep=self.sleep)

    async def test_fail_fail_success_uses_three_identities(self):
        """Third attempt succeeds with the third rotated identity."""
        dispatcher = _ScriptedDispatcher([_fail(), _fail(), _ok("third body")])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts_used, 3)
        self.assertEqual(outcome.body, "third body")
        self.assertEqual(len(dispatcher.identities), 3)
        self.assertEqual(len({i.name for i in dispatcher.identities}), 3)
        self.assertEqual(outcome.identity_used, DEFAULT_IDENTITIES[2])

    async def test_backoff_waits_scale_with_attempt(self):
        """Waits are interval * (i + 1) before attempts 1 and 2 only."""
        dispatcher = _ScriptedDispatcher([_fail(), _fail(), _ok()])
        await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertEqual(self.sleep.calls, [2.0, 3.0])

    async def test_first_success_short_circuits(self):
        dispatcher = _ScriptedDispatcher([_ok(), _ok()])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertEqual(outcome.attempts_used, 1)
        self.assertEqual(len(dispatcher.identities), 1)
        self.assertEqual(self.sleep.calls, [])

    async def test_captcha_on_http_200_is_failure(self):
        """Bot-defense content beats a 2xx status."""
        dispatcher = _ScriptedDispatcher([_ok("Please solve the CAPTCHA"), _ok("<h1>Real listing page</h1>")])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts_used, 2)
        self.assertEqual(outcome.body, "<h1>Real listing page</h1>")

    async def test_captcha_only_exhausts_attempts(self):
        dispatcher = _ScriptedDispatcher([_ok("captcha")] * 3)
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertFalse(outcome.success)
        self.assertTrue(outcome.bot_defense_detected)
        self.assertIsNone(outcome.body)

    async def test_all_failures_stop_after_max_attempts(self):
        """Exactly max_attempts calls are made, never one more."""
        dispatcher = _ScriptedDispatcher([_fail(500), _fail(502), _fail(404), _ok()])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=3)
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.attempts_used, 3)
        self.assertEqual(len(dispatcher.identities), 3)
        self.assertEqual(outcome.status_code, 404)
        self.assertIn("HTTP_404", outcome.error)
        self.assertEqual(outcome.identity_used, DEFAULT_IDENTITIES[2])

    async def test_failed_attempt_log_marks_retryable(self):
        """Failure logs say whether the error class is worth retrying."""
        dispatcher = _ScriptedDispatcher([_fail(503), _fail(404)])
        with self.assertLogs("coinscraper.controller", level="WARNING") as logs:
            await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=2)
        self.assertIn('"retryable": true', logs.output[0])
        self.assertIn('"retryable": false', logs.output[1])

    async def test_rotation_wraps_around_pool(self):
        n = len(DEFAULT_IDENTITIES)
        dispatcher = _ScriptedDispatcher([_fail()] * n + [_ok()])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=n + 1)
        self.assertTrue(outcome.success)
        self.assertEqual(dispatcher.identities[n], DEFAULT_IDENTITIES[0])

    async def test_anti_bot_profile_flags_403(self):
        dispatcher = _ScriptedDispatcher([_fail(403)])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=1)
        self.assertTrue(outcome.bot_defense_detected)

    async def test_plain_profile_does_not_flag_403(self):
        profile = SourceProfile(domain="coins.example", min_request_interval_ms=0, has_anti_bot=False)
        dispatcher = _ScriptedDispatcher([_fail(403)])
        outcome = await self._controller(dispatcher).scrape(URL, profile, max_attempts=1)
        self.assertFalse(outcome.bot_defense_detected)

    async def test_max_attempts_below_one_still_tries_once(self):
        dispatcher = _ScriptedDispatcher([_ok()])
        outcome = await self._controller(dispatcher).scrape(URL, self.profile, max_attempts=0)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts_used, 1)


class TestDetectBotDefense(unittest.TestCase):
    """Verify the bot-defense marker heuristic."""

    def test_markers_are_case_insensitive(self):
        self.assertTrue(detect_bot_defense("ACCESS DENIED"))
        self.assertTrue(detect_bot_defense("Your request was Blocked"))
        self.assertTrue(detect_bot_defense("<div id='captcha'></div>"))

    def test_clean_page(self):
        self.assertFalse(detect_bot_defense("<title>1921 Morgan Dollar</title>"))
        self.assertFalse(detect_bot_defense(""))


if __name__ == "__main__":
    unittest.main()
