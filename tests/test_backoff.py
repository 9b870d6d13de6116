"""Tests for the LinearBackoff class."""

import unittest

from coinscraper.backoff import LinearBackoff
from coinscraper.models import SourceProfile


class TestLinearBackoff(unittest.TestCase):
    """Verify linear backoff scaled by the domain interval."""

    def setUp(self):
        self.profile = SourceProfile(domain="example.com", min_request_interval_ms=1000)

    def test_first_attempt_does_not_wait(self):
        """Attempt 0 is the initial request and never waits."""
        self.assertEqual(LinearBackoff().get_sleep(0, self.profile), 0.0)

    def test_linear_growth(self):
        """Attempt i waits interval * (i + 1)."""
        backoff = LinearBackoff()
        self.assertAlmostEqual(backoff.get_sleep(1, self.profile), 2.0)
        self.assertAlmostEqual(backoff.get_sleep(2, self.profile), 3.0)
        self.assertAlmostEqual(backoff.get_sleep(4, self.profile), 5.0)

    def test_scales_with_domain_interval(self):
        """More defensive sites back off harder."""
        slow = SourceProfile(domain="slow.example", min_request_interval_ms=5000)
        backoff = LinearBackoff()
        self.assertGreater(backoff.get_sleep(1, slow), backoff.get_sleep(1, self.profile))

    def test_zero_interval_means_no_wait(self):
        fast = SourceProfile(domain="fast.example", min_request_interval_ms=0)
        self.assertEqual(LinearBackoff().get_sleep(3, fast), 0.0)

    def test_respects_max_seconds(self):
        backoff = LinearBackoff(max_seconds=2.5)
        self.assertEqual(backoff.get_sleep(10, self.profile), 2.5)

    def test_deterministic(self):
        """No jitter: repeated calls return the same value."""
        backoff = LinearBackoff()
        self.assertEqual(backoff.get_sleep(2, self.profile), backoff.get_sleep(2, self.profile))


if __name__ == "__main__":
    unittest.main()
