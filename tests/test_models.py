"""Tests for data model classes."""

import unittest
from decimal import Decimal

from coinscraper.models import (
    CoinQuery,
    ExtractionResult,
    SiteCategory,
    SourceProfile,
    TransportError,
)


class TestCoinQuery(unittest.TestCase):
    """Verify CoinQuery parsing from the inbound JSON shape."""

    def test_from_dict_parses_numeric_year_string(self):
        """A year given as a digit string should become an int."""
        query = CoinQuery.from_dict({"country": "USA", "year": "1921", "denomination": "Dollar"})
        self.assertEqual(query.year, 1921)
        self.assertEqual(query.country, "USA")

    def test_from_dict_drops_non_numeric_year(self):
        """A year like 'Unknown' should be treated as missing."""
        query = CoinQuery.from_dict({"year": "Unknown"})
        self.assertIsNone(query.year)

    def test_from_dict_accepts_free_text_alias(self):
        """freeText should populate the free-text fallback field."""
        query = CoinQuery.from_dict({"freeText": "  morgan dollar  "})
        self.assertEqual(query.text, "morgan dollar")

    def test_query_is_immutable(self):
        """Frozen dataclass should raise on attribute assignment."""
        query = CoinQuery(country="USA")
        with self.assertRaises(AttributeError):
            query.country = "Canada"


class TestSourceProfile(unittest.TestCase):
    """Verify SourceProfile construction rules."""

    def test_negative_interval_rejected(self):
        """A negative minimum request interval should raise ValueError."""
        with self.assertRaises(ValueError):
            SourceProfile(domain="example.com", min_request_interval_ms=-1)

    def test_category_parse_falls_back_to_unknown(self):
        """Unrecognised category strings should map to UNKNOWN."""
        self.assertEqual(SiteCategory.parse("Auction_House"), SiteCategory.AUCTION_HOUSE)
        self.assertEqual(SiteCategory.parse("forum"), SiteCategory.UNKNOWN)


class TestTransportError(unittest.TestCase):
    """Verify retryable classification of transport errors."""

    def test_rate_limit_and_server_errors_are_retryable(self):
        self.assertTrue(TransportError(url="u", error_type="HTTP_429", message="", status_code=429).retryable)
        self.assertTrue(TransportError(url="u", error_type="HTTP_503", message="", status_code=503).retryable)
        self.assertTrue(TransportError(url="u", error_type="Timeout", message="").retryable)

    def test_not_found_is_not_retryable(self):
        self.assertFalse(TransportError(url="u", error_type="HTTP_404", message="", status_code=404).retryable)


class TestExtractionResult(unittest.TestCase):
    """Verify ExtractionResult helpers."""

    def test_empty_result(self):
        """The empty result has no data and zero confidence."""
        result = ExtractionResult.empty()
        self.assertEqual(result.prices, ())
        self.assertEqual(result.descriptions, ())
        self.assertEqual(result.confidence, 0.0)
        self.assertEqual(result.data_points, 0)

    def test_data_points_counts_prices_and_descriptions(self):
        result = ExtractionResult(prices=(Decimal("1"), Decimal("2")), descriptions=("A long title",))
        self.assertEqual(result.data_points, 3)


if __name__ == "__main__":
    unittest.main()
