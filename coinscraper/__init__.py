"""Resilient coin price scraper package.

Retrieves pricing and description data for a coin query from auction houses,
marketplaces and reference databases, retrying across rotated browser
identities and reporting per-source reliability back to a performance store.

Key modules:
    profiles        -- SourceProfileRegistry and the built-in domain table
    url_builder     -- build_search_url for domain-appropriate search URLs
    identities      -- realistic browser identity pool
    rate_limiter    -- IntervalGate for per-domain request spacing
    dispatcher      -- RequestDispatcher, one GET per call
    backoff         -- LinearBackoff scaled by the domain's spacing
    controller      -- RetryController, sequential attempts with rotation
    extraction      -- ExtractionEngine for prices, descriptions, confidence
    reporter        -- PerformanceReporter and its sinks
    service         -- CoinScraper pipeline and JSON request boundary
    config          -- ScraperConfig loaded from the environment
    models          -- dataclasses shared by all of the above
"""
