"""Historical path: rate-limited, retrying range fetcher."""

from logtap.fetching.range_fetcher import RangeFetcher, fetch_range
from logtap.fetching.ticker import RateTicker

__all__ = [
    "RangeFetcher",
    "RateTicker",
    "fetch_range",
]
