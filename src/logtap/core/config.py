from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RangeFetchConfig:
    """Configuration for the historical range fetcher."""

    per_item_timeout_s: float = 10.0  # fresh deadline for every attempt
    rate_interval_s: float = 0.2  # spacing between rate-limit ticks
    max_retries: int = 3  # total attempts per height
    base_backoff_s: float = 0.5  # sleep attempt * base_backoff_s between attempts

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.per_item_timeout_s <= 0:
            raise ValueError("per_item_timeout_s must be > 0")
        if self.rate_interval_s < 0 or self.base_backoff_s < 0:
            raise ValueError("rate_interval_s and base_backoff_s must be >= 0")


@dataclass(frozen=True)
class SubscribeConfig:
    """Configuration for the live log subscription (CLI)."""

    rpc_url: str
    address: str
    topic0s: list[str] = field(default_factory=list)  # empty → every log of the contract
    poll_interval_s: float = 2.0
    timeout_s: int = 20
    queue_size: int = 1  # records buffered between producer and multiplexer
