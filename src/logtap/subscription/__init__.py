"""Live path: the subscription handle and the multiplexers that drain it."""

from logtap.subscription.multiplexer import (
    HeadMultiplexer,
    Multiplexer,
    MultiplexerState,
    MultiplexerStats,
    SubscriptionMultiplexer,
    TerminationReason,
)
from logtap.subscription.stream import HeadSubscription, LogSubscription, Subscription

__all__ = [
    "HeadMultiplexer",
    "HeadSubscription",
    "LogSubscription",
    "Multiplexer",
    "MultiplexerState",
    "MultiplexerStats",
    "Subscription",
    "SubscriptionMultiplexer",
    "TerminationReason",
]
