from __future__ import annotations


class FetchError(Exception):
    """Base class for failures that abort one adapter target."""


class TransportError(FetchError):
    """Network failure or non-success HTTP status while reaching a provider."""


class ParseError(FetchError):
    """Payload arrived but a mandatory field is missing or malformed."""


class PersistenceError(FetchError):
    """The store rejected a write."""


class AggregationError(RuntimeError):
    """At least one dashboard branch failed; no partial snapshot is produced."""


class UnknownSourceError(ValueError):
    """Refresh token does not name a known data source."""

    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown data source: {token}")
        self.token = token


__all__ = [
    "AggregationError",
    "FetchError",
    "ParseError",
    "PersistenceError",
    "TransportError",
    "UnknownSourceError",
]
