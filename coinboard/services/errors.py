from __future__ import annotations

from typing import Any


class MarketDataError(RuntimeError):
    """Base class for every failure the gateway reports to its callers."""

    code = "market_data_error"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidParameterError(MarketDataError):
    code = "invalid_parameter"
    status_code = 400


class CoinNotFoundError(MarketDataError):
    code = "not_found"
    status_code = 404


class UpstreamUnavailableError(MarketDataError):
    code = "upstream_unavailable"
    status_code = 502


class UpstreamTimeoutError(UpstreamUnavailableError):
    code = "upstream_timeout"
    status_code = 504


class UnsupportedCapabilityError(MarketDataError):
    code = "unsupported_capability"
    status_code = 501
