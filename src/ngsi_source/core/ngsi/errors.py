# ngsi_source/core/ngsi/errors.py
"""
Errors raised by the NGSI client and the subscription layer.

None of them escape the coordinator: they are logged where they happen and
the operator degrades to "no subscription" or "stale snapshot".
"""
from __future__ import annotations

import httpx


class NGSIError(Exception):
    """Base class for context broker errors."""


class ProxyConnectionError(NGSIError):
    """The notification proxy is missing or could not be reached."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class BrokerConnectionError(NGSIError):
    """The context broker could not be reached."""


class BrokerRejectedError(NGSIError):
    """The context broker answered with an error status."""

    def __init__(self, status_code: int, error: str = "", description: str = "") -> None:
        self.status_code = status_code
        self.error = error
        self.description = description
        detail = description or error or "no details"
        super().__init__(f"Context broker returned {status_code}: {detail}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> BrokerRejectedError:
        error = description = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = str(body.get("error", ""))
            description = str(body.get("description", ""))
        return cls(response.status_code, error, description)
