from __future__ import annotations

import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class HttpClient:
    """JSON-over-HTTP transport authenticated with the DevShed API key header."""

    def __init__(self, api_key: str, timeout_seconds: float | None = None):
        self._timeout_seconds = timeout_seconds
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "X-API-KEY": api_key,
            }
        )

    def send_json(self, method: str, url: str, payload: dict[str, Any] | None = None) -> Any:
        """Send ``payload`` and return the decoded body, or None when the body is empty."""
        method = method.upper()
        kwargs: dict[str, Any] = {"timeout": self._timeout_seconds}
        if payload is not None and method in ("POST", "PUT"):
            kwargs["json"] = payload

        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        if not response.ok:
            raise TransportError(
                f"HTTP {response.status_code}: {response.reason or ''}".rstrip(),
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON in response from {url}: {exc}") from exc

    def close(self) -> None:
        self._session.close()
