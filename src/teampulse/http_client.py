"""Shared JSON-over-HTTP plumbing for the GitHub and Jira clients."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from .errors import ApiError, AuthenticationError

logger = logging.getLogger(__name__)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse provider ISO8601 timestamps into timezone-aware datetimes.

    Handles the ``Z`` suffix and Jira's ``+0000`` offsets; naive values are
    taken as UTC.
    """
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    if len(normalized) > 5 and normalized[-5] in "+-" and normalized[-4:].isdigit():
        normalized = f"{normalized[:-2]}:{normalized[-2:]}"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


class JsonApiClient:
    """Small session wrapper with retry logic for 429/5xx responses."""

    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30
    _PROVIDER = "API"

    def __init__(self, base_url: str, timeout_seconds: int = 30) -> None:
        """Initialize the session.

        Args:
            base_url: Scheme and host (plus any fixed path prefix) of the API.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def _build_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request_json("GET", path, params=params)

    def _post_json(self, path: str, body: Dict[str, Any]) -> Any:
        return self._request_json("POST", path, body=body)

    def _request_json(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Execute a request with retry logic for 429/5xx responses.

        Raises:
            AuthenticationError: If the provider rejects the credentials (401).
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return valid JSON.
        """
        url = self._build_url(path)
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"{self._PROVIDER} request failed after retries: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                backoff = self._extract_backoff_seconds(response, attempt)
                logger.debug(
                    "Retrying request",
                    extra={"url": url, "status_code": status_code, "attempt": attempt, "backoff": backoff},
                )
                time.sleep(backoff)
                continue

            if status_code == 401:
                raise AuthenticationError(f"{self._PROVIDER} rejected the configured credentials: {method} {url}")

            if status_code >= 400:
                raise ApiError(
                    f"{self._PROVIDER} request failed: "
                    f"{method} {url} returned {status_code} - {response.text}"
                )

            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(f"{self._PROVIDER} returned invalid JSON: {method} {url}") from exc

        raise ApiError(f"{self._PROVIDER} request failed after retries: {method} {url}") from last_error
