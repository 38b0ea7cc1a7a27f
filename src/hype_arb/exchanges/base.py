"""
Shared plumbing for the JSON-over-HTTP adapters.

Both venues speak JSON over plain HTTP, so the adapters share one
``requests.Session`` per instance and one request helper that turns
transport failures, non-2xx statuses and undecodable bodies into
``UpstreamError``.
"""

from __future__ import annotations

import logging
from abc import ABC
from typing import Any, Optional

import requests

from hype_arb.core.errors import UpstreamError

_REQUEST_TIMEOUT = 10
_HEADERS = {"Content-Type": "application/json"}


class HttpAdapter(ABC):
    """
    Base class for adapters talking to a single JSON HTTP API.

    Parameters
    ----------
    base_url : str
        Root URL of the API; trailing slashes are stripped.
    timeout : float
        Seconds before a request is abandoned. Every call carries it so a
        stalled connection cannot hang the caller.
    session : requests.Session, optional
        Injected for testing; a private session is created otherwise.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = _REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.logger = logger or logging.getLogger(__name__)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        """Release the underlying session if this adapter created it."""
        if self._owns_session:
            self._session.close()

    def _request(
        self,
        method: str,
        path: str = "",
        *,
        json_body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        url = self._base_url + path
        try:
            response = self._session.request(
                method,
                url,
                json=json_body,
                params=params,
                headers=_HEADERS,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"{method} {url} failed: {exc}") from exc

        if not response.ok:
            raise UpstreamError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Malformed JSON body from {url}: {exc}") from exc
