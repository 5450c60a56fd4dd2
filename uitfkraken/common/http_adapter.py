"""
requests-backed transport used by every source adapter.

`HttpRequestsAdapter.get` performs one GET and returns the body bytes. It
does not cache, sleep or retry:

- caching is `uitfkraken.common.caching.FetchCache`
- the politeness delay is applied by `uitfkraken.sources.common.cached_get`
- a failed request raises; a rerun resumes from the cache

Session headers (User-Agent included) and a default timeout are fixed at
construction; per-call headers are merged over them by ``requests``. One
instance per thread.
"""

from __future__ import annotations

import logging
from types import MappingProxyType, TracebackType
from typing import Any, Mapping, Optional, Type

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "uitfkraken/0.3 (+https://github.com/uitfkraken)"

_BASE_HEADERS: Mapping[str, str] = {
    "Accept": "*/*",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}


class HttpRequestsAdapter:
    """GET-only HTTP client over a shared ``requests.Session``.

    Args:
        user_agent: ``User-Agent`` sent with every request (``default_headers``
            may still override it).
        default_timeout: Seconds used when a call passes no timeout.
        default_headers: Extra session-wide headers.
    """

    default_headers: Mapping[str, str]

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        default_timeout: float = 30.0,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._timeout = float(default_timeout)
        self._session = requests.Session()
        self._session.headers.update(
            {**_BASE_HEADERS, "User-Agent": user_agent, **(default_headers or {})}
        )
        self.default_headers = MappingProxyType(
            {str(k): str(v) for k, v in self._session.headers.items()}
        )

    @property
    def default_timeout(self) -> float:
        return self._timeout

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        """Fetch `url` (with query `params`) and return the response body.

        Raises:
            ValueError: For an empty URL.
            requests.HTTPError: On a 4xx/5xx status.
            requests.RequestException: On connection failures and timeouts.
        """
        if not url:
            raise ValueError("url must be a non-empty string")
        logger.debug("GET %s %s", url, dict(params or {}))
        response = self._session.get(
            url,
            params=dict(params or {}),
            headers=dict(headers or {}),
            timeout=float(timeout or self._timeout),
            allow_redirects=True,
        )
        response.raise_for_status()
        return response.content

    def describe(self) -> str:
        return f"requests session, timeout {self._timeout:g}s"

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpRequestsAdapter":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()


__all__ = ["DEFAULT_USER_AGENT", "HttpRequestsAdapter"]
