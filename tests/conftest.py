from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

import pytest
from requests import HTTPError

from uitfkraken.common.caching import FetchCache, InMemoryBackend


def _route(url: str, params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return url
    return f"{url}?{urlencode(sorted((str(k), str(v)) for k, v in params.items()))}"


@dataclass
class FakeHttp:
    """Stand-in for `HttpRequestsAdapter`: canned bodies by URL (+ params).

    Unknown routes raise `requests.HTTPError`, like a 404 would.
    """

    responses: dict[str, bytes] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def add(
        self,
        url: str,
        body: bytes | str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> None:
        data = body.encode("utf-8") if isinstance(body, str) else body
        self.responses[_route(url, params)] = data

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        route = _route(url, params)
        self.calls.append(route)
        if route not in self.responses:
            raise HTTPError(f"404 for {route}")
        return self.responses[route]


@pytest.fixture
def fake_http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def memory_cache() -> FetchCache:
    return FetchCache(InMemoryBackend())
