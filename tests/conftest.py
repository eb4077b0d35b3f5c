from typing import Any, Callable, Dict, List, Tuple

import aiohttp
import pytest

from redirect_tester.workflows.batch_fetch import BatchFetcher

Outcome = Any


class FakeRoutes:
    """In-memory stand-in for the HTTP transport keyed by exact URL."""

    def __init__(self, routes: Dict[str, Outcome]) -> None:
        self.routes = routes
        self.calls: List[Tuple[str, Dict[str, str]]] = []

    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]

    async def __call__(self, fetcher, session, url: str, headers: Dict[str, str]):
        self.calls.append((url, dict(headers)))
        if url not in self.routes:
            raise aiohttp.ClientConnectionError(f"no route to {url}")
        outcome = self.routes[url]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(headers)
        return outcome


@pytest.fixture
def fake_routes(monkeypatch) -> Callable[[Dict[str, Outcome]], FakeRoutes]:
    for name in (
        "REDIRECT_TESTER_CONCURRENCY",
        "REDIRECT_TESTER_TIMEOUT",
        "REDIRECT_TESTER_MAX_ROUNDS",
        "REDIRECT_TESTER_USER_AGENT",
    ):
        monkeypatch.delenv(name, raising=False)

    def install(routes: Dict[str, Outcome]) -> FakeRoutes:
        fake = FakeRoutes(routes)

        async def fake_fetch_once(self, session, url, headers):
            return await fake(self, session, url, headers)

        monkeypatch.setattr(BatchFetcher, "_fetch_once", fake_fetch_once, raising=False)
        return fake

    return install
