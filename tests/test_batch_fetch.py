import asyncio
import base64

import aiohttp
import pytest

from redirect_tester.workflows.batch_fetch import (
    BasicCredentials,
    BatchFetcher,
    FetchConfig,
    RequestData,
    chunk,
)


def _requests(count):
    return [RequestData(id=f"id-{i}", url=f"https://s{i}.test") for i in range(count)]


def test_chunk_splits_consecutively():
    groups = chunk(_requests(7), 3)
    assert [len(g) for g in groups] == [3, 3, 1]
    assert groups[2][0].id == "id-6"


def test_fetch_batch_never_exceeds_concurrency(monkeypatch):
    state = {"active": 0, "peak": 0}

    async def slow_fetch_once(self, session, url, headers):
        state["active"] += 1
        state["peak"] = max(state["peak"], state["active"])
        await asyncio.sleep(0.01)
        state["active"] -= 1
        return 200, None

    monkeypatch.setattr(BatchFetcher, "_fetch_once", slow_fetch_once, raising=False)
    fetcher = BatchFetcher(FetchConfig(concurrency=3))

    records = asyncio.run(fetcher.fetch_batch(_requests(10)))

    assert len(records) == 10
    assert sorted(r.id for r in records) == sorted(f"id-{i}" for i in range(10))
    assert state["peak"] == 3
    assert state["active"] == 0


def test_fetch_batch_waits_for_chunk_before_next(monkeypatch):
    order = []

    async def fetch_once(self, session, url, headers):
        order.append(("start", url))
        # the first request of each chunk is the slowest
        await asyncio.sleep(0.02 if url.endswith(("s0.test", "s2.test")) else 0)
        order.append(("end", url))
        return 200, None

    monkeypatch.setattr(BatchFetcher, "_fetch_once", fetch_once, raising=False)
    asyncio.run(BatchFetcher(FetchConfig(concurrency=2)).fetch_batch(_requests(4)))

    first_chunk_done = max(order.index(("end", "https://s0.test")), order.index(("end", "https://s1.test")))
    assert order.index(("start", "https://s2.test")) > first_chunk_done


def test_transport_errors_are_isolated(fake_routes):
    fake = fake_routes(
        {
            "https://s0.test": (200, None),
            "https://s1.test": asyncio.TimeoutError(),
            "https://s2.test": (301, "https://s0.test"),
        }
    )
    fetcher = BatchFetcher(FetchConfig(concurrency=5))

    records = {r.id: r for r in asyncio.run(fetcher.fetch_batch(_requests(4)))}

    assert records["id-0"].status_code == 200
    assert records["id-1"].status_code is None
    assert records["id-1"].error_type == "TimeoutError"
    assert records["id-1"].url == "https://s1.test"
    assert records["id-2"].location == "https://s0.test"
    assert records["id-3"].error_type == "ClientConnectionError"
    assert "no route" in records["id-3"].error
    assert len(fake.calls) == 4


def test_user_agent_header_is_sent(fake_routes):
    fake = fake_routes({"https://s0.test": (200, None)})
    config = FetchConfig(user_agent="redirect-tester-test/1.0")

    asyncio.run(BatchFetcher(config).fetch_batch(_requests(1)))

    assert fake.calls[0][1]["User-Agent"] == "redirect-tester-test/1.0"
    assert "Authorization" not in fake.calls[0][1]


def _needs_auth(headers):
    if headers.get("Authorization") == "Basic " + base64.b64encode(b"user:pa:ss").decode():
        return 200, None
    return 401, None


def test_unauthorized_is_retried_once_with_credentials(fake_routes):
    fake = fake_routes({"https://s0.test": _needs_auth})
    config = FetchConfig(credentials=BasicCredentials.parse("user:pa:ss"))

    records = asyncio.run(BatchFetcher(config).fetch_batch(_requests(1)))

    assert records[0].status_code == 200
    assert records[0].auth_retried is True
    assert len(fake.calls) == 2


def test_unauthorized_without_credentials_stands(fake_routes):
    fake = fake_routes({"https://s0.test": _needs_auth})

    records = asyncio.run(BatchFetcher(FetchConfig()).fetch_batch(_requests(1)))

    assert records[0].status_code == 401
    assert records[0].auth_retried is False
    assert len(fake.calls) == 1


def test_authenticated_retry_outcome_replaces_first_attempt(fake_routes):
    fake = fake_routes({"https://s0.test": lambda headers: (401, None)})
    config = FetchConfig(credentials=BasicCredentials("user", "wrong"))

    records = asyncio.run(BatchFetcher(config).fetch_batch(_requests(1)))

    assert records[0].status_code == 401
    assert records[0].auth_retried is True
    assert len(fake.calls) == 2

    def fail_on_retry(headers):
        if "Authorization" in headers:
            raise aiohttp.ServerDisconnectedError()
        return 401, None

    fake = fake_routes({"https://s0.test": fail_on_retry})
    records = asyncio.run(BatchFetcher(config).fetch_batch(_requests(1)))

    assert records[0].status_code is None
    assert records[0].error_type == "ServerDisconnectedError"
    assert records[0].auth_retried is True


def test_cancelled_batch_returns_cancelled_records(fake_routes):
    fake = fake_routes({f"https://s{i}.test": (200, None) for i in range(4)})
    fetcher = BatchFetcher(FetchConfig(concurrency=2))

    async def run():
        event = asyncio.Event()
        event.set()
        return await fetcher.fetch_batch(_requests(4), cancel_event=event, round_index=3)

    records = asyncio.run(run())

    assert len(records) == 4
    assert all(r.cancelled for r in records)
    assert all(r.round == 3 for r in records)
    assert fake.calls == []


def test_basic_credentials_parse_rejects_malformed():
    for raw in ("", "user", "user:", ":pass"):
        with pytest.raises(ValueError):
            BasicCredentials.parse(raw)
    assert BasicCredentials.parse("u:p").header_value() == "Basic " + base64.b64encode(b"u:p").decode()


def test_fetch_config_from_env(monkeypatch):
    monkeypatch.setenv("REDIRECT_TESTER_CONCURRENCY", "7")
    monkeypatch.setenv("REDIRECT_TESTER_MAX_ROUNDS", "not-a-number")
    config = FetchConfig.from_env(timeout=3.5)
    assert config.concurrency == 7
    assert config.max_rounds == 20
    assert config.timeout == 3.5
    with pytest.raises(ValueError):
        FetchConfig(concurrency=0)
