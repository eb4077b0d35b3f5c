"""Chunked, non-following HTTP fetches that yield one record per request."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp
from dotenv import load_dotenv

from .defaults import (
    CONCURRENT_REQUESTS_DEFAULT,
    ENV_CONCURRENCY,
    ENV_MAX_ROUNDS,
    ENV_TIMEOUT,
    ENV_USER_AGENT,
    HDR_AUTHORIZATION,
    HDR_LOCATION,
    HDR_USER_AGENT,
    MAX_ROUNDS_DEFAULT,
    REQUEST_TIMEOUT_DEFAULT,
    USER_AGENT_DEFAULT,
)
from .report import ERROR_TYPE_CANCELLED, ResponseRecord

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str

    @classmethod
    def parse(cls, raw: str) -> "BasicCredentials":
        """Parse ``username:password``; the password may itself contain colons."""
        username, sep, password = (raw or "").partition(":")
        if not sep or not username or not password:
            raise ValueError("auth must be in the form username:password")
        return cls(username=username, password=password)

    def header_value(self) -> str:
        return aiohttp.BasicAuth(self.username, self.password).encode()


@dataclass
class FetchConfig:
    """Configuration parameters for redirect resolution."""

    concurrency: int = CONCURRENT_REQUESTS_DEFAULT
    timeout: float = REQUEST_TIMEOUT_DEFAULT
    max_rounds: int = MAX_ROUNDS_DEFAULT
    user_agent: str = USER_AGENT_DEFAULT
    resolve_relative_locations: bool = True
    credentials: Optional[BasicCredentials] = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def from_env(cls, **overrides) -> "FetchConfig":
        """Build a config from ``.env``/environment, then apply explicit overrides."""
        load_dotenv()
        values = {
            "concurrency": _env_int(ENV_CONCURRENCY, CONCURRENT_REQUESTS_DEFAULT),
            "timeout": _env_float(ENV_TIMEOUT, REQUEST_TIMEOUT_DEFAULT),
            "max_rounds": _env_int(ENV_MAX_ROUNDS, MAX_ROUNDS_DEFAULT),
            "user_agent": os.getenv(ENV_USER_AGENT, "").strip() or USER_AGENT_DEFAULT,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass(frozen=True)
class RequestData:
    id: str
    url: str


def chunk(items: Sequence[RequestData], batch_size: int) -> List[List[RequestData]]:
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


class BatchFetcher:
    """Chunked concurrent GETs that never follow redirects themselves."""

    def __init__(self, config: FetchConfig) -> None:
        self.config = config

    def open_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(limit=self.config.concurrency)
        return aiohttp.ClientSession(connector=connector)

    async def fetch_batch(
        self,
        requests: Sequence[RequestData],
        *,
        session: Optional[aiohttp.ClientSession] = None,
        cancel_event: Optional[asyncio.Event] = None,
        round_index: int = 0,
    ) -> List[ResponseRecord]:
        """Return exactly one record per request.

        Requests run in consecutive chunks of ``config.concurrency``; a chunk
        settles completely before the next one is dispatched. When
        ``cancel_event`` is set, undispatched requests resolve to cancelled
        records.
        """
        if session is None:
            async with self.open_session() as own_session:
                return await self.fetch_batch(
                    requests,
                    session=own_session,
                    cancel_event=cancel_event,
                    round_index=round_index,
                )

        results: List[ResponseRecord] = []
        chunks = chunk(requests, self.config.concurrency)
        for position, group in enumerate(chunks, start=1):
            if cancel_event is not None and cancel_event.is_set():
                results.extend(self._cancelled_record(request, round_index) for request in group)
                continue
            logger.debug(
                "round %d chunk %d/%d: %d requests", round_index, position, len(chunks), len(group)
            )
            records = await asyncio.gather(
                *(self._fetch_request(session, request, round_index) for request in group)
            )
            results.extend(records)
        return results

    async def _fetch_request(
        self,
        session: aiohttp.ClientSession,
        request: RequestData,
        round_index: int,
    ) -> ResponseRecord:
        headers = {HDR_USER_AGENT: self.config.user_agent}
        auth_retried = False
        try:
            status, location = await self._fetch_once(session, request.url, headers)
            if status == 401 and self.config.credentials is not None:
                auth_retried = True
                logger.debug("401 from %s; retrying with basic auth", request.url)
                auth_headers = {**headers, HDR_AUTHORIZATION: self.config.credentials.header_value()}
                status, location = await self._fetch_once(session, request.url, auth_headers)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            return ResponseRecord(
                id=request.id,
                url=request.url,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
                auth_retried=auth_retried,
                round=round_index,
            )
        return ResponseRecord(
            id=request.id,
            url=request.url,
            status_code=status,
            location=location,
            auth_retried=auth_retried,
            round=round_index,
        )

    async def _fetch_once(
        self,
        session: aiohttp.ClientSession,
        url: str,
        headers: Dict[str, str],
    ) -> Tuple[int, Optional[str]]:
        async with session.get(
            url,
            headers=headers,
            allow_redirects=False,
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
        ) as resp:
            return resp.status, resp.headers.get(HDR_LOCATION)

    @staticmethod
    def _cancelled_record(request: RequestData, round_index: int) -> ResponseRecord:
        return ResponseRecord(
            id=request.id,
            url=request.url,
            error="request cancelled before dispatch",
            error_type=ERROR_TYPE_CANCELLED,
            round=round_index,
        )
