"""Round-based redirect resolution over a RedirectReport."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from .batch_fetch import BatchFetcher, FetchConfig, RequestData
from .diagnostics import DiagnosticKind, DiagnosticLog
from .report import (
    RESOLUTION_CANCELLED,
    RESOLUTION_LIMIT_EXCEEDED,
    RedirectReport,
    ResponseRecord,
    merge_round,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolutionOutcome:
    rounds: int
    requests: int
    cancelled: bool = False
    limit_exceeded: int = 0


class RedirectResolver:
    """Follow Location headers hop by hop until every entry is terminal."""

    def __init__(
        self,
        config: FetchConfig,
        diagnostics: DiagnosticLog,
        fetcher: Optional[BatchFetcher] = None,
    ) -> None:
        self.config = config
        self.diagnostics = diagnostics
        self.fetcher = fetcher or BatchFetcher(config)
        self._cancel_event = asyncio.Event()

    def cancel(self) -> None:
        """Stop issuing work; the report can still be finalized afterwards."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def next_url(self, record: ResponseRecord) -> str:
        location = record.location or ""
        if self.config.resolve_relative_locations:
            return urljoin(record.url, location)
        return location

    def next_requests(self, records: Sequence[ResponseRecord]) -> List[RequestData]:
        return [
            RequestData(id=record.id, url=self.next_url(record))
            for record in records
            if record.is_redirect
        ]

    async def resolve(self, report: RedirectReport) -> ResolutionOutcome:
        requests = [RequestData(id=entry.id, url=entry.url) for entry in report]
        outcome = ResolutionOutcome(rounds=0, requests=0)
        if not requests:
            return outcome

        async with self.fetcher.open_session() as session:
            while requests:
                if self.cancelled:
                    outcome.cancelled = True
                    self._abandon(report, requests)
                    break
                if outcome.rounds >= self.config.max_rounds:
                    outcome.limit_exceeded = self._force_terminal(report, requests)
                    break
                logger.info("round %d: %d requests", outcome.rounds, len(requests))
                records = await self.fetcher.fetch_batch(
                    requests,
                    session=session,
                    cancel_event=self._cancel_event,
                    round_index=outcome.rounds,
                )
                merge_round(report, records, self.diagnostics)
                outcome.rounds += 1
                outcome.requests += len(records)
                requests = self.next_requests(records)

        if self.cancelled:
            outcome.cancelled = True
        return outcome

    def _abandon(self, report: RedirectReport, pending: Sequence[RequestData]) -> None:
        """Mark entries whose next hop will never be requested."""
        for request in pending:
            entry = report.get(request.id)
            input_index = None
            if entry is not None:
                entry.resolution_error = RESOLUTION_CANCELLED
                input_index = entry.input_index
            self.diagnostics.emit(
                DiagnosticKind.RUN_CANCELLED,
                id=request.id,
                input_index=input_index,
                url=request.url,
            )

    def _force_terminal(self, report: RedirectReport, pending: Sequence[RequestData]) -> int:
        for request in pending:
            entry = report.get(request.id)
            visited = False
            input_index = None
            if entry is not None:
                entry.resolution_error = RESOLUTION_LIMIT_EXCEEDED
                input_index = entry.input_index
                visited = any(r.url == request.url for r in entry.responses)
            self.diagnostics.emit(
                DiagnosticKind.REDIRECT_LIMIT_EXCEEDED,
                id=request.id,
                input_index=input_index,
                url=request.url,
                max_rounds=self.config.max_rounds,
                cycle=visited,
            )
        return len(pending)
