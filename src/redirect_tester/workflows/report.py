"""Report aggregate: tracked URLs, their hop chains, merge and finalization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..core.keys import (
    K_AUTH,
    K_AUTH_RETRIED,
    K_ERROR,
    K_ERROR_TYPE,
    K_FINAL_REDIRECT_STATUS_CODE,
    K_FINAL_STATUS_CODE,
    K_FINAL_URL,
    K_ID,
    K_INPUT_INDEX,
    K_INPUT_URL,
    K_LOCATION,
    K_PREFIX,
    K_PROTOCOL,
    K_REDIRECT_COUNT,
    K_REPORT,
    K_RESOLUTION_ERROR,
    K_RESPONSES,
    K_ROUND,
    K_STATUS_CODE,
    K_TARGET_REDIRECT_STATUS_CODE,
    K_TARGET_STATUS_MATCHED,
    K_TARGET_URL,
    K_TARGET_URL_MATCHED,
    K_URL,
)
from .diagnostics import DiagnosticKind, DiagnosticLog

logger = logging.getLogger(__name__)

ERROR_TYPE_CANCELLED = "cancelled"

RESOLUTION_LIMIT_EXCEEDED = "redirect_limit_exceeded"
RESOLUTION_CANCELLED = "cancelled"
RESOLUTION_NOT_FETCHED = "not_fetched"


def is_redirect_status(status: Optional[int]) -> bool:
    return status is not None and 300 <= status < 400


@dataclass
class ResponseRecord:
    """Outcome of one hop for one tracked URL."""

    id: str
    url: str
    status_code: Optional[int] = None
    location: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    auth_retried: bool = False
    round: int = 0

    @property
    def cancelled(self) -> bool:
        return self.error_type == ERROR_TYPE_CANCELLED

    @property
    def is_redirect(self) -> bool:
        """True when this hop hands off to a further hop."""
        return self.error is None and is_redirect_status(self.status_code) and bool(self.location)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_ID: self.id,
            K_URL: self.url,
            K_STATUS_CODE: self.status_code,
            K_LOCATION: self.location,
            K_ROUND: self.round,
        }
        if self.auth_retried:
            payload[K_AUTH_RETRIED] = True
        if self.error:
            payload[K_ERROR] = self.error
            payload[K_ERROR_TYPE] = self.error_type
        return payload


@dataclass
class TrackedURL:
    id: str
    input_index: int
    input_url: str
    url: str
    target_url: Optional[str] = None
    target_redirect_status_code: Optional[int] = None
    responses: List[ResponseRecord] = field(default_factory=list)
    redirect_count: Optional[int] = None
    final_status_code: Optional[int] = None
    final_url: Optional[str] = None
    final_redirect_status_code: Optional[int] = None
    target_url_matched: Optional[bool] = None
    target_status_matched: Optional[bool] = None
    resolution_error: Optional[str] = None

    @property
    def last_response(self) -> Optional[ResponseRecord]:
        return self.responses[-1] if self.responses else None

    def finalize(self) -> bool:
        """Derive the summary fields from the hop chain.

        Returns False (and leaves the fields unset) when the chain is empty.
        """
        if not self.responses:
            self.resolution_error = self.resolution_error or RESOLUTION_NOT_FETCHED
            return False
        last = self.responses[-1]
        self.redirect_count = len(self.responses) - 1
        self.final_status_code = last.status_code
        self.final_url = last.url
        redirects = [r for r in self.responses if is_redirect_status(r.status_code)]
        self.final_redirect_status_code = redirects[-1].status_code if redirects else None
        if self.target_url:
            self.target_url_matched = self.target_url == self.final_url
        if self.target_redirect_status_code is not None:
            self.target_status_matched = (
                self.target_redirect_status_code == self.final_redirect_status_code
            )
        return True

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_ID: self.id,
            K_INPUT_INDEX: self.input_index,
            K_INPUT_URL: self.input_url,
            K_URL: self.url,
            K_TARGET_URL: self.target_url,
            K_TARGET_REDIRECT_STATUS_CODE: self.target_redirect_status_code,
            K_RESPONSES: [record.to_dict() for record in self.responses],
            K_REDIRECT_COUNT: self.redirect_count,
            K_FINAL_STATUS_CODE: self.final_status_code,
            K_FINAL_URL: self.final_url,
            K_FINAL_REDIRECT_STATUS_CODE: (
                self.final_redirect_status_code
                if self.final_redirect_status_code is not None
                else ""
            ),
        }
        if self.target_url_matched is not None:
            payload[K_TARGET_URL_MATCHED] = self.target_url_matched
        if self.target_status_matched is not None:
            payload[K_TARGET_STATUS_MATCHED] = self.target_status_matched
        if self.resolution_error:
            payload[K_RESOLUTION_ERROR] = self.resolution_error
        return payload


class RedirectReport:
    """Owns every TrackedURL of a run, keyed by correlation id."""

    def __init__(
        self,
        *,
        prefix: Optional[str] = None,
        protocol: Optional[str] = None,
        auth_used: bool = False,
        used_target_urls: bool = False,
        used_target_codes: bool = False,
    ) -> None:
        self.prefix = prefix
        self.protocol = protocol
        self.auth_used = auth_used
        self.used_target_urls = used_target_urls
        self.used_target_codes = used_target_codes
        self._entries: Dict[str, TrackedURL] = {}
        self.finalized = False

    def add(self, entry: TrackedURL) -> None:
        if entry.id in self._entries:
            raise ValueError(f"duplicate correlation id: {entry.id}")
        self._entries[entry.id] = entry

    def extend(self, entries: Iterable[TrackedURL]) -> None:
        for entry in entries:
            self.add(entry)

    def get(self, entry_id: str) -> Optional[TrackedURL]:
        return self._entries.get(entry_id)

    @property
    def entries(self) -> List[TrackedURL]:
        return sorted(self._entries.values(), key=lambda e: e.input_index)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TrackedURL]:
        return iter(self.entries)

    def finalize(self, diagnostics: DiagnosticLog) -> None:
        for entry in self.entries:
            if not entry.finalize():
                diagnostics.emit(
                    DiagnosticKind.UNFETCHED_ENTRY,
                    id=entry.id,
                    input_index=entry.input_index,
                    url=entry.url,
                )
        self.finalized = True

    def summary(self) -> Dict[str, int]:
        entries = self.entries
        return {
            "total": len(entries),
            "resolved": sum(1 for e in entries if e.redirect_count is not None and not e.resolution_error),
            "redirected": sum(1 for e in entries if (e.redirect_count or 0) > 0),
            "errors": sum(
                1
                for e in entries
                if e.resolution_error or (e.last_response is not None and e.last_response.error)
            ),
            "target_url_matched": sum(1 for e in entries if e.target_url_matched is True),
            "target_url_mismatched": sum(1 for e in entries if e.target_url_matched is False),
            "target_status_matched": sum(1 for e in entries if e.target_status_matched is True),
            "target_status_mismatched": sum(1 for e in entries if e.target_status_matched is False),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            K_PREFIX: self.prefix or "",
            K_PROTOCOL: self.protocol or "",
            K_AUTH: bool(self.auth_used),
            K_REPORT: [entry.to_dict() for entry in self.entries],
        }


def merge_round(
    report: RedirectReport,
    records: Iterable[ResponseRecord],
    diagnostics: DiagnosticLog,
) -> int:
    """Append one round's records to their owning entries.

    Returns the number of records merged.
    """
    merged = 0
    for record in records:
        entry = report.get(record.id)
        input_index = entry.input_index if entry is not None else None

        if record.cancelled:
            diagnostics.emit(
                DiagnosticKind.RUN_CANCELLED,
                id=record.id,
                input_index=input_index,
                url=record.url,
            )
        elif record.error:
            diagnostics.emit(
                DiagnosticKind.TRANSPORT_ERROR,
                id=record.id,
                input_index=input_index,
                url=record.url,
                error=record.error,
                error_type=record.error_type,
            )
        elif record.auth_retried and record.status_code == 401:
            diagnostics.emit(
                DiagnosticKind.UNAUTHORIZED_RETRY_EXHAUSTED,
                id=record.id,
                input_index=input_index,
                url=record.url,
            )

        if entry is None:
            diagnostics.emit(
                DiagnosticKind.MERGE_INVARIANT_VIOLATION,
                id=record.id,
                url=record.url,
            )
            continue
        if record.cancelled:
            entry.resolution_error = RESOLUTION_CANCELLED
        entry.responses.append(record)
        merged += 1
    logger.debug("merged %d records", merged)
    return merged
