"""High-level exports for the redirect resolution workflows."""

from .batch_fetch import BasicCredentials, BatchFetcher, FetchConfig, RequestData
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from .intake import build_tracked_urls
from .report import RedirectReport, ResponseRecord, TrackedURL, merge_round
from .report_writers import write_reports
from .resolver import RedirectResolver, ResolutionOutcome

__all__ = [
    "BasicCredentials",
    "BatchFetcher",
    "FetchConfig",
    "RequestData",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticLog",
    "build_tracked_urls",
    "RedirectReport",
    "ResponseRecord",
    "TrackedURL",
    "merge_round",
    "write_reports",
    "RedirectResolver",
    "ResolutionOutcome",
]
