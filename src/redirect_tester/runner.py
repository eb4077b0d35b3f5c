from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import console as term
from .workflows.batch_fetch import BasicCredentials, BatchFetcher, FetchConfig
from .workflows.diagnostics import DiagnosticLog
from .workflows.intake import build_tracked_urls
from .workflows.report import RedirectReport
from .workflows.report_writers import write_reports
from .workflows.resolver import RedirectResolver, ResolutionOutcome

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_INPUT = 2
EXIT_DEGRADED = 3

PROGRAM = "redirect-tester check"


class InputValidationError(ValueError):
    """Raised for bad CLI input before any network activity."""

    def __init__(self, message: str, example: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.example = example


@dataclass
class RunOptions:
    sites: Sequence[str]
    targets: Sequence[str] = ()
    codes: Sequence[str] = ()
    prefix: Optional[str] = None
    protocol: Optional[str] = None
    auth: Optional[str] = None
    concurrency: Optional[int] = None
    timeout: Optional[float] = None
    max_rounds: Optional[int] = None
    resolve_relative_locations: bool = True
    json_out: bool = False
    xlsx_out: bool = False
    filename: Optional[str] = None
    out_dir: Optional[Path] = None


@dataclass
class ValidatedInputs:
    credentials: Optional[BasicCredentials]
    target_urls: List[Optional[str]] = field(default_factory=list)
    target_codes: List[Optional[int]] = field(default_factory=list)


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-delimited option, keeping empty positions."""
    if value is None or value == "":
        return []
    return [token.strip() for token in value.split(",")]


def parse_target_codes(codes: Sequence[str]) -> List[Optional[int]]:
    parsed: List[Optional[int]] = []
    for raw in codes:
        token = (raw or "").strip()
        if not token:
            parsed.append(None)
            continue
        try:
            parsed.append(int(token))
        except ValueError:
            raise InputValidationError(
                "Some target status codes were not numbers. Codes must be three-digit numbers."
            ) from None
    return parsed


def validate_options(options: RunOptions) -> ValidatedInputs:
    if not options.sites:
        raise InputValidationError(
            "No site URLs were given. Please make sure to include URLs with -s or --sites:",
            f"{PROGRAM} -s google.com,facebook.com",
        )

    credentials = None
    if options.auth:
        try:
            credentials = BasicCredentials.parse(options.auth)
        except ValueError:
            raise InputValidationError(
                "Could not parse auth option (username and password), please check the format:",
                f"{PROGRAM} -s example.com -a username:password",
            ) from None

    if options.targets and len(options.targets) != len(options.sites):
        raise InputValidationError(
            "The number of input URLs and target URLs (sites and targets) did not match. "
            "To skip a target for a specific site, leave an empty spot in the target list:",
            f"{PROGRAM} -s google.com,facebook.com,example.com -t https://www.google.com,,https://www.example.com",
        )

    if options.codes and len(options.codes) != len(options.sites):
        raise InputValidationError(
            "The number of input URLs and target status codes (sites and codes) did not match. "
            "To skip a code for a specific site, leave an empty spot in the code list:",
            f"{PROGRAM} -s google.com,facebook.com,example.com -c 301,,301",
        )

    if options.concurrency is not None and options.concurrency < 1:
        raise InputValidationError("The number of concurrent requests must be at least 1.")
    if options.max_rounds is not None and options.max_rounds < 1:
        raise InputValidationError("The maximum number of redirect hops must be at least 1.")
    if options.timeout is not None and options.timeout <= 0:
        raise InputValidationError("The request timeout must be a positive number of seconds.")

    return ValidatedInputs(
        credentials=credentials,
        target_urls=[(t or "").strip() or None for t in options.targets],
        target_codes=parse_target_codes(options.codes),
    )


async def _resolve_with_interrupt(resolver: RedirectResolver, report: RedirectReport) -> ResolutionOutcome:
    loop = asyncio.get_running_loop()
    installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, resolver.cancel)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        logger.debug("SIGINT cancellation unavailable on this platform")
    try:
        return await resolver.resolve(report)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def run_redirect_check(
    options: RunOptions,
    *,
    diagnostics: Optional[DiagnosticLog] = None,
    fetcher: Optional[BatchFetcher] = None,
    render: bool = True,
) -> Tuple[RedirectReport, DiagnosticLog, int]:
    """Resolve every site, write the requested reports and pick an exit code.

    Raises InputValidationError before any request is made when the options
    are inconsistent.
    """
    validated = validate_options(options)
    try:
        config = FetchConfig.from_env(
            concurrency=options.concurrency,
            timeout=options.timeout,
            max_rounds=options.max_rounds,
            resolve_relative_locations=options.resolve_relative_locations,
            credentials=validated.credentials,
        )
    except ValueError as exc:
        raise InputValidationError(
            f"Invalid configuration from the environment: {exc}. "
            "Check the REDIRECT_TESTER_* settings."
        ) from None

    diagnostics = diagnostics or DiagnosticLog()
    if render:
        diagnostics.subscribe(term.DiagnosticRenderer())
        if not options.json_out and not options.xlsx_out:
            term.render_no_reports_warning()

    report = RedirectReport(
        prefix=options.prefix,
        protocol=options.protocol,
        auth_used=validated.credentials is not None,
        used_target_urls=bool(options.targets),
        used_target_codes=bool(options.codes),
    )
    report.extend(
        build_tracked_urls(
            options.sites,
            diagnostics,
            target_urls=validated.target_urls,
            target_codes=validated.target_codes,
            prefix=options.prefix,
            protocol=options.protocol,
        )
    )
    if render:
        term.render_processing(report, options.json_out, options.xlsx_out)

    resolver = RedirectResolver(config, diagnostics, fetcher=fetcher)
    outcome = asyncio.run(_resolve_with_interrupt(resolver, report))
    logger.info(
        "resolution finished: %d rounds, %d requests, cancelled=%s",
        outcome.rounds,
        outcome.requests,
        outcome.cancelled,
    )
    report.finalize(diagnostics)

    json_paths, xlsx_paths = write_reports(
        report,
        diagnostics,
        json_out=options.json_out,
        xlsx_out=options.xlsx_out,
        filename=options.filename,
        out_dir=options.out_dir,
    )
    if render:
        term.render_written("JSON", json_paths)
        term.render_written("XLSX", xlsx_paths)
        term.render_summary(report)

    exit_code = EXIT_OK
    if diagnostics.degraded:
        exit_code = EXIT_DEGRADED
        if render:
            term.render_degraded()
    return report, diagnostics, exit_code
