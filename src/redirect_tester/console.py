"""Colored console rendering of run progress and diagnostics."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .workflows.diagnostics import Diagnostic
from .workflows.report import RedirectReport

console = Console(stderr=True)

INDENT = "    "


def configure_logging(verbose: bool, target: Optional[Console] = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=target or console, show_path=False)],
        force=True,
    )


def _position(input_index: Optional[int]) -> str:
    return f"{input_index + 1}." if input_index is not None else "?."


class DiagnosticRenderer:
    """Diagnostic subscriber that prints each event as it arrives."""

    def __init__(self, target: Optional[Console] = None) -> None:
        self.console = target or console

    def __call__(self, event: Diagnostic) -> None:
        handler = getattr(self, f"_render_{event.kind.value}", None)
        if handler is None:
            self.console.print(f"\n{INDENT}[red]ERROR: {escape(event.kind.value)}[/red] {escape(str(event.payload))}")
            return
        handler(event.payload)

    def _list_urls(self, urls, style: str) -> None:
        for item in urls:
            self.console.print(
                f"{INDENT}[{style}]{_position(item.get('input_index'))} {escape(item.get('input_url', ''))}[/{style}]"
            )

    def _render_invalid_input_url(self, payload) -> None:
        self.console.print(f"\n{INDENT}[red]ERROR: Some input URLs were invalid:[/red]\n")
        self._list_urls(payload.get("urls", []), "red")

    def _render_missing_prefix(self, payload) -> None:
        self.console.print(
            f"\n{INDENT}[yellow]WARNING: Some input URLs did not have a protocol, and no prefix was provided:[/yellow]\n"
        )
        self._list_urls(payload.get("urls", []), "yellow")

    def _render_transport_error(self, payload) -> None:
        self.console.print(f"\n{INDENT}[red]ERROR: An error occurred during the URL request:[/red]")
        self.console.print(
            f"{INDENT}[red]{_position(payload.get('input_index'))} {escape(str(payload.get('url')))}[/red]"
        )
        self.console.print(
            f"{INDENT}[red]{escape(str(payload.get('error_type')))}: {escape(str(payload.get('error')))}[/red]"
        )

    def _render_unauthorized_retry_exhausted(self, payload) -> None:
        self.console.print(
            f"\n{INDENT}[yellow]WARNING: Authenticated retry still returned 401:[/yellow] "
            f"{_position(payload.get('input_index'))} {escape(str(payload.get('url')))}"
        )

    def _render_merge_invariant_violation(self, payload) -> None:
        self.console.print(
            f"\n{INDENT}[red]ERROR: A response had no matching tracked URL. This should not happen.\n"
            f"{INDENT}Please contact a developer and provide the following information:[/red]\n"
        )
        self.console.print(f"{INDENT}[magenta]response id = {escape(str(payload.get('id')))}[/magenta]")
        self.console.print(f"{INDENT}[magenta]response url = {escape(str(payload.get('url')))}[/magenta]")

    def _render_redirect_limit_exceeded(self, payload) -> None:
        reason = "redirect loop" if payload.get("cycle") else "too many redirects"
        self.console.print(
            f"\n{INDENT}[red]ERROR: Stopped following redirects after {payload.get('max_rounds')} hops "
            f"({reason}):[/red]"
        )
        self.console.print(
            f"{INDENT}[red]{_position(payload.get('input_index'))} next hop {escape(str(payload.get('url')))}[/red]"
        )

    def _render_run_cancelled(self, payload) -> None:
        self.console.print(
            f"{INDENT}[yellow]cancelled:[/yellow] {_position(payload.get('input_index'))} "
            f"{escape(str(payload.get('url')))}"
        )

    def _render_unfetched_entry(self, payload) -> None:
        self.console.print(
            f"\n{INDENT}[red]ERROR: URL was never requested:[/red] "
            f"{_position(payload.get('input_index'))} {escape(str(payload.get('url')))}"
        )

    def _render_report_write_error(self, payload) -> None:
        self.console.print(
            f"\n{INDENT}[red]ERROR: Error writing {escape(str(payload.get('format', '')).upper())} report to disk:[/red] "
            f"{escape(str(payload.get('error')))}"
        )


def render_validation_error(message: str, example: Optional[str] = None, target: Optional[Console] = None) -> None:
    out = target or console
    out.print(f"\n{INDENT}[red]ERROR: {escape(message)}[/red]")
    if example:
        out.print(f"{INDENT}[magenta]{escape(example)}[/magenta]")
    out.print("")


def render_no_reports_warning(target: Optional[Console] = None) -> None:
    (target or console).print(
        f"\n{INDENT}[yellow]WARNING: No reports are being created. "
        "Use the --json or --xlsx options to generate reports.[/yellow]"
    )


def _mark(enabled: bool) -> str:
    return "[green]✓[/green]" if enabled else "[red]x[/red]"


def render_processing(report: RedirectReport, json_out: bool, xlsx_out: bool, target: Optional[Console] = None) -> None:
    out = target or console
    out.print(f"\n\n{INDENT}Generating report types:")
    out.print(f"{INDENT}{'-' * 51}")
    out.print(f"{INDENT}{_mark(json_out)} JSON    {_mark(xlsx_out)} XLSX\n\n")
    out.print(f"{INDENT}Processing [cyan]{len(report)}[/cyan] URLs:")
    out.print(f"{INDENT}{'-' * 51}")
    for position, entry in enumerate(report.entries, start=1):
        out.print(f"{INDENT}[cyan]{position}.[/cyan] {escape(entry.url)}")
    out.print("")


def render_written(kind: str, paths: Sequence[Path], target: Optional[Console] = None) -> None:
    if not paths:
        return
    out = target or console
    out.print(f"\n{INDENT}Wrote {kind} report(s) to disk:\n")
    for position, path in enumerate(paths, start=1):
        out.print(f"{INDENT}    {position}. [cyan]{escape(str(path))}[/cyan]")
    out.print("")


def render_summary(report: RedirectReport, target: Optional[Console] = None) -> None:
    out = target or console
    counts = report.summary()
    out.print(
        f"{INDENT}checked [cyan]{counts['total']}[/cyan], redirected [cyan]{counts['redirected']}[/cyan], "
        f"errors [cyan]{counts['errors']}[/cyan]"
    )
    if report.used_target_urls:
        out.print(
            f"{INDENT}target URLs: [green]{counts['target_url_matched']} matched[/green], "
            f"[red]{counts['target_url_mismatched']} mismatched[/red]"
        )
    if report.used_target_codes:
        out.print(
            f"{INDENT}target codes: [green]{counts['target_status_matched']} matched[/green], "
            f"[red]{counts['target_status_mismatched']} mismatched[/red]"
        )


def render_degraded(target: Optional[Console] = None) -> None:
    (target or console).print(
        f"\n{INDENT}[red]ERROR: At least one error occurred while the tool was running.\n"
        f"{INDENT}However, the report was able to be completed.\n"
        f"{INDENT}Please review the console for any error messages.[/red]\n"
    )


__all__ = [
    "DiagnosticRenderer",
    "configure_logging",
    "console",
    "render_degraded",
    "render_no_reports_warning",
    "render_processing",
    "render_summary",
    "render_validation_error",
    "render_written",
]
