from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from . import console as term
from .runner import EXIT_INVALID_INPUT, InputValidationError, RunOptions, run_redirect_check, split_csv
from .workflows.intake import load_manifest

app = typer.Typer(add_help_option=False, no_args_is_help=False)


def _minimal_help() -> str:
    return """Redirect tester

Usage:
  redirect-tester check -s <urls> [-t <urls>] [-c <codes>] [-j] [-x] [-f <name>]
  redirect-tester check-manifest <urls.txt|-> [-t <urls>] [-c <codes>] [-j] [-x]

Common options:
  -s, --sites       Comma-delimited list of URLs to check redirects.
  -t, --targets     Comma-delimited list of expected final URLs.
  -c, --codes       Comma-delimited list of expected final redirect status codes.
  -p, --prefix      Prefix applied to all sites without a protocol.
  -r, --protocol    Protocol applied to all sites without a protocol.
  -a, --auth        username:password for sites answering 401.
  -n, --concurrent  Number of requests in flight at once (default 5).
  -j, --json        Write a JSON report.
  -x, --xlsx        Write an XLSX report.
  -f, --filename    Name (without extension) of the generated report files.

Discoverability:
  --help-full     Expanded help + env vars + exit codes.
  --find <query>  Search commands, flags, env vars.
"""


def _help_full() -> str:
    return """Redirect tester (best-effort)

Commands:
  check            Resolve redirects for sites given with --sites.
  check-manifest   Resolve redirects for sites listed one per line (file or stdin).

Extra options:
  --out <DIR>            Write report files into this directory.
  --timeout <SECONDS>    Per-request timeout (default 20).
  --max-rounds <N>       Maximum redirect hops followed per site (default 20).
  --literal-locations    Follow Location headers verbatim (no relative resolution).
  --verbose              Debug logging.

Env vars:
  REDIRECT_TESTER_CONCURRENCY
  REDIRECT_TESTER_TIMEOUT
  REDIRECT_TESTER_MAX_ROUNDS
  REDIRECT_TESTER_USER_AGENT

Exit codes:
  0  every site resolved cleanly
  2  invalid input; nothing was requested
  3  completed with errors; reports were still written
"""


_FIND_INDEX = [
    ("command", "check", "Resolve redirects for sites given with --sites."),
    ("command", "check-manifest", "Resolve redirects for sites listed in a manifest file or stdin."),
    ("flag", "--sites", "Comma-delimited list of URLs to check redirects."),
    ("flag", "--targets", "Comma-delimited list of expected final URLs."),
    ("flag", "--codes", "Comma-delimited list of expected final redirect status codes."),
    ("flag", "--prefix", "Prefix applied to all sites without a protocol."),
    ("flag", "--protocol", "Protocol applied to all sites without a protocol."),
    ("flag", "--auth", "username:password for sites answering 401."),
    ("flag", "--concurrent", "Number of requests in flight at once."),
    ("flag", "--json", "Write a JSON report."),
    ("flag", "--xlsx", "Write an XLSX report."),
    ("flag", "--filename", "Name of the generated report files."),
    ("flag", "--out", "Write report files into this directory."),
    ("flag", "--timeout", "Per-request timeout in seconds."),
    ("flag", "--max-rounds", "Maximum redirect hops followed per site."),
    ("flag", "--literal-locations", "Follow Location headers verbatim."),
    ("flag", "--help-full", "Expanded help, env vars, exit codes."),
    ("flag", "--find", "Search commands, flags, env vars."),
    ("env", "REDIRECT_TESTER_CONCURRENCY", "Default number of concurrent requests."),
    ("env", "REDIRECT_TESTER_TIMEOUT", "Default per-request timeout."),
    ("env", "REDIRECT_TESTER_MAX_ROUNDS", "Default maximum redirect hops."),
    ("env", "REDIRECT_TESTER_USER_AGENT", "Override the User-Agent header."),
]


def _run_find(query: str) -> str:
    """Entries matching every word of the query, names padded into one column."""
    words = (query or "").lower().split()
    if not words:
        return ""
    hits = [
        (category, name, desc)
        for category, name, desc in _FIND_INDEX
        if all(word in f"{category} {name} {desc}".lower() for word in words)
    ]
    width = max((len(name) for _, name, _ in hits), default=0)
    return "\n".join(f"{category:<7} {name:<{width}}  {desc}" for category, name, desc in hits)


def _execute(options: RunOptions, verbose: bool) -> None:
    term.configure_logging(verbose)
    try:
        _report, _diagnostics, exit_code = run_redirect_check(options)
    except InputValidationError as exc:
        term.render_validation_error(exc.message, exc.example)
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    raise typer.Exit(code=exit_code)


def _options(
    sites: List[str],
    targets: Optional[str],
    codes: Optional[str],
    prefix: Optional[str],
    protocol: Optional[str],
    auth: Optional[str],
    concurrent: Optional[int],
    json_out: bool,
    xlsx_out: bool,
    filename: Optional[str],
    out: Optional[Path],
    timeout: Optional[float],
    max_rounds: Optional[int],
    literal_locations: bool,
) -> RunOptions:
    return RunOptions(
        sites=sites,
        targets=split_csv(targets),
        codes=split_csv(codes),
        prefix=prefix or None,
        protocol=protocol or None,
        auth=auth,
        concurrency=concurrent,
        timeout=timeout,
        max_rounds=max_rounds,
        resolve_relative_locations=not literal_locations,
        json_out=json_out,
        xlsx_out=xlsx_out,
        filename=filename,
        out_dir=out,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars."),
) -> None:
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("check", add_help_option=True)
def check(
    sites: Optional[str] = typer.Option(None, "--sites", "-s", help="Comma-delimited list of URLs to check redirects."),
    targets: Optional[str] = typer.Option(None, "--targets", "-t", help="Comma-delimited list of expected final URLs."),
    codes: Optional[str] = typer.Option(None, "--codes", "-c", help="Comma-delimited list of expected redirect status codes."),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Prefix applied to all sites without a protocol."),
    protocol: Optional[str] = typer.Option(None, "--protocol", "-r", help="Protocol applied to all sites without a protocol."),
    auth: Optional[str] = typer.Option(None, "--auth", "-a", help="username:password for sites answering 401."),
    concurrent: Optional[int] = typer.Option(None, "--concurrent", "-n", help="Number of requests in flight at once."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Write a JSON report."),
    xlsx_out: bool = typer.Option(False, "--xlsx", "-x", help="Write an XLSX report."),
    filename: Optional[str] = typer.Option(None, "--filename", "-f", help="Name of the generated report files."),
    out: Optional[Path] = typer.Option(None, "--out", help="Write report files into this directory."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request timeout in seconds."),
    max_rounds: Optional[int] = typer.Option(None, "--max-rounds", help="Maximum redirect hops followed per site."),
    literal_locations: bool = typer.Option(False, "--literal-locations", help="Follow Location headers verbatim."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Resolve redirect chains for the given sites."""
    options = _options(
        split_csv(sites),
        targets,
        codes,
        prefix,
        protocol,
        auth,
        concurrent,
        json_out,
        xlsx_out,
        filename,
        out,
        timeout,
        max_rounds,
        literal_locations,
    )
    _execute(options, verbose)


@app.command("check-manifest", add_help_option=True)
def check_manifest(
    path_or_dash: str = typer.Argument(..., help="Path to manifest or '-' for stdin."),
    targets: Optional[str] = typer.Option(None, "--targets", "-t", help="Comma-delimited list of expected final URLs."),
    codes: Optional[str] = typer.Option(None, "--codes", "-c", help="Comma-delimited list of expected redirect status codes."),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Prefix applied to all sites without a protocol."),
    protocol: Optional[str] = typer.Option(None, "--protocol", "-r", help="Protocol applied to all sites without a protocol."),
    auth: Optional[str] = typer.Option(None, "--auth", "-a", help="username:password for sites answering 401."),
    concurrent: Optional[int] = typer.Option(None, "--concurrent", "-n", help="Number of requests in flight at once."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Write a JSON report."),
    xlsx_out: bool = typer.Option(False, "--xlsx", "-x", help="Write an XLSX report."),
    filename: Optional[str] = typer.Option(None, "--filename", "-f", help="Name of the generated report files."),
    out: Optional[Path] = typer.Option(None, "--out", help="Write report files into this directory."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-request timeout in seconds."),
    max_rounds: Optional[int] = typer.Option(None, "--max-rounds", help="Maximum redirect hops followed per site."),
    literal_locations: bool = typer.Option(False, "--literal-locations", help="Follow Location headers verbatim."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Resolve redirect chains for sites listed one per line."""
    try:
        sites = load_manifest(path_or_dash)
    except (OSError, ValueError) as exc:
        term.render_validation_error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    options = _options(
        sites,
        targets,
        codes,
        prefix,
        protocol,
        auth,
        concurrent,
        json_out,
        xlsx_out,
        filename,
        out,
        timeout,
        max_rounds,
        literal_locations,
    )
    _execute(options, verbose)
