"""Turn raw site strings into tracked URLs ready for resolution."""

from __future__ import annotations

import secrets
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, TextIO
from urllib.parse import urlsplit, urlunsplit

from .defaults import PROTOCOL_DEFAULT, URL_PROTOCOL_REGEX, URL_VALIDATION_REGEX
from .diagnostics import DiagnosticKind, DiagnosticLog
from .report import TrackedURL


@dataclass(frozen=True)
class InputURL:
    input_index: int
    input_url: str


def generate_correlation_id() -> str:
    """Return a 128-bit random hex identifier."""
    return secrets.token_hex(16)


def is_valid_url(raw: str) -> bool:
    return bool(URL_VALIDATION_REGEX.match(raw or ""))


def has_protocol(raw: str) -> bool:
    return bool(URL_PROTOCOL_REGEX.match(raw or ""))


def canonicalize_url(u: str) -> str:
    """Normalize an absolute URL without rewriting its path.

    - Lower-case scheme and host
    - Remove default ports
    - Keep path, query and fragment as given
    """
    raw = u.strip()
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return raw
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not host:
        return raw
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        netloc = f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


def split_valid_urls(inputs: Sequence[str]) -> tuple[List[InputURL], List[InputURL]]:
    valid: List[InputURL] = []
    invalid: List[InputURL] = []
    for index, raw in enumerate(inputs):
        item = InputURL(input_index=index, input_url=raw)
        if is_valid_url(raw):
            valid.append(item)
        else:
            invalid.append(item)
    return valid, invalid


def build_tracked_urls(
    inputs: Sequence[str],
    diagnostics: DiagnosticLog,
    *,
    target_urls: Sequence[Optional[str]] = (),
    target_codes: Sequence[Optional[int]] = (),
    prefix: Optional[str] = None,
    protocol: Optional[str] = None,
) -> List[TrackedURL]:
    """Validate, normalize and assign correlation ids.

    Invalid inputs are reported as a single ``INVALID_INPUT_URL`` diagnostic and
    dropped. Inputs without a protocol are completed with ``protocol`` +
    ``prefix``; when no prefix was supplied they are reported together as a
    ``MISSING_PREFIX`` warning.
    """
    valid, invalid = split_valid_urls(inputs)
    if invalid:
        diagnostics.emit(
            DiagnosticKind.INVALID_INPUT_URL,
            urls=[{"input_index": i.input_index, "input_url": i.input_url} for i in invalid],
        )

    missing_prefix: List[InputURL] = []
    tracked: List[TrackedURL] = []
    for item in valid:
        raw = item.input_url
        if has_protocol(raw):
            url = canonicalize_url(raw)
        else:
            missing_prefix.append(item)
            url = canonicalize_url((protocol or PROTOCOL_DEFAULT) + (prefix or "") + raw)
        tracked.append(
            TrackedURL(
                id=generate_correlation_id(),
                input_index=item.input_index,
                input_url=raw,
                url=url,
                target_url=_at(target_urls, item.input_index) or None,
                target_redirect_status_code=_at(target_codes, item.input_index),
            )
        )

    if missing_prefix and not prefix:
        diagnostics.emit(
            DiagnosticKind.MISSING_PREFIX,
            urls=[{"input_index": i.input_index, "input_url": i.input_url} for i in missing_prefix],
        )
    return tracked


def _at(values: Sequence, index: int):
    return values[index] if index < len(values) else None


def parse_manifest_lines(lines: Iterable[str]) -> List[str]:
    """Read one site per line.

    Blank lines and lines starting with ``#`` are skipped; a trailing
    `` # note`` is dropped. Sites exported as ``a.test,b.test`` on one line are
    split on commas. Any other whitespace inside a site is an error naming the
    line number.
    """
    sites: List[str] = []
    for number, raw_line in enumerate(lines, start=1):
        line = raw_line.split(" #", 1)[0].strip()
        if not line or line.startswith("#"):
            continue
        for token in line.split(","):
            site = token.strip()
            if not site:
                continue
            if any(ch.isspace() for ch in site):
                raise ValueError(f"manifest line {number}: whitespace inside site {site!r}")
            sites.append(site)
    return sites


def load_manifest(path_or_dash: str, *, stdin: Optional[TextIO] = None) -> List[str]:
    """Load sites from a manifest file, or from stdin when given ``-``."""
    if path_or_dash == "-":
        return parse_manifest_lines((stdin or sys.stdin).read().splitlines())
    path = Path(path_or_dash)
    if not path.is_file():
        raise FileNotFoundError(f"Manifest not found: {path}")
    # utf-8-sig strips the BOM spreadsheet exports prepend
    with path.open(encoding="utf-8-sig") as handle:
        sites = parse_manifest_lines(handle)
    if not sites:
        raise ValueError(f"Manifest has no sites: {path}")
    return sites
