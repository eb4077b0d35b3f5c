"""Redirect-tester defaults (headers, limits, filenames, URL patterns).

Centralizes static defaults so the fetch and intake modules have no embedded
magic strings. Callers can inject their own FetchConfig to override any of
the tunables.
"""

from __future__ import annotations

import re

# Headers
HDR_USER_AGENT = "User-Agent"
HDR_AUTHORIZATION = "Authorization"
HDR_LOCATION = "Location"
USER_AGENT_DEFAULT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_14_6) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/78.0.3904.70 Safari/537.36"
)

# Limits
CONCURRENT_REQUESTS_DEFAULT = 5
REQUEST_TIMEOUT_DEFAULT = 20.0
MAX_ROUNDS_DEFAULT = 20

# Intake
PROTOCOL_DEFAULT = "https://"
URL_PROTOCOL_REGEX = re.compile(r"^(?:f|ht)tps?://", re.IGNORECASE)
URL_VALIDATION_REGEX = re.compile(
    r"^((?:f|ht)tps?://)?[\w.-]+(?:\.[\w.-]+)+[\w\-._~:/?#\[\]@!$&'()*+,;=]+$"
)

# Reports
REPORT_FILENAME_SUFFIX_DEFAULT = "redirects"

# Env var names
ENV_CONCURRENCY = "REDIRECT_TESTER_CONCURRENCY"
ENV_TIMEOUT = "REDIRECT_TESTER_TIMEOUT"
ENV_MAX_ROUNDS = "REDIRECT_TESTER_MAX_ROUNDS"
ENV_USER_AGENT = "REDIRECT_TESTER_USER_AGENT"
