"""Shared report keys to avoid magic strings across the JSON/XLSX writers."""

from __future__ import annotations

# Tracked URL entry keys
K_ID = "id"
K_INPUT_INDEX = "input_index"
K_INPUT_URL = "input_url"
K_URL = "url"
K_TARGET_URL = "target_url"
K_TARGET_REDIRECT_STATUS_CODE = "target_redirect_status_code"
K_RESPONSES = "responses"
K_REDIRECT_COUNT = "redirect_count"
K_FINAL_STATUS_CODE = "final_status_code"
K_FINAL_URL = "final_url"
K_FINAL_REDIRECT_STATUS_CODE = "final_redirect_status_code"
K_TARGET_URL_MATCHED = "target_url_matched"
K_TARGET_STATUS_MATCHED = "target_status_matched"
K_RESOLUTION_ERROR = "resolution_error"

# Response record keys
K_STATUS_CODE = "status_code"
K_LOCATION = "location"
K_ERROR = "error"
K_ERROR_TYPE = "error_type"
K_AUTH_RETRIED = "auth_retried"
K_ROUND = "round"

# Run-level keys
K_PREFIX = "prefix"
K_PROTOCOL = "protocol"
K_AUTH = "auth"
K_REPORT = "report"
