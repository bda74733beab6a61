"""Classify failures as transient (retry) or permanent (fail fast).

Checks run in a fixed priority order; the first match wins. Anything that
matches nothing is permanent/unknown so an unrecognised failure is never
retried forever.
"""

from __future__ import annotations

from dataclasses import dataclass

from arm_core.errors import KIND_CONFIG, KIND_RATE_LIMIT, RemoteError

TRANSIENT = "transient"
PERMANENT = "permanent"

NETWORK_CODES = frozenset({"ETIMEDOUT", "ECONNRESET", "ENOTFOUND"})

_AUTH_WORDS = ("bad credentials", "unauthorized", "authentication", "credential")
_CONFIG_WORDS = ("config", "invalid")


@dataclass(frozen=True)
class ErrorInfo:
    type: str  # "transient" | "permanent"
    category: str  # rate_limit | network | service_unavailable | auth | not_found | config | unknown
    message: str
    fix: str

    @property
    def is_transient(self) -> bool:
        return self.type == TRANSIENT


def categorize_error(error: BaseException) -> ErrorInfo:
    err = RemoteError.from_exception(error)
    status = err.status
    text = (err.message or "").lower()

    if err.kind == KIND_RATE_LIMIT or status == 429 or "rate limit" in text:
        return ErrorInfo(TRANSIENT, "rate_limit", "GitHub API rate limit exceeded", "Wait and retry automatically")

    # An HTTP status is a stronger signal than a socket error code.
    if status is None and err.code in NETWORK_CODES:
        return ErrorInfo(
            TRANSIENT, "network", f"Network error: {err.code}", "Retry automatically after brief delay"
        )

    if status in (502, 503):
        return ErrorInfo(
            TRANSIENT,
            "service_unavailable",
            f"GitHub service temporarily unavailable (HTTP {status})",
            "Retry automatically - service should recover",
        )

    if status in (401, 403) or any(word in text for word in _AUTH_WORDS):
        return ErrorInfo(PERMANENT, "auth", "Authentication failed", "Check ARM_TOKEN secret in repository settings")

    if status == 404 or "not found" in text:
        return ErrorInfo(
            PERMANENT,
            "not_found",
            "Repository or resource not found",
            "Verify repository names in arm.config.json",
        )

    if err.kind == KIND_CONFIG or any(word in text for word in _CONFIG_WORDS):
        return ErrorInfo(
            PERMANENT,
            "config",
            "Invalid configuration",
            "Check arm.config.json for required fields and valid values",
        )

    return ErrorInfo(
        PERMANENT,
        "unknown",
        err.message or "Unknown error occurred",
        "Check logs for details and verify configuration",
    )


def is_transient_error(error: BaseException) -> bool:
    return categorize_error(error).is_transient
