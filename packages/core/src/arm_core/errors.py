"""Exception types raised by the ARM pipeline.

RemoteError is the one structured failure type for anything that goes wrong
talking to GitHub or the network. It is built at the boundary where the raw
exception is first seen (see RemoteError.from_exception) so the categorizer
never has to guess which attributes an arbitrary exception might carry.
"""

from __future__ import annotations

import socket

import requests
from github import BadCredentialsException, GithubException, RateLimitExceededException, UnknownObjectException

# RemoteError.kind values
KIND_RATE_LIMIT = "rate_limit"
KIND_HTTP = "http"
KIND_NETWORK = "network"
KIND_CONFIG = "config"
KIND_UNKNOWN = "unknown"


class ArmError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class ConfigurationError(ArmError, ValueError):
    """Configuration is missing or invalid. Always fatal before any network action."""


class RepositoryUnavailable(ArmError):
    """The target repository could not be cloned or updated."""


class ManifestMissing(ArmError):
    """No package manifest exists at the repository root."""


class ScanError(ArmError):
    """An npm command failed or its output could not be parsed."""


class DependencyNotDeclared(ArmError):
    """A package is not listed in any dependency section of the manifest."""


class RemoteError(ArmError):
    def __init__(self, message: str, kind: str = KIND_UNKNOWN, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status
        self.code = code

    def __repr__(self) -> str:
        return f"RemoteError(kind={self.kind!r}, status={self.status!r}, code={self.code!r}, message={self.message!r})"

    @classmethod
    def from_exception(cls, exc: BaseException) -> RemoteError:
        """Normalise any exception into a RemoteError."""
        if isinstance(exc, RemoteError):
            return exc
        if isinstance(exc, ConfigurationError):
            return cls(str(exc), kind=KIND_CONFIG)
        if isinstance(exc, RateLimitExceededException):
            return cls(_github_message(exc, "API rate limit exceeded"), kind=KIND_RATE_LIMIT, status=exc.status)
        if isinstance(exc, BadCredentialsException):
            return cls(_github_message(exc, "Bad credentials"), kind=KIND_HTTP, status=401)
        if isinstance(exc, UnknownObjectException):
            return cls(_github_message(exc, "Not Found"), kind=KIND_HTTP, status=404)
        if isinstance(exc, GithubException):
            return cls(_github_message(exc, "GitHub request failed"), kind=KIND_HTTP, status=exc.status)

        code = _network_code(exc)
        if code is not None:
            return cls(f"Network error: {exc}" if str(exc) else f"Network error: {code}", kind=KIND_NETWORK, code=code)

        return cls(str(exc) or type(exc).__name__, kind=KIND_UNKNOWN)


def _github_message(exc: GithubException, fallback: str) -> str:
    data = exc.data
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return fallback


def _network_code(exc: BaseException) -> str | None:
    # requests' exception classes are checked first: they subclass OSError too.
    if isinstance(exc, requests.exceptions.Timeout):
        return "ETIMEDOUT"
    if isinstance(exc, requests.exceptions.ConnectionError):
        return "ECONNRESET"
    if isinstance(exc, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(exc, TimeoutError):
        return "ETIMEDOUT"
    if isinstance(exc, ConnectionError):
        return "ECONNRESET"
    return None
