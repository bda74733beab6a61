"""Pipeline data models.

Everything the scanner produces and the filter/creators consume is frozen:
a Dependency never changes after the scan, and Story/PullRequest records are
found-or-created once per run and then only read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

PATCH = "patch"
MINOR = "minor"
MAJOR = "major"
CHANGE_TYPES = (PATCH, MINOR, MAJOR)

RUNTIME = "runtime"
DEVELOPMENT = "development"

DRY_RUN_URL = "https://dry-run/not-created"


@dataclass(frozen=True)
class Dependency:
    """One outdated package as reported by the ecosystem's audit tool."""

    package: str
    current: str
    wanted: str  # highest version satisfying the declared range
    latest: str  # highest version available regardless of range
    type: str  # "patch" | "minor" | "major"
    location: str = RUNTIME  # "runtime" | "development"

    @property
    def target(self) -> str:
        """The version an update moves to."""
        return self.wanted or self.latest

    @property
    def target_is_latest(self) -> bool:
        return self.target == self.latest


@dataclass(frozen=True)
class DependencyReport:
    repository: str
    ecosystem: str
    dependencies: tuple[Dependency, ...] = ()
    scanned_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass(frozen=True)
class UpdatePolicy:
    allow_patch: bool = True
    allow_minor: bool = True
    allow_major: bool = False
    denylist: frozenset[str] = frozenset()
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self):
        if self.allow_major:
            raise ValueError("allow_major must be False: major updates always require human review.")


@dataclass(frozen=True)
class ExcludedDependency:
    dep: Dependency
    reason: str


@dataclass(frozen=True)
class FilterResult:
    recommended: tuple[Dependency, ...] = ()
    excluded: tuple[ExcludedDependency, ...] = ()


@dataclass(frozen=True)
class Story:
    """A tracking issue in the governance repository. number == 0 means not saved (dry-run)."""

    number: int
    title: str
    body: str
    url: str
    dependency: Dependency


@dataclass(frozen=True)
class PullRequest:
    number: int
    branch: str
    title: str
    body: str
    url: str
    story_number: int
    dependency: Dependency
