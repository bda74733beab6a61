"""Update policy filter.

Splits a DependencyReport into recommended and excluded updates. Rules are
applied per dependency in a fixed order and the first one that matches wins:

  1. denylist (exact, case-sensitive package name)
  2. legacy glob exclusion patterns (`*` does not cross the `/` of a scope)
  3. change type disabled by policy (unknown types are always excluded)

Input order is preserved in both output lists.
"""

from __future__ import annotations

import logging

from wcmatch import glob

from arm_core.models import (
    MAJOR,
    MINOR,
    PATCH,
    Dependency,
    DependencyReport,
    ExcludedDependency,
    FilterResult,
    UpdatePolicy,
)

logger = logging.getLogger(__name__)

DENYLISTED = "Package is denylisted"
MATCHES_PATTERN = "Matches exclusion pattern"

# minimatch semantics: `*` stays within one path segment, `**` and `{a,b}` are supported.
_GLOB_FLAGS = glob.CASE | glob.BRACE | glob.GLOBSTAR | glob.EXTGLOB


class UpdateFilter:
    def __init__(self, policy: UpdatePolicy):
        self.policy = policy

    def is_denylisted(self, package: str) -> bool:
        return package in self.policy.denylist

    def is_excluded(self, package: str) -> bool:
        return any(glob.globmatch(package, pattern, flags=_GLOB_FLAGS) for pattern in self.policy.exclude_patterns)

    def is_change_type_allowed(self, change_type: str) -> bool:
        allowed = {
            PATCH: self.policy.allow_patch,
            MINOR: self.policy.allow_minor,
            MAJOR: self.policy.allow_major,
        }
        return allowed.get(change_type, False)

    def exclusion_reason(self, dep: Dependency) -> str | None:
        """Return why ``dep`` is excluded, or None if it should be recommended."""
        if self.is_denylisted(dep.package):
            logger.info("Excluded: %s (denylisted)", dep.package)
            return DENYLISTED

        if self.is_excluded(dep.package):
            logger.info("Excluded: %s (matches exclusion pattern)", dep.package)
            return MATCHES_PATTERN

        if not self.is_change_type_allowed(dep.type):
            if dep.type == MAJOR:
                logger.info("Excluded: %s@%s → %s (major update blocked)", dep.package, dep.current, dep.target)
            else:
                logger.info("Excluded: %s (%s updates not allowed)", dep.package, dep.type)
            return f"{(dep.type or 'unknown').capitalize()} updates not allowed by policy"

        return None

    def filter(self, report: DependencyReport) -> FilterResult:
        recommended: list[Dependency] = []
        excluded: list[ExcludedDependency] = []

        for dep in report.dependencies:
            reason = self.exclusion_reason(dep)
            if reason is None:
                recommended.append(dep)
            else:
                excluded.append(ExcludedDependency(dep=dep, reason=reason))

        return FilterResult(recommended=tuple(recommended), excluded=tuple(excluded))


def filter_updates(report: DependencyReport, policy: UpdatePolicy) -> FilterResult:
    return UpdateFilter(policy).filter(report)


def _update_str(dep: Dependency) -> str:
    if dep.target_is_latest:
        return f"{dep.current} → {dep.latest}"
    return f"{dep.current} → {dep.target} (latest: {dep.latest})"


def get_summary(result: FilterResult) -> str:
    """Render the filter outcome as plain text for the console."""
    lines = []

    if result.recommended:
        lines.append(f"Recommended updates: {len(result.recommended)}")
        for dep in result.recommended:
            lines.append(f"  - {dep.package}: {_update_str(dep)} ({dep.type})")
    else:
        lines.append("No updates recommended.")

    if result.excluded:
        lines.append(f"\nExcluded: {len(result.excluded)}")
        for item in result.excluded:
            lines.append(f"  - {item.dep.package}: {_update_str(item.dep)} ({item.reason})")

    return "\n".join(lines)
