"""package.json rewriting and lock-file regeneration for update branches."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from pathlib import Path

from arm_core.errors import DependencyNotDeclared, ScanError
from arm_core.models import DEVELOPMENT, Dependency
from arm_core.scanner import LOCKFILE, MANIFEST

logger = logging.getLogger(__name__)

_SECTIONS = ("dependencies", "devDependencies", "optionalDependencies")
_RANGE_PREFIX_RE = re.compile(r"^(\^|~|>=|=)?")
_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)


def _detect_indent(text: str) -> str | int:
    match = _INDENT_RE.search(text)
    if not match:
        return 2
    indent = match.group(1)
    return indent if "\t" in indent else len(indent)


def update_manifest(manifest_text: str, dep: Dependency) -> str:
    """Return ``manifest_text`` with ``dep`` pinned to its target version.

    The declared range prefix (``^``, ``~``, ``>=``) is kept, as are key order
    and indentation.
    """
    try:
        manifest = json.loads(manifest_text)
    except json.JSONDecodeError as e:
        raise ScanError(f"{MANIFEST} is not valid JSON: {e}") from e

    # Look in the section the scanner reported first.
    sections = list(_SECTIONS)
    if dep.location == DEVELOPMENT:
        sections.remove("devDependencies")
        sections.insert(0, "devDependencies")

    for section in sections:
        declared = manifest.get(section) or {}
        if dep.package in declared:
            prefix = _RANGE_PREFIX_RE.match(declared[dep.package]).group(1) or ""
            declared[dep.package] = f"{prefix}{dep.target}"
            break
    else:
        raise DependencyNotDeclared(f"{dep.package} is not declared in {MANIFEST}")

    return json.dumps(manifest, indent=_detect_indent(manifest_text), ensure_ascii=False) + "\n"


class NpmLockfileUpdater:
    """Regenerate package-lock.json for an updated manifest using the scanner's working copy.

    The working copy is restored afterwards so the next scan starts clean.
    """

    def __init__(self, working_copy: str | Path):
        self.working_copy = Path(working_copy)

    def __call__(self, manifest_text: str) -> dict[str, str] | None:
        manifest_path = self.working_copy / MANIFEST
        lock_path = self.working_copy / LOCKFILE
        had_lockfile = lock_path.exists()

        manifest_path.write_text(manifest_text, encoding="utf-8")
        try:
            result = subprocess.run(
                ["npm", "install", "--package-lock-only", "--ignore-scripts"],
                cwd=self.working_copy,
                capture_output=True,
                text=True,
            )
            if result.returncode != 0:
                raise ScanError(f"npm install --package-lock-only failed: {result.stderr.strip()}")
            if not lock_path.exists():
                return None
            return {LOCKFILE: lock_path.read_text(encoding="utf-8")}
        except FileNotFoundError as e:
            raise ScanError("npm install --package-lock-only failed: npm is not installed") from e
        finally:
            self._restore(had_lockfile)

    def _restore(self, had_lockfile: bool) -> None:
        paths = [MANIFEST, LOCKFILE] if had_lockfile else [MANIFEST]
        try:
            subprocess.run(["git", "checkout", "--", *paths], cwd=self.working_copy, capture_output=True, check=True)
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            logger.warning("Could not restore working copy %s: %s", self.working_copy, e)
        if not had_lockfile:
            (self.working_copy / LOCKFILE).unlink(missing_ok=True)
