"""Outdated-dependency detection for a target repository.

The scanner keeps a local working copy of the target repository under a
workspace directory and runs ``npm outdated --json`` over it. All external
commands block the caller until they finish.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

from arm_core.errors import ManifestMissing, RepositoryUnavailable, ScanError
from arm_core.models import DEVELOPMENT, MAJOR, MINOR, PATCH, RUNTIME, Dependency, DependencyReport

logger = logging.getLogger(__name__)

DEFAULT_WORKSPACE = Path(tempfile.gettempdir()) / "arm-workspace"

MANIFEST = "package.json"
LOCKFILE = "package-lock.json"

_PREFIX_RE = re.compile(r"^[v^~=<>\s]+")
_LEADING_INT_RE = re.compile(r"\d+")

# npm reports the manifest section a package was declared in.
_LOCATIONS = {
    "dependencies": RUNTIME,
    "devDependencies": DEVELOPMENT,
}


def _version_parts(version: str) -> list[int | None]:
    cleaned = _PREFIX_RE.sub("", version or "")
    parts: list[int | None] = []
    for piece in (cleaned.split(".") + ["", "", ""])[:3]:
        match = _LEADING_INT_RE.match(piece)
        parts.append(int(match.group()) if match else None)
    return parts


def determine_change_type(current: str, target: str) -> str:
    """Classify the jump from ``current`` to ``target`` as major, minor or patch.

    Leading range markers (``^``, ``~``, ``v``) are ignored. Equal versions and
    components that do not parse fall through to "patch".
    """
    cur_major, cur_minor, _ = _version_parts(current)
    new_major, new_minor, _ = _version_parts(target)

    if None not in (cur_major, new_major) and new_major > cur_major:
        return MAJOR
    if None not in (cur_minor, new_minor) and new_minor > cur_minor:
        return MINOR
    return PATCH


def parse_npm_outdated(output: str) -> list[Dependency]:
    """Turn ``npm outdated --json`` output into dependencies, preserving npm's order."""
    if not output or not output.strip():
        return []

    try:
        outdated = json.loads(output)
    except json.JSONDecodeError as e:
        raise ScanError(f"Failed to parse npm outdated output: {e}") from e

    if not isinstance(outdated, dict):
        raise ScanError("Failed to parse npm outdated output: expected a JSON object")
    if isinstance(outdated.get("error"), dict):
        error = outdated["error"]
        raise ScanError(f"npm outdated failed: {error.get('summary') or error.get('code') or 'unknown error'}")

    dependencies = []
    for package, info in outdated.items():
        # Workspaces report one entry per dependent; the versions are the same.
        if isinstance(info, list):
            info = info[0] if info else {}
        current = info.get("current") or "unknown"
        latest = info.get("latest") or "unknown"
        wanted = info.get("wanted") or info.get("latest") or "unknown"
        dependencies.append(
            Dependency(
                package=package,
                current=current,
                wanted=wanted,
                latest=latest,
                type=determine_change_type(current, wanted),
                location=_LOCATIONS.get(info.get("type", "dependencies"), RUNTIME),
            )
        )
    return dependencies


class DependencyScanner:
    ecosystem = "nodejs"

    def __init__(
        self,
        target_repo: str,
        workspace_dir: str | Path | None = None,
        clone_url: str | None = None,
        branch: str | None = None,
    ):
        if not target_repo or "/" not in target_repo:
            raise RepositoryUnavailable(f"Target repository must be in owner/name format, got {target_repo!r}")
        self.target_repo = target_repo
        self.workspace_dir = Path(workspace_dir) if workspace_dir else DEFAULT_WORKSPACE
        self.repo_path = self.workspace_dir / target_repo.split("/")[1]
        self.clone_url = clone_url or f"https://github.com/{target_repo}.git"
        self.branch = branch

    def ensure_repo(self) -> None:
        """Clone the target repository, or fast-forward an existing working copy.

        With ``branch`` set, the working copy is checked out on that branch;
        otherwise the remote's default branch is used.
        """
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

        if self.repo_path.exists():
            if self.branch:
                commands = [
                    ["git", "checkout", self.branch],
                    ["git", "pull", "--ff-only", "origin", self.branch],
                ]
            else:
                commands = [["git", "pull", "--ff-only"]]
            cwd = self.repo_path
            action = "pull"
        else:
            clone = ["git", "clone"]
            if self.branch:
                clone += ["--branch", self.branch]
            commands = [clone + [self.clone_url, str(self.repo_path)]]
            cwd = self.workspace_dir
            action = "clone"

        try:
            for cmd in commands:
                logger.debug("Running %s in %s", " ".join(cmd), cwd)
                subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            raise RepositoryUnavailable(
                f"Failed to {action} repository {self.target_repo}: {(e.stderr or '').strip() or e}"
            ) from e
        except FileNotFoundError as e:
            raise RepositoryUnavailable(f"Failed to {action} repository {self.target_repo}: git is not installed") from e

    def refresh(self) -> None:
        """Throw away the working copy and obtain a fresh one."""
        if self.repo_path.exists():
            shutil.rmtree(self.repo_path)
        self.ensure_repo()

    def _run_outdated(self) -> str:
        try:
            result = subprocess.run(
                ["npm", "outdated", "--json"],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise ScanError("npm outdated failed: npm is not installed") from e

        # Exit code 1 only means "outdated packages exist"; the report is on stdout.
        if result.returncode not in (0, 1) or (result.returncode == 1 and not result.stdout.strip()):
            raise ScanError(f"npm outdated failed (exit {result.returncode}): {result.stderr.strip()}")
        return result.stdout

    def scan(self) -> DependencyReport:
        self.ensure_repo()

        if not (self.repo_path / MANIFEST).exists():
            raise ManifestMissing(f"No {MANIFEST} found in {self.target_repo}")

        dependencies = parse_npm_outdated(self._run_outdated())
        logger.info("Found %d outdated dependencies in %s", len(dependencies), self.target_repo)
        return DependencyReport(
            repository=self.target_repo,
            ecosystem=self.ecosystem,
            dependencies=tuple(dependencies),
        )
