"""Change proposal (PR) generation in the target repository.

The branch name is derived from the package and target version only, so it
doubles as the idempotency key: if a PR already exists for the branch, it is
returned instead of opening a second one. Every PR body carries
``Closes <governance repo>#<story>`` so merging it closes the Story.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from arm_core.errors import ConfigurationError, ManifestMissing
from arm_core.gh.client import GitHubClient
from arm_core.manifest import update_manifest
from arm_core.models import DRY_RUN_URL, Dependency, PullRequest
from arm_core.scanner import MANIFEST

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "arm/update-"

# The ARM v1 epic in the governance repository.
DEFAULT_EPIC_NUMBER = 13

_UNSAFE_RE = re.compile(r"[^a-z0-9]")
_STORY_REF_RE = re.compile(r"^\[Story #(\d+)\]")

# Takes the updated manifest text, returns {path: content} for regenerated lock files.
LockfileUpdater = Callable[[str], "dict[str, str] | None"]


def _sanitize(value: str) -> str:
    return _UNSAFE_RE.sub("-", value.lower())


def _issue_url(repo: str, number: int) -> str:
    return f"https://github.com/{repo}/issues/{number}"


class PRGenerator:
    def __init__(
        self,
        target_repo: str,
        base_branch: str = "main",
        epic_number: int = DEFAULT_EPIC_NUMBER,
        client: GitHubClient | None = None,
        lockfile_updater: LockfileUpdater | None = None,
    ):
        if not target_repo:
            raise ConfigurationError("target_repo is required")
        self.target_repo = target_repo
        self.base_branch = base_branch or "main"
        self.epic_number = epic_number or DEFAULT_EPIC_NUMBER
        self.client = client
        self.lockfile_updater = lockfile_updater

    # -- deterministic text --------------------------------------------------

    def generate_branch_name(self, dep: Dependency) -> str:
        return f"{BRANCH_PREFIX}{_sanitize(dep.package)}-{_sanitize(dep.target)}"

    def generate_commit_message(self, dep: Dependency) -> str:
        return f"Update {dep.package} from {dep.current} to {dep.target}"

    def generate_pr_title(self, dep: Dependency, story_number: int) -> str:
        return f"[Story #{story_number}] Update {dep.package} from {dep.current} to {dep.target}"

    def generate_pr_body(self, dep: Dependency, story_number: int, governance_repo: str) -> str:
        lines = [
            "### Story",
            f"Closes {governance_repo}#{story_number}",
            "",
            "### Change Summary",
            f"- **Package:** {dep.package}",
            f"- **Current:** {dep.current}",
            f"- **Target:** {dep.target}",
            f"- **Latest:** {dep.latest}",
            f"- **Change type:** {dep.type.capitalize()}",
        ]
        if not dep.target_is_latest:
            lines += [
                "",
                f"> Note: Latest version is {dep.latest}, but {dep.target} is recommended "
                "because it satisfies the declared version range.",
            ]
        lines += [
            "",
            "### Changes",
            f"- [x] {MANIFEST} updated",
            "- [x] package-lock.json regenerated",
            "",
            "### Testing",
            "- [x] No breaking changes expected within the declared range",
            "- [ ] Manual review recommended",
            "",
            "### Governance",
            f"- Story: [#{story_number}]({_issue_url(governance_repo, story_number)})",
            f"- Epic: [#{self.epic_number}]({_issue_url(governance_repo, self.epic_number)})",
            "",
            "_Automated PR generated by ARM v1. A human must review and merge it._",
        ]
        return "\n".join(lines)

    # -- remote --------------------------------------------------------------

    def _require_client(self) -> GitHubClient:
        if self.client is None:
            raise ConfigurationError("A GitHub client is required to create PRs outside dry-run mode")
        return self.client

    def _to_pull_request(self, pr, dep: Dependency, story_number: int | None = None) -> PullRequest:
        if story_number is None:
            match = _STORY_REF_RE.match(pr.title or "")
            story_number = int(match.group(1)) if match else 0
        return PullRequest(
            number=pr.number,
            branch=pr.head.ref,
            title=pr.title,
            body=pr.body or "",
            url=pr.html_url,
            story_number=story_number,
            dependency=dep,
        )

    def find_existing_pr(self, dep: Dependency) -> PullRequest | None:
        branch = self.generate_branch_name(dep)
        pr = self._require_client().find_pull_by_branch(self.target_repo, branch)
        if pr is None:
            return None
        state = "merged" if pr.merged else pr.state
        logger.info("Found existing PR #%d (%s) for %s on %s", pr.number, state, dep.package, branch)
        return self._to_pull_request(pr, dep)

    def _commit_if_changed(self, path: str, content: str, message: str, branch: str) -> None:
        client = self._require_client()
        current = client.get_file(self.target_repo, path, branch)
        sha = None
        if current is not None:
            text, sha = current
            if text == content:
                logger.debug("%s on %s is already up to date", path, branch)
                return
        client.update_file(self.target_repo, path, message, content, branch, sha)

    def _push_update(self, dep: Dependency, branch: str) -> None:
        client = self._require_client()
        client.create_branch(self.target_repo, branch, self.base_branch)

        manifest = client.get_file(self.target_repo, MANIFEST, branch)
        if manifest is None:
            raise ManifestMissing(f"No {MANIFEST} found in {self.target_repo}@{branch}")
        updated = update_manifest(manifest[0], dep)

        message = self.generate_commit_message(dep)
        self._commit_if_changed(MANIFEST, updated, message, branch)

        if self.lockfile_updater is not None:
            for path, content in (self.lockfile_updater(updated) or {}).items():
                self._commit_if_changed(path, content, message, branch)

    def find_or_create_pr(self, dep: Dependency, story_number: int, governance_repo: str) -> tuple[PullRequest, bool]:
        """Return ``(pull_request, created)``; ``created`` is False when an existing PR was reused."""
        existing = self.find_existing_pr(dep)
        if existing is not None:
            return existing, False

        branch = self.generate_branch_name(dep)
        self._push_update(dep, branch)

        title = self.generate_pr_title(dep, story_number)
        pr = self._require_client().create_pull(
            self.target_repo,
            title=title,
            body=self.generate_pr_body(dep, story_number, governance_repo),
            head=branch,
            base=self.base_branch,
        )
        logger.info("Created PR #%d: %s", pr.number, title)
        return self._to_pull_request(pr, dep, story_number), True

    def create_pr(self, dep: Dependency, story_number: int, governance_repo: str, dry_run: bool = False) -> PullRequest:
        if dry_run:
            return PullRequest(
                number=0,
                branch=self.generate_branch_name(dep),
                title=self.generate_pr_title(dep, story_number),
                body=self.generate_pr_body(dep, story_number, governance_repo),
                url=DRY_RUN_URL,
                story_number=story_number,
                dependency=dep,
            )
        pr, _ = self.find_or_create_pr(dep, story_number, governance_repo)
        return pr
