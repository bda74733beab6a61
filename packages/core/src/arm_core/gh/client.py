"""Thin wrapper around PyGithub used by StoryCreator and PRGenerator.

One GitHubClient is built by the driver and handed to every component that
talks to GitHub. Every PyGithub or network failure leaves this module as a
RemoteError so retry decisions never depend on PyGithub's exception shapes.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from github import Github, GithubException

from arm_core.errors import RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _call(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except RemoteError:
        raise
    except Exception as e:
        raise RemoteError.from_exception(e) from e


class GitHubClient:
    def __init__(self, token: str | None = None, github: Github | None = None):
        if github is None:
            github = Github(token)
        self._gh = github
        self._repos: dict = {}

    def get_repo(self, repo_name: str):
        if repo_name not in self._repos:
            self._repos[repo_name] = _call(lambda: self._gh.get_repo(repo_name))
        return self._repos[repo_name]

    # -- issues ---------------------------------------------------------------

    def search_issue_by_title(self, repo_name: str, title: str):
        """Return the first issue (open or closed) whose title is exactly ``title``, or None."""
        query = f'repo:{repo_name} is:issue in:title "{title}"'

        def _search():
            for issue in self._gh.search_issues(query):
                if issue.pull_request is None and issue.title == title:
                    return issue
            return None

        return _call(_search)

    def create_issue(self, repo_name: str, title: str, body: str):
        repo = self.get_repo(repo_name)
        return _call(lambda: repo.create_issue(title=title, body=body))

    # -- pull requests ------------------------------------------------------

    def find_pull_by_branch(self, repo_name: str, branch: str):
        """Return the open or merged pull request whose head is ``branch``, or None.

        A PR closed without merging was rejected by a reviewer and does not
        count, so a fresh one can be opened from the same branch.
        """
        repo = self.get_repo(repo_name)
        owner = repo_name.split("/")[0]

        def _find():
            for pr in repo.get_pulls(state="all", head=f"{owner}:{branch}"):
                if pr.head.ref != branch:
                    continue
                if pr.state == "closed" and not pr.merged:
                    logger.info("Ignoring closed, unmerged PR #%d on %s", pr.number, branch)
                    continue
                return pr
            return None

        return _call(_find)

    def create_pull(self, repo_name: str, title: str, body: str, head: str, base: str):
        repo = self.get_repo(repo_name)
        return _call(lambda: repo.create_pull(title=title, body=body, head=head, base=base))

    # -- branches & contents -------------------------------------------------

    def create_branch(self, repo_name: str, branch: str, base: str) -> None:
        """Create ``branch`` from the tip of ``base``. An existing branch is left as is."""
        repo = self.get_repo(repo_name)

        def _create():
            sha = repo.get_branch(base).commit.sha
            try:
                repo.create_git_ref(ref=f"refs/heads/{branch}", sha=sha)
            except GithubException as e:
                if e.status == 422:
                    logger.debug("Branch %s already exists in %s, reusing it", branch, repo_name)
                    return
                raise

        _call(_create)

    def get_file(self, repo_name: str, path: str, ref: str) -> tuple[str, str] | None:
        """Return ``(text, blob_sha)`` for a file at ``ref``, or None if it does not exist."""
        repo = self.get_repo(repo_name)

        def _get():
            try:
                contents = repo.get_contents(path, ref=ref)
            except GithubException as e:
                if e.status == 404:
                    return None
                raise
            return contents.decoded_content.decode("utf-8"), contents.sha

        return _call(_get)

    def update_file(self, repo_name: str, path: str, message: str, content: str, branch: str, sha: str | None) -> None:
        repo = self.get_repo(repo_name)
        if sha is None:
            _call(lambda: repo.create_file(path, message, content, branch=branch))
        else:
            _call(lambda: repo.update_file(path, message, content, sha, branch=branch))
