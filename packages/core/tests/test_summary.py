"""Tests for the job summary and workflow annotations."""

from arm_core.models import DRY_RUN_URL, Dependency, PullRequest, Story
from arm_core.pipeline import CREATED, DRY_RUN, EXISTING, FAILED, DependencyOutcome
from arm_core.summary import generate_markdown_summary, log_annotation, write_job_summary
from arm_core.utils.error_categorizer import ErrorInfo

EXPRESS = Dependency(package="express", current="4.17.1", wanted="4.18.2", latest="4.18.2", type="minor")
LODASH = Dependency(package="lodash", current="4.17.19", wanted="4.17.21", latest="4.17.21", type="patch")
AXIOS = Dependency(package="axios", current="1.0.0", wanted="1.6.0", latest="1.6.0", type="minor")


def _story(number, dep):
    return Story(number=number, title="t", body="", url=f"https://github.com/org/gov/issues/{number}", dependency=dep)


def _pr(number, dep, story_number):
    return PullRequest(
        number=number,
        branch="b",
        title="t",
        body="",
        url=f"https://github.com/org/app/pull/{number}",
        story_number=story_number,
        dependency=dep,
    )


def _outcomes():
    return [
        DependencyOutcome(EXPRESS, CREATED, story=_story(42, EXPRESS), pull_request=_pr(101, EXPRESS, 42)),
        DependencyOutcome(LODASH, EXISTING, story=_story(7, LODASH), pull_request=_pr(8, LODASH, 7)),
        DependencyOutcome(
            AXIOS,
            FAILED,
            error=ErrorInfo(type="permanent", category="auth", message="Authentication failed", fix="Check ARM_TOKEN"),
        ),
    ]


class TestGenerateMarkdownSummary:
    def test_table_and_totals(self):
        summary = generate_markdown_summary(_outcomes())

        assert summary.startswith("## ARM Execution Summary")
        assert "| Package | Story | PR | Status |" in summary
        assert "| express | [#42](https://github.com/org/gov/issues/42) | [#101](https://github.com/org/app/pull/101) |" in summary
        assert "Skipped (already exists)" in summary
        assert "| axios | N/A | N/A | ❌ Failed: Authentication failed |" in summary
        assert "**Total:** 3 | **Created:** 1 | **Skipped:** 1 | **Failed:** 1" in summary

    def test_dry_run_rows_have_no_links(self):
        story = Story(number=0, title="t", body="", url=DRY_RUN_URL, dependency=EXPRESS)
        pr = _pr(0, EXPRESS, 0)
        summary = generate_markdown_summary([DependencyOutcome(EXPRESS, DRY_RUN, story=story, pull_request=pr)])

        assert "| express | N/A | N/A | ⏭️ Skipped (dry-run) |" in summary
        assert "**Skipped:** 1" in summary

    def test_empty(self):
        assert "No dependencies processed." in generate_markdown_summary([])


class TestWriteJobSummary:
    def test_appends_to_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "summary.md"
        path.write_text("previous step\n")
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(path))

        assert write_job_summary(_outcomes()) is True

        text = path.read_text()
        assert text.startswith("previous step\n")
        assert "## ARM Execution Summary" in text

    def test_explicit_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
        path = tmp_path / "out.md"

        assert write_job_summary([], path=str(path)) is True
        assert "No dependencies processed." in path.read_text()

    def test_no_destination(self, monkeypatch):
        monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
        assert write_job_summary(_outcomes()) is False

    def test_unwritable_path(self, tmp_path):
        assert write_job_summary([], path=str(tmp_path / "missing" / "summary.md")) is False


class TestLogAnnotation:
    def test_prints_in_ci(self, monkeypatch, capsys):
        monkeypatch.setenv("CI", "true")
        log_annotation("error", "Failed to create Story for axios")
        assert capsys.readouterr().out == "::error::Failed to create Story for axios\n"

    def test_silent_outside_ci(self, monkeypatch, capsys):
        monkeypatch.delenv("CI", raising=False)
        log_annotation("notice", "hello")
        assert capsys.readouterr().out == ""
