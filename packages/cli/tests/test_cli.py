"""Tests for the CLI entry point."""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from arm_cli.cli import main
from arm_cli.loading import build_components
from arm_core.errors import ScanError
from arm_core.models import Dependency, DependencyReport, FilterResult
from arm_core.pipeline import FAILED, DependencyOutcome, PipelineResult
from arm_core.utils.error_categorizer import ErrorInfo

EXPRESS = Dependency(package="express", current="4.17.1", wanted="4.18.2", latest="4.18.2", type="minor")
LODASH = Dependency(package="lodash", current="4.17.19", wanted="4.17.21", latest="4.17.21", type="patch")
REACT = Dependency(package="react", current="17.0.2", wanted="18.2.0", latest="18.2.0", type="major")

CLEAN_ENV = {
    "ARM_TARGET_REPO": None,
    "ARM_DRY_RUN": None,
    "ARM_CONFIG_PATH": None,
    "ARM_WORKSPACE": None,
    "GITHUB_STEP_SUMMARY": None,
    "CI": None,
}


def _make_config(**policy):
    return {
        "target": {"repository": "org/app", "branch": "main"},
        "governance": {"repository": "org/governance", "epicNumber": 13},
        "policy": {"allowPatch": True, "allowMinor": True, "allowMajor": False, "denylist": [], **policy},
    }


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "arm.config.json"
    path.write_text(json.dumps(_make_config()))
    return path


def _report(*deps):
    return DependencyReport(repository="org/app", ecosystem="nodejs", dependencies=tuple(deps))


def _invoke(args, env=None):
    return CliRunner().invoke(main, args, env={**CLEAN_ENV, **(env or {})})


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidateCommand:
    def test_valid_config(self, config_file):
        result = _invoke(["--config", str(config_file), "validate"])

        assert result.exit_code == 0, result.output
        assert "Config validated successfully:" in result.output
        assert "org/app" in result.output
        assert "epic #13" in result.output
        assert "allowMajor: false" in result.output

    def test_config_path_from_env(self, config_file):
        result = _invoke(["validate"], env={"ARM_CONFIG_PATH": str(config_file)})
        assert result.exit_code == 0, result.output

    def test_repo_override(self, config_file):
        result = _invoke(["--config", str(config_file), "validate", "--repo", "org/other"])
        assert "org/other" in result.output

    def test_allow_major_rejected(self, tmp_path):
        path = tmp_path / "arm.config.json"
        path.write_text(json.dumps(_make_config(allowMajor=True)))

        result = _invoke(["--config", str(path), "validate"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output
        assert "allowMajor" in result.output

    def test_missing_file(self, tmp_path):
        result = _invoke(["--config", str(tmp_path / "nope.json"), "validate"])

        assert result.exit_code == 2
        assert "Config file not found" in result.output

    def test_missing_governance(self, tmp_path):
        path = tmp_path / "arm.config.json"
        config = _make_config()
        del config["governance"]
        path.write_text(json.dumps(config))

        result = _invoke(["--config", str(path), "validate"])

        assert result.exit_code == 2
        assert "governance" in result.output


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


class TestPlanCommand:
    def test_lists_planned_actions(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report(EXPRESS, LODASH, REACT))
        github = mocker.patch("arm_cli.loading.GitHubClient")

        result = _invoke(["--config", str(config_file), "plan"])

        assert result.exit_code == 0, result.output
        assert "Recommended updates: 2" in result.output
        assert "Excluded: 1" in result.output
        assert "Total planned: 2" in result.output
        github.assert_not_called()

    def test_nothing_to_plan(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report(REACT))

        result = _invoke(["--config", str(config_file), "plan"])

        assert result.exit_code == 0
        assert "No updates recommended." in result.output
        assert "Total planned" not in result.output

    def test_scan_failure(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", side_effect=ScanError("npm outdated failed"))

        result = _invoke(["--config", str(config_file), "plan"])

        assert result.exit_code == 1
        assert "Scan failed" in result.output


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_dry_run_needs_no_token(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report(EXPRESS, LODASH, REACT))
        resolve = mocker.patch("arm_cli.commands.run.resolve_github_token")

        result = _invoke(["--config", str(config_file), "run", "--dry-run"])

        assert result.exit_code == 0, result.output
        resolve.assert_not_called()
        assert "arm/update-express-4-18-2" in result.output
        assert "arm/update-lodash-4-17-21" in result.output
        assert "arm/update-react" not in result.output
        assert "2 processed, 0 failed." in result.output

    def test_dry_run_from_env(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report(EXPRESS))
        resolve = mocker.patch("arm_cli.commands.run.resolve_github_token")

        result = _invoke(["--config", str(config_file), "run"], env={"ARM_DRY_RUN": "true"})

        assert result.exit_code == 0, result.output
        resolve.assert_not_called()

    def test_missing_token(self, mocker, config_file):
        mocker.patch("arm_cli.commands.run.resolve_github_token", return_value=None)
        scan = mocker.patch("arm_core.scanner.DependencyScanner.scan")

        result = _invoke(["--config", str(config_file), "run"])

        assert result.exit_code == 2
        assert "No GitHub token found" in result.output
        scan.assert_not_called()

    def test_invalid_config_stops_before_scan(self, mocker, tmp_path):
        path = tmp_path / "arm.config.json"
        path.write_text(json.dumps(_make_config(allowMajor=True)))
        scan = mocker.patch("arm_core.scanner.DependencyScanner.scan")

        result = _invoke(["--config", str(path), "run", "--dry-run"])

        assert result.exit_code == 2
        scan.assert_not_called()

    def test_malformed_repo_override_is_usage_error(self, mocker, config_file):
        scan = mocker.patch("arm_core.scanner.DependencyScanner.scan")

        result = _invoke(["--config", str(config_file), "run", "--dry-run", "--repo", "justaname"])

        assert result.exit_code == 2
        assert "owner/name format" in result.output
        assert isinstance(result.exception, SystemExit)
        scan.assert_not_called()

    def test_malformed_repo_override_in_plan(self, config_file):
        result = _invoke(["--config", str(config_file), "plan", "--repo", "justaname"])

        assert result.exit_code == 2
        assert "owner/name format" in result.output

    def test_no_outdated_dependencies(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report())

        result = _invoke(["--config", str(config_file), "run", "--dry-run"])

        assert result.exit_code == 0
        assert "Nothing to do." in result.output

    def test_scan_failure(self, mocker, config_file):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", side_effect=ScanError("npm outdated failed"))

        result = _invoke(["--config", str(config_file), "run", "--dry-run"])

        assert result.exit_code == 1
        assert "Scan failed" in result.output

    def test_writes_summary_file(self, mocker, config_file, tmp_path):
        mocker.patch("arm_core.scanner.DependencyScanner.scan", return_value=_report(EXPRESS))
        summary = tmp_path / "summary.md"

        result = _invoke(["--config", str(config_file), "run", "--dry-run", "--summary-file", str(summary)])

        assert result.exit_code == 0, result.output
        text = summary.read_text()
        assert "## ARM Execution Summary" in text
        assert "**Total:** 1" in text


class TestRunFailures:
    def _failed_result(self):
        outcome = DependencyOutcome(
            dependency=EXPRESS,
            status=FAILED,
            error=ErrorInfo(
                type="permanent",
                category="auth",
                message="Authentication failed",
                fix="Check ARM_TOKEN secret in repository settings",
            ),
        )
        return PipelineResult(
            report=_report(EXPRESS),
            filter_result=FilterResult(recommended=(EXPRESS,)),
            outcomes=[outcome],
        )

    def _patch(self, mocker):
        mocker.patch("arm_cli.commands.run.resolve_github_token", return_value="tok")
        mocker.patch("arm_cli.loading.GitHubClient")
        return mocker.patch("arm_cli.commands.run.run_pipeline", return_value=self._failed_result())

    def test_failures_do_not_fail_run_by_default(self, mocker, config_file):
        run_pipeline = self._patch(mocker)

        result = _invoke(["--config", str(config_file), "run"])

        assert result.exit_code == 0, result.output
        assert run_pipeline.call_args.kwargs["dry_run"] is False
        assert "1 processed, 1 failed." in result.output

    def test_fail_on_error(self, mocker, config_file):
        self._patch(mocker)

        result = _invoke(["--config", str(config_file), "run", "--fail-on-error"])

        assert result.exit_code == 1

    def test_error_annotation_in_ci(self, mocker, config_file):
        self._patch(mocker)

        result = _invoke(["--config", str(config_file), "run"], env={"CI": "true"})

        assert "::error::express: Authentication failed" in result.output


# ---------------------------------------------------------------------------
# loading.py
# ---------------------------------------------------------------------------


class TestBuildComponents:
    def test_no_client_without_token(self, mocker):
        github = mocker.patch("arm_cli.loading.GitHubClient")

        scanner, story_creator, pr_generator = build_components(_make_config(), token=None)

        github.assert_not_called()
        assert story_creator.client is None
        assert pr_generator.client is None
        assert scanner.target_repo == "org/app"

    def test_shared_client(self, mocker):
        github = mocker.patch("arm_cli.loading.GitHubClient")

        _, story_creator, pr_generator = build_components(_make_config(), token="tok")

        github.assert_called_once_with("tok")
        assert story_creator.client is pr_generator.client
        assert story_creator.governance_repo == "org/governance"
        assert pr_generator.epic_number == 13
        assert pr_generator.base_branch == "main"

    def test_scanner_follows_target_branch(self):
        config = _make_config()
        config["target"]["branch"] = "develop"

        scanner, _, pr_generator = build_components(config, token=None)

        assert scanner.branch == "develop"
        assert pr_generator.base_branch == "develop"

    def test_workspace(self, tmp_path):
        scanner, _, pr_generator = build_components(_make_config(), token=None, workspace=str(tmp_path))

        assert scanner.repo_path == tmp_path / "app"
        assert pr_generator.lockfile_updater.working_copy == tmp_path / "app"


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_arm_token_preferred(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.setenv("ARM_TOKEN", "arm-token")
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "arm-token"

    def test_returns_github_token_when_set(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.delenv("ARM_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.delenv("ARM_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.delenv("ARM_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.delenv("ARM_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_empty(self, monkeypatch):
        from arm_cli.auth import resolve_github_token

        monkeypatch.delenv("ARM_TOKEN", raising=False)
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="   ")
            result = resolve_github_token()
        assert result is None
