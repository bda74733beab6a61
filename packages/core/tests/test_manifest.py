"""Tests for package.json rewriting and lock-file regeneration."""

import json
import subprocess

import pytest

from arm_core.errors import DependencyNotDeclared, ScanError
from arm_core.manifest import NpmLockfileUpdater, update_manifest
from arm_core.models import Dependency


def _dep(package="express", wanted="4.18.2", location="runtime"):
    return Dependency(package=package, current="4.17.1", wanted=wanted, latest=wanted, type="minor", location=location)


class TestUpdateManifest:
    @pytest.mark.parametrize("declared,expected", [
        ("^4.17.1", "^4.18.2"),
        ("~4.17.1", "~4.18.2"),
        (">=4.17.1", ">=4.18.2"),
        ("4.17.1", "4.18.2"),
    ])
    def test_keeps_range_prefix(self, declared, expected):
        text = json.dumps({"dependencies": {"express": declared}})
        assert json.loads(update_manifest(text, _dep()))["dependencies"]["express"] == expected

    def test_keeps_key_order_and_indent(self):
        text = json.dumps({"name": "app", "version": "1.0.0", "dependencies": {"express": "^4.17.1"}}, indent=4)

        updated = update_manifest(text, _dep())

        assert list(json.loads(updated)) == ["name", "version", "dependencies"]
        assert '\n    "name": "app"' in updated
        assert updated.endswith("}\n")

    def test_tab_indent(self):
        text = '{\n\t"dependencies": {\n\t\t"express": "^4.17.1"\n\t}\n}\n'
        assert '\n\t"dependencies"' in update_manifest(text, _dep())

    def test_dev_dependency(self):
        text = json.dumps({"devDependencies": {"jest": "^28.1.0"}})
        updated = update_manifest(text, _dep("jest", "28.1.3", location="development"))
        assert json.loads(updated)["devDependencies"]["jest"] == "^28.1.3"

    def test_other_entries_untouched(self):
        text = json.dumps({"dependencies": {"express": "^4.17.1", "lodash": "^4.17.19"}})
        assert json.loads(update_manifest(text, _dep()))["dependencies"]["lodash"] == "^4.17.19"

    def test_undeclared_package(self):
        with pytest.raises(DependencyNotDeclared, match="express"):
            update_manifest(json.dumps({"dependencies": {}}), _dep())

    def test_invalid_json(self):
        with pytest.raises(ScanError, match="not valid JSON"):
            update_manifest("{nope", _dep())


class TestNpmLockfileUpdater:
    def test_returns_regenerated_lockfile(self, tmp_path, mocker):
        (tmp_path / "package-lock.json").write_text('{"lockfileVersion": 3}\n')
        run = mocker.patch(
            "arm_core.manifest.subprocess.run",
            return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr=""),
        )

        files = NpmLockfileUpdater(tmp_path)('{"name": "app"}\n')

        assert files == {"package-lock.json": '{"lockfileVersion": 3}\n'}
        commands = [c.args[0] for c in run.call_args_list]
        assert commands[0] == ["npm", "install", "--package-lock-only", "--ignore-scripts"]
        assert commands[1] == ["git", "checkout", "--", "package.json", "package-lock.json"]

    def test_writes_manifest_before_install(self, tmp_path, mocker):
        seen = {}

        def fake_run(cmd, **kwargs):
            if cmd[0] == "npm":
                seen["manifest"] = (tmp_path / "package.json").read_text()
            return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")

        mocker.patch("arm_core.manifest.subprocess.run", side_effect=fake_run)

        assert NpmLockfileUpdater(tmp_path)('{"name": "app"}\n') is None
        assert seen["manifest"] == '{"name": "app"}\n'

    def test_npm_failure_raises_and_restores(self, tmp_path, mocker):
        run = mocker.patch(
            "arm_core.manifest.subprocess.run",
            side_effect=[
                subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="ERESOLVE"),
                subprocess.CompletedProcess(args=[], returncode=0),
            ],
        )

        with pytest.raises(ScanError, match="ERESOLVE"):
            NpmLockfileUpdater(tmp_path)("{}\n")

        assert run.call_args_list[-1].args[0][:2] == ["git", "checkout"]
