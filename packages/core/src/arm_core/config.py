import copy
import numbers
import re
from pathlib import Path
from typing import Optional

import yaml

from arm_core.errors import ConfigurationError
from arm_core.models import UpdatePolicy

DEFAULT_CONFIG_PATH = "arm.config.json"

DEFAULT_CONFIG: dict = {
    "target": {"branch": "main"},
    "governance": {},
    "policy": {
        "allowPatch": True,
        "allowMinor": True,
        "allowMajor": False,  # major updates always need a human; validate_config rejects True
        "denylist": [],
        "excludePatterns": [],  # legacy glob patterns, prefer denylist
    },
}

# CLI/env override key -> (section, field)
_OVERRIDE_KEYS = {
    "target_repository": ("target", "repository"),
    "target_branch": ("target", "branch"),
}

_REPO_RE = re.compile(r"[\w.-]+/[\w.-]+")


def load_config(config_path: str = DEFAULT_CONFIG_PATH, cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. The config file (JSON or YAML; JSON is read by the YAML loader)
      3. CLI / environment overrides

    The result is not validated; call validate_config() before acting on it.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path.resolve()}")
    try:
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse config file {config_path}: {e}") from e
    if not isinstance(file_config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping at the top level")

    for key, value in file_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is None or key not in _OVERRIDE_KEYS:
                continue
            section, name = _OVERRIDE_KEYS[key]
            if not isinstance(config.get(section), dict):
                config[section] = {}
            config[section][name] = value

    return config


def _require_section(config: dict, name: str) -> dict:
    section = config.get(name)
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config must include {name} section")
    return section


def _require_string(section: dict, path: str, key: str) -> None:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{path}.{key} is required and must be a string")


def _require_repository(section: dict, path: str) -> None:
    _require_string(section, path, "repository")
    if not _REPO_RE.fullmatch(section["repository"]):
        raise ConfigurationError(f"{path}.repository must be in owner/name format, got {section['repository']!r}")


def _check_string_list(policy: dict, key: str) -> None:
    values = policy.get(key)
    if values is None:
        return
    if not isinstance(values, list):
        raise ConfigurationError(f"policy.{key} must be an array of strings")
    for i, value in enumerate(values):
        if not isinstance(value, str):
            raise ConfigurationError(f"policy.{key}[{i}] must be a string, got {type(value).__name__}")
        if not value.strip():
            raise ConfigurationError(f"policy.{key}[{i}] cannot be an empty string")


def validate_config(config: dict) -> bool:
    """Validate structure and safety invariants. Raises ConfigurationError on the first problem."""
    if not isinstance(config, dict):
        raise ConfigurationError("Config must be a valid object")

    policy = config.get("policy")
    # Checked first so an unsafe policy is reported even when other fields are broken too.
    if isinstance(policy, dict) and policy.get("allowMajor") is True:
        raise ConfigurationError(
            "allowMajor must be false (safe default enforced). "
            "Major version updates require human review and are blocked automatically."
        )

    target = _require_section(config, "target")
    _require_repository(target, "target")
    if "branch" in target:
        _require_string(target, "target", "branch")

    governance = _require_section(config, "governance")
    _require_repository(governance, "governance")
    epic = governance.get("epicNumber")
    if isinstance(epic, bool) or not isinstance(epic, numbers.Integral) or epic <= 0:
        raise ConfigurationError("governance.epicNumber is required and must be a positive number")

    policy = _require_section(config, "policy")
    for flag in ("allowPatch", "allowMinor", "allowMajor"):
        if flag in policy and not isinstance(policy[flag], bool):
            raise ConfigurationError(f"policy.{flag} must be a boolean")
    _check_string_list(policy, "denylist")
    _check_string_list(policy, "excludePatterns")

    return True


def policy_from_config(config: dict) -> UpdatePolicy:
    policy = config.get("policy") or {}
    return UpdatePolicy(
        allow_patch=policy.get("allowPatch", True),
        allow_minor=policy.get("allowMinor", True),
        allow_major=policy.get("allowMajor", False),
        denylist=frozenset(policy.get("denylist") or []),
        exclude_patterns=tuple(policy.get("excludePatterns") or []),
    )


def describe_config(config: dict) -> list[str]:
    """Lines summarising the validated policy, printed at startup."""
    policy = config.get("policy") or {}
    lines = ["allowMajor: false (safe default)"]
    denylist = policy.get("denylist") or []
    if denylist:
        lines.append(f"denylist: [{', '.join(denylist)}]")
    else:
        lines.append("denylist: [] (no packages excluded)")
    patterns = policy.get("excludePatterns") or []
    if patterns:
        lines.append(f"excludePatterns: [{', '.join(patterns)}] (deprecated, prefer denylist)")
    return lines
