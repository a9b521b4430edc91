"""
Configuration file loader for log-redactor.

Supports loading configuration from:
- log-redactor.toml / .log-redactor.toml
- redactor.yml / .redactor.yml / redactor.yaml / .redactor.yaml

Environment variables override config file values, and CLI flags
override both.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from log_redactor.config import RedactionConfig

# Optional imports for config file parsing
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

try:
    import yaml
except ImportError:
    yaml = None  # type: ignore

logger = logging.getLogger(__name__)


# Config file search order (first found wins)
CONFIG_FILE_NAMES = [
    "log-redactor.toml",
    ".log-redactor.toml",
    "redactor.yml",
    ".redactor.yml",
    "redactor.yaml",
    ".redactor.yaml",
]

# Section names accepted for nested config
SECTION_NAMES = ("log-redactor", "log_redactor")

# Environment variable -> settings key
ENV_OVERRIDES: dict[str, str] = {
    "LOG_REDACTOR_ENABLED": "enabled",
    "LOG_REDACTOR_REPLACEMENT": "replacement",
    "LOG_REDACTOR_MARK_REDACTED": "mark_redacted",
    "LOG_REDACTOR_MAX_VALUE_LENGTH": "max_value_length",
    "LOG_REDACTOR_LARGE_OBJECTS": "redact_large_objects",
    "LOG_REDACTOR_MAX_OBJECT_SIZE": "max_object_size",
    "LOG_REDACTOR_TRACK_REDACTED_KEYS": "track_redacted_keys",
    "LOG_REDACTOR_NON_REDACTABLE_OBJECT_BEHAVIOR": "non_redactable_object_behavior",
}

ENTROPY_ENV_OVERRIDES: dict[str, str] = {
    "LOG_REDACTOR_ENTROPY_ENABLED": "enabled",
    "LOG_REDACTOR_ENTROPY_THRESHOLD": "threshold",
    "LOG_REDACTOR_ENTROPY_MIN_LENGTH": "min_length",
}


@dataclass
class ProjectConfig:
    """
    Settings loaded from a config file.

    `settings` holds the raw redaction settings mapping; values are
    validated when the RedactionConfig snapshot is built.
    """

    settings: dict[str, Any] = field(default_factory=dict)

    # Source file path (for debugging)
    _config_file: Path | None = field(default=None, repr=False)

    def get_redaction_config(self) -> RedactionConfig:
        """Get the RedactionConfig object from config data."""
        from log_redactor.config import RedactionConfig

        return RedactionConfig.from_dict(self.settings)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (sorted keys for determinism)."""
        result: dict[str, Any] = dict(sorted(self.settings.items()))
        if self._config_file is not None:
            result["_loaded_from"] = str(self._config_file)
        return result


def find_config_file(root: Path) -> Path | None:
    """
    Find a configuration file in a directory.

    Args:
        root: Directory to search

    Returns:
        Path to the config file, or None if not found
    """
    for name in CONFIG_FILE_NAMES:
        config_path = root / name
        if config_path.exists() and config_path.is_file():
            return config_path
    return None


def _unwrap_section(data: Mapping[str, Any]) -> dict[str, Any]:
    """Support both flat settings and a nested [log-redactor] section."""
    for section in SECTION_NAMES:
        if isinstance(data.get(section), Mapping):
            return dict(data[section])
    return dict(data)


def _parse_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML config file."""
    if tomllib is None:
        raise ImportError(
            "TOML support requires 'tomli' package (Python < 3.11) or Python 3.11+. "
            "Install with: pip install tomli"
        )

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return _unwrap_section(data)


def _parse_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file."""
    if yaml is None:
        raise ImportError(
            "YAML support requires 'pyyaml' package. Install with: pip install pyyaml"
        )

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        return {}

    return _unwrap_section(data)


def load_config_file(root: Path | None = None, config_path: Path | None = None) -> ProjectConfig:
    """
    Load settings from a config file.

    Args:
        root: Directory to search for a config file (defaults to cwd)
        config_path: Explicit path to config file (optional)

    Returns:
        ProjectConfig with loaded settings (empty if nothing was found)
    """
    if config_path is None:
        config_path = find_config_file(root or Path.cwd())

    if config_path is None or not config_path.exists():
        return ProjectConfig()

    # Parse based on extension
    suffix = config_path.suffix.lower()
    try:
        if suffix == ".toml":
            data = _parse_toml(config_path)
        elif suffix in (".yml", ".yaml"):
            data = _parse_yaml(config_path)
        else:
            return ProjectConfig()
    except Exception as e:
        # Parse errors fall back to default settings
        logger.debug("Could not parse %s: %s", config_path, e)
        return ProjectConfig()

    return ProjectConfig(settings=data, _config_file=config_path)


def apply_env_overrides(
    settings: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Layer LOG_REDACTOR_* environment variables over settings.

    String values are passed through unchanged; RedactionConfig.from_dict
    coerces them. The input mapping is not modified.

    Returns:
        New settings dictionary
    """
    environ = os.environ if environ is None else environ
    result = dict(settings)

    for env_name, key in ENV_OVERRIDES.items():
        if env_name in environ:
            result[key] = environ[env_name]

    entropy_overrides = {
        key: environ[env_name]
        for env_name, key in ENTROPY_ENV_OVERRIDES.items()
        if env_name in environ
    }
    if entropy_overrides:
        entropy = result.get("shannon_entropy")
        entropy = dict(entropy) if isinstance(entropy, Mapping) else {}
        entropy.update(entropy_overrides)
        result["shannon_entropy"] = entropy

    return result


def merge_cli_with_config(
    settings: Mapping[str, Any],
    *,
    # CLI arguments (None means not specified on CLI)
    replacement: str | None = None,
    mark_redacted: bool | None = None,
    track_redacted_keys: bool | None = None,
    max_value_length: int | None = None,
    max_object_size: int | None = None,
    entropy_enabled: bool | None = None,
    entropy_threshold: float | None = None,
    entropy_min_length: int | None = None,
    safe_keys: list[str] | None = None,
    blocked_keys: list[str] | None = None,
    non_redactable_object_behavior: str | None = None,
) -> dict[str, Any]:
    """
    Merge CLI arguments with config file values.

    CLI arguments take precedence over config file values. Key lists given
    on the CLI extend the configured lists instead of replacing them.

    Returns:
        Dictionary with merged settings
    """
    result = dict(settings)

    if replacement is not None:
        result["replacement"] = replacement
    if mark_redacted is not None:
        result["mark_redacted"] = mark_redacted
    if track_redacted_keys is not None:
        result["track_redacted_keys"] = track_redacted_keys
    if max_value_length is not None:
        result["max_value_length"] = max_value_length
    if max_object_size is not None:
        result["max_object_size"] = max_object_size
    if non_redactable_object_behavior is not None:
        result["non_redactable_object_behavior"] = non_redactable_object_behavior

    if safe_keys:
        result["safe_keys"] = _extend_keys(result.get("safe_keys"), safe_keys, "safe")
    if blocked_keys:
        result["blocked_keys"] = _extend_keys(result.get("blocked_keys"), blocked_keys, "blocked")

    entropy_changes = {
        key: value
        for key, value in (
            ("enabled", entropy_enabled),
            ("threshold", entropy_threshold),
            ("min_length", entropy_min_length),
        )
        if value is not None
    }
    if entropy_changes:
        entropy = result.get("shannon_entropy")
        entropy = dict(entropy) if isinstance(entropy, Mapping) else {}
        entropy.update(entropy_changes)
        result["shannon_entropy"] = entropy

    return result


def _extend_keys(current: Any, extra: list[str], kind: str) -> list[str]:
    """Append CLI keys to configured keys (or to the defaults when unset)."""
    from log_redactor.config import DEFAULT_BLOCKED_KEYS, DEFAULT_SAFE_KEYS

    if isinstance(current, (list, tuple, set, frozenset)):
        base = [str(k) for k in current]
    else:
        base = list(DEFAULT_SAFE_KEYS if kind == "safe" else DEFAULT_BLOCKED_KEYS)
    return base + [k for k in extra if k not in base]


def resolve_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[dict[str, Any], Path | None]:
    """
    Load file settings and apply environment overrides.

    Returns:
        Tuple of (settings, config file used or None)
    """
    project_config = load_config_file(root, config_path)
    settings = apply_env_overrides(project_config.settings, environ)
    return settings, project_config._config_file
