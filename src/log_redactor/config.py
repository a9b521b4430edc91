"""
Configuration models and defaults for log-redactor.

RedactionConfig is an immutable snapshot of every redaction setting.
Build one per redaction call from whatever settings mapping the host
application provides (config file, env, DI container).
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .patterns import DEFAULT_EXCLUSION_PATTERNS, DEFAULT_PATTERNS, compile_patterns

logger = logging.getLogger(__name__)


class NonRedactableObjectBehavior(str, Enum):
    """What to do with objects that cannot be converted to a mapping."""

    PRESERVE = "preserve"
    REMOVE = "remove"
    EMPTY_ARRAY = "empty_array"
    REDACT = "redact"


# Keys whose values are never redacted
DEFAULT_SAFE_KEYS: list[str] = [
    "id",
    "uuid",
    "created_at",
    "updated_at",
    "deleted_at",
    "timestamp",
    "datetime",
    "date",
    "time",
    "trace_id",
    "span_id",
    "request_id",
    "correlation_id",
    "level",
    "level_name",
    "channel",
    "message",
    "event",
    "origin",
    "duration_ms",
    "memory_mb",
    "status",
    "status_code",
    "method",
]

# Keys whose values are always redacted
DEFAULT_BLOCKED_KEYS: list[str] = [
    "password",
    "password_confirmation",
    "passwd",
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "set-cookie",
    "ssn",
    "credit_card",
    "card_number",
    "cvv",
    "email",
    "phone",
    "auth_token",
    "bearer_token",
    "access_token",
    "refresh_token",
    "session_id",
    "private_key",
    "client_secret",
]

DEFAULT_REPLACEMENT = "[REDACTED]"
DEFAULT_MAX_VALUE_LENGTH = 20_000
DEFAULT_MAX_OBJECT_SIZE = 100
DEFAULT_ENTROPY_THRESHOLD = 4.8
DEFAULT_ENTROPY_MIN_LENGTH = 25

# Shannon entropy of a byte string can't exceed 8 bits
MAX_ENTROPY_THRESHOLD = 8.0

_UNSET = object()


@dataclass(frozen=True)
class RedactionConfig:
    """
    Snapshot of all redaction settings.

    Key sets are lower-cased and patterns are already compiled, so the
    walker can use them directly. Construct via from_dict() to get
    defaults, validation and pattern compilation.
    """

    enabled: bool = True
    safe_keys: frozenset[str] = field(
        default_factory=lambda: frozenset(k.lower() for k in DEFAULT_SAFE_KEYS)
    )
    blocked_keys: frozenset[str] = field(
        default_factory=lambda: frozenset(k.lower() for k in DEFAULT_BLOCKED_KEYS)
    )
    patterns: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: compile_patterns(DEFAULT_PATTERNS)
    )
    replacement: str = DEFAULT_REPLACEMENT
    max_value_length: int | None = DEFAULT_MAX_VALUE_LENGTH
    redact_large_objects: bool = True
    max_object_size: int = DEFAULT_MAX_OBJECT_SIZE

    # Entropy-based detection
    entropy_enabled: bool = True
    entropy_threshold: float = DEFAULT_ENTROPY_THRESHOLD
    entropy_min_length: int = DEFAULT_ENTROPY_MIN_LENGTH
    entropy_exclusion_patterns: tuple[re.Pattern[str], ...] = field(
        default_factory=lambda: compile_patterns(DEFAULT_EXCLUSION_PATTERNS)
    )

    # Output markers
    mark_redacted: bool = True
    track_redacted_keys: bool = False

    non_redactable_object_behavior: NonRedactableObjectBehavior = (
        NonRedactableObjectBehavior.PRESERVE
    )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None = None) -> RedactionConfig:
        """
        Create RedactionConfig from a settings mapping (e.g., from a config file).

        Missing keys take their documented defaults. Values of the wrong type
        fall back to the default for that setting instead of raising, and
        regex strings that fail to compile are dropped. The mapping itself is
        never modified.
        """
        data = data if isinstance(data, Mapping) else {}
        entropy = data.get("shannon_entropy")
        if not isinstance(entropy, Mapping):
            entropy = {}

        max_value_length = _get_optional_int(data, "max_value_length", DEFAULT_MAX_VALUE_LENGTH)
        threshold = _get_float(entropy, "threshold", DEFAULT_ENTROPY_THRESHOLD)
        if not 0.0 <= threshold <= MAX_ENTROPY_THRESHOLD:
            logger.debug("Entropy threshold %r out of range, using default", threshold)
            threshold = DEFAULT_ENTROPY_THRESHOLD

        return cls(
            enabled=_get_bool(data, "enabled", True),
            safe_keys=_get_keys(data, "safe_keys", DEFAULT_SAFE_KEYS),
            blocked_keys=_get_keys(data, "blocked_keys", DEFAULT_BLOCKED_KEYS),
            patterns=_get_patterns(data, "patterns", DEFAULT_PATTERNS),
            replacement=_get_str(data, "replacement", DEFAULT_REPLACEMENT),
            max_value_length=max_value_length,
            redact_large_objects=_get_bool(data, "redact_large_objects", True),
            max_object_size=_get_int(data, "max_object_size", DEFAULT_MAX_OBJECT_SIZE),
            entropy_enabled=_get_bool(entropy, "enabled", True),
            entropy_threshold=threshold,
            entropy_min_length=_get_int(entropy, "min_length", DEFAULT_ENTROPY_MIN_LENGTH),
            entropy_exclusion_patterns=_get_patterns(
                entropy, "exclusion_patterns", DEFAULT_EXCLUSION_PATTERNS
            ),
            mark_redacted=_get_bool(data, "mark_redacted", True),
            track_redacted_keys=_get_bool(data, "track_redacted_keys", False),
            non_redactable_object_behavior=_get_behavior(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a settings mapping that from_dict() accepts."""
        return {
            "enabled": self.enabled,
            "safe_keys": sorted(self.safe_keys),
            "blocked_keys": sorted(self.blocked_keys),
            "patterns": [p.pattern for p in self.patterns],
            "replacement": self.replacement,
            "mark_redacted": self.mark_redacted,
            "max_value_length": self.max_value_length,
            "redact_large_objects": self.redact_large_objects,
            "max_object_size": self.max_object_size,
            "shannon_entropy": {
                "enabled": self.entropy_enabled,
                "threshold": self.entropy_threshold,
                "min_length": self.entropy_min_length,
                "exclusion_patterns": [p.pattern for p in self.entropy_exclusion_patterns],
            },
            "track_redacted_keys": self.track_redacted_keys,
            "non_redactable_object_behavior": self.non_redactable_object_behavior.value,
        }

    def with_overrides(self, **changes: Any) -> RedactionConfig:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)


def load_config(source: Mapping[str, Any] | RedactionConfig | None = None) -> RedactionConfig:
    """
    Build a RedactionConfig snapshot from a settings source.

    Args:
        source: Settings mapping, an existing snapshot (returned as-is), or None for defaults

    Returns:
        Immutable RedactionConfig
    """
    if isinstance(source, RedactionConfig):
        return source
    return RedactionConfig.from_dict(source)


def _get_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
    logger.debug("Invalid boolean for %s: %r, using default", key, value)
    return default


def _get_int(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        logger.debug("Invalid integer for %s: %r, using default", key, value)
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.debug("Invalid integer for %s: %r, using default", key, value)
        return default
    return result if result >= 0 else default


def _get_optional_int(data: Mapping[str, Any], key: str, default: int) -> int | None:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
        return None
    return _get_int(data, key, default)


def _get_float(data: Mapping[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.debug("Invalid number for %s: %r, using default", key, value)
        return default
    return result if math.isfinite(result) else default


def _get_str(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if isinstance(value, str):
        return value
    logger.debug("Invalid string for %s: %r, using default", key, value)
    return default


def _get_keys(data: Mapping[str, Any], key: str, default: list[str]) -> frozenset[str]:
    value = data.get(key, _UNSET)
    if value is _UNSET:
        value = default
    elif isinstance(value, str):
        value = [k.strip() for k in value.split(",")]
    elif not isinstance(value, (list, tuple, set, frozenset)):
        logger.debug("Invalid key list for %s: %r, using default", key, value)
        value = default
    return frozenset(str(k).lower() for k in value if isinstance(k, (str, int)) and str(k))


def _get_patterns(
    data: Mapping[str, Any],
    key: str,
    default: list[str] | dict[str, str],
) -> tuple[re.Pattern[str], ...]:
    value = data.get(key, _UNSET)
    if value is _UNSET or value is None:
        value = default
    elif isinstance(value, str):
        value = [value]
    elif not isinstance(value, (Mapping, list, tuple)):
        logger.debug("Invalid pattern list for %s: %r, using default", key, value)
        value = default
    return compile_patterns(value)


def _get_behavior(data: Mapping[str, Any]) -> NonRedactableObjectBehavior:
    value = data.get("non_redactable_object_behavior", NonRedactableObjectBehavior.PRESERVE)
    if isinstance(value, NonRedactableObjectBehavior):
        return value
    try:
        return NonRedactableObjectBehavior(str(value).strip().lower())
    except ValueError:
        logger.debug("Unknown non_redactable_object_behavior %r, using preserve", value)
        return NonRedactableObjectBehavior.PRESERVE
