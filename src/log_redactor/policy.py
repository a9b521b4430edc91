"""Per-value redaction decisions."""

from __future__ import annotations

from enum import Enum

from .config import RedactionConfig
from .entropy import EntropyScorer
from .patterns import is_excluded, matches_any


class Decision(str, Enum):
    """Outcome of classifying a single string value."""

    PASS = "pass"
    REDACT = "redact"
    REDACT_OVERSIZED = "redact_oversized"

    @property
    def redacts(self) -> bool:
        return self is not Decision.PASS


def is_safe_key(key: str | None, config: RedactionConfig) -> bool:
    """Check if a key is exempt from every redaction rule."""
    return key is not None and key.lower() in config.safe_keys


def is_blocked_key(key: str | None, config: RedactionConfig) -> bool:
    """Check if a key's value is always redacted."""
    return key is not None and key.lower() in config.blocked_keys


def is_high_entropy(
    value: str,
    config: RedactionConfig,
    scorer: EntropyScorer | None = None,
) -> bool:
    """
    Check if a string looks like a random secret.

    Strings shorter than the minimum length and strings matching an
    exclusion pattern (URLs, UUIDs, dates, ...) are never flagged.
    """
    if len(value) < config.entropy_min_length:
        return False

    if is_excluded(value, config.entropy_exclusion_patterns):
        return False

    if scorer is None:
        scorer = EntropyScorer()
    return scorer.score(value) >= config.entropy_threshold


def classify(
    value: str,
    config: RedactionConfig,
    key: str | None = None,
    scorer: EntropyScorer | None = None,
) -> Decision:
    """
    Decide whether a string value should be redacted.

    Checks run in a fixed order and stop at the first match:
    safe key, blocked key, max length, value patterns, entropy.

    Args:
        value: String value to classify
        config: Redaction settings snapshot
        key: Key the value was found under, if any
        scorer: Entropy scorer (shares its cache across a redaction call)

    Returns:
        Decision for this value
    """
    if is_safe_key(key, config):
        return Decision.PASS

    if is_blocked_key(key, config):
        return Decision.REDACT

    if config.max_value_length is not None and len(value) > config.max_value_length:
        return Decision.REDACT_OVERSIZED

    if matches_any(value, config.patterns):
        return Decision.REDACT

    if config.entropy_enabled and is_high_entropy(value, config, scorer):
        return Decision.REDACT

    return Decision.PASS
