"""log-redactor: scrub sensitive values from structured log contexts."""

from .config import (
    DEFAULT_BLOCKED_KEYS,
    DEFAULT_SAFE_KEYS,
    NonRedactableObjectBehavior,
    RedactionConfig,
    load_config,
)
from .entropy import EntropyScorer, calculate_entropy
from .log_filter import RedactingFilter
from .policy import Decision, classify
from .redactor import RedactionResult, Redactor, create_redactor, redact

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_BLOCKED_KEYS",
    "DEFAULT_SAFE_KEYS",
    "Decision",
    "EntropyScorer",
    "NonRedactableObjectBehavior",
    "RedactingFilter",
    "RedactionConfig",
    "RedactionResult",
    "Redactor",
    "__version__",
    "calculate_entropy",
    "classify",
    "create_redactor",
    "load_config",
    "redact",
]
