"""
Regex patterns used by the redaction policy.

Two lists live here:
- DEFAULT_PATTERNS: value patterns that always trigger redaction
  (emails, card numbers, bearer tokens, ...)
- DEFAULT_EXCLUSION_PATTERNS: shapes of common non-secret values that
  would otherwise look random enough to trip entropy detection
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


# Value patterns, applied to every string regardless of its key.
# Keys are descriptive names only; order is preserved.
DEFAULT_PATTERNS: dict[str, str] = {
    "email": r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+",
    "credit_card": r"(?<![\w-])(?:\d[ -]?){12,15}\d(?![\w-])",
    "ssn": r"\b\d{3}-\d{2}-\d{4}\b",
    "phone": r"(?<![\w-])(?:\+\d{1,3}[ -]?)?\(?\d{3}\)?[ -]?\d{3}[ -]?\d{4}(?![\w-])",
    "bearer_token": r"Bearer\s+[A-Za-z0-9\-._~+/]+=*",
    "api_key": r"(?i)\b(?:api|apikey|api_key)\s*[:=]\s*[A-Za-z0-9\-_]{20,}",
    "jwt_token": r"eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_.+/=]*",
    "url_with_auth": r"https?://[^:/\s]+:[^@/\s]+@\S+",
}


# Pure hex strings shorter than this are treated as ids/checksums.
# Longer ones (SHA-256 digests, hex-encoded keys) still get scored.
HEX_EXCLUSION_MAX_LENGTH = 32

HEX_ONLY_PATTERN = r"^[0-9a-fA-F]+$"

# Pattern sources that get the hex length special case
HEX_ONLY_PATTERNS = frozenset({
    HEX_ONLY_PATTERN,
    r"^[a-fA-F0-9]+$",
    r"^[0-9a-f]+$",
    r"^[a-f0-9]+$",
})


# Patterns commonly found in safe content (URLs, UUIDs, timestamps, etc.)
DEFAULT_EXCLUSION_PATTERNS: list[str] = [
    # URLs
    r"^https?://",
    # Absolute file paths (unix and windows-style separators)
    r"^[/\\].+[/\\]",
    # ISO dates and timestamps
    r"^\d{4}-\d{2}-\d{2}",
    # UUIDs (versions 1-8)
    r"(?i)^[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    # Whitespace only
    r"^\s*$",
    # Short hex strings (length checked separately)
    HEX_ONLY_PATTERN,
    # User agents
    r"^(?:Mozilla|Opera|curl|Wget|python-requests|python-httpx|PostmanRuntime|okhttp|Go-http-client|axios|Dalvik)/\d",
    # IPv4
    r"^(?:\d{1,3}\.){3}\d{1,3}$",
    # MAC addresses
    r"^(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$",
]


def compile_patterns(patterns: Iterable[str] | Mapping[str, str]) -> tuple[re.Pattern[str], ...]:
    """
    Compile pattern strings, dropping any that are not valid regexes.

    Args:
        patterns: Pattern strings, or a mapping of name -> pattern string

    Returns:
        Compiled patterns in their original order
    """
    if isinstance(patterns, Mapping):
        items = list(patterns.items())
    else:
        items = [(None, p) for p in patterns]

    compiled = []
    for name, source in items:
        if isinstance(source, re.Pattern):
            compiled.append(source)
            continue
        if not isinstance(source, str):
            logger.debug("Skipping non-string redaction pattern %r", source)
            continue
        try:
            compiled.append(re.compile(source))
        except re.error as e:
            logger.debug("Skipping invalid redaction pattern %s %r: %s", name or "", source, e)

    return tuple(compiled)


def matches_any(s: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    """Check if a string matches any of the given patterns."""
    return any(pattern.search(s) for pattern in patterns)


def is_excluded(s: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    """
    Check if a string matches a known non-secret shape.

    The hex-only pattern excludes a string only when it is shorter than
    HEX_EXCLUSION_MAX_LENGTH; longer hex strings may be real secrets.
    """
    for pattern in patterns:
        if not pattern.search(s):
            continue
        if pattern.pattern in HEX_ONLY_PATTERNS and len(s) >= HEX_EXCLUSION_MAX_LENGTH:
            continue
        return True
    return False
