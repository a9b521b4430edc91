"""
Log context redaction for log-redactor.

Walks an arbitrary log context (dicts, lists, scalars, objects) and returns
a copy with sensitive values replaced.

Features:
- Safe keys that are never touched, blocked keys that are always redacted
- Value patterns (emails, card numbers, bearer tokens, JWTs, ...)
- Entropy-based detection for unknown secrets, with exclusions for
  URLs, UUIDs, dates, IPs and other harmless high-entropy shapes
- Size caps for long strings and large containers
- Object support via to_dict()/to_array()/model_dump()/dataclasses/__dict__
- Cycle detection: revisited containers go through the
  non-redactable-object behavior instead of recursing forever
"""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import fractions
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Union

from .config import NonRedactableObjectBehavior, RedactionConfig, load_config
from .entropy import EntropyScorer
from .policy import Decision, classify, is_blocked_key, is_safe_key

logger = logging.getLogger(__name__)

LARGE_OBJECT_KEY = "_large_object_redacted"
REDACTED_MARKER_KEY = "_redacted"
REDACTED_KEYS_KEY = "_redacted_keys"

# Values of these types pass through untouched
SCALAR_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    bytes,
    bytearray,
    decimal.Decimal,
    fractions.Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    Enum,
    PurePath,
)

SEQUENCE_TYPES: tuple[type, ...] = (list, tuple, set, frozenset)

# Methods tried, in order, to turn an object into a mapping
CONVERSION_METHODS = ("to_dict", "to_array", "model_dump")

ConfigSource = Union[RedactionConfig, Mapping[str, Any], None]


class _Removed:
    """Marker for values the parent container must drop."""

    def __repr__(self) -> str:
        return "<removed>"


REMOVED = _Removed()


class ConversionError(Exception):
    """Raised when an object cannot be represented as a mapping."""


def to_mapping(obj: Any) -> Mapping[Any, Any]:
    """
    Convert an object-like value to a mapping of its fields.

    Tries, in order: to_dict(), to_array(), model_dump(), dataclass fields,
    __dict__, __slots__. Dataclass conversion is shallow so nested values
    still go through the walker.

    Raises:
        ConversionError: If no conversion applies or the result isn't a mapping
    """
    if isinstance(obj, type):
        raise ConversionError(f"Cannot convert class {obj.__name__} to a mapping")

    for name in CONVERSION_METHODS:
        method = getattr(obj, name, None)
        if callable(method):
            result = method()
            if not isinstance(result, Mapping):
                raise ConversionError(
                    f"{type(obj).__name__}.{name}() returned {type(result).__name__}"
                )
            return result

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    slots = _slot_names(type(obj))
    if slots:
        return {name: getattr(obj, name) for name in slots if hasattr(obj, name)}

    raise ConversionError(f"Cannot convert {type(obj).__name__} to a mapping")


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name not in ("__dict__", "__weakref__") and name not in names:
                names.append(name)
    return names


@dataclass
class RedactionResult:
    """Outcome of a single redaction call."""

    value: Any
    was_redacted: bool = False
    redacted_keys: tuple[str, ...] = ()
    # Redactions per reason (blocked_key, value, oversized_string, ...)
    counts: dict[str, int] = field(default_factory=dict)


class _RedactionState:
    """Mutable bookkeeping for one redaction call. Never shared."""

    def __init__(self) -> None:
        self.was_redacted = False
        self.redacted_keys: dict[str, None] = {}
        self.counts: dict[str, int] = {}
        self.scorer = EntropyScorer()
        # ids of containers/objects on the current walk path
        self.active: set[int] = set()

    def mark(self, reason: str, key: str | None = None) -> None:
        self.was_redacted = True
        self.counts[reason] = self.counts.get(reason, 0) + 1
        if key is not None:
            self.redacted_keys.setdefault(key, None)


class Redactor:
    """
    Redacts sensitive values from log contexts.

    The input context is never mutated; a redacted copy is returned.
    Subtrees under safe keys are passed through as-is.

    Settings can be given as a RedactionConfig, a plain settings mapping,
    or a zero-argument callable returning either. A callable is invoked on
    every redaction call so hosts can hand over live settings without the
    redactor reading global state.
    """

    def __init__(
        self,
        config: ConfigSource | Callable[[], ConfigSource] = None,
        enabled: bool = True,
    ):
        """
        Initialize the redactor.

        Args:
            config: Settings snapshot, settings mapping, or provider callable
            enabled: Whether redaction is enabled (ANDed with config.enabled)
        """
        self.enabled = enabled
        self._provider: Callable[[], ConfigSource]
        if callable(config) and not isinstance(config, Mapping):
            self._provider = config
        else:
            snapshot = load_config(config)
            self._provider = lambda: snapshot

    @property
    def config(self) -> RedactionConfig:
        """Current settings snapshot (rebuilt on each access for providers)."""
        return load_config(self._provider())

    def redact(self, context: Any) -> Any:
        """
        Redact sensitive data from a log context.

        Args:
            context: Log context, usually a dict

        Returns:
            Redacted copy of the context
        """
        return self.redact_with_result(context).value

    def redact_with_result(self, context: Any) -> RedactionResult:
        """
        Redact a log context and report what happened.

        Returns:
            RedactionResult with the redacted value, whether anything was
            redacted, and (if tracking is enabled) the redacted key names
        """
        config = self.config
        if not self.enabled or not config.enabled:
            return RedactionResult(value=context)

        state = _RedactionState()
        walker = _Walker(config, state)
        value = walker.walk(context, None)
        if value is REMOVED:
            value = None

        redacted_keys = tuple(state.redacted_keys) if config.track_redacted_keys else ()

        if state.was_redacted and isinstance(value, dict):
            if config.mark_redacted:
                value[REDACTED_MARKER_KEY] = True
            if redacted_keys:
                value[REDACTED_KEYS_KEY] = list(redacted_keys)

        return RedactionResult(
            value=value,
            was_redacted=state.was_redacted,
            redacted_keys=redacted_keys,
            counts=dict(sorted(state.counts.items(), key=lambda x: -x[1])),
        )


class _Walker:
    """Recursive walk over one context with one config snapshot."""

    def __init__(self, config: RedactionConfig, state: _RedactionState):
        self.config = config
        self.state = state

    def walk(self, value: Any, key: str | None) -> Any:
        if isinstance(value, str):
            return self._redact_string(value, key)

        if value is None or isinstance(value, SCALAR_TYPES):
            return value

        if isinstance(value, Mapping):
            return self._guarded(value, key, lambda: self._redact_mapping(value, key))

        if isinstance(value, SEQUENCE_TYPES):
            return self._guarded(value, key, lambda: self._redact_sequence(value, key))

        return self._guarded(value, key, lambda: self._redact_object(value, key))

    def _guarded(self, value: Any, key: str | None, walk: Callable[[], Any]) -> Any:
        """Run walk() unless value is already on the current path (a cycle)."""
        ident = id(value)
        if ident in self.state.active:
            logger.debug("Cycle detected at %s", type(value).__name__)
            return self._non_redactable(value, key)

        self.state.active.add(ident)
        try:
            return walk()
        finally:
            self.state.active.discard(ident)

    def _is_oversized(self, size: int) -> bool:
        return self.config.redact_large_objects and size > self.config.max_object_size

    def _large_object(self, description: str, key: str | None) -> dict[str, str]:
        self.state.mark("large_object", key)
        return {LARGE_OBJECT_KEY: f"{self.config.replacement} ({description})"}

    def _redact_mapping(
        self,
        mapping: Mapping[Any, Any],
        key: str | None,
        type_name: str | None = None,
    ) -> Any:
        size = len(mapping)
        if self._is_oversized(size):
            if type_name:
                return self._large_object(f"Object {type_name} with {size} properties", key)
            return self._large_object(f"Map with {size} items", key)

        result: dict[Any, Any] = {}
        for entry_key, value in mapping.items():
            name = entry_key if isinstance(entry_key, str) else str(entry_key)

            if is_safe_key(name, self.config):
                result[entry_key] = value
                continue

            if is_blocked_key(name, self.config):
                result[entry_key] = self.config.replacement
                self.state.mark("blocked_key", name)
                continue

            redacted = self.walk(value, name)
            if redacted is not REMOVED:
                result[entry_key] = redacted

        return result

    def _redact_sequence(self, sequence: Any, key: str | None) -> Any:
        size = len(sequence)
        if self._is_oversized(size):
            return self._large_object(f"Array with {size} items", key)

        items = [self.walk(item, None) for item in sequence]
        items = [item for item in items if item is not REMOVED]
        if isinstance(sequence, tuple):
            return tuple(items)
        return items

    def _redact_object(self, obj: Any, key: str | None) -> Any:
        try:
            data = to_mapping(obj)
        except Exception as e:
            logger.debug("Object %s is not redactable: %s", type(obj).__name__, e)
            return self._non_redactable(obj, key)

        return self._redact_mapping(data, key, type_name=type(obj).__name__)

    def _non_redactable(self, obj: Any, key: str | None) -> Any:
        behavior = self.config.non_redactable_object_behavior

        if behavior is NonRedactableObjectBehavior.PRESERVE:
            return obj

        if behavior is NonRedactableObjectBehavior.REMOVE:
            return REMOVED

        self.state.mark("non_redactable_object", key)
        if behavior is NonRedactableObjectBehavior.EMPTY_ARRAY:
            return {}

        return f"{self.config.replacement} (Non-redactable object {type(obj).__name__})"

    def _redact_string(self, value: str, key: str | None) -> str:
        decision = classify(value, self.config, key=key, scorer=self.state.scorer)

        if decision is Decision.REDACT:
            self.state.mark("value", key)
            return self.config.replacement

        if decision is Decision.REDACT_OVERSIZED:
            self.state.mark("oversized_string", key)
            return f"{self.config.replacement} (String with {len(value)} characters)"

        return value


def create_redactor(
    enabled: bool = True,
    config: ConfigSource | Callable[[], ConfigSource] = None,
) -> Redactor:
    """Factory function to create a redactor instance."""
    return Redactor(config=config, enabled=enabled)


def redact(context: Any, settings: ConfigSource = None) -> Any:
    """
    Redact a log context with a fresh settings snapshot.

    Args:
        context: Log context to redact
        settings: Settings mapping or RedactionConfig (defaults when None)

    Returns:
        Redacted copy of the context
    """
    return Redactor(config=settings).redact(context)
