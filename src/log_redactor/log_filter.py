"""
Logging integration for log-redactor.

Attach RedactingFilter to a handler or logger and every record's message
and context are scrubbed before they reach a formatter:

    handler.addFilter(RedactingFilter(settings))
    logger.info("login", extra={"context": {"password": "hunter2"}})
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .redactor import ConfigSource, Redactor


class RedactingFilter(logging.Filter):
    """
    Logging filter that redacts record context in place.

    Redacts:
    - record.msg when it is a string
    - record.args when it's a mapping (logger.info("%(user)s", {...}))
    - each record attribute named in `attributes` (set via `extra=`)

    Records are never dropped; filter() always returns True.
    """

    def __init__(
        self,
        config: ConfigSource | Callable[[], ConfigSource] = None,
        attributes: Iterable[str] = ("context",),
    ):
        super().__init__()
        self.redactor = Redactor(config=config)
        self.attributes = tuple(attributes)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)

        if isinstance(record.args, Mapping):
            record.args = self._redact(record.args)

        for attribute in self.attributes:
            if hasattr(record, attribute):
                setattr(record, attribute, self._redact(getattr(record, attribute)))

        return True

    def _redact(self, value: Any) -> Any:
        return self.redactor.redact(value)
