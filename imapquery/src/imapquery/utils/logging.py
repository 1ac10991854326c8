"""imapquery logging helpers with deterministic JSON emission and redaction.

What:
  Offer a tiny facade over Python streams so every imapquery component can
  emit JSON log lines with consistent fields and automatic removal of search
  terms and message content.

Why:
  Search queries and fetched parts routinely contain personal data (sender
  addresses, subjects, body text). A structured layout keeps logs greppable
  while making sure that content never lands in shared log storage.

How:
  Provide a :class:`JsonLogger` dataclass bound to a component name. ``extra``
  dictionaries are scrubbed via a recursive redaction helper before being
  serialised with ``json.dump``. Lines go to ``stderr`` unless a stream is
  given, so the CLI can keep ``stdout`` for its JSON results.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every line carries an ISO8601 timestamp, severity and component name.
  - Sensitive keys are replaced with ``[redacted]`` even inside nested
    dictionaries.
  - Entries below the threshold from ``IMAPQUERY_LOG_LEVEL`` (default
    ``INFO``) are dropped.
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "text", "query", "snippet", "password", "html"})
_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}


def _threshold_from_env() -> int:
    return _LEVELS.get(os.environ.get("IMAPQUERY_LOG_LEVEL", "INFO").upper(), 20)


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries with timestamp, severity, component and
      optional supplemental fields.

    How:
      :meth:`log` merges the canonical payload with a redacted copy of the
      extras, writes it and flushes; :meth:`debug`, :meth:`info`,
      :meth:`warning` and :meth:`error` are thin wrappers.
    """

    stream: Any = None
    component: str = "imapquery"
    threshold: int = field(default_factory=_threshold_from_env)

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Severity name (``"info"``, ``"warn"``...).
          message: Core log message.
          extra: Optional context dictionary, redacted recursively.
        """

        severity = level.upper()
        if _LEVELS.get(severity, 20) < self.threshold:
            return
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": severity,
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        stream = self.stream if self.stream is not None else sys.stderr
        json.dump(payload, stream, separators=(",", ":"), default=str)
        stream.write("\n")
        stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with :data:`SENSITIVE_KEYS` masked."""

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str, *, stream: Any = None) -> JsonLogger:
    """Construct a :class:`JsonLogger` for ``component``.

    Call sites go through this helper rather than instantiating
    :class:`JsonLogger` directly so defaults can evolve centrally.
    """

    return JsonLogger(stream=stream, component=component)
