"""Structured decision log forwarded to syslog."""

from __future__ import annotations

import logging
import logging.handlers
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Iterable

SYSLOG_IDENTIFIER = "nm-dispatcher-hotspot"
SYSLOG_SOCKET = Path("/dev/log")

_SECRET_MARKERS = ("password", "psk", "secret")


@dataclass(slots=True)
class SystemLogEntry:
    """Represents a decision or action taken by the controller."""

    timestamp: float
    category: str
    event: str
    message: str
    metadata: dict[str, object | None] | None = None

    def to_dict(self) -> dict[str, object | None]:
        payload: dict[str, object | None] = {
            "timestamp": self.timestamp,
            "category": self.category,
            "event": self.event,
            "message": self.message,
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload

    def format(self) -> str:
        parts = [f"event={self.event}", self.message]
        if self.metadata:
            parts.extend(f"{key}={value}" for key, value in self.metadata.items())
        return " ".join(part for part in parts if part)


class SystemLog:
    """Bounded in-memory log that mirrors every entry to ``logging``."""

    def __init__(
        self,
        *,
        max_entries: int = 200,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._entries: Deque[SystemLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger("wired_hotspot")

    # ------------------------------ operations -----------------------------
    def record(
        self,
        category: str,
        event: str,
        message: str,
        *,
        level: int = logging.INFO,
        metadata: dict[str, object | None] | None = None,
    ) -> SystemLogEntry:
        """Append a new event and emit it as a structured log line."""

        cleaned_category = category.strip() if isinstance(category, str) else ""
        if not cleaned_category:
            cleaned_category = "general"
        entry = SystemLogEntry(
            timestamp=time.time(),
            category=cleaned_category,
            event=event,
            message=message,
            metadata=self._clean_metadata(metadata),
        )
        with self._lock:
            self._entries.append(entry)
        self._logger.log(level, "%s", entry.format())
        return entry

    def tail(
        self,
        limit: int | None = None,
        *,
        category: str | None = None,
    ) -> list[SystemLogEntry]:
        """Return the most recent entries, optionally filtering by category."""

        with self._lock:
            entries: Iterable[SystemLogEntry] = list(self._entries)
        if category is not None:
            wanted = category.strip()
            if wanted:
                entries = [entry for entry in entries if entry.category == wanted]
        entries = list(entries)
        if limit is not None:
            try:
                limit_value = max(1, int(limit))
            except (TypeError, ValueError):
                limit_value = 1
            if len(entries) > limit_value:
                entries = entries[-limit_value:]
        return entries

    # ----------------------------- implementation --------------------------
    @staticmethod
    def _clean_metadata(
        metadata: dict[str, object | None] | None,
    ) -> dict[str, object | None] | None:
        if not metadata:
            return None
        cleaned: dict[str, object | None] = {}
        for key, value in metadata.items():
            if value is None:
                continue
            lowered = key.lower()
            if any(marker in lowered for marker in _SECRET_MARKERS):
                cleaned[key] = "<hidden>"
            else:
                cleaned[key] = value
        return cleaned or None


def configure_logging(*, debug: bool = False, use_syslog: bool = True) -> logging.Logger:
    """Attach a syslog handler tagged with :data:`SYSLOG_IDENTIFIER`.

    Falls back to stderr when the syslog socket is missing, which is the case
    in containers and on development machines.
    """

    logger = logging.getLogger("wired_hotspot")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    handler: logging.Handler | None = None
    if use_syslog and SYSLOG_SOCKET.exists():
        try:
            handler = logging.handlers.SysLogHandler(address=str(SYSLOG_SOCKET))
        except OSError as exc:
            logging.getLogger(__name__).warning("Syslog unavailable: %s", exc)
            handler = None
        else:
            handler.ident = f"{SYSLOG_IDENTIFIER}: "
            handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(f"{SYSLOG_IDENTIFIER}: %(levelname)s %(message)s")
        )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


__all__ = [
    "SYSLOG_IDENTIFIER",
    "SystemLog",
    "SystemLogEntry",
    "configure_logging",
]
