"""Merge the cumulative server log into a de-duplicated local timeline.

Every status poll returns the full log history of the job, not a delta.  The
reconciler remembers how many raw lines have already been absorbed and only
turns the suffix beyond that count into new timeline entries, so a line is
never emitted twice no matter how often the server resends it.

Severity is guessed from free-text markers the processing service puts in its
messages (emoji and a few upper-case tokens).  The markers live in
``SEVERITY_MARKERS``; the first row that matches wins.  Structured entries
(mappings carrying an explicit ``level``) bypass the heuristic.
"""

from __future__ import annotations

import itertools
import logging
import re
from datetime import datetime
from typing import Any, Callable, Iterator, List, Mapping, Optional, Sequence, Tuple

from batch_monitor.monitor.models import LogEntry, Severity

logger = logging.getLogger(__name__)

_LEADING_TIME_TOKEN = re.compile(r"^\[\d{2}:\d{2}:\d{2}\]\s*")

SEVERITY_MARKERS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.SUCCESS, ("✅", "ÉXITO")),
    (Severity.ERROR, ("❌", "ERROR")),
    (Severity.WARNING, ("⚠️", "WARNING")),
)

_LEVEL_ALIASES: Mapping[str, Severity] = {
    "info": Severity.INFO,
    "debug": Severity.INFO,
    "success": Severity.SUCCESS,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "error": Severity.ERROR,
    "critical": Severity.ERROR,
}


def strip_time_token(line: str) -> str:
    return _LEADING_TIME_TOKEN.sub("", line, count=1)


def classify_severity(message: str) -> Severity:
    for severity, markers in SEVERITY_MARKERS:
        if any(marker in message for marker in markers):
            return severity
    return Severity.INFO


def _level_severity(level: Any) -> Optional[Severity]:
    if not isinstance(level, str):
        return None
    return _LEVEL_ALIASES.get(level.strip().lower())


def parse_raw_line(raw: Any) -> Tuple[str, Severity]:
    """Return the display message and severity for one raw log item."""
    if isinstance(raw, Mapping):
        message = strip_time_token(str(raw.get("message") or ""))
        severity = _level_severity(raw.get("level"))
        if severity is not None:
            return message, severity
        return message, classify_severity(message)
    message = strip_time_token(str(raw))
    return message, classify_severity(message)


def reconcile(
    previous_consumed_count: int,
    cumulative_raw_logs: Sequence[Any],
    *,
    next_id: Callable[[], int],
    clock: Callable[[], datetime] = datetime.now,
) -> Tuple[List[LogEntry], int]:
    """Turn the unseen suffix of ``cumulative_raw_logs`` into log entries.

    Returns the new entries and the consumed count to pass on the next call.
    A log that shrank or was resent unchanged yields no entries and leaves the
    count where it was.
    """
    if len(cumulative_raw_logs) <= previous_consumed_count:
        return [], previous_consumed_count
    suffix = cumulative_raw_logs[previous_consumed_count:]
    received_at = clock()
    entries: List[LogEntry] = []
    for raw in suffix:
        message, severity = parse_raw_line(raw)
        entries.append(
            LogEntry(
                id=next_id(),
                timestamp=received_at,
                message=message,
                severity=severity,
            )
        )
    return entries, previous_consumed_count + len(suffix)


class LogTimeline:
    """Append-only list of log entries for the job being monitored."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._entries: List[LogEntry] = []
        self._ids: Iterator[int] = itertools.count(1)
        self.consumed_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def _next_id(self) -> int:
        return next(self._ids)

    def append(self, message: str, severity: Severity = Severity.INFO) -> LogEntry:
        entry = LogEntry(
            id=self._next_id(),
            timestamp=self._clock(),
            message=message,
            severity=severity,
        )
        self._entries.append(entry)
        return entry

    def absorb(self, cumulative_raw_logs: Sequence[Any]) -> List[LogEntry]:
        entries, self.consumed_count = reconcile(
            self.consumed_count,
            cumulative_raw_logs,
            next_id=self._next_id,
            clock=self._clock,
        )
        if entries:
            logger.debug(
                "Absorbed %d new log line(s); consumed=%d",
                len(entries),
                self.consumed_count,
            )
        self._entries.extend(entries)
        return entries

    def clear(self) -> None:
        self._entries.clear()
        self._ids = itertools.count(1)
        self.consumed_count = 0
