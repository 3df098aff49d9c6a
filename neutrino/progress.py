"""Rate-limited progress logging for header and block processing."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

_LOG_INTERVAL = timedelta(seconds=10)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_duration(millis: int) -> str:
    """Render a millisecond count in hours/minutes/seconds form."""
    if millis == 0:
        return "0s"
    hours, rest = divmod(millis, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, ms = divmod(rest, 1000)
    text = str(seconds)
    if ms:
        text += "." + f"{ms:03d}".rstrip("0")
    text += "s"
    if hours:
        return f"{hours}h{minutes}m{text}"
    if minutes:
        return f"{minutes}m{text}"
    return text


class HeaderProgressLogger:
    """Logs processing progress at most once every ten seconds.

    Messages look like:
    ``{action} {count} {entity}[s] in the last {duration} (height {h}, {timestamp})``
    """

    def __init__(
        self,
        progress_action: str,
        entity_type: str,
        logger: logging.Logger,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.progress_action = progress_action
        self.entity_type = entity_type
        self._logger = logger
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._received = 0
        self._last_log_time = self._clock()

    def log_block_height(self, timestamp: datetime, height: int) -> None:
        """Record one more processed item and log if the interval has passed."""
        with self._lock:
            self._received += 1

            now = self._clock()
            duration = now - self._last_log_time
            if duration < _LOG_INTERVAL:
                return

            millis = duration // timedelta(milliseconds=1)
            truncated = millis // 10 * 10

            entity = self.entity_type
            if self._received > 1:
                entity += "s"
            self._logger.info(
                "%s %d %s in the last %s (height %d, %s)",
                self.progress_action,
                self._received,
                entity,
                _format_duration(truncated),
                height,
                timestamp,
            )

            self._received = 0
            self._last_log_time = now

    def set_last_log_time(self, when: datetime) -> None:
        """Set the moment the last progress message was written."""
        with self._lock:
            self._last_log_time = when