"""Bounded, filterable log history for the viewer side."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Deque, List, Optional, Sequence, Union

from PyQt6.QtCore import QObject, pyqtSignal

from config.constants import LogStreamConstants
from utils import common

from .models import LogEntry, LogLevel
from .parser import LogLineParser

if TYPE_CHECKING:
    from .client import LogStreamClient

logger = common.get_logger('log_history')


class LogHistoryBuffer(QObject):
    """Keeps the most recent entries in arrival order and a filtered view of them.

    The retained history is capped at ``capacity`` entries with oldest-first
    eviction. Filtering (minimum level and case-insensitive text over tag and
    message) only changes the visible view, never the retained history.

    Renderers follow three signals:

    - ``entries_appended``: newly visible entries, in order, to add at the end
    - ``entries_evicted``: visible entries dropped from the front by eviction
    - ``view_reset``: the whole visible view was rebuilt (filter change or clear)
    """

    entries_appended = pyqtSignal(list)
    entries_evicted = pyqtSignal(list)
    view_reset = pyqtSignal()

    def __init__(
        self,
        capacity: int = LogStreamConstants.HISTORY_CAPACITY,
        parser: Optional[LogLineParser] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        if capacity < 1:
            raise ValueError('History capacity must be positive')
        self._capacity = capacity
        self._parser = parser or LogLineParser()
        self._entries: Deque[LogEntry] = deque()
        self._visible: Deque[LogEntry] = deque()
        self._min_level = LogLevel.VERBOSE
        self._text_filter = ''

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def attach(self, client: 'LogStreamClient') -> None:
        """Consume ``lines_received`` and ``cleared`` events from a client."""
        client.lines_received.connect(self.append_lines)
        client.cleared.connect(self.clear)

    def detach(self, client: 'LogStreamClient') -> None:
        try:
            client.lines_received.disconnect(self.append_lines)
            client.cleared.disconnect(self.clear)
        except (RuntimeError, TypeError) as exc:
            logger.debug('Signal disconnect skipped: %s', exc)

    # ------------------------------------------------------------------
    # History mutation
    # ------------------------------------------------------------------
    def append_lines(self, lines: Sequence[str]) -> List[LogEntry]:
        """Parse and retain a batch; returns the entries that became visible."""
        parsed = self._parser.parse_lines(lines)
        if not parsed:
            return []

        # A batch larger than the window keeps only its newest entries; the
        # dropped head never reaches a renderer.
        survivors = parsed[max(0, len(parsed) - self._capacity):]

        self._entries.extend(survivors)
        evicted = self._evict_overflow()

        appended = [entry for entry in survivors if self._matches(entry)]
        self._visible.extend(appended)

        if evicted:
            self.entries_evicted.emit(evicted)
        if appended:
            self.entries_appended.emit(appended)
        return appended

    def _evict_overflow(self) -> List[LogEntry]:
        """Drop the oldest entries above capacity; return the visible ones dropped."""
        evicted_visible: List[LogEntry] = []
        while len(self._entries) > self._capacity:
            oldest = self._entries.popleft()
            # Visible order mirrors arrival order, so a visible evictee is
            # always at the front of the view.
            if self._visible and self._visible[0] is oldest:
                self._visible.popleft()
                evicted_visible.append(oldest)
        return evicted_visible

    def clear(self) -> None:
        """Discard the entire history and visible view."""
        if self._entries:
            logger.debug('Clearing %d retained log entries', len(self._entries))
        self._entries.clear()
        self._visible.clear()
        self.view_reset.emit()

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------
    def set_min_level(self, level: Union[LogLevel, str]) -> None:
        resolved = LogLevel.parse(level)
        if resolved is self._min_level:
            return
        self._min_level = resolved
        self._rebuild_view()

    def set_text_filter(self, text: Optional[str]) -> None:
        needle = (text or '').lower()
        if needle == self._text_filter:
            return
        self._text_filter = needle
        self._rebuild_view()

    def set_filters(self, level: Union[LogLevel, str], text: Optional[str]) -> None:
        """Update both filter dimensions with a single view rebuild."""
        self._min_level = LogLevel.parse(level)
        self._text_filter = (text or '').lower()
        self._rebuild_view()

    def matches(self, entry: LogEntry) -> bool:
        """Return whether an entry passes the current filters."""
        return self._matches(entry)

    def _matches(self, entry: LogEntry) -> bool:
        if entry.level.rank < self._min_level.rank:
            return False
        if self._text_filter:
            haystack = f'{entry.tag} {entry.message}'.lower()
            if self._text_filter not in haystack:
                return False
        return True

    def _rebuild_view(self) -> None:
        self._visible = deque(entry for entry in self._entries if self._matches(entry))
        self.view_reset.emit()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def entries(self) -> List[LogEntry]:
        """Copy of the retained history, oldest first."""
        return list(self._entries)

    def visible_entries(self) -> List[LogEntry]:
        """Copy of the filtered view, oldest first."""
        return list(self._visible)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def min_level(self) -> LogLevel:
        return self._min_level

    @property
    def text_filter(self) -> str:
        return self._text_filter

    def __len__(self) -> int:
        return len(self._entries)
