"""Qt list model mirroring the visible view of a :class:`LogHistoryBuffer`."""

from __future__ import annotations

from typing import Any, List, Optional

from PyQt6.QtCore import QAbstractListModel, QModelIndex, QObject, Qt

from .history import LogHistoryBuffer
from .models import LogEntry


class LogHistoryListModel(QAbstractListModel):
    """List model holding the rendered rows of the filtered history.

    Rows are appended, evicted from the front and reset in lockstep with the
    buffer's signals, so an entry evicted from the history also disappears
    from any view bound to this model.
    """

    LevelRole = Qt.ItemDataRole.UserRole + 1

    def __init__(self, history: LogHistoryBuffer, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._history = history
        self._rows: List[LogEntry] = history.visible_entries()
        history.entries_appended.connect(self.append_entries)
        history.entries_evicted.connect(self._on_entries_evicted)
        history.view_reset.connect(self._on_view_reset)

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._rows)

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole) -> Any:  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._rows)):
            return None
        entry = self._rows[index.row()]
        if role == Qt.ItemDataRole.DisplayRole:
            return entry.raw
        if role == Qt.ItemDataRole.UserRole:
            return entry
        if role == self.LevelRole:
            return entry.level.value
        return None

    def append_entries(self, entries: List[LogEntry]) -> None:
        if not entries:
            return
        start = len(self._rows)
        end = start + len(entries) - 1
        self.beginInsertRows(QModelIndex(), start, end)
        self._rows.extend(entries)
        self.endInsertRows()

    def remove_first(self, count: int) -> None:
        if count <= 0 or not self._rows:
            return
        actual = min(count, len(self._rows))
        self.beginRemoveRows(QModelIndex(), 0, actual - 1)
        del self._rows[:actual]
        self.endRemoveRows()

    def get_entry(self, row: int) -> Optional[LogEntry]:
        if 0 <= row < len(self._rows):
            return self._rows[row]
        return None

    def to_list(self) -> List[LogEntry]:
        return list(self._rows)

    def _on_entries_evicted(self, entries: List[LogEntry]) -> None:
        self.remove_first(len(entries))

    def _on_view_reset(self) -> None:
        self.beginResetModel()
        self._rows = self._history.visible_entries()
        self.endResetModel()
