"""Tests for the bounded, filterable log history and its list model."""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PyQt6.QtCore import QCoreApplication, Qt

from modules.logstream.history import LogHistoryBuffer
from modules.logstream.models import LogLevel
from modules.logstream.view_model import LogHistoryListModel


def _line(level: str, tag: str, message: str, pid: int = 100) -> str:
    return f'06-15 10:23:01.123 {pid} {pid} {level} {tag}: {message}'


class LogHistoryBufferTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self):
        self.history = LogHistoryBuffer(capacity=5)
        self.appended = []
        self.evicted = []
        self.resets = 0
        self.history.entries_appended.connect(self.appended.append)
        self.history.entries_evicted.connect(self.evicted.append)
        self.history.view_reset.connect(self._count_reset)

    def _count_reset(self):
        self.resets += 1

    def test_default_capacity(self):
        self.assertEqual(LogHistoryBuffer().capacity, 5000)

    def test_append_preserves_arrival_order(self):
        self.history.append_lines([_line('I', 'A', 'one'), _line('D', 'B', 'two')])
        self.history.append_lines([_line('E', 'C', 'three')])

        self.assertEqual([entry.message for entry in self.history.entries()], ['one', 'two', 'three'])
        self.assertEqual(len(self.appended), 2)

    def test_blank_lines_are_not_retained(self):
        self.history.append_lines(['', '   ', _line('I', 'A', 'kept')])
        self.assertEqual(len(self.history), 1)

    def test_overflow_evicts_oldest_first(self):
        for batch in range(4):
            self.history.append_lines([_line('I', 'T', f'{batch}-{idx}') for idx in range(3)])
            self.assertLessEqual(len(self.history), 5)

        messages = [entry.message for entry in self.history.entries()]
        self.assertEqual(messages, ['2-1', '2-2', '3-0', '3-1', '3-2'])
        self.assertEqual(self.history.visible_entries(), self.history.entries())

    def test_eviction_reports_dropped_visible_entries(self):
        self.history.append_lines([_line('I', 'T', str(idx)) for idx in range(5)])
        self.history.append_lines([_line('I', 'T', 'new')])

        self.assertEqual([entry.message for entry in self.evicted[-1]], ['0'])
        self.assertEqual([entry.message for entry in self.appended[-1]], ['new'])

    def test_oversized_batch_keeps_newest(self):
        self.history.append_lines([_line('I', 'T', str(idx)) for idx in range(8)])

        self.assertEqual([entry.message for entry in self.history.entries()], ['3', '4', '5', '6', '7'])
        self.assertEqual(self.evicted, [])
        self.assertEqual(len(self.appended[-1]), 5)

    def test_cleared_empties_history(self):
        self.history.append_lines([_line('I', 'T', str(idx)) for idx in range(4)])
        self.history.clear()

        self.assertEqual(len(self.history), 0)
        self.assertEqual(self.history.visible_entries(), [])
        self.assertEqual(self.resets, 1)

    def test_level_filter_excludes_lower_levels(self):
        self.history.append_lines([
            _line('V', 'T', 'verbose'),
            _line('I', 'T', 'info'),
            _line('W', 'T', 'warn'),
            _line('F', 'T', 'fatal'),
        ])
        self.history.set_min_level('W')

        self.assertEqual([entry.message for entry in self.history.visible_entries()], ['warn', 'fatal'])
        self.assertEqual(len(self.history), 4)

    def test_level_filter_is_monotonic(self):
        levels = list('VDIWEFS')
        self.history = LogHistoryBuffer(capacity=50)
        self.history.append_lines([_line(level, 'T', level) for level in levels])
        for threshold in levels:
            self.history.set_min_level(threshold)
            visible = {entry.level for entry in self.history.visible_entries()}
            for entry in self.history.entries():
                if entry.level in visible:
                    for higher in self.history.entries():
                        if higher.level.rank >= entry.level.rank:
                            self.assertIn(higher.level, visible)

    def test_text_filter_is_case_insensitive_over_tag_and_message(self):
        self.history.append_lines([
            _line('I', 'BootReceiver', 'started'),
            _line('I', 'Net', 'BOOT complete'),
            _line('I', 'Net', 'idle'),
        ])
        self.history.set_text_filter('boot')

        self.assertEqual([entry.message for entry in self.history.visible_entries()], ['started', 'BOOT complete'])

        self.history.set_text_filter('')
        self.assertEqual(len(self.history.visible_entries()), 3)

    def test_filter_change_recomputes_view_in_arrival_order(self):
        self.history.append_lines([_line('E', 'T', 'a'), _line('I', 'T', 'b'), _line('E', 'T', 'c')])
        self.history.set_filters('E', '')
        self.assertEqual([entry.message for entry in self.history.visible_entries()], ['a', 'c'])

        self.history.set_filters('V', '')
        self.assertEqual([entry.message for entry in self.history.visible_entries()], ['a', 'b', 'c'])

    def test_new_lines_respect_active_filter(self):
        self.history.set_min_level(LogLevel.ERROR)
        visible = self.history.append_lines([_line('I', 'T', 'quiet'), _line('E', 'T', 'loud')])

        self.assertEqual([entry.message for entry in visible], ['loud'])
        self.assertEqual(len(self.history), 2)

    def test_eviction_of_hidden_entries_is_not_reported(self):
        self.history.set_min_level('E')
        self.history.append_lines([_line('I', 'T', str(idx)) for idx in range(5)])
        self.history.append_lines([_line('E', 'T', 'err')])

        self.assertEqual(self.evicted, [])
        self.assertEqual([entry.message for entry in self.history.visible_entries()], ['err'])


class LogHistoryListModelTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self):
        self.history = LogHistoryBuffer(capacity=3)
        self.model = LogHistoryListModel(self.history)

    def _rows(self):
        return [self.model.data(self.model.index(row, 0)) for row in range(self.model.rowCount())]

    def test_rows_follow_appends_and_eviction(self):
        lines = [_line('I', 'T', str(idx)) for idx in range(5)]
        self.history.append_lines(lines[:2])
        self.history.append_lines(lines[2:])

        self.assertEqual(self._rows(), lines[2:])

    def test_filter_and_clear_reset_rows(self):
        self.history.append_lines([_line('I', 'T', 'info'), _line('E', 'T', 'error')])
        self.history.set_min_level('E')
        self.assertEqual(self.model.rowCount(), 1)
        self.assertEqual(self.model.data(self.model.index(0, 0), LogHistoryListModel.LevelRole), 'E')

        self.history.clear()
        self.assertEqual(self.model.rowCount(), 0)

    def test_user_role_returns_entry(self):
        self.history.append_lines([_line('W', 'Tag', 'msg')])
        entry = self.model.data(self.model.index(0, 0), Qt.ItemDataRole.UserRole)
        self.assertEqual(entry.tag, 'Tag')


if __name__ == '__main__':
    unittest.main()
