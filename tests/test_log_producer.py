#!/usr/bin/env python3
"""Unit tests for the logcat producer process manager."""

import os
import sys
import unittest
from unittest.mock import patch

TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(TESTS_DIR))
sys.path.insert(0, TESTS_DIR)

from PyQt6.QtCore import QCoreApplication, QProcess

from modules.logstream.models import ProducerState
from modules.logstream.producer import (
    LogProducerManager,
    build_clear_arguments,
    build_stream_arguments,
)
from logstream_fakes import FakeProcess


class ProducerArgumentsTest(unittest.TestCase):
    def test_stream_arguments_without_filter(self) -> None:
        self.assertEqual(build_stream_arguments('SER1'), ['-s', 'SER1', 'logcat', '-v', 'time'])

    def test_stream_arguments_append_filter_verbatim(self) -> None:
        self.assertEqual(
            build_stream_arguments('SER1', 'ActivityManager:I *:S'),
            ['-s', 'SER1', 'logcat', '-v', 'time', 'ActivityManager:I *:S'],
        )

    def test_empty_filter_is_omitted(self) -> None:
        self.assertEqual(build_stream_arguments('SER1', ''), ['-s', 'SER1', 'logcat', '-v', 'time'])

    def test_clear_arguments(self) -> None:
        self.assertEqual(build_clear_arguments('SER1'), ['-s', 'SER1', 'logcat', '-c'])


@patch('modules.logstream.producer.QProcess', new=FakeProcess)
class LogProducerManagerTest(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls._app = QCoreApplication.instance() or QCoreApplication([])

    def setUp(self) -> None:
        FakeProcess.instances = []
        self.manager = LogProducerManager(adb_path='/opt/adb')
        self.outputs = []
        self.ended = []
        self.cleared = []
        self.states = []
        self.manager.output_received.connect(self.outputs.append)
        self.manager.stream_ended.connect(self.ended.append)
        self.manager.clear_finished.connect(self.cleared.append)
        self.manager.state_changed.connect(self.states.append)

    def test_start_spawns_stream_process(self) -> None:
        self.manager.start('SER1', '*:W')

        process = FakeProcess.instances[-1]
        self.assertEqual(process.program, '/opt/adb')
        self.assertEqual(process.arguments, ['-s', 'SER1', 'logcat', '-v', 'time', '*:W'])
        self.assertIs(self.manager.state, ProducerState.RUNNING)
        self.assertEqual(self.manager.udid, 'SER1')
        self.assertEqual(self.manager.log_filter, '*:W')

    def test_output_is_forwarded_as_text(self) -> None:
        self.manager.start('SER1')
        FakeProcess.instances[-1].write_stdout('I/Tag( 1): hi\n')

        self.assertEqual(self.outputs, ['I/Tag( 1): hi\n'])

    def test_restart_kills_previous_process_first(self) -> None:
        self.manager.start('SER1')
        first = FakeProcess.instances[-1]
        self.manager.start('SER1', 'Tag:D')
        second = FakeProcess.instances[-1]

        self.assertIsNot(first, second)
        self.assertTrue(first.killed)
        self.assertTrue(first.deleted)
        self.assertFalse(second.killed)
        self.assertEqual(
            self.states,
            [ProducerState.RUNNING, ProducerState.STOPPING, ProducerState.IDLE, ProducerState.RUNNING],
        )

    def test_output_from_replaced_process_is_ignored(self) -> None:
        self.manager.start('SER1')
        first = FakeProcess.instances[-1]
        self.manager.start('SER1')

        first.write_stdout('stale\n')
        first.exit(0)

        self.assertEqual(self.outputs, [])
        self.assertEqual(self.ended, [])
        self.assertIs(self.manager.state, ProducerState.RUNNING)

    def test_stop_is_idempotent(self) -> None:
        self.manager.stop()
        self.assertEqual(self.states, [])

        self.manager.start('SER1')
        process = FakeProcess.instances[-1]
        self.manager.stop()
        self.manager.stop()

        self.assertTrue(process.killed)
        self.assertIs(self.manager.state, ProducerState.IDLE)
        self.assertEqual(self.states, [ProducerState.RUNNING, ProducerState.STOPPING, ProducerState.IDLE])

    def test_spontaneous_exit_returns_to_idle_without_restart(self) -> None:
        self.manager.start('SER1')
        FakeProcess.instances[-1].exit(255)

        self.assertEqual(self.ended, [255])
        self.assertIs(self.manager.state, ProducerState.IDLE)
        self.assertEqual(len(FakeProcess.instances), 1)

    def test_failed_spawn_returns_to_idle(self) -> None:
        self.manager.start('SER1')
        process = FakeProcess.instances[-1]

        with self.assertLogs('logcat_relay.log_producer', level='ERROR'):
            process.errorOccurred.emit(QProcess.ProcessError.FailedToStart)

        self.assertIs(self.manager.state, ProducerState.IDLE)
        self.assertFalse(self.manager.is_running())
        self.assertTrue(process.deleted)

    def test_stderr_is_logged_not_forwarded(self) -> None:
        self.manager.start('SER1')
        with self.assertLogs('logcat_relay.log_producer', level='WARNING') as captured:
            FakeProcess.instances[-1].write_stderr('device offline\n')

        self.assertEqual(self.outputs, [])
        self.assertIn('device offline', captured.output[0])

    def test_clear_reports_completion_regardless_of_exit_code(self) -> None:
        self.manager.start('SER1')
        stream = FakeProcess.instances[-1]
        self.manager.clear('SER1')
        clearer = FakeProcess.instances[-1]

        self.assertEqual(clearer.arguments, ['-s', 'SER1', 'logcat', '-c'])
        clearer.exit(1)

        self.assertEqual(self.cleared, ['SER1'])
        self.assertFalse(stream.killed)
        self.assertIs(self.manager.state, ProducerState.RUNNING)

    def test_clear_spawn_failure_reports_once(self) -> None:
        self.manager.clear('SER1')
        clearer = FakeProcess.instances[-1]

        with self.assertLogs('logcat_relay.log_producer', level='WARNING'):
            clearer.errorOccurred.emit(QProcess.ProcessError.FailedToStart)
        clearer.exit(0)

        self.assertEqual(self.cleared, ['SER1'])

    def test_release_stops_stream_and_pending_clears(self) -> None:
        self.manager.start('SER1')
        stream = FakeProcess.instances[-1]
        self.manager.clear('SER1')
        clearer = FakeProcess.instances[-1]

        self.manager.release()
        clearer.exit(0)

        self.assertTrue(stream.killed)
        self.assertTrue(clearer.killed)
        self.assertEqual(self.cleared, [])
        self.assertIs(self.manager.state, ProducerState.IDLE)


if __name__ == '__main__':
    unittest.main()
