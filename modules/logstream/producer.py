"""Lifecycle management for the external logcat producer process."""

from __future__ import annotations

from typing import List, Optional, Set

from PyQt6.QtCore import QObject, QProcess, pyqtSignal

from config.constants import ProducerConstants
from utils import common

from .models import ProducerState

logger = common.get_logger('log_producer')

QT_QPROCESS = QProcess

_PROCESS_ERROR_MESSAGES = {
    QT_QPROCESS.ProcessError.FailedToStart: 'Failed to start logcat process. Ensure ADB is available on PATH.',
    QT_QPROCESS.ProcessError.Crashed: 'Logcat process crashed unexpectedly.',
    QT_QPROCESS.ProcessError.Timedout: 'Timed out while starting logcat process.',
}


def build_stream_arguments(udid: str, log_filter: Optional[str] = None) -> List[str]:
    """Arguments for the streaming invocation, filter appended verbatim."""
    args = [
        ProducerConstants.DEVICE_SELECTOR_FLAG, udid,
        ProducerConstants.LOGCAT_COMMAND,
        ProducerConstants.OUTPUT_FORMAT_FLAG, ProducerConstants.OUTPUT_FORMAT,
    ]
    if log_filter:
        args.append(log_filter)
    return args


def build_clear_arguments(udid: str) -> List[str]:
    """Arguments for the one-shot buffer clear invocation."""
    return [
        ProducerConstants.DEVICE_SELECTOR_FLAG, udid,
        ProducerConstants.LOGCAT_COMMAND,
        ProducerConstants.CLEAR_FLAG,
    ]


class LogProducerManager(QObject):
    """Owns at most one streaming logcat process for a session.

    State moves Idle -> Running on ``start`` and back to Idle through Stopping
    on ``stop``, spontaneous exit or spawn failure. Callbacks raised by a
    process that is no longer the current one are ignored, so output from a
    killed process cannot leak into its replacement.
    """

    output_received = pyqtSignal(str)
    stream_ended = pyqtSignal(int)  # exit code
    clear_finished = pyqtSignal(str)  # udid
    state_changed = pyqtSignal(object)  # ProducerState

    def __init__(self, adb_path: Optional[str] = None, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.adb_path = adb_path or common.default_adb_executable()
        self._process: Optional[QProcess] = None
        self._state = ProducerState.IDLE
        self._udid = ''
        self._filter: Optional[str] = None
        self._clear_processes: Set[QProcess] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self, udid: str, log_filter: Optional[str] = None) -> None:
        """Spawn the streaming process, stopping any running one first."""
        if self._process is not None:
            self.stop()

        self._udid = udid
        self._filter = log_filter
        args = build_stream_arguments(udid, log_filter)

        process = QProcess(self)
        process.readyReadStandardOutput.connect(lambda: self._read_output(process))
        process.readyReadStandardError.connect(lambda: self._read_error(process))
        process.finished.connect(lambda exit_code, _status=None: self._on_finished(process, exit_code))
        process.errorOccurred.connect(lambda error: self._on_error(process, error))

        self._process = process
        self._set_state(ProducerState.RUNNING)
        logger.info('Starting logcat for %s: %s %s', udid, self.adb_path, ' '.join(args))
        process.start(self.adb_path, args)

    def stop(self) -> None:
        """Kill the streaming process if one is running; no-op otherwise."""
        process = self._process
        if process is None:
            return

        self._set_state(ProducerState.STOPPING)
        # Clear the reference first so late callbacks from this process are dropped
        self._process = None
        try:
            process.kill()
        except RuntimeError as exc:
            logger.debug('Kill skipped (process already gone): %s', exc)
        finally:
            process.deleteLater()
        logger.info('Stopped logcat for %s', self._udid)
        self._set_state(ProducerState.IDLE)

    def clear(self, udid: str) -> None:
        """Run ``logcat -c`` for the device; ``clear_finished`` fires when it ends."""
        process = QProcess(self)
        process.finished.connect(lambda _code, _status=None: self._on_clear_done(process, udid))
        process.errorOccurred.connect(lambda error: self._on_clear_error(process, udid, error))
        self._clear_processes.add(process)
        logger.info('Clearing logcat buffer for %s', udid)
        process.start(self.adb_path, build_clear_arguments(udid))

    def release(self) -> None:
        """Stop streaming and forget in-flight clear invocations."""
        self.stop()
        for process in list(self._clear_processes):
            self._clear_processes.discard(process)
            try:
                process.kill()
            except RuntimeError as exc:
                logger.debug('Clear process already gone: %s', exc)
            process.deleteLater()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> ProducerState:
        return self._state

    @property
    def udid(self) -> str:
        return self._udid

    @property
    def log_filter(self) -> Optional[str]:
        return self._filter

    def is_running(self) -> bool:
        return self._state is ProducerState.RUNNING

    # ------------------------------------------------------------------
    # Process callbacks
    # ------------------------------------------------------------------
    def _read_output(self, process: QProcess) -> None:
        if process is not self._process:
            return
        data = process.readAllStandardOutput()
        text = bytes(data).decode('utf-8', errors='replace')
        if text:
            self.output_received.emit(text)

    def _read_error(self, process: QProcess) -> None:
        data = process.readAllStandardError()
        text = bytes(data).decode('utf-8', errors='replace').strip()
        if text:
            logger.warning('logcat stderr (%s): %s', self._udid, text)

    def _on_finished(self, process: QProcess, exit_code: int) -> None:
        if process is not self._process:
            return
        logger.info('logcat process for %s exited with code %s', self._udid, exit_code)
        self._release_current()
        self.stream_ended.emit(exit_code)

    def _on_error(self, process: QProcess, error) -> None:
        if process is not self._process:
            return
        message = _PROCESS_ERROR_MESSAGES.get(error, f'Logcat process error: {error}')
        logger.error('%s (device %s)', message, self._udid)
        if error == QT_QPROCESS.ProcessError.FailedToStart:
            # No finished signal follows a failed spawn
            self._release_current()

    def _release_current(self) -> None:
        process = self._process
        self._process = None
        if process is not None:
            process.deleteLater()
        self._set_state(ProducerState.IDLE)

    def _on_clear_done(self, process: QProcess, udid: str) -> None:
        if process not in self._clear_processes:
            return
        self._clear_processes.discard(process)
        process.deleteLater()
        logger.info('logcat buffer cleared for %s', udid)
        self.clear_finished.emit(udid)

    def _on_clear_error(self, process: QProcess, udid: str, error) -> None:
        if process not in self._clear_processes:
            return
        logger.warning('logcat clear for %s reported %s', udid, error)
        if error == QT_QPROCESS.ProcessError.FailedToStart:
            self._on_clear_done(process, udid)

    def _set_state(self, state: ProducerState) -> None:
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)
