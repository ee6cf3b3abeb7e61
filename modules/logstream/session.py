"""Server-side binding of one logcat channel to a producer and a batcher."""

from __future__ import annotations

from typing import List, Optional, Union

from PyQt6.QtCore import QObject, pyqtSignal

from config.constants import LogStreamConstants
from utils import common

from .batcher import LineBatcher
from .producer import LogProducerManager
from .protocol import (
    ClearMessage,
    ClearedMessage,
    ControlMessage,
    FilterMessage,
    LinesMessage,
    ProtocolError,
    StartMessage,
    StopMessage,
    decode_message,
    encode_message,
)

logger = common.get_logger('logcat_session')


class LogcatSession(QObject):
    """Serves one viewer: runs its logcat stream and forwards batched lines.

    The session owns the socket's message handling from the moment the
    channel selector has been accepted. Queued lines are dropped whenever a
    new producer process starts; a batch already armed when ``stop`` arrives
    may still be delivered afterwards.
    """

    released = pyqtSignal(str)  # session id

    def __init__(
        self,
        socket,
        session_id: Optional[str] = None,
        adb_path: Optional[str] = None,
        flush_interval_ms: int = LogStreamConstants.FLUSH_INTERVAL_MS,
        max_lines_per_flush: int = LogStreamConstants.MAX_LINES_PER_FLUSH,
        producer: Optional[LogProducerManager] = None,
        batcher: Optional[LineBatcher] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.session_id = session_id or common.generate_trace_id()[:12]
        self._socket = socket
        self._udid = ''
        self._released = False

        self.producer = producer or LogProducerManager(adb_path=adb_path, parent=self)
        self.batcher = batcher or LineBatcher(flush_interval_ms, max_lines_per_flush, parent=self)

        self.producer.output_received.connect(self.batcher.feed)
        self.producer.stream_ended.connect(self._on_stream_ended)
        self.producer.clear_finished.connect(self._on_clear_finished)
        self.batcher.batch_ready.connect(self._send_lines)

        socket.textMessageReceived.connect(self.handle_payload)
        socket.binaryMessageReceived.connect(self.handle_payload)
        socket.disconnected.connect(self.release)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def handle_payload(self, payload: Union[str, bytes]) -> None:
        """Decode one inbound frame and apply it; bad frames are logged and dropped."""
        if self._released:
            return
        if not isinstance(payload, str):
            payload = bytes(payload)
        with common.trace_id_scope(self.session_id):
            try:
                message = decode_message(payload)
            except ProtocolError as exc:
                logger.error('Dropping malformed message: %s', exc)
                return
            if message is None:
                logger.debug('Ignoring message with unknown type')
                return
            self.handle_message(message)

    def handle_message(self, message: ControlMessage) -> None:
        if isinstance(message, StartMessage):
            if not message.udid:
                logger.warning('Start request without device selector ignored')
                return
            self._start_stream(message.udid, message.filter)
        elif isinstance(message, StopMessage):
            self.producer.stop()
        elif isinstance(message, ClearMessage):
            if not self._udid:
                logger.warning('Clear request before start ignored')
                return
            self.producer.clear(self._udid)
        elif isinstance(message, FilterMessage):
            if not self._udid:
                logger.warning('Filter request before start ignored')
                return
            # Filter changes restart the stream with the new argument
            self._start_stream(self._udid, message.pattern)
        else:
            logger.debug('Ignoring %s message from viewer', message.kind)

    def _start_stream(self, udid: str, log_filter: Optional[str]) -> None:
        self._udid = udid
        self.producer.stop()
        self.batcher.discard_pending()
        self.producer.start(udid, log_filter or None)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    def _send_lines(self, lines: List[str]) -> None:
        self._send(encode_message(LinesMessage(lines=tuple(lines))))

    def _on_clear_finished(self, udid: str) -> None:
        with common.trace_id_scope(self.session_id):
            logger.debug('Notifying viewer that %s was cleared', udid)
        self._send(encode_message(ClearedMessage()))

    def _on_stream_ended(self, exit_code: int) -> None:
        # Complete the last unterminated line; no automatic restart
        self.batcher.flush_partial()

    def _send(self, text: str) -> bool:
        socket = self._socket
        if self._released or socket is None or not socket.isValid():
            return False
        socket.sendTextMessage(text)
        return True

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def release(self) -> None:
        """Cancel the pending flush, drop queued lines and stop the producer."""
        if self._released:
            return
        self._released = True
        with common.trace_id_scope(self.session_id):
            logger.info('Releasing logcat session (device %s)', self._udid or '-')
            self.batcher.shutdown()
            self.producer.release()
        socket, self._socket = self._socket, None
        if socket is not None:
            if socket.isValid():
                socket.close()
            socket.deleteLater()
        self.released.emit(self.session_id)

    @property
    def udid(self) -> str:
        return self._udid

    @property
    def is_released(self) -> bool:
        return self._released
