"""WebSocket relay accepting logcat channels from remote viewers."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtNetwork import QHostAddress
from PyQt6.QtWebSockets import QWebSocketProtocol, QWebSocketServer

from config.constants import LogStreamConstants, NetworkConstants
from utils import common

from .protocol import is_channel_selector
from .session import LogcatSession

logger = common.get_logger('logcat_server')


class LogcatRelayServer(QObject):
    """Accepts WebSocket connections and binds logcat channels to sessions.

    A new connection stays pending until its first frame. The ``LOGC``
    selector turns it into a :class:`LogcatSession`; any other selector is
    refused by closing the socket. Sessions live in this server's registry
    and are dropped when their socket disconnects.
    """

    session_opened = pyqtSignal(str)
    session_closed = pyqtSignal(str)

    def __init__(
        self,
        adb_path: Optional[str] = None,
        flush_interval_ms: int = LogStreamConstants.FLUSH_INTERVAL_MS,
        max_lines_per_flush: int = LogStreamConstants.MAX_LINES_PER_FLUSH,
        session_factory: Optional[Callable[..., LogcatSession]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.adb_path = adb_path or common.default_adb_executable()
        self.flush_interval_ms = flush_interval_ms
        self.max_lines_per_flush = max_lines_per_flush
        self._session_factory = session_factory or LogcatSession
        self._sessions: Dict[str, LogcatSession] = {}
        self._pending: List[object] = []
        self._server = QWebSocketServer(
            NetworkConstants.SERVER_NAME,
            QWebSocketServer.SslMode.NonSecureMode,
            self,
        )
        self._server.newConnection.connect(self._on_new_connection)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def listen(self, host: str = NetworkConstants.DEFAULT_HOST, port: int = NetworkConstants.DEFAULT_PORT) -> bool:
        if not self._server.listen(QHostAddress(host), port):
            logger.error('Unable to listen on %s:%s: %s', host, port, self._server.errorString())
            return False
        logger.info('Logcat relay listening on %s:%s', host, self._server.serverPort())
        return True

    def close(self) -> None:
        """Stop accepting connections and release every session."""
        self._server.close()
        for socket in list(self._pending):
            socket.close()
        self._pending.clear()
        for session in list(self._sessions.values()):
            session.release()
        self._sessions.clear()
        logger.info('Logcat relay closed')

    def server_port(self) -> int:
        return self._server.serverPort()

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------
    def _on_new_connection(self) -> None:
        while self._server.hasPendingConnections():
            socket = self._server.nextPendingConnection()
            if socket is None:
                break
            self.accept_socket(socket)

    def accept_socket(self, socket) -> None:
        """Wait for the channel selector on a freshly accepted socket."""
        logger.debug('Connection from %s:%s', socket.peerAddress().toString(), socket.peerPort())
        self._pending.append(socket)

        def on_first_frame(frame) -> None:
            self._detach_pending(socket, on_first_frame, on_disconnected)
            self._route(socket, frame)

        def on_disconnected() -> None:
            self._detach_pending(socket, on_first_frame, on_disconnected)
            socket.deleteLater()

        socket.binaryMessageReceived.connect(on_first_frame)
        socket.textMessageReceived.connect(on_first_frame)
        socket.disconnected.connect(on_disconnected)

    def _detach_pending(self, socket, on_frame, on_disconnected) -> None:
        if socket in self._pending:
            self._pending.remove(socket)
        for signal, slot in (
            (socket.binaryMessageReceived, on_frame),
            (socket.textMessageReceived, on_frame),
            (socket.disconnected, on_disconnected),
        ):
            try:
                signal.disconnect(slot)
            except (RuntimeError, TypeError) as exc:
                logger.debug('Pending socket slot already disconnected: %s', exc)

    def _route(self, socket, frame) -> None:
        if isinstance(frame, str):
            selector = frame
        else:
            selector = bytes(frame)
        if not is_channel_selector(selector):
            logger.warning('Refusing connection for unsupported channel %r', selector)
            socket.close(QWebSocketProtocol.CloseCode.CloseCodeNormal, 'unsupported channel')
            socket.deleteLater()
            return

        session = self._session_factory(
            socket,
            adb_path=self.adb_path,
            flush_interval_ms=self.flush_interval_ms,
            max_lines_per_flush=self.max_lines_per_flush,
            parent=self,
        )
        self._sessions[session.session_id] = session
        session.released.connect(self._on_session_released)
        logger.info('Logcat session %s opened', session.session_id)
        self.session_opened.emit(session.session_id)

    def _on_session_released(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        logger.info('Logcat session %s closed', session_id)
        self.session_closed.emit(session_id)
        session.deleteLater()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def sessions(self) -> List[LogcatSession]:
        return list(self._sessions.values())

    def session(self, session_id: str) -> Optional[LogcatSession]:
        return self._sessions.get(session_id)
