"""Viewer-side client for the logcat channel with automatic reconnection."""

from __future__ import annotations

from typing import Callable, Optional, Union

from PyQt6.QtCore import QObject, QTimer, QUrl, pyqtSignal
from PyQt6.QtWebSockets import QWebSocket

from config.config_manager import ClientSettings
from config.constants import LogStreamConstants
from utils import common

from .models import ConnectionState
from .protocol import (
    ClearMessage,
    ClearedMessage,
    ControlMessage,
    FilterMessage,
    LinesMessage,
    ProtocolError,
    StartMessage,
    StopMessage,
    channel_selector,
    decode_message,
    encode_message,
)

logger = common.get_logger('logcat_client')

SocketFactory = Callable[[], QWebSocket]


def build_multiplex_url(settings: ClientSettings) -> str:
    """Return the ``ws[s]://host:port/path?action=multiplex`` endpoint."""
    scheme = 'wss' if settings.secure else 'ws'
    path = settings.pathname or '/'
    return f'{scheme}://{settings.hostname}:{settings.port}{path}?{LogStreamConstants.MULTIPLEX_QUERY}'


class LogStreamClient(QObject):
    """Streams one device's logcat from a relay server.

    States: Disconnected -> Connecting -> Connected; a transport close moves
    back to Disconnected, emits ``disconnected`` and schedules a single
    reconnect attempt (ReconnectScheduled). Retries continue until
    ``disconnect()`` is called.
    """

    connected = pyqtSignal()
    disconnected = pyqtSignal()
    lines_received = pyqtSignal(list)
    cleared = pyqtSignal()
    state_changed = pyqtSignal(object)  # ConnectionState

    def __init__(
        self,
        udid: str,
        settings: Optional[ClientSettings] = None,
        socket_factory: Optional[SocketFactory] = None,
        start_filter: Optional[str] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._udid = udid
        # Sent with every Start; set_filter() changes are not remembered
        self._start_filter = start_filter
        self._settings = settings or ClientSettings()
        self._socket_factory = socket_factory or QWebSocket
        self._socket: Optional[QWebSocket] = None
        self._state = ConnectionState.DISCONNECTED

        self.reconnect_timer = QTimer(self)
        self.reconnect_timer.setSingleShot(True)
        self.reconnect_timer.timeout.connect(self._on_reconnect_timeout)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def connect(self) -> None:
        """Open the transport and select the logcat channel."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return

        self.reconnect_timer.stop()
        url = build_multiplex_url(self._settings)
        socket = self._socket_factory()
        socket.connected.connect(lambda: self._on_transport_open(socket))
        socket.disconnected.connect(lambda: self._on_transport_closed(socket))
        socket.errorOccurred.connect(lambda error: self._on_transport_error(socket, error))
        socket.textMessageReceived.connect(lambda text: self._on_payload(socket, text))
        socket.binaryMessageReceived.connect(lambda data: self._on_payload(socket, bytes(data)))

        self._socket = socket
        self._set_state(ConnectionState.CONNECTING)
        logger.info('Connecting logcat channel for %s to %s', self._udid, url)
        socket.open(QUrl(url))

    def disconnect(self) -> None:
        """Cancel reconnection, stop the remote stream and close the transport."""
        self.reconnect_timer.stop()

        socket, self._socket = self._socket, None
        if socket is not None:
            if socket.isValid():
                socket.sendTextMessage(encode_message(StopMessage()))
            socket.close()
            socket.deleteLater()

        was_active = self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)
        self._set_state(ConnectionState.DISCONNECTED)
        if was_active:
            logger.info('Logcat channel for %s disconnected by request', self._udid)
            self.disconnected.emit()

    def set_filter(self, pattern: str) -> bool:
        """Restart the remote stream with a new filter; dropped when offline."""
        return self._send(FilterMessage(pattern=pattern))

    def clear(self) -> bool:
        """Ask the relay to clear the device buffer; dropped when offline."""
        return self._send(ClearMessage())

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def udid(self) -> str:
        return self._udid

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def reconnect_pending(self) -> bool:
        return self.reconnect_timer.isActive()

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------
    def _on_transport_open(self, socket: QWebSocket) -> None:
        if socket is not self._socket:
            return
        socket.sendBinaryMessage(channel_selector())
        socket.sendTextMessage(encode_message(StartMessage(udid=self._udid, filter=self._start_filter)))
        self._set_state(ConnectionState.CONNECTED)
        logger.info('Logcat channel for %s connected', self._udid)
        self.connected.emit()

    def _on_transport_closed(self, socket: QWebSocket) -> None:
        if socket is not self._socket:
            return
        self._socket = None
        socket.deleteLater()

        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            self._set_state(ConnectionState.DISCONNECTED)
            logger.warning('Logcat channel for %s closed', self._udid)
            self.disconnected.emit()
        self._schedule_reconnect()

    def _on_transport_error(self, socket: QWebSocket, error) -> None:
        if socket is not self._socket:
            return
        logger.error('Logcat transport error for %s: %s', self._udid, socket.errorString())
        if self._state is ConnectionState.CONNECTING:
            # A failed open never reports disconnected
            self._on_transport_closed(socket)

    def _on_payload(self, socket: QWebSocket, payload: Union[str, bytes]) -> None:
        if socket is not self._socket:
            return
        try:
            message = decode_message(payload)
        except ProtocolError as exc:
            logger.error('Failed to parse logcat message: %s', exc)
            return
        if message is not None:
            self._dispatch(message)

    def _dispatch(self, message: ControlMessage) -> None:
        if isinstance(message, LinesMessage):
            self.lines_received.emit(list(message.lines))
        elif isinstance(message, ClearedMessage):
            self.cleared.emit()
        else:
            logger.debug('Ignoring %s message from relay', message.kind)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------
    def _schedule_reconnect(self) -> None:
        if self.reconnect_timer.isActive():
            return
        delay = self._settings.reconnect_delay_ms
        logger.info('Reconnecting logcat channel for %s in %d ms', self._udid, delay)
        self.reconnect_timer.start(delay)
        self._set_state(ConnectionState.RECONNECT_SCHEDULED)

    def _on_reconnect_timeout(self) -> None:
        if self._state is not ConnectionState.CONNECTED:
            self.connect()

    def _send(self, message: ControlMessage) -> bool:
        socket = self._socket
        if self._state is not ConnectionState.CONNECTED or socket is None or not socket.isValid():
            logger.debug('Dropping %s message while not connected', message.kind)
            return False
        socket.sendTextMessage(encode_message(message))
        return True

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        self.state_changed.emit(state)
