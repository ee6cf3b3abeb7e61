"""Remote logcat streaming subsystem."""

from .models import ConnectionState, LogEntry, LogLevel, ProducerState
from .parser import LogLineParser
from .protocol import (
    ClearMessage,
    ClearedMessage,
    FilterMessage,
    LinesMessage,
    ProtocolError,
    StartMessage,
    StopMessage,
    decode_message,
    encode_message,
)
from .batcher import LineBatcher
from .producer import LogProducerManager
from .session import LogcatSession
from .server import LogcatRelayServer
from .client import LogStreamClient
from .history import LogHistoryBuffer
from .view_model import LogHistoryListModel

__all__ = [
    'ClearMessage',
    'ClearedMessage',
    'ConnectionState',
    'FilterMessage',
    'LineBatcher',
    'LinesMessage',
    'LogEntry',
    'LogHistoryBuffer',
    'LogHistoryListModel',
    'LogLevel',
    'LogLineParser',
    'LogProducerManager',
    'LogStreamClient',
    'LogcatRelayServer',
    'LogcatSession',
    'ProducerState',
    'ProtocolError',
    'StartMessage',
    'StopMessage',
    'decode_message',
    'encode_message',
]
