"""Data models for the log streaming subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Logcat priority letters, ordered from least to most severe."""

    VERBOSE = 'V'
    DEBUG = 'D'
    INFO = 'I'
    WARN = 'W'
    ERROR = 'E'
    FATAL = 'F'
    SILENT = 'S'

    @property
    def rank(self) -> int:
        """Position in the fixed order V<D<I<W<E<F<S."""
        return _LEVEL_ORDER.index(self)

    @classmethod
    def parse(cls, value: Optional[str], default: Optional['LogLevel'] = None) -> 'LogLevel':
        """Resolve a priority letter or level name (case-insensitive)."""
        if isinstance(value, LogLevel):
            return value
        text = (value or '').strip().upper()
        for level in cls:
            if text in (level.value, level.name):
                return level
        if default is not None:
            return default
        raise ValueError(f'Unknown log level: {value!r}')


_LEVEL_ORDER = tuple(LogLevel)


@dataclass(frozen=True)
class LogEntry:
    """One parsed logcat line; never mutated after parsing."""

    timestamp: str
    level: LogLevel
    tag: str
    pid: str
    message: str
    raw: str


class ConnectionState(Enum):
    """Viewer connection lifecycle."""

    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    RECONNECT_SCHEDULED = 'reconnect_scheduled'


class ProducerState(Enum):
    """Lifecycle of the streaming producer process."""

    IDLE = 'idle'
    RUNNING = 'running'
    STOPPING = 'stopping'
