"""JSON wire protocol for the logcat channel.

Every payload is a text-encoded envelope::

    {"type": "logcat", "data": {"type": "<kind>", ...}}

Viewers send ``start``/``stop``/``clear``/``filter``; the relay answers with
``lines`` and ``cleared``. Envelopes for other channels and unknown kinds are
ignored (``decode_message`` returns ``None``); anything that cannot be decoded
at all raises :class:`ProtocolError`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from config.constants import LogStreamConstants


class ProtocolError(ValueError):
    """Raised when a payload cannot be decoded into a logcat message."""


@dataclass(frozen=True)
class StartMessage:
    kind: ClassVar[str] = 'start'

    udid: str
    filter: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'udid': self.udid}
        if self.filter is not None:
            data['filter'] = self.filter
        return data


@dataclass(frozen=True)
class StopMessage:
    kind: ClassVar[str] = 'stop'

    def payload(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class ClearMessage:
    kind: ClassVar[str] = 'clear'

    def payload(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class FilterMessage:
    kind: ClassVar[str] = 'filter'

    pattern: str

    def payload(self) -> Dict[str, Any]:
        return {'filter': self.pattern}


@dataclass(frozen=True)
class LinesMessage:
    kind: ClassVar[str] = 'lines'

    lines: Tuple[str, ...] = field(default_factory=tuple)

    def payload(self) -> Dict[str, Any]:
        return {'lines': list(self.lines)}


@dataclass(frozen=True)
class ClearedMessage:
    kind: ClassVar[str] = 'cleared'

    def payload(self) -> Dict[str, Any]:
        return {}


ControlMessage = Union[StartMessage, StopMessage, ClearMessage, FilterMessage, LinesMessage, ClearedMessage]


def encode_message(message: ControlMessage) -> str:
    """Serialise a message into its JSON envelope."""
    data: Dict[str, Any] = {'type': message.kind}
    data.update(message.payload())
    return json.dumps({'type': LogStreamConstants.EVENT_TYPE_LOGCAT, 'data': data})


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProtocolError(f'"{key}" must be a string')
    return value


def _decode_lines(data: Dict[str, Any]) -> List[str]:
    lines = data.get('lines')
    if lines is None:
        return []
    if not isinstance(lines, list) or not all(isinstance(line, str) for line in lines):
        raise ProtocolError('"lines" must be a list of strings')
    return lines


def decode_message(payload: Union[str, bytes, bytearray]) -> Optional[ControlMessage]:
    """Parse a text or binary frame into a typed message.

    Returns ``None`` for envelopes addressed to another channel or carrying an
    unknown ``data.type``.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode('utf-8')
        except UnicodeDecodeError as exc:
            raise ProtocolError(f'Payload is not valid UTF-8: {exc}') from exc

    try:
        envelope = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f'Payload is not valid JSON: {exc.msg}') from exc
    except RecursionError as exc:
        raise ProtocolError('Payload is nested too deeply') from exc

    if not isinstance(envelope, dict):
        raise ProtocolError('Envelope must be a JSON object')
    if envelope.get('type') != LogStreamConstants.EVENT_TYPE_LOGCAT:
        return None

    data = envelope.get('data')
    if not isinstance(data, dict):
        raise ProtocolError('Envelope "data" must be a JSON object')

    kind = data.get('type')
    if kind == StartMessage.kind:
        udid = _optional_str(data, 'udid')
        return StartMessage(udid=udid or '', filter=_optional_str(data, 'filter'))
    if kind == StopMessage.kind:
        return StopMessage()
    if kind == ClearMessage.kind:
        return ClearMessage()
    if kind == FilterMessage.kind:
        pattern = _optional_str(data, 'filter')
        if pattern is None:
            raise ProtocolError('"filter" message without a filter value')
        return FilterMessage(pattern=pattern)
    if kind == LinesMessage.kind:
        return LinesMessage(lines=tuple(_decode_lines(data)))
    if kind == ClearedMessage.kind:
        return ClearedMessage()
    return None


def channel_selector() -> bytes:
    """Return the first frame that binds a connection to the logcat channel."""
    return LogStreamConstants.CHANNEL_CODE.encode('utf-8')


def is_channel_selector(frame: Union[str, bytes, bytearray]) -> bool:
    """Check whether a frame is the logcat channel selector."""
    if isinstance(frame, str):
        return frame == LogStreamConstants.CHANNEL_CODE
    return bytes(frame) == channel_selector()


__all__ = [
    'ClearMessage',
    'ClearedMessage',
    'ControlMessage',
    'FilterMessage',
    'LinesMessage',
    'ProtocolError',
    'StartMessage',
    'StopMessage',
    'channel_selector',
    'decode_message',
    'encode_message',
    'is_channel_selector',
]
