"""Parser turning raw logcat lines into :class:`LogEntry` records."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .models import LogEntry, LogLevel


class LogLineParser:
    """Recognises the threadtime and brief/time logcat layouts.

    Lines matching neither layout are kept verbatim as Info entries so nothing
    the device printed is lost; blank lines yield no entry. The brief layout
    also takes the optional time stamp prefix written by ``logcat -v time``.
    """

    # "06-15 10:23:01.123  1234  1234 I MyTag: Hello world"
    _THREADTIME_PATTERN = re.compile(
        r'^(?P<timestamp>\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3})\s+'
        r'(?P<pid>\d+)\s+(?P<tid>\d+)\s+'
        r'(?P<level>[VDIWEFS])\s+'
        r'(?P<tag>[^:]+):\s*'
        r'(?P<message>.*)$'
    )

    # "E/Crashy(  987): fatal error", optionally prefixed by a time stamp
    # as printed by `logcat -v time`.
    _BRIEF_PATTERN = re.compile(
        r'^(?:(?P<timestamp>\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3})\s+)?'
        r'(?P<level>[VDIWEFS])/'
        r'(?P<tag>[^(]+)\(\s*(?P<pid>\d+)\):\s*'
        r'(?P<message>.*)$'
    )

    def parse(self, line: str) -> Optional[LogEntry]:
        match = self._THREADTIME_PATTERN.match(line)
        if match is None:
            match = self._BRIEF_PATTERN.match(line)

        if match is not None:
            parts = match.groupdict()
            return LogEntry(
                timestamp=parts['timestamp'] or '',
                level=LogLevel(parts['level']),
                tag=parts['tag'].strip(),
                pid=parts['pid'],
                message=parts['message'],
                raw=line,
            )

        if not line.strip():
            return None

        return LogEntry(timestamp='', level=LogLevel.INFO, tag='', pid='', message=line, raw=line)

    def parse_lines(self, lines: Iterable[str]) -> List[LogEntry]:
        """Parse a batch, dropping blank lines and keeping order."""
        entries: List[LogEntry] = []
        for line in lines:
            entry = self.parse(line)
            if entry is not None:
                entries.append(entry)
        return entries
