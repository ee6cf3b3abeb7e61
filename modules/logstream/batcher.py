"""Coalesces raw producer output into rate-limited line batches."""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from config.constants import LogStreamConstants
from utils import common

logger = common.get_logger('line_batcher')


class LineBatcher(QObject):
    """Queues non-blank output lines and releases them in bounded batches.

    One single-shot timer is pending at most. It is armed when the queue goes
    from empty to non-empty; each firing releases up to
    ``max_lines_per_flush`` lines via ``batch_ready`` and re-arms itself while
    lines remain. Under sustained input this caps delivery at one batch per
    ``flush_interval_ms``.
    """

    batch_ready = pyqtSignal(list)

    def __init__(
        self,
        flush_interval_ms: int = LogStreamConstants.FLUSH_INTERVAL_MS,
        max_lines_per_flush: int = LogStreamConstants.MAX_LINES_PER_FLUSH,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.flush_interval_ms = flush_interval_ms
        self.max_lines_per_flush = max_lines_per_flush

        self._queue: Deque[str] = deque()
        self._partial_line = ''
        self._flush_pending = False

        self.flush_timer = QTimer(self)
        self.flush_timer.setSingleShot(True)
        self.flush_timer.timeout.connect(self.flush)

    def feed(self, text: str) -> None:
        """Split a raw output chunk into lines and queue the non-blank ones.

        A trailing fragment without a newline is held back and completed by
        the next chunk.
        """
        if not text:
            return

        normalized = text.replace('\r\n', '\n').replace('\r', '\n')
        combined = f'{self._partial_line}{normalized}' if self._partial_line else normalized

        lines = combined.split('\n')
        self._partial_line = lines.pop()

        self.enqueue(lines)

    def enqueue(self, lines: List[str]) -> None:
        """Queue complete lines, dropping empty and whitespace-only ones."""
        accepted = [line for line in lines if line.strip()]
        if not accepted:
            return
        self._queue.extend(accepted)
        self._arm()

    def flush_partial(self) -> None:
        """Queue the held-back fragment, e.g. once the stream has ended."""
        fragment, self._partial_line = self._partial_line, ''
        if fragment:
            self.enqueue([fragment])

    def flush(self) -> None:
        """Release one batch; re-arm the timer while lines remain."""
        batch = [self._queue.popleft() for _ in range(min(self.max_lines_per_flush, len(self._queue)))]

        if self._queue:
            self.flush_timer.start(self.flush_interval_ms)
        else:
            self._flush_pending = False

        if batch:
            self.batch_ready.emit(batch)

    def discard_pending(self) -> None:
        """Drop queued lines and any held-back fragment.

        A timer that is already armed stays armed and will find the queue
        empty.
        """
        if self._queue:
            logger.debug('Discarding %d queued line(s)', len(self._queue))
        self._queue.clear()
        self._partial_line = ''

    def shutdown(self) -> None:
        """Cancel the pending flush and discard everything queued."""
        self.flush_timer.stop()
        self._flush_pending = False
        self.discard_pending()

    def _arm(self) -> None:
        if self._flush_pending:
            return
        self._flush_pending = True
        self.flush_timer.start(self.flush_interval_ms)

    @property
    def pending_lines(self) -> int:
        return len(self._queue)

    @property
    def flush_pending(self) -> bool:
        return self._flush_pending
