"""Entry point for the Logcat Relay server and console viewer."""

from __future__ import annotations

import argparse
import signal
import sys
from typing import List, Optional, Sequence, TextIO

from PyQt6.QtCore import QCoreApplication, QTimer

from config.config_manager import AppConfig, ConfigManager
from config.constants import ApplicationConstants
from modules.logstream import LogEntry, LogHistoryBuffer, LogLevel, LogStreamClient, LogcatRelayServer
from utils import common

logger = common.get_logger('logcat_relay')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='logcat-relay',
        description=ApplicationConstants.APP_DESCRIPTION,
    )
    parser.add_argument('--config', help='Path to the JSON configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {ApplicationConstants.APP_VERSION}')
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the relay server')
    serve.add_argument('--host', help='Address to listen on')
    serve.add_argument('--port', type=int, help='Port to listen on')
    serve.add_argument('--adb', dest='adb_path', help='adb executable to spawn')

    tail = subparsers.add_parser('tail', help='Stream a device log from a relay server')
    tail.add_argument('udid', help='Device serial to stream')
    tail.add_argument('--host', help='Relay server host')
    tail.add_argument('--port', type=int, help='Relay server port')
    tail.add_argument('--path', dest='pathname', help='Relay server path')
    tail.add_argument('--secure', action='store_true', default=None, help='Use wss://')
    tail.add_argument('--level', default='V', help='Minimum level to show (V, D, I, W, E, F)')
    tail.add_argument('--grep', default='', help='Case-insensitive text filter on tag and message')
    tail.add_argument('--filter', dest='remote_filter', help='Filter expression passed to logcat on the device')
    return parser


def format_entry(entry: LogEntry) -> str:
    """Render an entry as a single console line."""
    if not entry.tag and not entry.pid:
        return entry.raw
    parts = [part for part in (entry.timestamp, entry.level.value, f'{entry.tag}({entry.pid})') if part]
    return f"{' '.join(parts)}: {entry.message}"


def _install_interrupt_handler(app: QCoreApplication) -> QTimer:
    """Let Ctrl+C stop the Qt event loop."""
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    # Python only handles signals while its interpreter runs
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(250)
    return heartbeat


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.command == 'serve':
        if args.host:
            config.server.host = args.host
        if args.port is not None:
            config.server.port = args.port
        if args.adb_path:
            config.server.adb_path = args.adb_path
    elif args.command == 'tail':
        if args.host:
            config.client.hostname = args.host
        if args.port is not None:
            config.client.port = args.port
        if args.pathname:
            config.client.pathname = args.pathname
        if args.secure is not None:
            config.client.secure = args.secure


def run_server(app: QCoreApplication, config: AppConfig) -> int:
    server = LogcatRelayServer(
        adb_path=config.server.adb_path,
        flush_interval_ms=config.stream.flush_interval_ms,
        max_lines_per_flush=config.stream.max_lines_per_flush,
    )
    if not server.listen(config.server.host, config.server.port):
        return 1
    app.aboutToQuit.connect(server.close)
    return app.exec()


class ConsoleViewer:
    """Prints the visible history of one device to a text stream."""

    def __init__(
        self,
        client: LogStreamClient,
        history: LogHistoryBuffer,
        stream: TextIO = sys.stdout,
    ) -> None:
        self.client = client
        self.history = history
        self.stream = stream
        history.attach(client)
        history.entries_appended.connect(self.print_entries)
        client.cleared.connect(self._on_cleared)
        client.connected.connect(self._on_connected)
        client.disconnected.connect(self._on_disconnected)

    def print_entries(self, entries: List[LogEntry]) -> None:
        for entry in entries:
            self.stream.write(f'{format_entry(entry)}\n')
        self.stream.flush()

    def _on_cleared(self) -> None:
        self.stream.write('--------- log cleared\n')
        self.stream.flush()

    def _on_connected(self) -> None:
        logger.info('Streaming %s', self.client.udid)

    def _on_disconnected(self) -> None:
        logger.warning('Lost connection for %s; retrying', self.client.udid)


def run_tail(app: QCoreApplication, config: AppConfig, args: argparse.Namespace) -> int:
    try:
        level = LogLevel.parse(args.level)
    except ValueError as exc:
        logger.error('%s', exc)
        return 2

    client = LogStreamClient(args.udid, config.client, start_filter=args.remote_filter)
    history = LogHistoryBuffer(capacity=config.stream.history_capacity)
    history.set_filters(level, args.grep)
    viewer = ConsoleViewer(client, history)

    app.aboutToQuit.connect(client.disconnect)
    client.connect()
    exit_code = app.exec()
    history.detach(viewer.client)
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager(args.config)
    config = config_manager.load_config()
    common.configure_logging(config.logging.log_level, config.logging.log_to_file)
    _apply_overrides(config, args)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(ApplicationConstants.APP_NAME)
    app.setApplicationVersion(ApplicationConstants.APP_VERSION)
    heartbeat = _install_interrupt_handler(app)

    try:
        if args.command == 'serve':
            return run_server(app, config)
        return run_tail(app, config, args)
    finally:
        heartbeat.stop()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
