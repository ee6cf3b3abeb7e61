"""Application constants and configuration values."""


class LogStreamConstants:
    """Wire protocol and streaming constants."""

    # Envelope discriminant shared by every logcat message
    EVENT_TYPE_LOGCAT = 'logcat'

    # Channel selector sent as the first frame of a multiplexed connection
    CHANNEL_CODE = 'LOGC'
    MULTIPLEX_QUERY = 'action=multiplex'

    # Server-side batching (milliseconds / lines)
    FLUSH_INTERVAL_MS = 50
    MAX_LINES_PER_FLUSH = 100

    # Client-side reconnect delay (milliseconds)
    RECONNECT_DELAY_MS = 3000

    # Client-side history window
    HISTORY_CAPACITY = 5000


class ProducerConstants:
    """Arguments for the external log-producing process."""

    DEVICE_SELECTOR_FLAG = '-s'
    LOGCAT_COMMAND = 'logcat'
    OUTPUT_FORMAT_FLAG = '-v'
    OUTPUT_FORMAT = 'time'
    CLEAR_FLAG = '-c'


class NetworkConstants:
    """Default endpoints for the relay server and viewer."""

    DEFAULT_HOST = '127.0.0.1'
    DEFAULT_PORT = 8000
    DEFAULT_PATHNAME = '/'
    SERVER_NAME = 'logcat-relay'


class ApplicationConstants:
    """General application constants."""

    APP_NAME = "Logcat Relay"
    APP_VERSION = "1.0.0"
    APP_DESCRIPTION = "Streams Android logcat output to remote viewers over WebSocket"

    CONFIG_FILE_PATH = '~/.logcat_relay_config.json'
    BACKUP_CONFIG_PATH = '~/.logcat_relay_config.backup.json'
