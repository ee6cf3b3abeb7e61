"""Configuration management module for relay settings."""

import json
import shutil
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, field
from pathlib import Path

from config.constants import ApplicationConstants, LogStreamConstants, NetworkConstants
from utils import common

logger = common.get_logger('config_manager')


@dataclass
class ServerSettings:
    """Relay server settings."""
    host: str = NetworkConstants.DEFAULT_HOST
    port: int = NetworkConstants.DEFAULT_PORT
    adb_path: str = field(default_factory=common.default_adb_executable)


@dataclass
class ClientSettings:
    """Viewer connection settings."""
    hostname: str = NetworkConstants.DEFAULT_HOST
    port: int = NetworkConstants.DEFAULT_PORT
    pathname: str = NetworkConstants.DEFAULT_PATHNAME
    secure: bool = False
    reconnect_delay_ms: int = LogStreamConstants.RECONNECT_DELAY_MS


@dataclass
class StreamSettings:
    """Batching and history tuning."""
    flush_interval_ms: int = LogStreamConstants.FLUSH_INTERVAL_MS
    max_lines_per_flush: int = LogStreamConstants.MAX_LINES_PER_FLUSH
    history_capacity: int = LogStreamConstants.HISTORY_CAPACITY


@dataclass
class LoggingSettings:
    """Logging configuration."""
    log_level: str = 'INFO'
    log_to_file: bool = True


@dataclass
class AppConfig:
    """Main application configuration."""
    server: ServerSettings
    client: ClientSettings
    stream: StreamSettings
    logging: LoggingSettings
    version: str = ApplicationConstants.APP_VERSION


class ConfigManager:
    """Manages configuration persistence and validation."""

    DEFAULT_CONFIG_PATH = ApplicationConstants.CONFIG_FILE_PATH
    BACKUP_CONFIG_PATH = ApplicationConstants.BACKUP_CONFIG_PATH

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or self.DEFAULT_CONFIG_PATH).expanduser()
        if config_path:
            self.backup_path = self.config_path.with_name(f'{self.config_path.stem}.backup.json')
        else:
            self.backup_path = Path(self.BACKUP_CONFIG_PATH).expanduser()
        self._config: Optional[AppConfig] = None
        self._ensure_config_dir()

    def _ensure_config_dir(self):
        """Ensure configuration directory exists."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def _create_default_config(self) -> AppConfig:
        """Create default configuration."""
        return AppConfig(
            server=ServerSettings(),
            client=ClientSettings(),
            stream=StreamSettings(),
            logging=LoggingSettings(),
        )

    def _validate_config(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and clean configuration dictionary."""
        default_config = asdict(self._create_default_config())

        # Merge with defaults for missing keys; unknown keys are dropped
        def merge_dict(default: Dict, user: Dict) -> Dict:
            result = default.copy()
            for key, value in user.items():
                if key in result:
                    if isinstance(value, dict) and isinstance(result[key], dict):
                        result[key] = merge_dict(result[key], value)
                    elif not isinstance(result[key], dict):
                        result[key] = value
            return result

        validated = merge_dict(default_config, config_dict if isinstance(config_dict, dict) else {})

        for section in ('server', 'client'):
            settings = validated[section]
            port = settings.get('port')
            if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
                settings['port'] = NetworkConstants.DEFAULT_PORT
                logger.warning('%s port out of range, reset to %s', section.capitalize(), NetworkConstants.DEFAULT_PORT)

        server_settings = validated['server']
        if not isinstance(server_settings.get('adb_path'), str) or not server_settings['adb_path'].strip():
            server_settings['adb_path'] = common.default_adb_executable()
            logger.warning('adb path empty, reset to %s', server_settings['adb_path'])

        client_settings = validated['client']
        if not isinstance(client_settings.get('secure'), bool):
            client_settings['secure'] = False
            logger.warning('Client secure flag invalid, reset to False')
        if not str(client_settings.get('pathname', '')).startswith('/'):
            client_settings['pathname'] = NetworkConstants.DEFAULT_PATHNAME
            logger.warning('Client pathname must start with "/", reset to "/"')
        if not isinstance(client_settings.get('reconnect_delay_ms'), int) or client_settings['reconnect_delay_ms'] < 100:
            client_settings['reconnect_delay_ms'] = LogStreamConstants.RECONNECT_DELAY_MS
            logger.warning('Reconnect delay too low, reset to %s ms', LogStreamConstants.RECONNECT_DELAY_MS)

        stream_settings = validated['stream']
        if not isinstance(stream_settings.get('flush_interval_ms'), int) or stream_settings['flush_interval_ms'] < 1:
            stream_settings['flush_interval_ms'] = LogStreamConstants.FLUSH_INTERVAL_MS
            logger.warning('Flush interval too low, reset to %s ms', LogStreamConstants.FLUSH_INTERVAL_MS)
        if not isinstance(stream_settings.get('max_lines_per_flush'), int) or stream_settings['max_lines_per_flush'] < 1:
            stream_settings['max_lines_per_flush'] = LogStreamConstants.MAX_LINES_PER_FLUSH
            logger.warning('Lines per flush too low, reset to %s', LogStreamConstants.MAX_LINES_PER_FLUSH)
        if not isinstance(stream_settings.get('history_capacity'), int) or stream_settings['history_capacity'] < 1:
            stream_settings['history_capacity'] = LogStreamConstants.HISTORY_CAPACITY
            logger.warning('History capacity too low, reset to %s', LogStreamConstants.HISTORY_CAPACITY)

        logging_settings = validated['logging']
        if str(logging_settings.get('log_level', '')).upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            logging_settings['log_level'] = 'INFO'
            logger.warning('Unknown log level, reset to INFO')

        return validated

    def _build_config(self, validated_dict: Dict[str, Any]) -> AppConfig:
        return AppConfig(
            server=ServerSettings(**validated_dict['server']),
            client=ClientSettings(**validated_dict['client']),
            stream=StreamSettings(**validated_dict['stream']),
            logging=LoggingSettings(**validated_dict['logging']),
            version=validated_dict.get('version', ApplicationConstants.APP_VERSION),
        )

    def _read_config_file(self, path: Path) -> AppConfig:
        with open(path, 'r', encoding='utf-8') as f:
            config_dict = json.load(f)
        return self._build_config(self._validate_config(config_dict))

    def load_config(self) -> AppConfig:
        """Load configuration from file."""
        if self._config is not None:
            return self._config

        try:
            if self.config_path.exists():
                self._config = self._read_config_file(self.config_path)
                logger.info('Configuration loaded from %s', self.config_path)
            else:
                self._config = self._create_default_config()
                logger.info('Created default configuration')

        except (OSError, ValueError, TypeError) as e:
            logger.error('Failed to load config: %s', e)
            # Try backup if available
            if self.backup_path.exists():
                try:
                    logger.info('Attempting to load from backup')
                    self._config = self._read_config_file(self.backup_path)
                    logger.info('Configuration loaded from backup')
                except (OSError, ValueError, TypeError) as backup_error:
                    logger.error('Backup config also failed: %s', backup_error)
                    self._config = self._create_default_config()
            else:
                self._config = self._create_default_config()

        return self._config

    def save_config(self, config: Optional[AppConfig] = None):
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            logger.warning('No configuration to save')
            return

        try:
            # Create backup of existing config
            if self.config_path.exists():
                try:
                    shutil.copy2(self.config_path, self.backup_path)
                except OSError as e:
                    logger.warning('Failed to create config backup: %s', e)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(asdict(config), f, indent=4, ensure_ascii=False)

            self._config = config
            logger.info('Configuration saved to %s', self.config_path)

        except OSError as e:
            logger.error('Failed to save config: %s', e)
            raise

    def get_server_settings(self) -> ServerSettings:
        """Get relay server settings."""
        return self.load_config().server

    def get_client_settings(self) -> ClientSettings:
        """Get viewer connection settings."""
        return self.load_config().client

    def get_stream_settings(self) -> StreamSettings:
        """Get batching and history settings."""
        return self.load_config().stream

    def get_logging_settings(self) -> LoggingSettings:
        """Get logging settings."""
        return self.load_config().logging

    def _update_section(self, section: str, **kwargs):
        config = self.load_config()
        target = getattr(config, section)
        for key, value in kwargs.items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug('Ignoring unknown %s setting: %s', section, key)
        self.save_config(config)

    def update_server_settings(self, **kwargs):
        """Update relay server settings."""
        self._update_section('server', **kwargs)

    def update_client_settings(self, **kwargs):
        """Update viewer connection settings."""
        self._update_section('client', **kwargs)

    def update_stream_settings(self, **kwargs):
        """Update batching and history settings."""
        self._update_section('stream', **kwargs)

    def update_logging_settings(self, **kwargs):
        """Update logging settings."""
        self._update_section('logging', **kwargs)

    def reset_to_defaults(self):
        """Reset configuration to defaults."""
        self._config = self._create_default_config()
        self.save_config()
        logger.info('Configuration reset to defaults')

    def export_config(self, filepath: str):
        """Export configuration to file."""
        config = self.load_config()
        export_path = Path(filepath).expanduser()

        try:
            with open(export_path, 'w', encoding='utf-8') as f:
                json.dump(asdict(config), f, indent=4, ensure_ascii=False)
            logger.info('Configuration exported to %s', export_path)
        except OSError as e:
            logger.error('Failed to export config: %s', e)
            raise

    def import_config(self, filepath: str):
        """Import configuration from file."""
        import_path = Path(filepath).expanduser()

        try:
            imported_config = self._read_config_file(import_path)
            self.save_config(imported_config)
            logger.info('Configuration imported from %s', import_path)

        except (OSError, ValueError, TypeError) as e:
            logger.error('Failed to import config: %s', e)
            raise
