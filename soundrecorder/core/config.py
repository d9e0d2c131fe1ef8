"""Configuration management for SoundRecorder.

This module provides configuration constants and the :class:`AppConfig` class
which merges defaults with values from an optional YAML file
(``.soundrecorder.yml`` in the working directory).

Recording constants
-------------------
- ``STORAGE_PATH``          – directory new samples are written to
- ``FALLBACK_STORAGE_PATH`` – used when ``STORAGE_PATH`` is not writable
- ``CHANNELS``              – input channels (default 1 / mono)
- ``SAMPLING_RATE``         – sample rate in Hz (default 16 000)
- ``MAX_DURATION``          – capture limit in milliseconds (0 = unlimited)
- ``FILE_FORMAT``           – key into :data:`FORMATS` (default ``'wav'``)

Sample file naming
------------------
Sample files are named ``<name_prefix>-<timestamp><extension>``.  The
timestamp is produced with :meth:`~datetime.datetime.strftime` using
``NAME_FORMAT``; characters that are not allowed in file names (``\\ * | " :
< > / ?`` and spaces) are replaced with ``_``::

    recording-2026-10-17_14_30_22.wav

An empty ``name_prefix`` gives random names instead.

Configuration file (``recording:`` section)
-------------------------------------------
All constants above can be overridden at runtime via ``.soundrecorder.yml``:

.. code-block:: yaml

    recording:
      storage_path: ~/Music/recordings/
      fallback_storage_path: /tmp/SoundRecorder/
      format: flac
      channels: 2
      sampling_rate: 44100
      max_duration: 600000
      name_prefix: memo
      name_format: "%Y%m%d_%H%M%S"
    log:
      file: sessions.jsonl
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

# Storage
STORAGE_PATH = 'recordings/'
FALLBACK_STORAGE_PATH = '~/SoundRecorder/'
STATE_FILE = '.soundrecorder-state.json'
CONFIG_FILE = '.soundrecorder.yml'

# Session event log
LOG_FILE = 'sessions.jsonl'

# Audio parameters
CHANNELS = 1
SAMPLING_RATE = 16000
MAX_DURATION = 0
FILE_FORMAT = 'wav'

# File naming
SAMPLE_PREFIX = 'recording'
DEFAULT_NAME_FORMAT = '%Y-%m-%d %H:%M:%S'

# format key -> (soundfile major format, soundfile subtype, extension)
FORMATS: Dict[str, Tuple[str, str, str]] = {
    'wav': ('WAV', 'PCM_16', '.wav'),
    'flac': ('FLAC', 'PCM_16', '.flac'),
    'ogg': ('OGG', 'VORBIS', '.ogg'),
}


def resolve_format(name: str) -> Tuple[str, str, str]:
    """Look up the (output format, encoder, extension) triple for *name*.

    Raises:
        ValueError: If *name* is not a known format.
    """
    try:
        return FORMATS[name.lower()]
    except KeyError:
        known = ', '.join(sorted(FORMATS))
        raise ValueError(f"Unknown format '{name}', expected one of: {known}") from None


class AppConfig:
    """Application configuration management."""

    def __init__(self) -> None:
        """Initialize configuration with defaults."""
        self._config: Dict[str, Any] = {
            'storage_path': STORAGE_PATH,
            'fallback_storage_path': FALLBACK_STORAGE_PATH,
            'state_file': STATE_FILE,
            'format': FILE_FORMAT,
            'channels': CHANNELS,
            'sampling_rate': SAMPLING_RATE,
            'max_duration': MAX_DURATION,
            'name_prefix': SAMPLE_PREFIX,
            'name_format': DEFAULT_NAME_FORMAT,
        }
        self._load_yaml_config()

    def _load_yaml_config(self) -> None:
        """Load optional YAML configuration from the working directory."""
        config_path = Path.cwd() / CONFIG_FILE
        if not config_path.exists():
            return

        content = yaml.safe_load(config_path.read_text(encoding='utf-8'))
        if not content:
            return

        if not isinstance(content, dict):
            raise ValueError(f"Configuration in {CONFIG_FILE} must be a mapping")

        recording_config = content.get('recording')
        if isinstance(recording_config, dict):
            for key in self._config.keys():
                if key in recording_config:
                    self._config[key] = recording_config[key]

        for key, value in content.items():
            if key == 'recording':
                continue
            self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value.

        Args:
            key: Configuration key
            value: Configuration value
        """
        self._config[key] = value

    def get_storage_path(self) -> Path:
        """Get the primary storage directory as a Path (not created)."""
        return Path(str(self._config.get('storage_path', STORAGE_PATH))).expanduser()

    def get_state_path(self) -> Path:
        """Get the saved-state file path, relative to the working directory."""
        return Path(str(self._config.get('state_file', STATE_FILE))).expanduser()

    def get_format(self) -> Tuple[str, str, str]:
        """Get the configured (output format, encoder, extension) triple."""
        return resolve_format(str(self._config.get('format', FILE_FORMAT)))

    def get_log_path(self, output_dir: Optional[Path] = None) -> Path:
        """Return the session log file path.

        The log file name is taken from the ``log.file`` key in
        ``.soundrecorder.yml`` when present, otherwise from the
        :data:`LOG_FILE` constant.  The file is placed inside *output_dir*
        (defaults to :meth:`get_storage_path`).

        Args:
            output_dir: Directory that will contain the log file.  When
                ``None`` the configured ``storage_path`` is used.

        Returns:
            Path including the log filename.
        """
        log_config = self._config.get('log')
        log_file = LOG_FILE
        if isinstance(log_config, dict):
            log_file = log_config.get('file', LOG_FILE)
        base = Path(output_dir) if output_dir is not None else self.get_storage_path()
        return base / log_file
