"""Core business logic for SoundRecorder."""

from .backends import (
    INFO_MAX_DURATION_REACHED,
    BackendError,
    PlayerBackend,
    PrepareError,
    RecorderBackend,
    StartError,
    UnsupportedEncoderError,
)
from .config import AppConfig, resolve_format
from .dispatch import CallbackQueue
from .log import SessionLog
from .processing import amplitude_to_db, detect_driver_type
from .session import ErrorCode, Recorder, SessionListener, State
from .state import SessionStateStore
from .storage import StorageManager, create_unique_file, resolve_storage_dir

__all__ = [
    "AppConfig",
    "Recorder",
    "State",
    "ErrorCode",
    "SessionListener",
    "SessionLog",
    "SessionStateStore",
    "CallbackQueue",
    "StorageManager",
    "RecorderBackend",
    "PlayerBackend",
    "BackendError",
    "PrepareError",
    "StartError",
    "UnsupportedEncoderError",
    "INFO_MAX_DURATION_REACHED",
    "amplitude_to_db",
    "detect_driver_type",
    "create_unique_file",
    "resolve_storage_dir",
    "resolve_format",
]
