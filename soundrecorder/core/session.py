"""Recording/playback session controller for SoundRecorder.

:class:`Recorder` owns one sample file and drives at most one device backend
at a time, either a :class:`~soundrecorder.core.backends.RecorderBackend` or
a :class:`~soundrecorder.core.backends.PlayerBackend`.  It moves between four
states::

    IDLE ──start_recording──▶ RECORDING ──pause_recording──▶ PAUSED
     ▲  ◀──────stop──────────     ▲  ◀───resume_recording──────┘
     │                                                          │
     ├──start_playback──▶ PLAYING ──stop / completion──▶ IDLE   │
     └────────────────────────stop──────────────────────────────┘

Callers are told about changes through a :class:`SessionListener`.  Failures
are never raised from the public methods; they are reported as an
:class:`ErrorCode` via :meth:`SessionListener.on_error` and the session is
left in a consistent state.

Elapsed time is tracked per segment: ``sample_length_millis`` holds the
length of every completed segment and the open segment is added on pause or
stop.

The controller is not thread-safe.  Backend callbacks are passed through the
``dispatch`` callable given at construction so that they run on the owner's
thread (see :mod:`soundrecorder.core.dispatch`).
"""

import time
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from loguru import logger

from .backends import (
    PlayerBackend,
    PrepareError,
    RecorderBackend,
    StartError,
    UnsupportedEncoderError,
)
from .config import (
    DEFAULT_NAME_FORMAT,
    FALLBACK_STORAGE_PATH,
    SAMPLE_PREFIX,
    STORAGE_PATH,
    AppConfig,
)
from .dispatch import Dispatch, dispatch_inline
from .storage import create_sample_file, resolve_storage_dir

SAMPLE_PATH_KEY = 'sample_path'
SAMPLE_LENGTH_KEY = 'sample_length'


class State(IntEnum):
    IDLE = 0
    RECORDING = 1
    PLAYING = 2
    PAUSED = 3


class ErrorCode(IntEnum):
    NO_ERROR = 0
    STORAGE_ACCESS_ERROR = 1
    INTERNAL_ERROR = 2
    IN_CALL_RECORD_ERROR = 3
    UNSUPPORTED_FORMAT = 4
    RECORD_INTERRUPTED = 5


class SessionListener:
    """Receives session notifications.  Override the methods you need."""

    def on_state_changed(self, state: State) -> None:
        pass

    def on_error(self, error: ErrorCode) -> None:
        pass

    def on_info(self, what: int, extra: int) -> None:
        pass


def _monotonic_millis() -> int:
    return int(time.monotonic() * 1000)


def _never_in_call() -> bool:
    return False


def _default_recorder_factory() -> RecorderBackend:
    from .devices import PyAudioRecorder

    return PyAudioRecorder()


def _default_player_factory() -> PlayerBackend:
    from .devices import PyAudioPlayer

    return PyAudioPlayer()


class Recorder:
    """Controls a single recording/playback session.

    Args:
        storage_path: Directory new samples are written to.
        fallback_storage_path: Directory used when *storage_path* is not
            writable.
        recorder_factory: Creates a fresh recorder backend for each recording.
        player_factory: Creates a fresh player backend for each playback.
        clock: Millisecond clock used for segment accounting and progress.
        dispatch: Moves backend callbacks onto the owner's thread.  Defaults
            to running them inline.
        in_call: Reports whether the host is in a phone/VoIP call; used to
            classify start failures.
        name_prefix: Prefix of generated sample file names.  Empty gives
            random names.
        name_format: strftime pattern of the timestamp in sample file names.
    """

    def __init__(
        self,
        storage_path: str = STORAGE_PATH,
        fallback_storage_path: Optional[str] = FALLBACK_STORAGE_PATH,
        recorder_factory: Callable[[], RecorderBackend] = _default_recorder_factory,
        player_factory: Callable[[], PlayerBackend] = _default_player_factory,
        clock: Callable[[], int] = _monotonic_millis,
        dispatch: Dispatch = dispatch_inline,
        in_call: Callable[[], bool] = _never_in_call,
        name_prefix: str = SAMPLE_PREFIX,
        name_format: str = DEFAULT_NAME_FORMAT,
    ) -> None:
        self._storage_path = storage_path
        self._fallback_storage_path = fallback_storage_path
        self._recorder_factory = recorder_factory
        self._player_factory = player_factory
        self._clock = clock
        self._dispatch = dispatch
        self._in_call = in_call
        self._name_prefix = name_prefix
        self._name_format = name_format

        self._listener: Optional[SessionListener] = None
        self._state = State.IDLE
        self._backend: Optional[Union[RecorderBackend, PlayerBackend]] = None

        self._sample_file: Optional[Path] = None
        self._sample_length = 0  # ms, completed segments only
        self._sample_start = 0  # clock value when the current segment started

        self._channels = 0
        self._sampling_rate = 0
        self._max_duration = 0

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> "Recorder":
        """Build a recorder from application configuration.

        Keyword arguments are passed to the constructor and take precedence.
        """
        options: Dict[str, Any] = {
            'storage_path': str(config.get('storage_path', STORAGE_PATH)),
            'fallback_storage_path': config.get('fallback_storage_path', FALLBACK_STORAGE_PATH),
            'name_prefix': str(config.get('name_prefix', SAMPLE_PREFIX) or ''),
            'name_format': str(config.get('name_format', DEFAULT_NAME_FORMAT)),
        }
        options.update(kwargs)
        recorder = cls(**options)
        recorder.set_max_duration(int(config.get('max_duration', 0) or 0))
        return recorder

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_listener(self, listener: Optional[SessionListener]) -> None:
        self._listener = listener

    def set_channels(self, channels: int) -> None:
        """Channels for the next recording; ``0`` keeps the backend default."""
        self._channels = channels

    def set_sampling_rate(self, sampling_rate: int) -> None:
        """Sampling rate for the next recording; ``0`` keeps the backend default."""
        self._sampling_rate = sampling_rate

    def set_max_duration(self, max_duration_ms: int) -> None:
        self._max_duration = max_duration_ms

    def set_storage_path(self, path: str) -> None:
        self._storage_path = path

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    @property
    def sample_file(self) -> Optional[Path]:
        return self._sample_file

    @property
    def sample_length_millis(self) -> int:
        return self._sample_length

    @property
    def storage_path(self) -> str:
        return self._storage_path

    def sample_length(self) -> int:
        """Length of the last completed recording in whole seconds."""
        return self._sample_length // 1000

    def progress(self) -> int:
        """Seconds recorded (including the open segment) or played so far."""
        if self._state == State.RECORDING:
            return (self._sample_length + (self._clock() - self._sample_start)) // 1000
        if self._state == State.PLAYING:
            return (self._clock() - self._sample_start) // 1000
        return 0

    def get_max_amplitude(self) -> int:
        """Peak input amplitude since the last call, or 0 when not recording."""
        recorder = self._recorder
        if self._state != State.RECORDING or recorder is None:
            return 0
        return recorder.get_max_amplitude()

    # ------------------------------------------------------------------
    # Saved state
    # ------------------------------------------------------------------

    def save_state(self) -> Dict[str, Any]:
        """Return the sample path and length as a plain mapping."""
        return {
            SAMPLE_PATH_KEY: str(self._sample_file.absolute()) if self._sample_file else None,
            SAMPLE_LENGTH_KEY: self._sample_length,
        }

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Adopt a sample previously returned by :meth:`save_state`.

        Nothing happens when the blob has no path or length, the file no
        longer exists, or it is already the current sample.  Otherwise the
        current sample is deleted and replaced by the restored one.
        """
        sample_path = state.get(SAMPLE_PATH_KEY)
        if sample_path is None:
            return
        try:
            sample_length = int(state.get(SAMPLE_LENGTH_KEY, -1))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring saved state with bad length: {state.get(SAMPLE_LENGTH_KEY)!r}")
            return
        if sample_length == -1:
            return

        sample_file = Path(sample_path)
        if not sample_file.exists():
            return
        if self._sample_file is not None and self._sample_file.absolute() == sample_file.absolute():
            return

        self.delete()
        self._sample_file = sample_file
        self._sample_length = sample_length
        logger.debug(f"Restored sample {sample_file} ({sample_length} ms)")

        self._signal_state_changed(State.IDLE)

    # ------------------------------------------------------------------
    # Sample lifecycle
    # ------------------------------------------------------------------

    def delete(self) -> None:
        """Stop, delete the sample file and forget it."""
        self.stop()

        if self._sample_file is not None:
            self._delete_sample_file()

        self._sample_file = None
        self._sample_length = 0

        self._signal_state_changed(State.IDLE)

    def clear(self) -> None:
        """Stop and forget the sample without deleting it.

        The file stays on disk and belongs to the caller from now on.
        """
        self.stop()

        self._sample_file = None
        self._sample_length = 0

        self._signal_state_changed(State.IDLE)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(
        self,
        output_format: str,
        extension: str,
        source: Optional[int],
        encoder: str,
    ) -> None:
        """Start a new recording, replacing the current sample.

        Args:
            output_format: Container format understood by the backend.
            extension: Sample file extension including the dot.
            source: Backend input source (device index), ``None`` for default.
            encoder: Encoder understood by the backend.
        """
        self.stop()

        if self._sample_file is not None:
            self._delete_sample_file()
            self._sample_file = None
            self._sample_length = 0

        try:
            sample_dir = resolve_storage_dir(self._storage_path, self._fallback_storage_path)
            sample_file = create_sample_file(
                sample_dir, extension, self._name_prefix, self._name_format
            )
        except OSError as e:
            logger.error(f"Cannot create sample file: {e}")
            self._set_error(ErrorCode.STORAGE_ACCESS_ERROR)
            return
        except ValueError as e:
            logger.error(f"Invalid sample file name settings: {e}")
            self._set_error(ErrorCode.INTERNAL_ERROR)
            return

        self._sample_file = sample_file
        logger.info(f"Created sample file {sample_file}")

        recorder = None
        try:
            recorder = self._recorder_factory()
            recorder.set_audio_source(source)
            if self._channels > 0:
                recorder.set_audio_channels(self._channels)
            if self._sampling_rate > 0:
                recorder.set_audio_sampling_rate(self._sampling_rate)
            recorder.set_output_format(output_format)
            recorder.set_on_error_listener(self._bind(recorder, self._on_recorder_error))
            recorder.set_max_duration(self._max_duration)
            recorder.set_on_info_listener(self._bind(recorder, self._on_recorder_info))
            recorder.set_audio_encoder(encoder)
            recorder.set_output_file(str(sample_file))
            recorder.prepare()
            logger.debug(f"Starting recorder (source={source}, format={output_format}, encoder={encoder})")
            recorder.start()
        except Exception as e:
            error = self._recording_error_code(e)
            logger.error(f"Recording failed to start ({error.name}): {e}")
            if recorder is not None:
                recorder.reset()
                recorder.release()
            self._delete_sample_file()
            self._sample_file = None
            self._sample_length = 0
            self._set_error(error)
            return

        self._backend = recorder
        self._sample_start = self._clock()
        self._set_state(State.RECORDING)

    def pause_recording(self) -> None:
        recorder = self._recorder
        if self._state != State.RECORDING or recorder is None:
            return
        try:
            recorder.pause()
        except Exception as e:
            logger.error(f"Pause failed: {e}")
            self._set_error(ErrorCode.INTERNAL_ERROR)
        self._sample_length += self._clock() - self._sample_start
        self._set_state(State.PAUSED)

    def resume_recording(self) -> None:
        recorder = self._recorder
        if self._state != State.PAUSED or recorder is None:
            return
        try:
            recorder.resume()
        except Exception as e:
            logger.error(f"Resume failed: {e}")
            self._set_error(ErrorCode.INTERNAL_ERROR)
        self._sample_start = self._clock()
        self._set_state(State.RECORDING)

    def stop_recording(self) -> None:
        recorder = self._recorder
        if recorder is None:
            return
        try:
            recorder.stop()
        except Exception as e:
            logger.error(f"Stop failed: {e}")
            self._set_error(ErrorCode.INTERNAL_ERROR)
        recorder.reset()
        recorder.release()
        self._backend = None
        self._channels = 0
        self._sampling_rate = 0
        if self._state == State.RECORDING:
            self._sample_length += self._clock() - self._sample_start
        self._set_state(State.IDLE)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def start_playback(self) -> None:
        if self._sample_file is None:
            logger.warning("No sample to play")
            return

        self.stop()

        player = None
        try:
            player = self._player_factory()
            player.set_data_source(str(self._sample_file))
            player.set_on_completion_listener(self._bind(player, self._on_player_completion))
            player.set_on_error_listener(self._bind(player, self._on_player_error))
            player.prepare()
            player.start()
        except Exception as e:
            error = (
                ErrorCode.STORAGE_ACCESS_ERROR
                if player is not None and isinstance(e, (PrepareError, OSError))
                else ErrorCode.INTERNAL_ERROR
            )
            logger.error(f"Playback failed to start ({error.name}): {e}")
            if player is not None:
                player.release()
            self._set_error(error)
            return

        self._backend = player
        self._sample_start = self._clock()
        self._set_state(State.PLAYING)

    def stop_playback(self) -> None:
        player = self._player
        if player is None:  # we were not in playback
            return
        try:
            player.stop()
        except Exception as e:
            logger.error(f"Playback stop failed: {e}")
            self._set_error(ErrorCode.INTERNAL_ERROR)
        player.release()
        self._backend = None
        self._set_state(State.IDLE)

    def stop(self) -> None:
        self.stop_recording()
        self.stop_playback()

    # ------------------------------------------------------------------
    # Backend callbacks
    # ------------------------------------------------------------------

    def _bind(self, backend: Union[RecorderBackend, PlayerBackend], handler: Callable[..., None]):
        """Wrap *handler* so it runs via dispatch and only for the live backend."""

        def callback(*args: int) -> None:
            self._dispatch(lambda: self._deliver(backend, handler, args))

        return callback

    def _deliver(self, backend, handler: Callable[..., None], args) -> None:
        if backend is not self._backend:
            logger.warning(f"Ignoring {handler.__name__} from a released backend")
            return
        handler(*args)

    def _on_recorder_error(self, what: int, extra: int) -> None:
        logger.error(f"Recorder error (what={what}, extra={extra})")
        self.stop()
        self._set_error(ErrorCode.RECORD_INTERRUPTED)

    def _on_recorder_info(self, what: int, extra: int) -> None:
        logger.debug(f"Recorder info (what={what}, extra={extra})")
        if self._listener is not None:
            self._listener.on_info(what, extra)

    def _on_player_error(self, what: int, extra: int) -> None:
        logger.error(f"Player error (what={what}, extra={extra})")
        self.stop()
        self._set_error(ErrorCode.STORAGE_ACCESS_ERROR)

    def _on_player_completion(self) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _recorder(self) -> Optional[RecorderBackend]:
        return self._backend if isinstance(self._backend, RecorderBackend) else None

    @property
    def _player(self) -> Optional[PlayerBackend]:
        return self._backend if isinstance(self._backend, PlayerBackend) else None

    def _recording_error_code(self, error: Exception) -> ErrorCode:
        if isinstance(error, UnsupportedEncoderError):
            return ErrorCode.UNSUPPORTED_FORMAT
        if isinstance(error, StartError) and self._in_call():
            return ErrorCode.IN_CALL_RECORD_ERROR
        return ErrorCode.INTERNAL_ERROR

    def _delete_sample_file(self) -> None:
        if self._sample_file is None:
            return
        try:
            self._sample_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not delete {self._sample_file}: {e}")
            return
        logger.info(f"Deleted sample file {self._sample_file}")

    def _set_state(self, state: State) -> None:
        if state == self._state:
            return

        logger.debug(f"State {self._state.name} -> {state.name}")
        self._state = state
        self._signal_state_changed(state)

    def _signal_state_changed(self, state: State) -> None:
        if self._listener is not None:
            self._listener.on_state_changed(state)

    def _set_error(self, error: ErrorCode) -> None:
        if self._listener is not None:
            self._listener.on_error(error)
