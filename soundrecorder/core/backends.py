"""Backend interfaces used by the session controller.

The controller never talks to an audio device directly.  It drives one of
two small capability sets, modelled on a platform media recorder/player:

:class:`RecorderBackend`
    configure → ``set_output_file`` → ``prepare`` → ``start`` →
    (``pause`` / ``resume``)* → ``stop`` → ``reset`` → ``release``

:class:`PlayerBackend`
    ``set_data_source`` → ``prepare`` → ``start`` → ``stop`` → ``release``

Failures are raised as subclasses of :class:`BackendError` so the controller
can map them onto its error codes.  Asynchronous events (errors while
capturing, end of playback, informational notices) are delivered through the
listener callbacks and may arrive on any thread.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

# Recorder stopped itself because the configured max duration was reached.
INFO_MAX_DURATION_REACHED = 800

# ``what`` values passed to error callbacks
ERROR_UNKNOWN = 1
ERROR_IO = -1004

ErrorCallback = Callable[[int, int], None]
InfoCallback = Callable[[int, int], None]
CompletionCallback = Callable[[], None]


class BackendError(Exception):
    """Base class for failures raised by a device backend."""


class UnsupportedEncoderError(BackendError):
    """The backend cannot produce the requested encoder/format combination."""


class PrepareError(BackendError):
    """The backend could not be prepared (output not writable, source unreadable)."""


class StartError(BackendError):
    """The backend was prepared but refused to start (device busy, in use)."""


class RecorderBackend(ABC):
    """Capture engine writing one output file."""

    @abstractmethod
    def set_audio_source(self, source: Optional[int]) -> None:
        ...

    @abstractmethod
    def set_audio_channels(self, channels: int) -> None:
        ...

    @abstractmethod
    def set_audio_sampling_rate(self, sampling_rate: int) -> None:
        ...

    @abstractmethod
    def set_output_format(self, output_format: str) -> None:
        ...

    @abstractmethod
    def set_audio_encoder(self, encoder: str) -> None:
        """Select the encoder.

        Raises:
            UnsupportedEncoderError: If the encoder cannot be used with the
                configured output format.
        """

    @abstractmethod
    def set_max_duration(self, max_duration_ms: int) -> None:
        """Limit the capture length; ``0`` means unlimited."""

    @abstractmethod
    def set_output_file(self, path: str) -> None:
        ...

    @abstractmethod
    def prepare(self) -> None:
        """Raises :class:`PrepareError` on failure."""

    @abstractmethod
    def start(self) -> None:
        """Raises :class:`StartError` on failure."""

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def reset(self) -> None:
        """Drop any configuration and close open resources without raising."""

    @abstractmethod
    def release(self) -> None:
        """Free the underlying device; the instance is unusable afterwards."""

    @abstractmethod
    def get_max_amplitude(self) -> int:
        """Peak absolute sample value since the previous call."""

    @abstractmethod
    def set_on_error_listener(self, callback: Optional[ErrorCallback]) -> None:
        ...

    @abstractmethod
    def set_on_info_listener(self, callback: Optional[InfoCallback]) -> None:
        ...


class PlayerBackend(ABC):
    """Playback engine reading one file."""

    @abstractmethod
    def set_data_source(self, path: str) -> None:
        ...

    @abstractmethod
    def prepare(self) -> None:
        """Raises :class:`PrepareError` on failure."""

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def release(self) -> None:
        ...

    @abstractmethod
    def set_on_completion_listener(self, callback: Optional[CompletionCallback]) -> None:
        ...

    @abstractmethod
    def set_on_error_listener(self, callback: Optional[ErrorCallback]) -> None:
        ...
