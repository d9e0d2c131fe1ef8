"""PyAudio/soundfile device backends for SoundRecorder.

:class:`PyAudioRecorder` and :class:`PyAudioPlayer` implement the backend
interfaces from :mod:`soundrecorder.core.backends` on top of a PortAudio
stream.  Audio is moved in the stream callback, which PortAudio runs on its
own thread:

- the recorder writes captured int16 frames straight into an open
  :class:`soundfile.SoundFile` and keeps the running peak amplitude,
- the player reads blocks from the file and hands them to the output stream.

Error, info and completion callbacks are therefore invoked on the PortAudio
thread.  They must not call back into the stream (stopping a stream from
inside its own callback blocks), so hosts pass a queueing dispatcher such as
:class:`~soundrecorder.core.dispatch.CallbackQueue` to the controller.

Output formats and encoders are soundfile major formats and subtypes::

    recorder.set_output_format('FLAC')
    recorder.set_audio_encoder('PCM_16')      # accepted
    recorder.set_audio_encoder('VORBIS')      # UnsupportedEncoderError
"""

import threading
from typing import Any, Dict, List, Optional

import numpy as np
import pyaudio
import soundfile as sf
from loguru import logger

from .backends import (
    ERROR_IO,
    INFO_MAX_DURATION_REACHED,
    CompletionCallback,
    ErrorCallback,
    InfoCallback,
    PlayerBackend,
    PrepareError,
    RecorderBackend,
    StartError,
    UnsupportedEncoderError,
)
from .config import CHANNELS, SAMPLING_RATE
from .processing import detect_driver_type, peak_amplitude

FRAMES_PER_BUFFER = 1024


def list_input_devices(audio: Optional[pyaudio.PyAudio] = None) -> List[Dict[str, Any]]:
    """List all available input audio devices.

    Args:
        audio: Existing PyAudio instance to query.  A temporary one is
            created (and terminated) when omitted.

    Returns:
        List of dicts with keys: id, name, driver, channels, rate, is_default
    """
    owns_audio = audio is None
    if audio is None:
        audio = pyaudio.PyAudio()

    try:
        try:
            default_device_id = int(audio.get_default_input_device_info()['index'])
        except OSError:
            default_device_id = -1

        devices = []
        for i in range(audio.get_device_count()):
            device_info = audio.get_device_info_by_index(i)
            if device_info.get('maxInputChannels', 0) <= 0:
                continue
            device_name = device_info.get('name', 'Unknown')
            devices.append({
                'id': i,
                'name': device_name,
                'driver': detect_driver_type(device_name),
                'channels': int(device_info.get('maxInputChannels', 0)),
                'rate': int(device_info.get('defaultSampleRate', 0)),
                'is_default': i == default_device_id,
            })
        return devices
    finally:
        if owns_audio:
            audio.terminate()


class PyAudioRecorder(RecorderBackend):
    """Captures from a PortAudio input device into a sound file."""

    def __init__(self, frames_per_buffer: int = FRAMES_PER_BUFFER) -> None:
        self._frames_per_buffer = frames_per_buffer
        self._lock = threading.Lock()
        self._audio: Optional[pyaudio.PyAudio] = None
        self._on_error: Optional[ErrorCallback] = None
        self._on_info: Optional[InfoCallback] = None
        self._configure_defaults()

    def _configure_defaults(self) -> None:
        self._source: Optional[int] = None
        self._channels = CHANNELS
        self._rate = SAMPLING_RATE
        self._output_format = 'WAV'
        self._encoder: Optional[str] = None
        self._max_duration = 0
        self._path: Optional[str] = None
        self._stream = None
        self._sound_file: Optional[sf.SoundFile] = None
        self._frames_written = 0
        self._max_frames = 0
        self._peak = 0

    # -- configuration -------------------------------------------------

    def set_audio_source(self, source: Optional[int]) -> None:
        self._source = source

    def set_audio_channels(self, channels: int) -> None:
        self._channels = channels

    def set_audio_sampling_rate(self, sampling_rate: int) -> None:
        self._rate = sampling_rate

    def set_output_format(self, output_format: str) -> None:
        self._output_format = output_format.upper()

    def set_audio_encoder(self, encoder: str) -> None:
        encoder = encoder.upper()
        if not sf.check_format(self._output_format, encoder):
            raise UnsupportedEncoderError(
                f"Encoder {encoder} is not supported for {self._output_format} files"
            )
        self._encoder = encoder

    def set_max_duration(self, max_duration_ms: int) -> None:
        self._max_duration = max(0, max_duration_ms)

    def set_output_file(self, path: str) -> None:
        self._path = path

    def set_on_error_listener(self, callback: Optional[ErrorCallback]) -> None:
        self._on_error = callback

    def set_on_info_listener(self, callback: Optional[InfoCallback]) -> None:
        self._on_info = callback

    # -- lifecycle -----------------------------------------------------

    def prepare(self) -> None:
        if self._path is None:
            raise PrepareError("No output file set")

        try:
            self._sound_file = sf.SoundFile(
                self._path,
                mode='w',
                samplerate=self._rate,
                channels=self._channels,
                format=self._output_format,
                subtype=self._encoder,
            )
        except (RuntimeError, OSError, ValueError, TypeError) as e:
            raise PrepareError(f"Cannot open {self._path} for writing: {e}") from e

        self._frames_written = 0
        self._max_frames = self._max_duration * self._rate // 1000
        logger.debug(f"Prepared {self._path} ({self._output_format}/{self._encoder}, "
                     f"{self._channels} ch, {self._rate} Hz)")

    def start(self) -> None:
        if self._sound_file is None:
            raise StartError("Recorder is not prepared")

        try:
            if self._audio is None:
                self._audio = pyaudio.PyAudio()
            self._stream = self._audio.open(
                format=pyaudio.paInt16,
                channels=self._channels,
                rate=self._rate,
                input=True,
                input_device_index=self._source,
                frames_per_buffer=self._frames_per_buffer,
                stream_callback=self._fill_buffer,
            )
        except (OSError, ValueError) as e:
            raise StartError(f"Cannot open input stream: {e}") from e

    def pause(self) -> None:
        if self._stream is not None:
            self._stream.stop_stream()

    def resume(self) -> None:
        if self._stream is not None:
            self._stream.start_stream()

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        with self._lock:
            if self._sound_file is not None:
                self._sound_file.close()
                self._sound_file = None

    def reset(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except OSError as e:
                logger.debug(f"Error closing input stream: {e}")
        with self._lock:
            if self._sound_file is not None:
                try:
                    self._sound_file.close()
                except RuntimeError as e:
                    logger.debug(f"Error closing {self._path}: {e}")
            self._configure_defaults()

    def release(self) -> None:
        self.reset()
        if self._audio is not None:
            self._audio.terminate()
            self._audio = None
        self._on_error = None
        self._on_info = None

    def get_max_amplitude(self) -> int:
        with self._lock:
            peak, self._peak = self._peak, 0
        return peak

    # -- stream callback -----------------------------------------------

    def _fill_buffer(
        self,
        in_data: bytes,
        frame_count: int,
        time_info: object,
        status_flags: object,
    ) -> tuple:
        """Write one captured block to the sample file.

        Args:
            in_data: The audio data as a bytes object
            frame_count: The number of frames captured
            time_info: The time information
            status_flags: The status flags

        Returns:
            Tuple of (data, status_flag)
        """
        samples = np.frombuffer(in_data, dtype=np.int16).reshape(-1, self._channels)
        if self._max_frames:
            samples = samples[:self._max_frames - self._frames_written]

        try:
            with self._lock:
                if self._sound_file is None:
                    return None, pyaudio.paComplete
                self._sound_file.write(samples)
                self._frames_written += len(samples)
                self._peak = max(self._peak, peak_amplitude(samples))
        except (RuntimeError, OSError) as e:
            logger.error(f"Error writing {self._path}: {e}")
            self._notify_error(ERROR_IO)
            return None, pyaudio.paAbort

        if self._max_frames and self._frames_written >= self._max_frames:
            logger.info(f"Max duration of {self._max_duration} ms reached")
            if self._on_info is not None:
                self._on_info(INFO_MAX_DURATION_REACHED, 0)
            return None, pyaudio.paComplete

        if status_flags:
            logger.debug(f"Input stream status: {status_flags}")
        return None, pyaudio.paContinue

    def _notify_error(self, what: int, extra: int = 0) -> None:
        if self._on_error is not None:
            self._on_error(what, extra)


class PyAudioPlayer(PlayerBackend):
    """Plays a sound file through the default PortAudio output device."""

    def __init__(self, frames_per_buffer: int = FRAMES_PER_BUFFER) -> None:
        self._frames_per_buffer = frames_per_buffer
        self._lock = threading.Lock()
        self._audio: Optional[pyaudio.PyAudio] = None
        self._stream = None
        self._sound_file: Optional[sf.SoundFile] = None
        self._path: Optional[str] = None
        self._on_completion: Optional[CompletionCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def set_data_source(self, path: str) -> None:
        self._path = path

    def set_on_completion_listener(self, callback: Optional[CompletionCallback]) -> None:
        self._on_completion = callback

    def set_on_error_listener(self, callback: Optional[ErrorCallback]) -> None:
        self._on_error = callback

    def prepare(self) -> None:
        if self._path is None:
            raise ValueError("No data source set")
        try:
            self._sound_file = sf.SoundFile(self._path)
        except (RuntimeError, OSError) as e:
            raise PrepareError(f"Cannot open {self._path}: {e}") from e

    def start(self) -> None:
        if self._sound_file is None:
            raise StartError("Player is not prepared")

        try:
            if self._audio is None:
                self._audio = pyaudio.PyAudio()
            self._stream = self._audio.open(
                format=pyaudio.paInt16,
                channels=self._sound_file.channels,
                rate=self._sound_file.samplerate,
                output=True,
                frames_per_buffer=self._frames_per_buffer,
                stream_callback=self._read_buffer,
            )
        except (OSError, ValueError) as e:
            raise StartError(f"Cannot open output stream: {e}") from e

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None

    def release(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            except OSError as e:
                logger.debug(f"Error closing output stream: {e}")
            self._stream = None
        with self._lock:
            if self._sound_file is not None:
                self._sound_file.close()
                self._sound_file = None
        if self._audio is not None:
            self._audio.terminate()
            self._audio = None
        self._on_completion = None
        self._on_error = None

    def _read_buffer(
        self,
        in_data: Optional[bytes],
        frame_count: int,
        time_info: object,
        status_flags: object,
    ) -> tuple:
        """Feed the next block of the file to the output stream."""
        try:
            with self._lock:
                if self._sound_file is None:
                    return b'', pyaudio.paComplete
                block = self._sound_file.read(frame_count, dtype='int16', always_2d=True)
        except (RuntimeError, OSError) as e:
            logger.error(f"Error reading {self._path}: {e}")
            if self._on_error is not None:
                self._on_error(ERROR_IO, 0)
            return b'', pyaudio.paAbort

        if len(block) < frame_count:
            if self._on_completion is not None:
                self._on_completion()
            return block.tobytes(), pyaudio.paComplete
        return block.tobytes(), pyaudio.paContinue
