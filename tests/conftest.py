"""Shared test fixtures for SoundRecorder tests."""

from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from soundrecorder.core.backends import (
    PlayerBackend,
    PrepareError,
    RecorderBackend,
    StartError,
    UnsupportedEncoderError,
)
from soundrecorder.core.session import ErrorCode, Recorder, SessionListener, State


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 10_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRecorderBackend(RecorderBackend):
    """In-memory recorder that records calls and fails on request."""

    def __init__(
        self,
        supported_encoders: Tuple[str, ...] = ("PCM_16",),
        fail_prepare: bool = False,
        fail_start: bool = False,
        fail_pause: bool = False,
        fail_stop: bool = False,
        info_on_start: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.supported_encoders = supported_encoders
        self.fail_prepare = fail_prepare
        self.fail_start = fail_start
        self.fail_pause = fail_pause
        self.fail_stop = fail_stop
        self.info_on_start = info_on_start

        self.calls: List[str] = []
        self.source = None
        self.channels: Optional[int] = None
        self.sampling_rate: Optional[int] = None
        self.output_format: Optional[str] = None
        self.encoder: Optional[str] = None
        self.max_duration: Optional[int] = None
        self.path: Optional[str] = None
        self.amplitude = 0
        self.released = False
        self.on_error = None
        self.on_info = None

    def set_audio_source(self, source):
        self.source = source

    def set_audio_channels(self, channels):
        self.channels = channels

    def set_audio_sampling_rate(self, sampling_rate):
        self.sampling_rate = sampling_rate

    def set_output_format(self, output_format):
        self.output_format = output_format

    def set_audio_encoder(self, encoder):
        if encoder not in self.supported_encoders:
            raise UnsupportedEncoderError(encoder)
        self.encoder = encoder

    def set_max_duration(self, max_duration_ms):
        self.max_duration = max_duration_ms

    def set_output_file(self, path):
        self.path = path

    def set_on_error_listener(self, callback):
        self.on_error = callback

    def set_on_info_listener(self, callback):
        self.on_info = callback

    def prepare(self):
        self.calls.append("prepare")
        if self.fail_prepare:
            raise PrepareError("cannot prepare")
        Path(self.path).write_bytes(b"RIFF")

    def start(self):
        self.calls.append("start")
        if self.fail_start:
            raise StartError("device busy")
        if self.info_on_start is not None:
            self.on_info(*self.info_on_start)

    def pause(self):
        self.calls.append("pause")
        if self.fail_pause:
            raise RuntimeError("pause not supported")

    def resume(self):
        self.calls.append("resume")

    def stop(self):
        self.calls.append("stop")
        if self.fail_stop:
            raise RuntimeError("stop failed")

    def reset(self):
        self.calls.append("reset")

    def release(self):
        self.calls.append("release")
        self.released = True

    def get_max_amplitude(self):
        return self.amplitude


class FakePlayerBackend(PlayerBackend):
    """In-memory player; ``complete()`` and ``fail()`` simulate device events."""

    def __init__(
        self,
        fail_prepare: bool = False,
        reject_source: bool = False,
        complete_on_start: bool = False,
    ) -> None:
        self.fail_prepare = fail_prepare
        self.reject_source = reject_source
        self.complete_on_start = complete_on_start
        self.calls: List[str] = []
        self.path: Optional[str] = None
        self.released = False
        self.on_completion = None
        self.on_error = None

    def set_data_source(self, path):
        if self.reject_source:
            raise ValueError("bad source")
        self.path = path

    def set_on_completion_listener(self, callback):
        self.on_completion = callback

    def set_on_error_listener(self, callback):
        self.on_error = callback

    def prepare(self):
        self.calls.append("prepare")
        if self.fail_prepare:
            raise PrepareError("unreadable")

    def start(self):
        self.calls.append("start")
        if self.complete_on_start:
            self.on_completion()

    def stop(self):
        self.calls.append("stop")

    def release(self):
        self.calls.append("release")
        self.released = True

    def complete(self):
        self.on_completion()

    def fail(self, what: int = -1004, extra: int = 0):
        self.on_error(what, extra)


class BackendFactory:
    """Creates fake backends and keeps every instance for inspection."""

    def __init__(self) -> None:
        self.recorders: List[FakeRecorderBackend] = []
        self.players: List[FakePlayerBackend] = []
        self.recorder_options: dict = {}
        self.player_options: dict = {}

    def recorder(self) -> FakeRecorderBackend:
        backend = FakeRecorderBackend(**self.recorder_options)
        self.recorders.append(backend)
        return backend

    def player(self) -> FakePlayerBackend:
        backend = FakePlayerBackend(**self.player_options)
        self.players.append(backend)
        return backend


class CollectingListener(SessionListener):
    """Keeps every notification in order."""

    def __init__(self) -> None:
        self.states: List[State] = []
        self.errors: List[ErrorCode] = []
        self.infos: List[Tuple[int, int]] = []

    def on_state_changed(self, state):
        self.states.append(state)

    def on_error(self, error):
        self.errors.append(error)

    def on_info(self, what, extra):
        self.infos.append((what, extra))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def listener():
    return CollectingListener()


@pytest.fixture
def backends():
    return BackendFactory()


@pytest.fixture
def storage_dir(tmp_path):
    """Primary storage directory (not created up front)."""
    return tmp_path / "recordings"


@pytest.fixture
def make_recorder(tmp_path, storage_dir, clock, listener, backends):
    """Build a Recorder wired to fakes; keyword arguments override defaults."""

    def _make(**kwargs) -> Recorder:
        options = {
            "storage_path": str(storage_dir),
            "fallback_storage_path": str(tmp_path / "fallback"),
            "recorder_factory": backends.recorder,
            "player_factory": backends.player,
            "clock": clock,
        }
        options.update(kwargs)
        recorder = Recorder(**options)
        recorder.set_listener(listener)
        return recorder

    return _make


@pytest.fixture
def session(make_recorder):
    return make_recorder()
