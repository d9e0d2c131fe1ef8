"""PyAudio/soundfile backend tests for SoundRecorder.

These exercise the parts of the device backends that do not need an audio
device: encoder validation, file preparation and the stream callbacks.
"""

import numpy as np
import pytest

pyaudio = pytest.importorskip("pyaudio")
sf = pytest.importorskip("soundfile")

from soundrecorder.core.backends import (  # noqa: E402
    INFO_MAX_DURATION_REACHED,
    PrepareError,
    StartError,
    UnsupportedEncoderError,
)
from soundrecorder.core.devices import PyAudioPlayer, PyAudioRecorder  # noqa: E402


def _block(values, channels=1):
    return np.array(values, dtype=np.int16).reshape(-1, channels).tobytes()


def test_recorder_rejects_encoder_for_format():
    recorder = PyAudioRecorder()
    recorder.set_output_format("WAV")
    with pytest.raises(UnsupportedEncoderError):
        recorder.set_audio_encoder("VORBIS")

    recorder.set_output_format("ogg")
    recorder.set_audio_encoder("vorbis")


def test_recorder_prepare_without_output_file():
    with pytest.raises(PrepareError):
        PyAudioRecorder().prepare()


def test_recorder_prepare_unwritable_path(tmp_path):
    recorder = PyAudioRecorder()
    recorder.set_audio_encoder("PCM_16")
    recorder.set_output_file(str(tmp_path / "missing" / "out.wav"))
    with pytest.raises(PrepareError):
        recorder.prepare()


def test_recorder_start_requires_prepare():
    with pytest.raises(StartError):
        PyAudioRecorder().start()


def test_recorder_callback_writes_frames_and_tracks_peak(tmp_path):
    path = tmp_path / "out.wav"
    recorder = PyAudioRecorder()
    recorder.set_audio_sampling_rate(8000)
    recorder.set_audio_encoder("PCM_16")
    recorder.set_output_file(str(path))
    recorder.prepare()

    _, flag = recorder._fill_buffer(_block([0, 100, -3000, 20]), 4, None, 0)
    assert flag == pyaudio.paContinue
    assert recorder.get_max_amplitude() == 3000
    assert recorder.get_max_amplitude() == 0

    recorder.stop()
    data, rate = sf.read(str(path), dtype="int16")
    assert rate == 8000
    assert list(data) == [0, 100, -3000, 20]
    recorder.release()


def test_recorder_stops_at_max_duration(tmp_path):
    infos = []
    recorder = PyAudioRecorder()
    recorder.set_audio_sampling_rate(1000)
    recorder.set_audio_encoder("PCM_16")
    recorder.set_max_duration(5)  # 5 frames at 1 kHz
    recorder.set_on_info_listener(lambda what, extra: infos.append(what))
    recorder.set_output_file(str(tmp_path / "out.wav"))
    recorder.prepare()

    _, first = recorder._fill_buffer(_block([1, 2, 3]), 3, None, 0)
    _, second = recorder._fill_buffer(_block([4, 5, 6]), 3, None, 0)

    assert first == pyaudio.paContinue
    assert second == pyaudio.paComplete
    assert infos == [INFO_MAX_DURATION_REACHED]

    recorder.stop()
    assert len(sf.read(str(tmp_path / "out.wav"), dtype="int16")[0]) == 5
    recorder.release()


def test_player_prepare_missing_file(tmp_path):
    player = PyAudioPlayer()
    player.set_data_source(str(tmp_path / "missing.wav"))
    with pytest.raises(PrepareError):
        player.prepare()


def test_player_callback_reports_completion(tmp_path):
    path = tmp_path / "in.wav"
    sf.write(str(path), np.arange(6, dtype=np.int16), 8000, subtype="PCM_16")
    completed = []

    player = PyAudioPlayer()
    player.set_data_source(str(path))
    player.set_on_completion_listener(lambda: completed.append(True))
    player.prepare()

    data, flag = player._read_buffer(None, 4, None, 0)
    assert flag == pyaudio.paContinue
    assert len(data) == 4 * 2
    assert completed == []

    data, flag = player._read_buffer(None, 4, None, 0)
    assert flag == pyaudio.paComplete
    assert len(data) == 2 * 2
    assert completed == [True]

    player.release()


def test_player_start_without_output_device_raises_start_error(tmp_path, monkeypatch):
    path = tmp_path / "in.wav"
    sf.write(str(path), np.zeros(4, dtype=np.int16), 8000, subtype="PCM_16")

    class NoOutputDevice:
        def open(self, **kwargs):
            raise OSError(-9996, "Invalid output device")

        def terminate(self):
            pass

    monkeypatch.setattr(pyaudio, "PyAudio", NoOutputDevice)

    player = PyAudioPlayer()
    player.set_data_source(str(path))
    player.prepare()
    with pytest.raises(StartError):
        player.start()
    player.release()
