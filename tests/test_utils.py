"""Utility tests for SoundRecorder."""

from soundrecorder.cli.utils import console, format_length, make_recordings_table


def test_console_available():
    """Test that console is available."""
    assert console is not None
    assert hasattr(console, 'print')


def test_format_length():
    assert format_length(0) == "0:00"
    assert format_length(3999) == "0:03"
    assert format_length(65_000) == "1:05"
    assert format_length(-5) == "0:00"


def test_make_recordings_table():
    table = make_recordings_table([{"name": "a.wav", "size": 2048, "modified": 0.0}])
    assert table.row_count == 1
