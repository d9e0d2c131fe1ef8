"""CLI commands for SoundRecorder.

This module provides all command-line interface commands using Typer.  Each
command drives one :class:`~soundrecorder.core.session.Recorder`; the sample
it produces is remembered between invocations through the saved-state file.
"""

import sys
import time
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger
from rich.panel import Panel
from rich.table import Table

from soundrecorder.core import (
    INFO_MAX_DURATION_REACHED,
    AppConfig,
    CallbackQueue,
    ErrorCode,
    Recorder,
    SessionListener,
    SessionLog,
    SessionStateStore,
    State,
    StorageManager,
    amplitude_to_db,
    resolve_format,
)
from soundrecorder.core.backends import PlayerBackend, RecorderBackend
from soundrecorder.core.config import (
    CHANNELS,
    FILE_FORMAT,
    FORMATS,
    MAX_DURATION,
    SAMPLING_RATE,
    STORAGE_PATH,
)
from soundrecorder.cli.utils import (
    console,
    format_length,
    make_device_table,
    make_level_progress,
    make_recordings_table,
    suppress_stderr,
)

app = typer.Typer(help="Record and play back a single audio sample")

app_config = AppConfig()
default_storage_path = str(app_config.get("storage_path", STORAGE_PATH))
default_format = str(app_config.get("format", FILE_FORMAT))
default_channels = int(app_config.get("channels", CHANNELS))
default_sampling_rate = int(app_config.get("sampling_rate", SAMPLING_RATE))
default_max_duration = int(app_config.get("max_duration", MAX_DURATION) or 0)

POLL_INTERVAL = 0.1

ERROR_MESSAGES = {
    ErrorCode.STORAGE_ACCESS_ERROR: "Unable to access the storage directory",
    ErrorCode.INTERNAL_ERROR: "Internal audio error",
    ErrorCode.IN_CALL_RECORD_ERROR: "Cannot record while a call is in progress",
    ErrorCode.UNSUPPORTED_FORMAT: "The selected format is not supported by the recorder",
    ErrorCode.RECORD_INTERRUPTED: "Recording was interrupted",
}


class ConsoleListener(SessionListener):
    """Prints session notifications and remembers what the command loop needs."""

    def __init__(self) -> None:
        self.errors: List[ErrorCode] = []
        self.max_duration_reached = False
        self._last_state = State.IDLE

    def on_state_changed(self, state: State) -> None:
        if state == self._last_state:
            return
        self._last_state = state
        console.print(f"[info]● {State(state).name.capitalize()}[/info]")

    def on_error(self, error: ErrorCode) -> None:
        self.errors.append(error)
        message = ERROR_MESSAGES.get(error, f"Error {int(error)}")
        console.print(f"[error]✗ {message}[/error]")

    def on_info(self, what: int, extra: int) -> None:
        if what == INFO_MAX_DURATION_REACHED:
            self.max_duration_reached = True
            console.print("[warning]⏹ Maximum duration reached[/warning]")


def _configure_logging(verbose: bool) -> None:
    """Configure loguru log level based on verbose flag."""
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="WARNING")


def _recorder_backend() -> RecorderBackend:
    from soundrecorder.core.devices import PyAudioRecorder

    return PyAudioRecorder()


def _player_backend() -> PlayerBackend:
    from soundrecorder.core.devices import PyAudioPlayer

    return PyAudioPlayer()


def _build_recorder(callbacks: CallbackQueue, storage_path: Optional[str] = None) -> Recorder:
    recorder = Recorder.from_config(
        app_config,
        recorder_factory=lambda: _recorder_backend(),
        player_factory=lambda: _player_backend(),
        dispatch=callbacks.post,
    )
    if storage_path:
        recorder.set_storage_path(storage_path)
    return recorder


def _state_store() -> SessionStateStore:
    return SessionStateStore(app_config.get_state_path())


def _restore_saved_sample(recorder: Recorder, store: SessionStateStore) -> Path:
    """Load the saved sample into *recorder* or exit when there is none."""
    try:
        recorder.restore_state(store.load())
    except ValueError as e:
        console.print(f"[error]✗ Cannot read saved state: {e}[/error]")
        raise typer.Exit(1)

    if recorder.sample_file is None:
        console.print("[warning]No saved recording. Run 'soundrecorder record' first.[/warning]")
        raise typer.Exit(1)
    return recorder.sample_file


@app.command()
def record(
    duration: Optional[int] = typer.Option(
        None, help="Recording duration in seconds. Leave empty to record until Ctrl+C."
    ),
    format: str = typer.Option(
        default_format, help=f"File format: {', '.join(sorted(FORMATS))}"
    ),
    encoder: Optional[str] = typer.Option(
        None, help="Override the encoder (soundfile subtype, e.g. PCM_24, VORBIS)"
    ),
    channels: int = typer.Option(default_channels, help="Number of input channels"),
    rate: int = typer.Option(default_sampling_rate, help="Sampling rate in Hz"),
    max_duration: int = typer.Option(
        default_max_duration, help="Stop automatically after this many milliseconds (0 = no limit)"
    ),
    device_id: Optional[int] = typer.Option(
        None, help="Input device ID. Leave empty for the system default."
    ),
    output: str = typer.Option(default_storage_path, help="Directory for new recordings"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Record a new sample."""
    _configure_logging(verbose)

    try:
        output_format, default_encoder, extension = resolve_format(format)
    except ValueError as e:
        console.print(f"[error]✗ {e}[/error]")
        raise typer.Exit(1)

    callbacks = CallbackQueue()
    listener = ConsoleListener()
    recorder = _build_recorder(callbacks, output)
    recorder.set_max_duration(max_duration)
    session_log = SessionLog(app_config.get_log_path(Path(output)), forward_to=listener)
    recorder.set_listener(session_log)

    recorder.set_channels(channels)
    recorder.set_sampling_rate(rate)
    if verbose:
        recorder.start_recording(output_format, extension, device_id, encoder or default_encoder)
    else:
        with suppress_stderr():
            recorder.start_recording(output_format, extension, device_id, encoder or default_encoder)

    if recorder.state != State.RECORDING:
        raise typer.Exit(1)

    info_grid = Table.grid(padding=(0, 1))
    info_grid.add_column(style="dim", justify="right")
    info_grid.add_column()
    info_grid.add_row("File:", str(recorder.sample_file))
    info_grid.add_row("Format:", f"{output_format} / {(encoder or default_encoder).upper()}")
    info_grid.add_row("Channels:", str(channels))
    info_grid.add_row("Rate:", f"{rate} Hz")
    info_grid.add_row("Duration:", f"{duration}s" if duration else "until Ctrl+C")
    if max_duration:
        info_grid.add_row("Max duration:", format_length(max_duration))
    info_grid.add_row("Log:", str(session_log.path))
    console.print(Panel(info_grid, title="[bold]🎙 Recording[/bold]", border_style="green"))

    try:
        with make_level_progress() as progress:
            task = progress.add_task("level", total=120, db_text="-- dB", elapsed="0:00")
            while recorder.state == State.RECORDING:
                callbacks.drain()
                if listener.max_duration_reached:
                    break
                if duration and recorder.progress() >= duration:
                    break
                db_level = amplitude_to_db(recorder.get_max_amplitude())
                progress.update(
                    task,
                    completed=db_level,
                    db_text=f"{db_level:.1f} dB",
                    elapsed=format_length(recorder.progress() * 1000),
                )
                time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        console.print("[warning]⏹ Recording stopped by user[/warning]")
    finally:
        recorder.stop()

    if recorder.sample_file is None:
        raise typer.Exit(1)

    _state_store().save(recorder.save_state())
    session_log.write_sample(recorder.sample_file, recorder.sample_length_millis)
    console.print(
        f"[success]✓ Saved {recorder.sample_file} "
        f"({format_length(recorder.sample_length_millis)})[/success]"
    )
    if listener.errors:
        raise typer.Exit(1)


@app.command()
def play(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """Play back the last recorded sample."""
    _configure_logging(verbose)

    callbacks = CallbackQueue()
    listener = ConsoleListener()
    recorder = _build_recorder(callbacks)
    recorder.set_listener(listener)
    sample_file = _restore_saved_sample(recorder, _state_store())

    console.print(
        f"[info]▶ {sample_file} ({format_length(recorder.sample_length_millis)})[/info]"
    )
    if verbose:
        recorder.start_playback()
    else:
        with suppress_stderr():
            recorder.start_playback()

    try:
        while recorder.state == State.PLAYING:
            callbacks.drain()
            time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        console.print("[warning]⏹ Playback stopped by user[/warning]")
    finally:
        recorder.stop()

    if listener.errors:
        raise typer.Exit(1)


@app.command()
def delete():
    """Delete the last recorded sample from storage."""
    recorder = _build_recorder(CallbackQueue())
    store = _state_store()
    sample_file = _restore_saved_sample(recorder, store)

    recorder.delete()
    store.clear()
    console.print(f"[success]✓ Deleted {sample_file}[/success]")


@app.command()
def clear():
    """Forget the last recorded sample but keep the file."""
    recorder = _build_recorder(CallbackQueue())
    store = _state_store()
    sample_file = _restore_saved_sample(recorder, store)

    recorder.clear()
    store.clear()
    console.print(f"[success]✓ Kept {sample_file}; it is no longer the current sample[/success]")


@app.command()
def status():
    """Show the current sample and storage locations."""
    store = _state_store()
    try:
        saved = store.load()
    except ValueError as e:
        console.print(f"[error]✗ Cannot read saved state: {e}[/error]")
        raise typer.Exit(1)

    info_grid = Table.grid(padding=(0, 1))
    info_grid.add_column(style="dim", justify="right")
    info_grid.add_column()

    sample_path = saved.get("sample_path")
    if sample_path:
        exists = Path(sample_path).exists()
        info_grid.add_row("Sample:", sample_path if exists else f"{sample_path} [warning](missing)[/warning]")
        info_grid.add_row("Length:", format_length(int(saved.get("sample_length") or 0)))
    else:
        info_grid.add_row("Sample:", "[dim]none[/dim]")
    info_grid.add_row("Storage:", str(app_config.get_storage_path()))
    info_grid.add_row("Fallback:", str(app_config.get("fallback_storage_path")))
    info_grid.add_row("State file:", str(store.path))
    info_grid.add_row("Log:", str(app_config.get_log_path()))
    console.print(Panel(info_grid, title="[bold]📋 SoundRecorder Status[/bold]"))


@app.command()
def list_recordings(
    output: str = typer.Option(default_storage_path, help="Directory holding recordings"),
):
    """List recordings in the storage directory."""
    extensions = tuple(ext for _, _, ext in FORMATS.values())
    recordings = StorageManager(output).list_recordings(extensions)
    if not recordings:
        console.print(f"[dim]No recordings in {output}[/dim]")
        return
    console.print(Panel(make_recordings_table(recordings), title=f"[bold]Recordings in {output}[/bold]"))


@app.command()
def list_devices(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """List all available input audio devices."""
    _configure_logging(verbose)
    from soundrecorder.core.devices import list_input_devices

    try:
        if verbose:
            devices = list_input_devices()
        else:
            with suppress_stderr():
                devices = list_input_devices()
    except OSError as e:
        console.print(f"[error]✗ Error listing devices: {e}[/error]")
        raise typer.Exit(1)

    console.print(Panel(make_device_table(devices), title="[bold]Available Input Devices[/bold]"))
