"""CLI utilities for SoundRecorder.

This module provides common CLI utilities like Rich console output, tables
and the level meter.
"""

import datetime
import os
from contextlib import contextmanager
from typing import Any, Dict, List

from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table
from rich.theme import Theme
from rich.console import Console

# Create themed console for consistent output
_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)

console = Console(theme=_theme)


def format_length(length_ms: int) -> str:
    """Format a length in milliseconds as ``M:SS``."""
    minutes, seconds = divmod(max(0, length_ms) // 1000, 60)
    return f"{minutes}:{seconds:02}"


def make_device_table(devices: List[Dict[str, Any]]) -> Table:
    """Build a Rich Table from the device list returned by list_input_devices().

    Args:
        devices: List of dicts with keys: id, name, driver, channels, rate, is_default

    Returns:
        Configured Rich Table ready to print.
    """
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("ID", style="cyan", width=4, justify="right")
    table.add_column("Name", min_width=30)
    table.add_column("Driver", style="dim", width=8)
    table.add_column("Ch", justify="right", style="dim", width=4)
    table.add_column("Rate", justify="right", style="dim", width=12)
    table.add_column("", width=9)

    for d in devices:
        default_mark = "[bold green]DEFAULT[/bold green]" if d.get("is_default") else ""
        table.add_row(
            str(d["id"]),
            d["name"],
            d.get("driver", "").upper(),
            str(d.get("channels", "")),
            f"{d.get('rate', '')} Hz",
            default_mark,
        )
    return table


def make_recordings_table(recordings: List[Dict[str, Any]]) -> Table:
    """Build a Rich Table from StorageManager.list_recordings() output."""
    table = Table(show_header=True, header_style="bold", show_lines=False, expand=False)
    table.add_column("Name", min_width=30)
    table.add_column("Size", justify="right", style="dim")
    table.add_column("Modified", style="dim")

    for r in recordings:
        modified = datetime.datetime.fromtimestamp(r["modified"]).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(r["name"], f"{r['size'] / 1024:.1f} KiB", modified)
    return table


def make_level_progress() -> Progress:
    """Create a Rich Progress instance repurposed as a real-time dB level meter.

    Usage::

        with make_level_progress() as progress:
            task = progress.add_task("level", total=120, db_text="-- dB", elapsed="0:00")
            while recorder.state == State.RECORDING:
                db_level = amplitude_to_db(recorder.get_max_amplitude())
                progress.update(
                    task,
                    completed=db_level,
                    db_text=f"{db_level:.1f} dB",
                    elapsed=format_length(recorder.progress() * 1000),
                )
                time.sleep(0.1)

    Returns:
        Configured Rich Progress instance (0–120 dB scale).
    """
    return Progress(
        TextColumn("🎙 {task.fields[elapsed]}"),
        BarColumn(
            bar_width=50,
            complete_style="green",
            finished_style="green",
            pulse_style="yellow",
        ),
        TextColumn("[bold]{task.fields[db_text]}[/bold]"),
        console=console,
        transient=False,
        expand=False,
    )


@contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output from libraries like ALSA, JACK.

    Used to hide debug/warning messages from audio subsystems that pollute
    terminal output.
    """
    # Save original stderr file descriptor
    original_stderr_fd = os.dup(2)
    try:
        # Open /dev/null and redirect stderr to it
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
        yield
    finally:
        # Restore original stderr
        os.dup2(original_stderr_fd, 2)
        os.close(original_stderr_fd)


__all__ = [
    "console",
    "format_length",
    "suppress_stderr",
    "make_device_table",
    "make_recordings_table",
    "make_level_progress",
]
