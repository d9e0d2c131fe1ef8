"""Command-line interface for SoundRecorder."""

from .commands import app

__all__ = ["app"]
