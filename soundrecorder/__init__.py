"""SoundRecorder - single-session audio recording and playback.

This package provides a session controller that records to and plays back one
sample file at a time, plus a small CLI that drives it.
"""

from .cli.commands import app

__version__ = "1.0.0"

__all__ = ["app", "__version__"]
