"""Local JSONL session log for SoundRecorder.

:class:`SessionLog` is a :class:`~soundrecorder.core.session.SessionListener`
that appends one JSON Lines record per notification to a log file next to the
samples.  It can wrap another listener so that the host still receives every
notification.

Record types
------------
``state``
    Written on every state notification, with the state name.

``error``
    Written on every error notification, with the error code name.

``info``
    Written on every info notification, with the raw ``what``/``extra``.

``sample``
    Written by the host via :meth:`SessionLog.write_sample` once a sample is
    finished, with its path and length.

Example log lines::

    {"type":"state","state":"RECORDING","at":"2026-10-17T14:30:22"}
    {"type":"info","what":800,"extra":0,"at":"2026-10-17T14:40:22"}
    {"type":"state","state":"IDLE","at":"2026-10-17T14:40:22"}
    {"type":"sample","path":"recordings/recording-2026-10-17_14_30_22.wav","length_ms":600000,"at":"2026-10-17T14:40:22"}
    {"type":"error","error":"UNSUPPORTED_FORMAT","code":4,"at":"2026-10-17T14:41:03"}
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from .session import ErrorCode, SessionListener, State


class SessionLog(SessionListener):
    """Appends JSONL records for session notifications.

    Writes are serialised with a :class:`threading.Lock`.

    Args:
        log_path: Path to the ``.jsonl`` log file.  Parent directories are
            created automatically.
        forward_to: Optional listener that receives every notification after
            it has been logged.
    """

    def __init__(self, log_path: Path, forward_to: Optional[SessionListener] = None) -> None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_path = log_path
        self._forward_to = forward_to
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_path

    # ------------------------------------------------------------------
    # SessionListener
    # ------------------------------------------------------------------

    def on_state_changed(self, state: State) -> None:
        self._append({"type": "state", "state": State(state).name})
        if self._forward_to is not None:
            self._forward_to.on_state_changed(state)

    def on_error(self, error: ErrorCode) -> None:
        error = ErrorCode(error)
        self._append({"type": "error", "error": error.name, "code": int(error)})
        if self._forward_to is not None:
            self._forward_to.on_error(error)

    def on_info(self, what: int, extra: int) -> None:
        self._append({"type": "info", "what": what, "extra": extra})
        if self._forward_to is not None:
            self._forward_to.on_info(what, extra)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def write_sample(
        self,
        path: Path,
        length_ms: int,
        at: Optional[datetime] = None,
    ) -> None:
        """Append a finished-sample record.

        Args:
            path: Sample file path.
            length_ms: Recorded length in milliseconds.
            at: Record time.  Defaults to ``datetime.now()``.
        """
        self._append({"type": "sample", "path": str(path), "length_ms": length_ms}, at)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _append(self, record: dict, at: Optional[datetime] = None) -> None:
        """Serialise *record* as JSON and append it to the log file."""
        record["at"] = _iso(at)
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(line)


def _iso(dt: Optional[datetime]) -> str:
    """Return a compact ISO 8601 string for *dt*, defaulting to now."""
    if dt is None:
        dt = datetime.now()
    return dt.replace(microsecond=0).isoformat()
