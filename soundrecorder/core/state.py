"""JSON file store for the session's saved state.

The blob written by :meth:`Recorder.save_state` has two keys, the sample
file path and its length in milliseconds::

    {"sample_path": "recordings/recording-2026-10-17_14_30_22.wav", "sample_length": 3000}
"""

import json
from pathlib import Path
from typing import Any, Dict

from loguru import logger


class SessionStateStore:
    """Reads and writes one saved-state blob.

    Args:
        state_path: Path to the JSON file.  Parent directories are created
            on save.
    """

    def __init__(self, state_path: Path) -> None:
        self._state_path = Path(state_path)

    @property
    def path(self) -> Path:
        return self._state_path

    def load(self) -> Dict[str, Any]:
        """Return the stored blob, or an empty mapping if nothing was saved."""
        if not self._state_path.exists():
            return {}

        content = json.loads(self._state_path.read_text(encoding="utf-8"))
        if not isinstance(content, dict):
            raise ValueError(f"Saved state in {self._state_path} must be a JSON object")
        return content

    def save(self, state: Dict[str, Any]) -> None:
        """Replace the stored blob with *state*."""
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        self._state_path.write_text(json.dumps(state, ensure_ascii=False), encoding="utf-8")
        logger.debug(f"Saved session state to {self._state_path}")

    def clear(self) -> None:
        """Remove the stored blob."""
        self._state_path.unlink(missing_ok=True)
