"""
Persisted player selection (album/track index of the last loaded track).
Only the selection is stored, never the playback position or play state.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from shared.constants import DEFAULT_CONFIG_DIR, SELECTION_STORAGE_KEY

logger = logging.getLogger(__name__)

Selection = Tuple[int, int]


def _config_dir() -> Path:
    return Path(DEFAULT_CONFIG_DIR).expanduser()


def default_state_path() -> Path:
    return _config_dir() / f"{SELECTION_STORAGE_KEY}.json"


def _parse_selection(data) -> Optional[Selection]:
    if not isinstance(data, dict):
        return None
    album_index = data.get("albumIndex")
    track_index = data.get("trackIndex")
    for value in (album_index, track_index):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return None
    return album_index, track_index


class SelectionStore(ABC):
    """Where the controller remembers the last loaded (album, track) pair."""

    @abstractmethod
    def save(self, album_index: int, track_index: int) -> None:
        pass

    @abstractmethod
    def load(self) -> Optional[Selection]:
        """Return the saved pair, or None if nothing usable is stored."""
        pass


class MemorySelectionStore(SelectionStore):
    def __init__(self, selection: Optional[Selection] = None):
        self._selection = selection

    def save(self, album_index: int, track_index: int) -> None:
        self._selection = (album_index, track_index)

    def load(self) -> Optional[Selection]:
        return self._selection


class JsonSelectionStore(SelectionStore):
    """Stores {"albumIndex", "trackIndex"} in a small JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_state_path()
        self._lock = threading.Lock()

    def save(self, album_index: int, track_index: int) -> None:
        state = {"albumIndex": album_index, "trackIndex": track_index}
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps(state), encoding="utf-8")
            except OSError as e:
                logger.warning(f"Could not persist selection to {self.path}: {e}")

    def load(self) -> Optional[Selection]:
        with self._lock:
            if not self.path.exists():
                return None
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.info(f"Ignoring unreadable selection file {self.path}: {e}")
                return None
        return _parse_selection(data)
