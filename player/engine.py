"""
Core playback engine using python-mpv.
Implements AudioOutput for the terminal player: loads raw-content URLs,
reports duration, progress, end-of-track and load errors through callbacks.
"""

import logging
import time
from typing import Callable, List, Optional

import mpv

from shared.constants import TIME_UPDATE_INTERVAL
from player.controller import AudioOutput

logger = logging.getLogger(__name__)


class PlaybackEngine(AudioOutput):
    """Wrapper around MPV for audio-only streaming."""

    def __init__(self):
        # vo='null' because we are audio-only
        self.player = mpv.MPV(vo='null', video=False, ytdl=False)

        # Callbacks
        self._track_end_callbacks: List[Callable[[], None]] = []
        self._on_time_update: Optional[Callable[[float], None]] = None
        self._on_metadata: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[str], None]] = None

        # State
        self._url: Optional[str] = None
        self._source_loaded = False
        self._metadata_reported = False
        self._last_time_update = 0.0

        # Bind events
        self.player.observe_property('time-pos', self._handle_time_update)
        self.player.observe_property('duration', self._handle_duration)
        self.player.observe_property('idle-active', self._handle_idle)

    def load(self, url: str, mime_type: str) -> None:
        """Replace the current source, paused until play() is called."""
        self._url = url
        self._metadata_reported = False
        self._source_loaded = True
        self.player.pause = True
        self.player.play(url)

    def play(self) -> None:
        self.player.pause = False

    def pause(self) -> None:
        self.player.pause = True

    def seek(self, position: float) -> None:
        """Seek to absolute position in seconds, reopening a finished file if needed."""
        if self.player.idle_active and self._url:
            self._source_loaded = True
            self._metadata_reported = False
            self.player.loadfile(self._url, "replace", start=str(position))
            return
        self.player.seek(position, reference="absolute")

    def set_volume(self, level: float) -> None:
        """Set volume from a 0-1 fraction (mpv uses 0-100)."""
        self.player.volume = max(0.0, min(1.0, level)) * 100

    @property
    def duration(self) -> Optional[float]:
        return self.player.duration

    @property
    def position(self) -> float:
        return self.player.time_pos or 0.0

    def terminate(self) -> None:
        self.player.terminate()

    # Event handlers
    def _handle_time_update(self, name, value):
        """Throttle time updates to TIME_UPDATE_INTERVAL."""
        if value is None or not self._on_time_update:
            return
        now = time.time()
        if now - self._last_time_update >= TIME_UPDATE_INTERVAL:
            self._last_time_update = now
            self._on_time_update(value)

    def _handle_duration(self, name, value):
        if value is not None and not self._metadata_reported:
            self._metadata_reported = True
            if self._on_metadata:
                self._on_metadata()

    def _handle_idle(self, name, value):
        """
        mpv goes idle once a file is finished or could not be opened.
        Without metadata the file never started, so that is a load error.
        """
        if not value or not self._source_loaded:
            return
        self._source_loaded = False
        if self._metadata_reported:
            self._trigger_track_end()
        else:
            logger.error("mpv went idle before the file could be opened")
            if self._on_error:
                self._on_error("could not open audio source")

    def _trigger_track_end(self):
        """Execute all registered track end callbacks safely."""
        for callback in self._track_end_callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Track end callback {callback} failed: {e}")

    # Callback setters
    def add_track_end_callback(self, callback: Callable[[], None]):
        """Register a callback for when a track ends."""
        if callback not in self._track_end_callbacks:
            self._track_end_callbacks.append(callback)

    def set_time_update_callback(self, callback: Callable[[float], None]):
        self._on_time_update = callback

    def set_metadata_callback(self, callback: Callable[[], None]):
        self._on_metadata = callback

    def set_error_callback(self, callback: Callable[[str], None]):
        self._on_error = callback
