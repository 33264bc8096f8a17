"""
Renderer implementations for headless and terminal use.

GUI frontends should not draw from the execution thread; they pair a
FrameBufferRenderer with a main-thread loop that polls ``latest_frame``.
"""

import logging
import sys
import threading
from typing import Optional, TextIO, Tuple

import numpy as np

from .interfaces import Renderer

logger = logging.getLogger("Chip8VM.Renderer")

class NullRenderer(Renderer):
    """Discards frames; counts frames and beeps."""

    def __init__(self):
        self.frame_count = 0
        self.beep_count = 0

    def render(self, display: np.ndarray) -> None:
        self.frame_count += 1

    def beep(self) -> None:
        self.beep_count += 1

class FrameBufferRenderer(Renderer):
    """
    Thread-safe store of the most recent frame.

    The execution thread writes through ``render``/``beep``; any other thread
    reads with ``latest_frame`` and ``consume_beeps``.
    """

    def __init__(self, width: int = 64, height: int = 32):
        self._lock = threading.Lock()
        self._frame = np.zeros((height, width), dtype=np.uint8)
        self.frame_count = 0
        self.beep_count = 0
        self._pending_beeps = 0

    def render(self, display: np.ndarray) -> None:
        with self._lock:
            self._frame = np.array(display, dtype=np.uint8, copy=True)
            self.frame_count += 1

    def beep(self) -> None:
        with self._lock:
            self.beep_count += 1
            self._pending_beeps += 1

    def latest_frame(self) -> Tuple[np.ndarray, int]:
        """Return a copy of the latest frame and its sequence number."""
        with self._lock:
            return self._frame.copy(), self.frame_count

    def consume_beeps(self) -> int:
        """Return and reset the number of beeps since the last call."""
        with self._lock:
            pending, self._pending_beeps = self._pending_beeps, 0
            return pending

class TerminalRenderer(Renderer):
    """
    Writes each frame to a text stream.

    Frames are preceded by an ANSI home-cursor sequence when ``ansi`` is set so
    that a terminal redraws in place.
    """

    def __init__(self, stream: Optional[TextIO] = None, on_char: str = "#",
                 off_char: str = ".", ansi: bool = True):
        self.stream = stream or sys.stdout
        self.on_char = on_char
        self.off_char = off_char
        self.ansi = ansi

    def format_frame(self, display: np.ndarray) -> str:
        return "\n".join(
            "".join(self.on_char if pixel else self.off_char for pixel in row)
            for row in display
        )

    def render(self, display: np.ndarray) -> None:
        text = self.format_frame(display)
        if self.ansi:
            text = "\x1b[H" + text
        self.stream.write(text + "\n")
        self.stream.flush()

    def beep(self) -> None:
        self.stream.write("\a")
        self.stream.flush()
