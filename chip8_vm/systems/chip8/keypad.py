"""
CHIP-8 hexadecimal keypad.

Key state is written by the host's input thread and read by the execution
thread, so all access goes through a single lock. Press events are also queued
so that the wait-for-key instruction sees presses that happened between ticks.
"""

import logging
import threading
from collections import deque
from typing import List, Optional

from ...constants import NUM_KEYS

logger = logging.getLogger("Chip8VM.Keypad")

class Keypad:
    """Sixteen boolean key states plus a queue of press events."""

    def __init__(self, num_keys: int = NUM_KEYS):
        self.num_keys = num_keys
        self._keys = [False] * num_keys
        self._presses = deque(maxlen=num_keys)
        self._lock = threading.Lock()

    def _valid(self, index: int) -> bool:
        return 0 <= index < self.num_keys

    def press(self, index: int) -> None:
        """Mark a key as pressed. Unknown indices are ignored."""
        if not self._valid(index):
            logger.debug(f"Ignoring press of unknown key {index}")
            return

        with self._lock:
            self._keys[index] = True
            self._presses.append(index)

    def release(self, index: int) -> None:
        """Mark a key as released. Unknown indices are ignored."""
        if not self._valid(index):
            logger.debug(f"Ignoring release of unknown key {index}")
            return

        with self._lock:
            self._keys[index] = False

    def is_pressed(self, index: int) -> bool:
        """
        Return whether a key is held down.

        Raises:
            IndexError: If the index is not a key on the pad
        """
        if not self._valid(index):
            raise IndexError(f"key index {index} out of range")

        with self._lock:
            return self._keys[index]

    def clear_presses(self) -> None:
        """Forget press events recorded so far."""
        with self._lock:
            self._presses.clear()

    def pop_press(self) -> Optional[int]:
        """Take the oldest recorded press event, if any."""
        with self._lock:
            if self._presses:
                return self._presses.popleft()
            return None

    def reset(self) -> None:
        with self._lock:
            self._keys = [False] * self.num_keys
            self._presses.clear()

    def get_state(self) -> List[bool]:
        with self._lock:
            return list(self._keys)
