# common/interfaces.py
from abc import ABC, abstractmethod
import typing as t

import numpy as np

class CPU(ABC):
    @abstractmethod
    def reset(self) -> None:
        """Reset the CPU to initial state."""
        pass

    @abstractmethod
    def step(self) -> int:
        """Execute one instruction and return the opcode executed."""
        pass

    @abstractmethod
    def get_state(self) -> dict:
        """Return the current CPU state as a dictionary."""
        pass

class Memory(ABC):
    @abstractmethod
    def read(self, address: int) -> int:
        """Read a byte from the specified address."""
        pass

    @abstractmethod
    def write(self, address: int, value: int) -> None:
        """Write a byte to the specified address."""
        pass

    @abstractmethod
    def load_rom(self, rom_data: bytes) -> None:
        """Load ROM data into memory."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Restore memory to its power-on contents."""
        pass

class Renderer(ABC):
    """
    Presentation capability supplied by the host application.

    Both methods are called synchronously from the execution thread. An
    exception raised by either one fails the step that triggered it.
    """

    @abstractmethod
    def render(self, display: np.ndarray) -> None:
        """Present a (height, width) array of 0/1 pixels."""
        pass

    @abstractmethod
    def beep(self) -> None:
        """Signal that an audible cue should occur now."""
        pass

class System(ABC):
    @abstractmethod
    def __init__(self, renderer: Renderer, config: t.Optional[dict] = None):
        """Initialize the system with a renderer and configuration."""
        pass

    @abstractmethod
    def load_rom(self, rom_data: bytes) -> None:
        """Load ROM bytes."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Begin executing in the background."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop executing and wait for the background loop to exit."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Reset the system."""
        pass

    @abstractmethod
    def step(self) -> None:
        """Run one execution step."""
        pass

    @abstractmethod
    def get_system_state(self) -> dict:
        """Get complete system state."""
        pass
