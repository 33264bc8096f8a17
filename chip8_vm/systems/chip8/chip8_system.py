"""
CHIP-8 system: component wiring and execution lifecycle.

Chip8System connects the CPU, memory, display, keypad and timers, and drives
them from a single background thread at a fixed tick rate. The thread waits on
a stop event with the tick interval as timeout, so a stop request is observed at
the next tick boundary without busy-waiting.

Lifecycle::

    IDLE --start()--> RUNNING --stop()--> STOPPING --(loop exits)--> IDLE
    RUNNING --(step raises)--> FAULTED --reset()--> IDLE

A fault is never retried. The failing exception is kept on ``error`` and the
machine refuses to start again until it has been reset.
"""

import logging
import threading
from enum import Enum, auto
from typing import Dict, Any, Optional

from ...common.interfaces import System, Renderer
from ...common.errors import RomLoadError, RendererError
from ...constants import DEFAULT_CLOCK_HZ
from ...utils.error_handler import error_handler, ErrorCategory, performance_log
from ...utils.event_manager import EventManager, EventType
from .memory import Chip8Memory
from .display import Chip8Display
from .keypad import Keypad
from .timers import TimerPair
from .cpu import Chip8CPU

logger = logging.getLogger("Chip8VM.System")

class LifecycleState(Enum):
    """Execution lifecycle states."""
    IDLE = auto()
    RUNNING = auto()
    STOPPING = auto()
    FAULTED = auto()

class Chip8System(System):
    """
    A complete CHIP-8 virtual machine.

    Thread safety: ``start``, ``stop``, ``reset``, ``press_key`` and
    ``release_key`` may be called from any thread. All other machine state is
    only mutated by the execution thread while running; ``step`` may be called
    directly only while the machine is not running.
    """

    def __init__(self, renderer: Renderer, config: Optional[Dict[str, Any]] = None,
                 event_manager: Optional[EventManager] = None):
        """
        Initialize the system.

        Args:
            renderer: Presentation capability for frames and beeps
            config: System configuration ('clock_hz', 'cpu')
            event_manager: Event bus to publish on (a private one if None)
        """
        self.config = config or {}
        self.renderer = renderer

        self.clock_hz = self.config.get("clock_hz", DEFAULT_CLOCK_HZ)
        if self.clock_hz <= 0:
            raise ValueError(f"clock_hz must be positive, got {self.clock_hz}")
        self.tick_interval = 1.0 / self.clock_hz

        # Components
        self.memory = Chip8Memory(self.config)
        self.display = Chip8Display()
        self.keypad = Keypad()
        self.timers = TimerPair()
        self.cpu = Chip8CPU(self.memory, self.display, self.keypad, self.timers,
                            renderer, self.config.get("cpu"))

        self.events = event_manager or EventManager()
        self.state_recorder = None

        # Lifecycle
        self.state = LifecycleState.IDLE
        self.error: Optional[BaseException] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        logger.info(f"CHIP-8 system initialized at {self.clock_hz} Hz")

    @property
    def is_running(self) -> bool:
        return self.state in (LifecycleState.RUNNING, LifecycleState.STOPPING)

    @property
    def step_count(self) -> int:
        return self.cpu.step_count

    def register_state_recorder(self, recorder) -> None:
        """Record a snapshot after every executed step."""
        self.state_recorder = recorder

    def load_rom(self, rom_data: bytes) -> None:
        """
        Load program bytes at 0x200.

        Raises:
            RomLoadError: If the program is larger than 3584 bytes
        """
        self.memory.load_rom(bytes(rom_data))
        self.events.create_event(EventType.ROM_LOADED, "system", {"size": len(rom_data)})

    def load_rom_file(self, rom_path: str) -> None:
        """
        Read a ROM file and load it.

        Raises:
            RomLoadError: If the file cannot be read or is too large
        """
        try:
            with open(rom_path, 'rb') as f:
                rom_data = f.read()
        except OSError as e:
            raise RomLoadError(f"unable to read rom file {rom_path}: {e}") from e

        self.load_rom(rom_data)
        logger.info(f"Loaded ROM: {rom_path}")

    def start(self) -> None:
        """Start executing in a background thread. No-op if already running."""
        with self._lock:
            state = self.state
            if state == LifecycleState.IDLE:
                self._stop_event.clear()
                self._thread = threading.Thread(target=self._run, name="chip8-vm", daemon=True)
                self.state = LifecycleState.RUNNING
                self._thread.start()

        if state == LifecycleState.FAULTED:
            error_handler.log_warning("Cannot start a faulted system; reset it first",
                                      category=ErrorCategory.LIFECYCLE,
                                      context={"error": str(self.error)})
            return
        if state != LifecycleState.IDLE:
            return

        logger.info("CHIP-8 system started")
        self.events.create_event(EventType.SYSTEM_START, "system")

    def stop(self) -> None:
        """
        Stop executing and wait for the execution thread to exit.

        No-op if the system is idle. When called from the execution thread
        itself the stop is only requested; the loop exits after the current
        step returns.
        """
        with self._lock:
            if self.state == LifecycleState.IDLE:
                return

            was_running = self.state == LifecycleState.RUNNING
            if was_running:
                self.state = LifecycleState.STOPPING
            self._stop_event.set()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join()

        if was_running:
            logger.info("CHIP-8 system stopped")
            self.events.create_event(EventType.SYSTEM_STOP, "system", {"steps": self.cpu.step_count})

    def reset(self) -> None:
        """
        Stop the system and restore its power-on state.

        Memory is zeroed and the font reloaded, so any loaded program is gone.
        Registers, stack, timers, keys, display and any recorded fault are
        cleared, and the cleared display is rendered.
        """
        if self._thread is not None and self._thread is threading.current_thread():
            raise RuntimeError("reset() cannot be called from the execution thread")

        self.stop()

        with self._lock:
            self.memory.reset()
            self.cpu.reset()
            self.display.clear()
            self.timers.reset()
            self.keypad.reset()
            self.error = None
            self._thread = None
            self._stop_event.clear()
            self.state = LifecycleState.IDLE

        self.cpu.render_display()

        logger.info("CHIP-8 system reset")
        self.events.create_event(EventType.SYSTEM_RESET, "system")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the execution thread exits.

        Returns:
            True if the thread is no longer running
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def raise_if_faulted(self) -> None:
        """Re-raise the error that halted the execution loop, if any."""
        if self.error is not None:
            raise self.error

    def _run(self) -> None:
        """Execution loop; runs on the background thread."""
        try:
            while not self._stop_event.wait(self.tick_interval):
                self.step()
        except Exception as e:
            self._fault(e)
        finally:
            with self._lock:
                if self.state in (LifecycleState.RUNNING, LifecycleState.STOPPING):
                    self.state = LifecycleState.IDLE

    def _fault(self, exception: BaseException) -> None:
        with self._lock:
            self.error = exception
            self.state = LifecycleState.FAULTED

        error_handler.log_exception(
            exception,
            message=f"CHIP-8 system halted: {exception}",
            context={
                "pc": self.cpu.PC,
                "step": self.cpu.step_count,
                "opcode": getattr(exception, "opcode", None)
            }
        )
        self.events.create_event(EventType.SYSTEM_FAULT, "system", {"error": exception})

    @performance_log(threshold_ms=50)
    def step(self) -> None:
        """
        Run one execution step.

        Fetches and executes one instruction, then counts the delay timer
        down and, while the sound timer is nonzero, beeps and counts it down.
        The first error raised aborts the rest of the step.
        """
        if self.is_running and threading.current_thread() is not self._thread:
            raise RuntimeError("step() cannot be called while the system is running")

        frames_before = self.cpu.frames_rendered
        op = self.cpu.step()

        if self.cpu.frames_rendered != frames_before:
            self.events.create_event(EventType.VIDEO_FRAME, "display",
                                     {"frame": self.cpu.frames_rendered, "step": self.cpu.step_count})

        self.timers.tick_delay()

        if self.timers.beep_pending():
            self._beep()
            self.timers.tick_sound()

        if self.state_recorder is not None:
            self.state_recorder.record_state({
                "step": self.cpu.step_count,
                "opcode": int(op),
                "registers": self.cpu.get_state()
            })

    def _beep(self) -> None:
        try:
            self.renderer.beep()
        except Exception as e:
            raise RendererError(f"renderer failed to beep: {e}") from e

        self.events.create_event(EventType.AUDIO_BEEP, "timers", {"sound_timer": self.timers.sound})

    def press_key(self, index: int) -> None:
        """Press a key; indices outside 0-15 are ignored."""
        self.keypad.press(index)

    def release_key(self, index: int) -> None:
        """Release a key; indices outside 0-15 are ignored."""
        self.keypad.release(index)

    def get_system_state(self) -> dict:
        """Get the current state of the entire system."""
        return {
            "lifecycle": self.state.name,
            "step_count": self.cpu.step_count,
            "frames_rendered": self.cpu.frames_rendered,
            "cpu_state": self.cpu.get_state(),
            "stack": self.cpu.stack.get_state()["frames"],
            "keys": self.keypad.get_state(),
            "display_state": self.display.get_state(),
            "waiting_for_key": self.cpu.waiting_for_key,
            "error": str(self.error) if self.error else None
        }
