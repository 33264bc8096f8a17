"""
CHIP-8 emulation components.
"""
# Import main classes for external use
from .cpu import Chip8CPU
from .memory import Chip8Memory
from .display import Chip8Display
from .keypad import Keypad
from .timers import TimerPair
from .chip8_system import Chip8System, LifecycleState
