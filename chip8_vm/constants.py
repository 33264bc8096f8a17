"""
Global constants for the CHIP-8 virtual machine.
"""

# Memory layout
MEMORY_SIZE = 4096
MEMORY_OFFSET = 512  # Programs are loaded after the interpreter area
MAX_ROM_SIZE = MEMORY_SIZE - MEMORY_OFFSET

# CPU
NUM_REGISTERS = 16
NUM_FRAMES = 16  # Call stack depth
FLAG_REGISTER = 0xF

# Input
NUM_KEYS = 16

# Display
DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8

# Timing
DEFAULT_CLOCK_HZ = 60

# Font (glyphs 0-F, 5 bytes each, stored from address 0)
FONT_GLYPH_SIZE = 5
FONT = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


# Default host keyboard layout (1234/QWER/ASDF/ZXCV)
DEFAULT_KEYMAP = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}

# Frontend options
DISPLAY_BACKENDS = ['terminal', 'matplotlib', 'none']
TRACE_FORMATS = ['json', 'csv', 'pickle']
LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# ROM file extensions recognised by the CLI
ROM_EXTENSIONS = ['.ch8', '.c8', '.rom', '.bin']
