"""
CHIP-8 memory bank.

The CHIP-8 has a flat 4KB address space:
- 0x000-0x04F: built-in hexadecimal font (16 glyphs, 5 bytes each)
- 0x050-0x1FF: reserved for the interpreter
- 0x200-0xFFF: program (ROM) region

Every access is bounds-checked; addresses outside the 4KB space raise
MemoryAccessError instead of wrapping.
"""

import logging
from typing import Dict, Any, Optional

from ...common.interfaces import Memory
from ...common.errors import MemoryAccessError, RomLoadError
from ...constants import MEMORY_SIZE, MEMORY_OFFSET, MAX_ROM_SIZE, FONT, FONT_GLYPH_SIZE

logger = logging.getLogger("Chip8VM.Memory")

class Chip8Memory(Memory):
    """
    Emulates the CHIP-8 memory bank.

    Holds the font table, the interpreter reserved area and the loaded
    program in a single bytearray.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the memory bank.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}
        self.ram = bytearray(MEMORY_SIZE)
        self.rom_size = 0
        self._load_font()

        logger.debug("CHIP-8 memory initialized")

    def _load_font(self) -> None:
        self.ram[0:len(FONT)] = FONT

    @staticmethod
    def font_address(glyph: int) -> int:
        """Address of the font glyph for a hexadecimal digit."""
        return glyph * FONT_GLYPH_SIZE

    def _check_range(self, address: int, length: int = 1) -> None:
        if address < 0 or length < 0 or address + length > MEMORY_SIZE:
            if length <= 1:
                raise MemoryAccessError(f"address 0x{address:X} out of bounds")
            raise MemoryAccessError(
                f"range 0x{address:X}-0x{address + length - 1:X} out of bounds")

    def read(self, address: int) -> int:
        """
        Read a byte from the specified address.

        Args:
            address: Memory address

        Returns:
            Byte value
        """
        self._check_range(address)
        return self.ram[address]

    def write(self, address: int, value: int) -> None:
        """
        Write a byte to the specified address.

        Args:
            address: Memory address
            value: Byte value (masked to 8 bits)
        """
        self._check_range(address)
        self.ram[address] = value & 0xFF

    def read_block(self, address: int, length: int) -> bytes:
        """Read ``length`` consecutive bytes starting at ``address``."""
        self._check_range(address, length)
        return bytes(self.ram[address:address + length])

    def write_block(self, address: int, data: bytes) -> None:
        """Write ``data`` starting at ``address``."""
        self._check_range(address, len(data))
        self.ram[address:address + len(data)] = data

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word."""
        self._check_range(address, 2)
        return (self.ram[address] << 8) | self.ram[address + 1]

    def load_rom(self, rom_data: bytes) -> None:
        """
        Copy a program into the ROM region starting at 0x200.

        Args:
            rom_data: Raw program bytes

        Raises:
            RomLoadError: If the program does not fit in the ROM region
        """
        if len(rom_data) > MAX_ROM_SIZE:
            raise RomLoadError(
                f"size of rom data is too large, must be at most {MAX_ROM_SIZE} bytes "
                f"(got {len(rom_data)})")

        self.ram[MEMORY_OFFSET:MEMORY_OFFSET + len(rom_data)] = rom_data
        self.rom_size = len(rom_data)

        logger.info(f"Loaded {len(rom_data)} byte ROM at 0x{MEMORY_OFFSET:03X}")

    def reset(self) -> None:
        """Zero all memory and re-seed the font table."""
        self.ram[:] = bytes(MEMORY_SIZE)
        self.rom_size = 0
        self._load_font()

        logger.debug("CHIP-8 memory reset")
