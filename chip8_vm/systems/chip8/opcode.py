# systems/chip8/opcode.py

class Opcode(int):
    """
    A 16-bit CHIP-8 instruction word.

    Opcodes are conventionally described by their four nibbles, e.g. ``8XY4``:
    X is the high nibble of the low byte, Y the low nibble of the high byte,
    NN the low byte, NNN the low 12 bits and N the low nibble.
    """

    def __new__(cls, value: int):
        return super().__new__(cls, value & 0xFFFF)

    @property
    def family(self) -> int:
        """Top nibble, used for first-level dispatch."""
        return (self & 0xF000) >> 12

    def address(self) -> int:
        """12-bit address (NNN)."""
        return self & 0x0FFF

    def byte_constant(self) -> int:
        """Byte constant (NN)."""
        return self & 0x00FF

    def nibble_constant(self) -> int:
        """Nibble constant (N)."""
        return self & 0x000F

    def register_index(self, first: bool = True) -> int:
        """Register index X when ``first`` is True, otherwise Y."""
        if first:
            return (self & 0x0F00) >> 8
        return (self & 0x00F0) >> 4

    def __str__(self) -> str:
        return f"0x{int(self):04X}"

    def __repr__(self) -> str:
        return f"Opcode({self})"
