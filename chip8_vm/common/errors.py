"""
Exception types raised by the CHIP-8 virtual machine.

Load errors are reported to the caller of ``load_rom`` and leave the machine
untouched. Every other error is raised from inside a step and is fatal to the
current run.
"""

import typing as t


class Chip8Error(Exception):
    """Base class for all virtual machine errors."""
    pass


class RomLoadError(Chip8Error, ValueError):
    """ROM data does not fit in program memory or cannot be read."""
    pass


class ExecutionError(Chip8Error):
    """
    An error raised while executing a step.

    The CPU annotates these with the opcode being executed and the address it
    was fetched from once they leave the execute stage.
    """

    def __init__(self, message: str, opcode: t.Optional[int] = None, pc: t.Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.opcode = opcode
        self.pc = pc

    def __str__(self) -> str:
        details = []
        if self.opcode is not None:
            details.append(f"opcode=0x{self.opcode:04X}")
        if self.pc is not None:
            details.append(f"pc=0x{self.pc:03X}")
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class MemoryAccessError(ExecutionError, IndexError):
    """An address outside of memory was read or written."""
    pass


class UnknownOpcodeError(ExecutionError):
    """The fetched instruction matches no known pattern."""
    pass


class UnsupportedOpcodeError(ExecutionError):
    """A known instruction that has been disabled by configuration."""
    pass


class StackOverflowError(ExecutionError):
    """A subroutine call was made with the call stack already full."""
    pass


class StackUnderflowError(ExecutionError):
    """A return was executed with an empty call stack."""
    pass


class InvalidKeyError(ExecutionError):
    """A key instruction referenced a key index that does not exist."""
    pass


class RendererError(ExecutionError):
    """The renderer failed to render a frame or to beep."""
    pass
