"""
CHIP-8 CPU emulation.

Implements the fetch-decode-execute cycle for the 35 instruction CHIP-8 set.
The CPU owns the register file (V0-VF, I, PC) and the call stack, and drives
the memory, display, keypad and timers it is connected to. Display changes are
pushed to the renderer as soon as the instruction that caused them completes.

Shift instructions (8XY6, 8XYE) take their operand from VY and write the
result to both VX and VY, matching the COSMAC VIP interpreter.
"""

import logging
from typing import Dict, Any, Optional, Callable

import numpy as np

from ...common.interfaces import CPU, Renderer
from ...common.errors import (
    ExecutionError, MemoryAccessError, UnknownOpcodeError, UnsupportedOpcodeError,
    InvalidKeyError, RendererError
)
from ...constants import MEMORY_SIZE, MEMORY_OFFSET, NUM_REGISTERS, FLAG_REGISTER
from .opcode import Opcode
from .memory import Chip8Memory
from .display import Chip8Display
from .keypad import Keypad
from .timers import TimerPair
from .stack import CallStack

logger = logging.getLogger("Chip8VM.CPU")

class Chip8CPU(CPU):
    """
    Emulates the CHIP-8 interpreter's processor.

    Registers:
        V:  16 general purpose byte registers; VF doubles as the carry,
            borrow and collision flag
        I:  16-bit address register
        PC: 16-bit program counter, starts at 0x200
    """

    def __init__(self, memory: Chip8Memory, display: Chip8Display, keypad: Keypad,
                 timers: TimerPair, renderer: Renderer, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the CPU.

        Args:
            memory: Memory bank
            display: Display buffer
            keypad: Keypad state
            timers: Delay and sound timers
            renderer: Presentation capability notified on display changes
            config: CPU configuration ('wait_for_key', 'seed')
        """
        self.memory = memory
        self.display = display
        self.keypad = keypad
        self.timers = timers
        self.renderer = renderer
        self.config = config or {}

        self.wait_for_key = self.config.get("wait_for_key", True)
        self.rng = np.random.default_rng(self.config.get("seed"))

        # Registers
        self.V = [0] * NUM_REGISTERS
        self.I = 0
        self.PC = MEMORY_OFFSET
        self.stack = CallStack()

        # Execution state
        self.step_count = 0
        self.frames_rendered = 0
        self.waiting_for_key = False
        self.last_opcode: Optional[Opcode] = None

        self._build_instruction_table()

        logger.debug("CHIP-8 CPU initialized")

    def _build_instruction_table(self) -> None:
        """Build the instruction lookup tables."""
        # Families fully identified by their top nibble
        self.instructions: Dict[int, Callable[[Opcode], None]] = {
            0x1: self._1nnn,
            0x2: self._2nnn,
            0x3: self._3xnn,
            0x4: self._4xnn,
            0x6: self._6xnn,
            0x7: self._7xnn,
            0xA: self._annn,
            0xB: self._bnnn,
            0xC: self._cxnn,
            0xD: self._dxyn,
        }

        # Families that need a second mask to pick the instruction
        self.sub_instructions: Dict[int, tuple] = {
            0x0: (0xFFFF, {
                0x00E0: self._00e0,
                0x00EE: self._00ee,
            }),
            0x5: (0xF00F, {
                0x5000: self._5xy0,
            }),
            0x8: (0xF00F, {
                0x8000: self._8xy0,
                0x8001: self._8xy1,
                0x8002: self._8xy2,
                0x8003: self._8xy3,
                0x8004: self._8xy4,
                0x8005: self._8xy5,
                0x8006: self._8xy6,
                0x8007: self._8xy7,
                0x800E: self._8xye,
            }),
            0x9: (0xF00F, {
                0x9000: self._9xy0,
            }),
            0xE: (0xF0FF, {
                0xE09E: self._ex9e,
                0xE0A1: self._exa1,
            }),
            0xF: (0xF0FF, {
                0xF007: self._fx07,
                0xF00A: self._fx0a,
                0xF015: self._fx15,
                0xF018: self._fx18,
                0xF01E: self._fx1e,
                0xF029: self._fx29,
                0xF033: self._fx33,
                0xF055: self._fx55,
                0xF065: self._fx65,
            }),
        }

    def reset(self) -> None:
        self.V = [0] * NUM_REGISTERS
        self.I = 0
        self.PC = MEMORY_OFFSET
        self.stack.reset()
        self.step_count = 0
        self.frames_rendered = 0
        self.waiting_for_key = False
        self.last_opcode = None

    def fetch(self) -> Opcode:
        """
        Read the big-endian instruction word at PC and advance PC by 2.

        Raises:
            MemoryAccessError: If PC or PC+1 lies outside memory
        """
        if self.PC + 1 >= MEMORY_SIZE:
            raise MemoryAccessError("program counter out of bounds", pc=self.PC)

        op = Opcode(self.memory.read_word(self.PC))
        self.PC += 2
        return op

    def execute(self, op: Opcode) -> None:
        """
        Dispatch an opcode to its implementation.

        Raises:
            UnknownOpcodeError: If the opcode matches no instruction
        """
        family = op.family

        if family in self.sub_instructions:
            mask, table = self.sub_instructions[family]
            handler = table.get(op & mask)
        else:
            handler = self.instructions.get(family)

        if handler is None:
            raise UnknownOpcodeError("unknown opcode")

        handler(op)

    def step(self) -> Opcode:
        """
        Fetch and execute one instruction.

        Returns:
            The opcode that was executed
        """
        pc = self.PC
        op = self.fetch()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{pc:03X}: {op}")

        try:
            self.execute(op)
        except ExecutionError as e:
            if e.opcode is None:
                e.opcode = int(op)
            if e.pc is None:
                e.pc = pc
            raise

        self.last_opcode = op
        self.step_count += 1
        return op

    def get_state(self) -> dict:
        state = {f"V{i:X}": value for i, value in enumerate(self.V)}
        state.update({
            "I": self.I,
            "PC": self.PC,
            "SP": self.stack.sp,
        })
        state.update(self.timers.get_state())
        return state

    # Helpers
    def render_display(self) -> None:
        """Push a copy of the display to the renderer."""
        try:
            self.renderer.render(self.display.get_frame_buffer())
        except Exception as e:
            raise RendererError(f"renderer failed to render display: {e}") from e
        self.frames_rendered += 1

    def _key_pressed(self, key: int) -> bool:
        try:
            return self.keypad.is_pressed(key)
        except IndexError as e:
            raise InvalidKeyError(f"key index {key} out of range") from e

    def _skip(self) -> None:
        self.PC += 2

    # Instruction implementations
    def _00e0(self, op: Opcode) -> None:
        # CLS
        self.display.clear()
        self.render_display()

    def _00ee(self, op: Opcode) -> None:
        # RET
        self.PC = self.stack.pop()

    def _1nnn(self, op: Opcode) -> None:
        # JP addr
        self.PC = op.address()

    def _2nnn(self, op: Opcode) -> None:
        # CALL addr
        self.stack.push(self.PC)
        self.PC = op.address()

    def _3xnn(self, op: Opcode) -> None:
        if self.V[op.register_index()] == op.byte_constant():
            self._skip()

    def _4xnn(self, op: Opcode) -> None:
        if self.V[op.register_index()] != op.byte_constant():
            self._skip()

    def _5xy0(self, op: Opcode) -> None:
        if self.V[op.register_index()] == self.V[op.register_index(False)]:
            self._skip()

    def _6xnn(self, op: Opcode) -> None:
        self.V[op.register_index()] = op.byte_constant()

    def _7xnn(self, op: Opcode) -> None:
        # No carry flag
        x = op.register_index()
        self.V[x] = (self.V[x] + op.byte_constant()) & 0xFF

    def _8xy0(self, op: Opcode) -> None:
        self.V[op.register_index()] = self.V[op.register_index(False)]

    def _8xy1(self, op: Opcode) -> None:
        self.V[op.register_index()] |= self.V[op.register_index(False)]

    def _8xy2(self, op: Opcode) -> None:
        self.V[op.register_index()] &= self.V[op.register_index(False)]

    def _8xy3(self, op: Opcode) -> None:
        self.V[op.register_index()] ^= self.V[op.register_index(False)]

    def _8xy4(self, op: Opcode) -> None:
        x, y = op.register_index(), op.register_index(False)
        total = self.V[x] + self.V[y]

        self.V[x] = total & 0xFF
        self.V[FLAG_REGISTER] = 1 if total > 0xFF else 0

    def _8xy5(self, op: Opcode) -> None:
        x, y = op.register_index(), op.register_index(False)
        vx, vy = self.V[x], self.V[y]

        self.V[x] = (vx - vy) & 0xFF
        self.V[FLAG_REGISTER] = 0 if vx < vy else 1

    def _8xy6(self, op: Opcode) -> None:
        # VY is shifted, then copied to VX
        x, y = op.register_index(), op.register_index(False)

        self.V[FLAG_REGISTER] = self.V[y] & 0x01
        self.V[y] >>= 1
        self.V[x] = self.V[y]

    def _8xy7(self, op: Opcode) -> None:
        x, y = op.register_index(), op.register_index(False)
        vx, vy = self.V[x], self.V[y]

        self.V[x] = (vy - vx) & 0xFF
        self.V[FLAG_REGISTER] = 0 if vy < vx else 1

    def _8xye(self, op: Opcode) -> None:
        # VY is shifted, then copied to VX
        x, y = op.register_index(), op.register_index(False)

        self.V[FLAG_REGISTER] = self.V[y] >> 7
        self.V[y] = (self.V[y] << 1) & 0xFF
        self.V[x] = self.V[y]

    def _9xy0(self, op: Opcode) -> None:
        if self.V[op.register_index()] != self.V[op.register_index(False)]:
            self._skip()

    def _annn(self, op: Opcode) -> None:
        self.I = op.address()

    def _bnnn(self, op: Opcode) -> None:
        self.PC = op.address() + self.V[0]

    def _cxnn(self, op: Opcode) -> None:
        self.V[op.register_index()] = int(self.rng.integers(0, 256)) & op.byte_constant()

    def _dxyn(self, op: Opcode) -> None:
        # I is left unchanged
        x, y = op.register_index(), op.register_index(False)
        sprite = self.memory.read_block(self.I, op.nibble_constant())

        collision = self.display.draw_sprite(sprite, self.V[x], self.V[y])
        self.V[FLAG_REGISTER] = 1 if collision else 0

        self.render_display()

    def _ex9e(self, op: Opcode) -> None:
        if self._key_pressed(self.V[op.register_index()]):
            self._skip()

    def _exa1(self, op: Opcode) -> None:
        if not self._key_pressed(self.V[op.register_index()]):
            self._skip()

    def _fx07(self, op: Opcode) -> None:
        self.V[op.register_index()] = self.timers.delay

    def _fx0a(self, op: Opcode) -> None:
        """
        Wait for a key press and store it in VX.

        Only presses that arrive after the wait begins count. While no press is
        available PC is rewound so the instruction runs again next tick; timers
        keep counting and the run loop stays stoppable.
        """
        if not self.wait_for_key:
            raise UnsupportedOpcodeError("wait for key press is disabled")

        if not self.waiting_for_key:
            self.waiting_for_key = True
            self.keypad.clear_presses()

        key = self.keypad.pop_press()
        if key is None:
            self.PC -= 2
            return

        self.waiting_for_key = False
        self.V[op.register_index()] = key

    def _fx15(self, op: Opcode) -> None:
        self.timers.set_delay(self.V[op.register_index()])

    def _fx18(self, op: Opcode) -> None:
        self.timers.set_sound(self.V[op.register_index()])

    def _fx1e(self, op: Opcode) -> None:
        self.I = (self.I + self.V[op.register_index()]) & 0xFFFF

    def _fx29(self, op: Opcode) -> None:
        self.I = self.memory.font_address(self.V[op.register_index()])

    def _fx33(self, op: Opcode) -> None:
        value = self.V[op.register_index()]
        self.memory.write_block(self.I, bytes([value // 100, (value // 10) % 10, value % 10]))

    def _fx55(self, op: Opcode) -> None:
        # Stores V0..V(X-1)
        count = op.register_index()
        self.memory.write_block(self.I, bytes(self.V[:count]))
        self.I = (self.I + count) & 0xFFFF

    def _fx65(self, op: Opcode) -> None:
        # Loads V0..V(X-1)
        count = op.register_index()
        self.V[:count] = list(self.memory.read_block(self.I, count))
        self.I = (self.I + count) & 0xFFFF
