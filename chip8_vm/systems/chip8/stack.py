# systems/chip8/stack.py
from ...common.errors import StackOverflowError, StackUnderflowError
from ...constants import NUM_FRAMES

class CallStack:
    """Fixed-depth return address stack with an explicit stack pointer."""

    def __init__(self, depth: int = NUM_FRAMES):
        self.depth = depth
        self.frames = [0] * depth
        self.sp = 0

    def push(self, address: int) -> None:
        if self.sp >= self.depth:
            raise StackOverflowError("stack overflow")
        self.frames[self.sp] = address & 0xFFFF
        self.sp += 1

    def pop(self) -> int:
        if self.sp == 0:
            raise StackUnderflowError("stack underflow")
        self.sp -= 1
        return self.frames[self.sp]

    def reset(self) -> None:
        self.frames = [0] * self.depth
        self.sp = 0

    def __len__(self) -> int:
        return self.sp

    def get_state(self) -> dict:
        return {
            "SP": self.sp,
            "frames": list(self.frames[:self.sp])
        }
