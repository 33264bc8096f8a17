"""
Tests for the Chip8CPU module.

Programs are assembled from instruction words and loaded at 0x200; each test
then single-steps the CPU and inspects registers, memory and the display.
"""
import unittest
from chip8_vm.systems.chip8.cpu import Chip8CPU
from chip8_vm.systems.chip8.memory import Chip8Memory
from chip8_vm.systems.chip8.display import Chip8Display
from chip8_vm.systems.chip8.keypad import Keypad
from chip8_vm.systems.chip8.timers import TimerPair
from chip8_vm.common.renderers import NullRenderer
from chip8_vm.common.interfaces import Renderer
from chip8_vm.common.errors import (
    MemoryAccessError, UnknownOpcodeError, UnsupportedOpcodeError, StackOverflowError,
    StackUnderflowError, InvalidKeyError, RendererError
)

def assemble(*words):
    """Encode instruction words big-endian."""
    return b"".join(bytes([(w >> 8) & 0xFF, w & 0xFF]) for w in words)

class FailingRenderer(Renderer):
    def render(self, display):
        raise IOError("display went away")

    def beep(self):
        pass

class CPUTestCase(unittest.TestCase):
    """Base class providing a freshly wired CPU."""

    def make_cpu(self, *words, renderer=None, **config):
        self.memory = Chip8Memory()
        self.display = Chip8Display()
        self.keypad = Keypad()
        self.timers = TimerPair()
        self.renderer = renderer or NullRenderer()
        self.cpu = Chip8CPU(self.memory, self.display, self.keypad, self.timers,
                            self.renderer, config)
        self.memory.load_rom(assemble(*words))
        return self.cpu

    def run_steps(self, count):
        for _ in range(count):
            self.cpu.step()

class TestFlowControl(CPUTestCase):
    """
    Test cases for jumps, calls, returns and skips.
    """

    def test_jump(self):
        cpu = self.make_cpu(0x1345)
        cpu.step()
        self.assertEqual(cpu.PC, 0x345)

    def test_call_and_return(self):
        """Test that CALL pushes the next address and RET restores it."""
        cpu = self.make_cpu(0x2300)
        self.memory.write_block(0x300, assemble(0x00EE))

        cpu.step()
        self.assertEqual(cpu.PC, 0x300)
        self.assertEqual(cpu.stack.get_state(), {"SP": 1, "frames": [0x202]})

        cpu.step()
        self.assertEqual(cpu.PC, 0x202)
        self.assertEqual(cpu.stack.sp, 0)

    def test_nested_call_overflow(self):
        """Test that 16 nested calls succeed and the 17th overflows."""
        cpu = self.make_cpu(0x2200)  # Calls itself forever

        self.run_steps(16)
        self.assertEqual(cpu.stack.sp, 16)

        with self.assertRaises(StackOverflowError) as ctx:
            cpu.step()
        self.assertEqual(ctx.exception.opcode, 0x2200)
        self.assertEqual(ctx.exception.pc, 0x200)

    def test_return_on_empty_stack(self):
        cpu = self.make_cpu(0x00EE)
        with self.assertRaises(StackUnderflowError) as ctx:
            cpu.step()
        self.assertEqual(ctx.exception.opcode, 0x00EE)

    def test_skip_if_equal_immediate(self):
        cpu = self.make_cpu(0x6005, 0x3005)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x206)

        cpu = self.make_cpu(0x6005, 0x3006)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x204)

    def test_skip_if_not_equal_immediate(self):
        cpu = self.make_cpu(0x6005, 0x4006)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x206)

        cpu = self.make_cpu(0x6005, 0x4005)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x204)

    def test_skip_on_register_compare(self):
        cpu = self.make_cpu(0x6007, 0x6107, 0x5010)
        self.run_steps(3)
        self.assertEqual(cpu.PC, 0x208)

        cpu = self.make_cpu(0x6007, 0x6108, 0x9010)
        self.run_steps(3)
        self.assertEqual(cpu.PC, 0x208)

        cpu = self.make_cpu(0x6007, 0x6107, 0x9010)
        self.run_steps(3)
        self.assertEqual(cpu.PC, 0x206)

    def test_jump_with_offset(self):
        cpu = self.make_cpu(0x6004, 0xB300)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x304)

class TestArithmetic(CPUTestCase):
    """
    Test cases for register loads and ALU instructions.
    """

    def test_load_and_add_immediate(self):
        cpu = self.make_cpu(0x6A02, 0x7A01, 0xA210)
        self.run_steps(3)
        self.assertEqual(cpu.V[0xA], 0x03)
        self.assertEqual(cpu.I, 0x210)

    def test_add_immediate_wraps_without_flag(self):
        cpu = self.make_cpu(0x6F05, 0x60FF, 0x7002)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0x01)
        self.assertEqual(cpu.V[0xF], 0x05)

    def test_logical_operations(self):
        cpu = self.make_cpu(0x600C, 0x610A, 0x8011)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0x0E)

        cpu = self.make_cpu(0x600C, 0x610A, 0x8012)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0x08)

        cpu = self.make_cpu(0x600C, 0x610A, 0x8013)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0x06)

        cpu = self.make_cpu(0x610A, 0x8010)
        self.run_steps(2)
        self.assertEqual(cpu.V[0], 0x0A)

    def test_add_with_carry(self):
        cpu = self.make_cpu(0x60FA, 0x610A, 0x8014)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 4)
        self.assertEqual(cpu.V[0xF], 1)

        cpu = self.make_cpu(0x600A, 0x610A, 0x8014)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 20)
        self.assertEqual(cpu.V[0xF], 0)

    def test_add_into_flag_register(self):
        """Test that the carry flag is written after the sum."""
        cpu = self.make_cpu(0x6FFF, 0x6103, 0x8F14)
        self.run_steps(3)
        self.assertEqual(cpu.V[0xF], 1)

    def test_subtract(self):
        cpu = self.make_cpu(0x6005, 0x610A, 0x8015)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 251)
        self.assertEqual(cpu.V[0xF], 0)

        cpu = self.make_cpu(0x600A, 0x6105, 0x8015)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 5)
        self.assertEqual(cpu.V[0xF], 1)

        cpu = self.make_cpu(0x6007, 0x6107, 0x8015)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0)
        self.assertEqual(cpu.V[0xF], 1)

    def test_reverse_subtract(self):
        cpu = self.make_cpu(0x6003, 0x6105, 0x8017)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 2)
        self.assertEqual(cpu.V[0xF], 1)

        cpu = self.make_cpu(0x6005, 0x6103, 0x8017)
        self.run_steps(3)
        self.assertEqual(cpu.V[0], 0xFE)
        self.assertEqual(cpu.V[0xF], 0)

    def test_shift_right_uses_vy(self):
        """Test that VY is shifted and copied into VX."""
        cpu = self.make_cpu(0x60FF, 0x6105, 0x8016)
        self.run_steps(3)
        self.assertEqual(cpu.V[1], 0x02)
        self.assertEqual(cpu.V[0], 0x02)
        self.assertEqual(cpu.V[0xF], 1)

    def test_shift_left_uses_vy(self):
        cpu = self.make_cpu(0x6081, 0x8101, 0x6000, 0x801E)
        self.run_steps(4)
        self.assertEqual(cpu.V[1], 0x02)
        self.assertEqual(cpu.V[0], 0x02)
        self.assertEqual(cpu.V[0xF], 1)

    def test_shift_into_flag_register(self):
        """Test that the shift flag is written before the result."""
        cpu = self.make_cpu(0x6106, 0x8F16)
        self.run_steps(2)
        self.assertEqual(cpu.V[1], 0x03)
        self.assertEqual(cpu.V[0xF], 0x03)

    def test_random_masked(self):
        """Test that CXNN stays within the mask and is reproducible by seed."""
        cpu = self.make_cpu(*([0xC00F] * 20), seed=1234)
        values = []
        for _ in range(20):
            cpu.step()
            values.append(cpu.V[0])
            self.assertLessEqual(cpu.V[0], 0x0F)

        cpu = self.make_cpu(*([0xC00F] * 20), seed=1234)
        replay = []
        for _ in range(20):
            cpu.step()
            replay.append(cpu.V[0])

        self.assertEqual(values, replay)

        cpu = self.make_cpu(0xC000)
        cpu.step()
        self.assertEqual(cpu.V[0], 0)

class TestMemoryInstructions(CPUTestCase):
    """
    Test cases for I register and memory transfer instructions.
    """

    def test_add_to_index(self):
        cpu = self.make_cpu(0xA300, 0x6010, 0xF01E)
        self.run_steps(3)
        self.assertEqual(cpu.I, 0x310)

    def test_font_address(self):
        cpu = self.make_cpu(0x600A, 0xF029)
        self.run_steps(2)
        self.assertEqual(cpu.I, 50)

    def test_bcd(self):
        cpu = self.make_cpu(0x60FE, 0xA300, 0xF033)
        self.run_steps(3)
        self.assertEqual(self.memory.read_block(0x300, 3), bytes([2, 5, 4]))
        self.assertEqual(cpu.I, 0x300)

    def test_store_registers(self):
        """Test that FX55 stores V0..V(X-1) and advances I by X."""
        cpu = self.make_cpu(0x6011, 0x6122, 0x6233, 0x6344, 0xA300, 0xF355)
        self.run_steps(6)
        self.assertEqual(self.memory.read_block(0x300, 4), bytes([0x11, 0x22, 0x33, 0x00]))
        self.assertEqual(cpu.I, 0x303)

    def test_load_registers(self):
        """Test that FX65 loads V0..V(X-1) and advances I by X."""
        cpu = self.make_cpu(0x6399, 0xA300, 0xF365)
        self.memory.write_block(0x300, bytes([0x11, 0x22, 0x33, 0x44]))
        self.run_steps(3)
        self.assertEqual(cpu.V[:4], [0x11, 0x22, 0x33, 0x99])
        self.assertEqual(cpu.I, 0x303)

    def test_store_out_of_bounds(self):
        cpu = self.make_cpu(0xAFFF, 0xF255)
        cpu.step()
        with self.assertRaises(MemoryAccessError) as ctx:
            cpu.step()
        self.assertEqual(ctx.exception.opcode, 0xF255)
        self.assertEqual(ctx.exception.pc, 0x202)

class TestDrawing(CPUTestCase):
    """
    Test cases for CLS and DRW.
    """

    def test_draw_font_glyph(self):
        cpu = self.make_cpu(0x6000, 0xF029, 0xD005, 0xD005)
        self.run_steps(3)

        self.assertEqual(int(self.display.pixels.sum()), 14)  # Glyph 0
        self.assertEqual(cpu.V[0xF], 0)
        self.assertEqual(self.renderer.frame_count, 1)
        self.assertEqual(cpu.I, 0)

        cpu.step()
        self.assertEqual(int(self.display.pixels.sum()), 0)
        self.assertEqual(cpu.V[0xF], 1)
        self.assertEqual(self.renderer.frame_count, 2)

    def test_clear_screen_renders(self):
        cpu = self.make_cpu(0xD005, 0x00E0)
        self.run_steps(2)
        self.assertEqual(int(self.display.pixels.sum()), 0)
        self.assertEqual(cpu.frames_rendered, 2)

    def test_sprite_read_out_of_bounds(self):
        cpu = self.make_cpu(0xAFFE, 0xD005)
        cpu.step()
        with self.assertRaises(MemoryAccessError):
            cpu.step()

    def test_renderer_failure(self):
        """Test that renderer exceptions surface as RendererError."""
        cpu = self.make_cpu(0x00E0, renderer=FailingRenderer())
        with self.assertRaises(RendererError) as ctx:
            cpu.step()
        self.assertIsInstance(ctx.exception.__cause__, IOError)
        self.assertEqual(ctx.exception.opcode, 0x00E0)

class TestInputAndTimers(CPUTestCase):
    """
    Test cases for key and timer instructions.
    """

    def test_skip_if_key_pressed(self):
        cpu = self.make_cpu(0x6005, 0xE09E)
        self.keypad.press(5)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x206)

        cpu = self.make_cpu(0x6005, 0xE09E)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x204)

    def test_skip_if_key_not_pressed(self):
        cpu = self.make_cpu(0x6005, 0xE0A1)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x206)

        cpu = self.make_cpu(0x6005, 0xE0A1)
        self.keypad.press(5)
        self.run_steps(2)
        self.assertEqual(cpu.PC, 0x204)

    def test_invalid_key_index(self):
        cpu = self.make_cpu(0x6010, 0xE09E)
        cpu.step()
        with self.assertRaises(InvalidKeyError) as ctx:
            cpu.step()
        self.assertEqual(ctx.exception.opcode, 0xE09E)

    def test_timer_instructions(self):
        cpu = self.make_cpu(0x6020, 0xF015, 0xF018, 0xF207)
        self.run_steps(4)
        self.assertEqual(self.timers.delay, 0x20)
        self.assertEqual(self.timers.sound, 0x20)
        self.assertEqual(cpu.V[2], 0x20)

    def test_wait_for_key(self):
        """Test that FX0A repeats until a key is pressed after the wait began."""
        cpu = self.make_cpu(0xF30A)
        self.keypad.press(4)  # Before the wait; ignored

        cpu.step()
        self.assertTrue(cpu.waiting_for_key)
        self.assertEqual(cpu.PC, 0x200)

        cpu.step()
        self.assertEqual(cpu.PC, 0x200)

        self.keypad.press(7)
        cpu.step()
        self.assertFalse(cpu.waiting_for_key)
        self.assertEqual(cpu.V[3], 7)
        self.assertEqual(cpu.PC, 0x202)

    def test_wait_for_key_disabled(self):
        cpu = self.make_cpu(0xF00A, wait_for_key=False)
        with self.assertRaises(UnsupportedOpcodeError):
            cpu.step()

class TestDecoding(CPUTestCase):
    """
    Test cases for unknown opcodes and fetch bounds.
    """

    def test_unknown_opcodes(self):
        for word in [0x0123, 0x5001, 0x8008, 0x900F, 0xE000, 0xF0FF, 0x0000]:
            cpu = self.make_cpu(word)
            with self.assertRaises(UnknownOpcodeError) as ctx:
                cpu.step()
            self.assertEqual(ctx.exception.opcode, word)
            self.assertEqual(ctx.exception.pc, 0x200)
            self.assertIn(f"0x{word:04X}", str(ctx.exception))

    def test_fetch_past_end_of_memory(self):
        cpu = self.make_cpu(0x1FFF)
        cpu.step()
        with self.assertRaises(MemoryAccessError) as ctx:
            cpu.step()
        self.assertEqual(ctx.exception.pc, 0xFFF)

    def test_state_snapshot(self):
        cpu = self.make_cpu(0x6A02, 0xA210)
        self.run_steps(2)
        state = cpu.get_state()

        self.assertEqual(state["VA"], 2)
        self.assertEqual(state["I"], 0x210)
        self.assertEqual(state["PC"], 0x204)
        self.assertEqual(state["SP"], 0)
        self.assertEqual(state["DT"], 0)
        self.assertEqual(cpu.step_count, 2)

if __name__ == '__main__':
    unittest.main()
