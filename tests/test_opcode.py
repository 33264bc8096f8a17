"""
Tests for the Opcode field accessors.
"""
import unittest
from chip8_vm.systems.chip8.opcode import Opcode

class TestOpcode(unittest.TestCase):
    """
    Test cases for the Opcode class.
    """

    def test_fields_match_bit_masks(self):
        """Test that every accessor equals direct masking."""
        for value in [0x0000, 0x00E0, 0x1234, 0x8AB4, 0xD01F, 0xF165, 0xFFFF]:
            op = Opcode(value)
            self.assertEqual(op.family, (value & 0xF000) >> 12)
            self.assertEqual(op.address(), value & 0x0FFF)
            self.assertEqual(op.byte_constant(), value & 0x00FF)
            self.assertEqual(op.nibble_constant(), value & 0x000F)
            self.assertEqual(op.register_index(), (value & 0x0F00) >> 8)
            self.assertEqual(op.register_index(False), (value & 0x00F0) >> 4)

    def test_value_masked_to_16_bits(self):
        """Test that construction keeps only the low 16 bits."""
        self.assertEqual(Opcode(0x1D2C3), 0xD2C3)

    def test_string_form(self):
        """Test hexadecimal formatting."""
        self.assertEqual(str(Opcode(0xA2F0)), "0xA2F0")
        self.assertEqual(repr(Opcode(0x00E0)), "Opcode(0x00E0)")

if __name__ == '__main__':
    unittest.main()
