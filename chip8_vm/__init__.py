"""
CHIP-8 Virtual Machine

An interpreter for the CHIP-8 instruction set: 4KB of memory, sixteen 8-bit
registers, a 64x32 monochrome display, two 60Hz timers and a 16-key keypad,
executed on a background thread and presented through a pluggable renderer.
"""

__version__ = "0.1.0"
