"""
System implementations.
"""
from .chip8 import Chip8System
