"""
CHIP-8 display buffer.

A 64x32 monochrome bitmap. Sprites are 8 pixels wide and 1-15 rows tall and are
XOR-composited onto the buffer. Coordinates wrap on both axes, so a sprite that
runs off one edge reappears on the opposite edge.
"""

import logging
import numpy as np

from ...constants import DISPLAY_WIDTH, DISPLAY_HEIGHT, SPRITE_WIDTH

logger = logging.getLogger("Chip8VM.Display")

class Chip8Display:
    """
    Emulates the CHIP-8 display buffer.

    Pixels are stored as a (height, width) uint8 array of 0/1 values, row-major,
    so ``pixels[y, x]`` addresses column x of row y.
    """

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        """
        Initialize the display buffer.

        Args:
            width: Display width in pixels
            height: Display height in pixels
        """
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width), dtype=np.uint8)

    def clear(self) -> None:
        """Unset every pixel."""
        self.pixels.fill(0)

    def draw_sprite(self, sprite: bytes, x: int, y: int) -> bool:
        """
        XOR a sprite onto the display.

        Each sprite byte is one row; bit 7 is the leftmost pixel.

        Args:
            sprite: Sprite rows
            x: Column of the sprite's left edge
            y: Row of the sprite's top edge

        Returns:
            True if any set pixel was turned unset (collision)
        """
        collision = False

        for row, pixels in enumerate(sprite):
            y_pos = (y + row) % self.height

            for col in range(SPRITE_WIDTH):
                bit = (pixels >> (7 - col)) & 1
                if not bit:
                    continue

                x_pos = (x + col) % self.width
                if self.pixels[y_pos, x_pos]:
                    collision = True

                self.pixels[y_pos, x_pos] ^= 1

        return collision

    def get_pixel(self, x: int, y: int) -> int:
        return int(self.pixels[y % self.height, x % self.width])

    def get_frame_buffer(self) -> np.ndarray:
        """Get a copy of the current frame."""
        return self.pixels.copy()

    def get_state(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "lit_pixels": int(self.pixels.sum())
        }
