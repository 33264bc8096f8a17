"""
Tests for the renderers and the matplotlib visualizer.
"""
import io
import os
import tempfile
import unittest
import numpy as np
import matplotlib
matplotlib.use("Agg")
from chip8_vm.common.renderers import NullRenderer, FrameBufferRenderer, TerminalRenderer
from chip8_vm.common.visualizer import DisplayVisualizer
from chip8_vm.analysis.state_recorder import StateRecorder

class TestRenderers(unittest.TestCase):
    """
    Test cases for the Renderer implementations.
    """

    def setUp(self):
        """Set up test fixtures."""
        self.frame = np.zeros((32, 64), dtype=np.uint8)
        self.frame[0, :4] = 1

    def test_null_renderer(self):
        renderer = NullRenderer()
        renderer.render(self.frame)
        renderer.beep()
        self.assertEqual((renderer.frame_count, renderer.beep_count), (1, 1))

    def test_frame_buffer_renderer(self):
        renderer = FrameBufferRenderer()
        renderer.render(self.frame)
        self.frame[0, 0] = 0  # Renderer must hold its own copy

        frame, seq = renderer.latest_frame()
        self.assertEqual(seq, 1)
        self.assertEqual(int(frame.sum()), 4)

        renderer.beep()
        renderer.beep()
        self.assertEqual(renderer.consume_beeps(), 2)
        self.assertEqual(renderer.consume_beeps(), 0)

    def test_terminal_renderer(self):
        stream = io.StringIO()
        renderer = TerminalRenderer(stream=stream, ansi=False)

        renderer.render(self.frame)
        lines = stream.getvalue().splitlines()

        self.assertEqual(len(lines), 32)
        self.assertEqual(lines[0], "####" + "." * 60)

        renderer.beep()
        self.assertTrue(stream.getvalue().endswith("\a"))

    def test_terminal_renderer_ansi(self):
        stream = io.StringIO()
        TerminalRenderer(stream=stream, on_char="@", off_char=" ").render(self.frame)
        self.assertTrue(stream.getvalue().startswith("\x1b[H@@@@ "))

class TestDisplayVisualizer(unittest.TestCase):
    """
    Test cases for the DisplayVisualizer class.
    """

    def setUp(self):
        self.visualizer = DisplayVisualizer(scale=4)
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_save_snapshot(self):
        frame = np.zeros((32, 64), dtype=np.uint8)
        filename = os.path.join(self.temp_dir.name, "frame.png")

        self.assertTrue(self.visualizer.save_snapshot(frame, filename))
        self.assertGreater(os.path.getsize(filename), 0)

    def test_save_snapshot_bad_path(self):
        frame = np.zeros((32, 64), dtype=np.uint8)
        filename = os.path.join(self.temp_dir.name, "missing", "frame.png")
        self.assertFalse(self.visualizer.save_snapshot(frame, filename))

    def test_plot_register_history(self):
        recorder = StateRecorder()
        for step in range(1, 6):
            recorder.record_state({"step": step, "opcode": 0x7001, "registers": {"V0": step}})

        fig = self.visualizer.plot_register_history(recorder, registers=["V0", "V1"])
        self.assertIsNotNone(fig)

        filename = os.path.join(self.temp_dir.name, "registers.png")
        self.assertIsNone(self.visualizer.plot_register_history(recorder, filename=filename))
        self.assertTrue(os.path.exists(filename))

if __name__ == '__main__':
    unittest.main()
