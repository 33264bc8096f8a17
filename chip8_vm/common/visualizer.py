"""
Matplotlib frontend and plotting tools for the virtual machine.
"""
import numpy as np
import matplotlib.pyplot as plt
import logging
import sys
from typing import Dict, List, Optional, Tuple

from .renderers import FrameBufferRenderer

logger = logging.getLogger("Chip8VM.Visualizer")

class DisplayVisualizer:
    """
    Draws display frames and execution traces with matplotlib.

    Also provides an interactive window in which keyboard events drive the
    virtual machine's keypad.
    """

    def __init__(self, scale: int = 10, dark_mode: bool = True):
        """
        Initialize the visualizer.

        Args:
            scale: Screen pixels per display pixel for windows and snapshots
            dark_mode: Draw lit pixels light on dark, otherwise dark on light
        """
        self.scale = scale
        self.dark_mode = dark_mode
        self.color_map = 'gray' if dark_mode else 'gray_r'

        logger.debug("Initialized display visualizer")

    def _figure_size(self, frame: np.ndarray) -> Tuple[float, float]:
        height, width = frame.shape
        dpi = plt.rcParams['figure.dpi']
        return width * self.scale / dpi, height * self.scale / dpi

    def _draw_frame(self, frame: np.ndarray):
        fig = plt.figure(figsize=self._figure_size(frame))
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_axis_off()
        image = ax.imshow(frame, cmap=self.color_map, vmin=0, vmax=1, interpolation='nearest')
        return fig, image

    def save_snapshot(self, frame: np.ndarray, filename: str) -> bool:
        """
        Save a display frame as an image.

        Args:
            frame: (height, width) array of 0/1 pixels
            filename: Output path; the format follows the extension

        Returns:
            True if saved successfully, False otherwise
        """
        fig, _ = self._draw_frame(frame)
        try:
            fig.savefig(filename)
        except (OSError, ValueError) as e:
            logger.error(f"Error saving snapshot: {e}")
            return False
        finally:
            plt.close(fig)

        logger.info(f"Saved display snapshot to {filename}")
        return True

    def plot_register_history(self, recorder, registers: Optional[List[str]] = None,
                              filename: Optional[str] = None,
                              figsize: Tuple[int, int] = (12, 6)):
        """
        Plot register values over executed steps.

        Args:
            recorder: StateRecorder holding the trace
            registers: Register names to plot (defaults to V0-VF)
            filename: Save the figure here instead of returning it open
            figsize: Figure size (width, height) in inches

        Returns:
            The matplotlib figure, or None if it was saved to ``filename``
        """
        if registers is None:
            registers = [f"V{i:X}" for i in range(16)]

        fig, ax = plt.subplots(figsize=figsize)
        plotted = 0

        for name in registers:
            history = recorder.get_register_history(name)
            if len(history["values"]) == 0:
                continue
            ax.step(history["steps"], history["values"], where='post', label=name)
            plotted += 1

        if plotted == 0:
            ax.text(0.5, 0.5, "No register data available", ha='center', va='center')
        else:
            ax.legend(loc='upper right', ncol=4, fontsize='small')

        ax.set_title("Register History")
        ax.set_xlabel("Step")
        ax.set_ylabel("Value")
        ax.grid(True, alpha=0.3)

        if filename:
            fig.savefig(filename)
            plt.close(fig)
            logger.info(f"Saved register history plot to {filename}")
            return None

        return fig

    def run_window(self, system, renderer: FrameBufferRenderer,
                   keymap: Dict[str, int], refresh_hz: float = 60.0) -> None:
        """
        Run the system in an interactive window until it is closed.

        The system executes on its own thread; this loop polls the frame
        buffer from the calling thread, which must be the GUI main thread.

        Args:
            system: Chip8System to run
            renderer: The FrameBufferRenderer the system renders into
            keymap: Host key name to keypad index
            refresh_hz: Window redraw rate
        """
        frame, last_seq = renderer.latest_frame()
        fig, image = self._draw_frame(frame)
        if fig.canvas.manager is not None:
            fig.canvas.manager.set_window_title("CHIP-8")

        def on_key(pressed: bool):
            def handler(event):
                if event.key is None:
                    return
                index = keymap.get(event.key.lower())
                if index is None:
                    return
                if pressed:
                    system.press_key(index)
                else:
                    system.release_key(index)
            return handler

        fig.canvas.mpl_connect('key_press_event', on_key(True))
        fig.canvas.mpl_connect('key_release_event', on_key(False))

        system.start()
        try:
            while plt.fignum_exists(fig.number) and system.error is None:
                frame, seq = renderer.latest_frame()
                if seq != last_seq:
                    image.set_data(frame)
                    last_seq = seq
                if renderer.consume_beeps():
                    sys.stdout.write("\a")
                    sys.stdout.flush()
                plt.pause(1.0 / refresh_hz)
        finally:
            system.stop()
            plt.close(fig)
