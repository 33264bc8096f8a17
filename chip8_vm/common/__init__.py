"""
Common functionality shared by the virtual machine and its frontends.
"""
from .interfaces import CPU, Memory, Renderer, System
from .renderers import NullRenderer, FrameBufferRenderer, TerminalRenderer
from .visualizer import DisplayVisualizer
