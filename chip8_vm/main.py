"""
Main entry point for the CHIP-8 virtual machine.

This module provides the command-line entry point, including argument parsing,
configuration loading and the choice of frontend.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from .common.errors import Chip8Error, RomLoadError
from .common.renderers import FrameBufferRenderer, NullRenderer, TerminalRenderer
from .common.visualizer import DisplayVisualizer
from .analysis.state_recorder import StateRecorder
from .systems.chip8.chip8_system import Chip8System
from .utils.config_manager import ConfigManager
from .utils.event_manager import EventType
from .utils.error_handler import error_handler, error_boundary
from .constants import DISPLAY_BACKENDS, LOG_LEVELS, ROM_EXTENSIONS

logger = logging.getLogger("Chip8VM")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine")
    parser.add_argument('--rom', type=str, required=True, help='Path to ROM file')
    parser.add_argument('--config', type=str, help='Path to JSON or YAML configuration file')
    parser.add_argument('--clock-hz', type=float, help='Execution rate in steps per second')
    parser.add_argument('--backend', type=str, choices=DISPLAY_BACKENDS,
                        help='Display frontend')
    parser.add_argument('--steps', type=int,
                        help='Run this many steps synchronously instead of in real time')
    parser.add_argument('--trace', type=str, help='Write an execution trace to this file')
    parser.add_argument('--snapshot', type=str, help='Save the final display as an image')
    parser.add_argument('--log-level', type=str, choices=LOG_LEVELS, help='Logging level')
    parser.add_argument('--log-file', type=str, help='Also log to this file')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    return parser

def _load_config(args: argparse.Namespace) -> Optional[ConfigManager]:
    config = ConfigManager()

    if args.config and not config.load_config(args.config):
        return None

    overrides = {}
    if args.clock_hz is not None:
        overrides["clock_hz"] = args.clock_hz
    if args.backend is not None:
        overrides.setdefault("display", {})["backend"] = args.backend
    if args.log_level is not None:
        overrides.setdefault("logging", {})["level"] = args.log_level
    if args.log_file is not None:
        overrides.setdefault("logging", {})["file"] = args.log_file
    if args.trace is not None:
        overrides["trace"] = {"enabled": True, "output": args.trace}

    if overrides and not config.load_from_dict(overrides):
        return None

    return config

def _create_renderer(config: ConfigManager, interactive: bool):
    backend = config.get("display.backend")

    if backend == "matplotlib" and interactive:
        return FrameBufferRenderer()
    if backend == "terminal":
        return TerminalRenderer(on_char=config.get("display.on_char"),
                                off_char=config.get("display.off_char"))
    if backend == "matplotlib":
        # Headless runs keep the last frame for --snapshot
        return FrameBufferRenderer()
    return NullRenderer()

def _run_headless(system: Chip8System, steps: int, show_progress: bool) -> None:
    for _ in tqdm(range(steps), desc="Executing", unit="step", disable=not show_progress):
        system.step()

def _run_realtime(system: Chip8System) -> None:
    system.start()
    try:
        system.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        system.stop()

@error_boundary()
def _save_outputs(system: Chip8System, recorder: Optional[StateRecorder], config: ConfigManager,
                  visualizer: DisplayVisualizer, snapshot: Optional[str]) -> None:
    if recorder is not None and config.get("trace.output"):
        recorder.save_history(config.get("trace.output"), format=config.get("trace.format"))

    if snapshot:
        visualizer.save_snapshot(system.display.get_frame_buffer(), snapshot)

def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run a ROM.

    Returns:
        Process exit code (0 on success, 1 on load, configuration or
        execution errors)
    """
    args = build_parser().parse_args(argv)

    config = _load_config(args)
    if config is None:
        return 1

    log_level = getattr(logging, config.get("logging.level", "INFO"))
    if args.debug:
        log_level = logging.DEBUG
    error_handler.set_log_levels(log_level if config.get("logging.console", True) else logging.CRITICAL + 1,
                                 log_level)
    if config.get("logging.file"):
        error_handler.set_log_file(config.get("logging.file"))

    interactive = args.steps is None and config.get("display.backend") == "matplotlib"
    renderer = _create_renderer(config, interactive)
    visualizer = DisplayVisualizer(scale=config.get("display.scale"),
                                   dark_mode=config.get("display.dark_mode"))

    try:
        system = Chip8System(renderer, config.get_system_config())
    except ValueError as e:
        logger.error(f"Error creating system: {e}")
        return 1

    if args.debug:
        system.events.register_logger(list(EventType), logging.DEBUG)

    recorder = None
    if config.get("trace.enabled"):
        recorder = StateRecorder(max_history=config.get("trace.max_history"))
        system.register_state_recorder(recorder)

    if os.path.splitext(args.rom)[1].lower() not in ROM_EXTENSIONS:
        logger.warning(f"Unrecognised ROM extension, loading anyway: {args.rom}")

    try:
        system.load_rom_file(args.rom)
    except RomLoadError as e:
        logger.error(f"Error loading ROM: {e}")
        return 1

    exit_code = 0
    try:
        if args.steps is not None:
            _run_headless(system, args.steps, show_progress=config.get("display.backend") != "terminal")
        elif interactive:
            visualizer.run_window(system, renderer, config.get("keymap"))
        else:
            _run_realtime(system)
        system.raise_if_faulted()
    except Chip8Error as e:
        if args.steps is not None:
            error_handler.log_exception(e, message=f"CHIP-8 system halted: {e}")
        exit_code = 1

    _save_outputs(system, recorder, config, visualizer, args.snapshot)

    logger.info(f"Executed {system.step_count} steps")
    return exit_code

if __name__ == "__main__":
    sys.exit(main())
