"""
State recording module for capturing virtual machine execution traces.
"""

import numpy as np
import logging
import json
import os
import time
import pickle
from typing import Dict, List, Optional, Any
from collections import deque

logger = logging.getLogger("Chip8VM.StateRecorder")

class StateRecorder:
    """
    Records per-step register snapshots during execution.

    Each record has the form::

        {"step": 12, "opcode": 0x6A02, "registers": {"V0": 0, ..., "PC": 0x204}}

    Records are kept in a bounded buffer; the oldest are dropped first.
    """

    def __init__(self, max_history: int = 10000,
                record_filter: Optional[List[str]] = None):
        """
        Initialize the state recorder.

        Args:
            max_history: Maximum number of states to keep in memory
            record_filter: List of register names to include (None for all)
        """
        self.max_history = max_history
        self.record_filter = record_filter

        self.state_history = deque(maxlen=max_history)

        self.stats = {
            "total_records": 0,
            "start_time": time.time(),
            "start_step": None,
            "current_step": None,
            "unique_registers": set()
        }

        logger.debug(f"Initialized state recorder with max history {max_history}")

    def record_state(self, state: Dict[str, Any]) -> None:
        """
        Record a state snapshot.

        Args:
            state: State dictionary
        """
        if self.record_filter is not None and "registers" in state:
            state = dict(state)
            state["registers"] = {
                name: value for name, value in state["registers"].items()
                if name in self.record_filter
            }

        self.stats["total_records"] += 1

        if "step" in state:
            if self.stats["start_step"] is None:
                self.stats["start_step"] = state["step"]
            self.stats["current_step"] = state["step"]

        if "registers" in state:
            self.stats["unique_registers"].update(state["registers"].keys())

        self.state_history.append(state)

    def clear(self) -> None:
        """Drop all records and restart statistics."""
        self.state_history.clear()
        self.stats.update({
            "total_records": 0,
            "start_time": time.time(),
            "start_step": None,
            "current_step": None,
            "unique_registers": set()
        })

    def get_state_history(self, start_idx: Optional[int] = None,
                       end_idx: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Get a slice of the state history.

        Args:
            start_idx: Starting index (None for beginning)
            end_idx: Ending index (None for end)

        Returns:
            List of state snapshots
        """
        return list(self.state_history)[start_idx:end_idx]

    def get_state_by_step(self, step: int) -> Optional[Dict[str, Any]]:
        """
        Get the snapshot recorded for a step.

        Returns:
            State snapshot if it is still in the buffer, None otherwise
        """
        for state in reversed(self.state_history):
            if state.get("step") == step:
                return state
        return None

    def get_register_history(self, register_name: str) -> Dict[str, np.ndarray]:
        """
        Get history for a specific register.

        Args:
            register_name: Name of register to retrieve (e.g. 'V3', 'PC')

        Returns:
            Dictionary with step numbers and register values
        """
        steps = []
        values = []

        for i, state in enumerate(self.state_history):
            registers = state.get("registers", {})
            if register_name in registers:
                steps.append(state.get("step", i))
                values.append(registers[register_name])

        return {
            "steps": np.array(steps, dtype=np.int64),
            "values": np.array(values, dtype=np.int64)
        }

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get recorder statistics.

        Returns:
            Dictionary with statistics
        """
        elapsed_time = time.time() - self.stats["start_time"]

        if self.stats["start_step"] is not None and self.stats["current_step"] is not None:
            total_steps = self.stats["current_step"] - self.stats["start_step"] + 1
        else:
            total_steps = 0

        return {
            "total_records": self.stats["total_records"],
            "elapsed_time": elapsed_time,
            "total_steps": total_steps,
            "steps_per_second": total_steps / elapsed_time if elapsed_time > 0 else 0,
            "current_history_size": len(self.state_history),
            "max_history_size": self.max_history,
            "unique_registers": sorted(self.stats["unique_registers"])
        }

    def save_history(self, filename: str, format: str = 'json') -> bool:
        """
        Save state history to a file.

        Args:
            filename: Output filename
            format: File format ('pickle', 'json', or 'csv')

        Returns:
            True if successful, False otherwise
        """
        if format not in ['pickle', 'json', 'csv']:
            logger.error(f"Unsupported format: {format}")
            return False

        try:
            output_dir = os.path.dirname(filename)
            if output_dir and not os.path.exists(output_dir):
                os.makedirs(output_dir)

            data = {
                "history": list(self.state_history),
                "statistics": self.get_statistics()
            }

            if format == 'pickle':
                with open(filename, 'wb') as f:
                    pickle.dump(data, f)

            elif format == 'json':
                with open(filename, 'w') as f:
                    json.dump(data, f, indent=2, default=self._json_default)

            else:
                self._write_csv(filename)

        except OSError as e:
            logger.error(f"Error saving history: {e}")
            return False

        logger.info(f"Saved state history to {filename} in {format} format")
        return True

    @staticmethod
    def _json_default(value: Any) -> Any:
        if isinstance(value, np.ndarray):
            return value.tolist()
        if isinstance(value, np.integer):
            return int(value)
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    def _write_csv(self, filename: str) -> None:
        register_names = sorted(self.stats["unique_registers"])

        with open(filename, 'w') as f:
            headers = ["record_idx", "step", "opcode"] + [f"reg_{name}" for name in register_names]
            f.write(",".join(headers) + "\n")

            for i, state in enumerate(self.state_history):
                opcode = state.get("opcode")
                row = [
                    str(i),
                    str(state.get("step", "")),
                    f"0x{opcode:04X}" if opcode is not None else ""
                ]

                registers = state.get("registers", {})
                row.extend(str(registers.get(name, "")) for name in register_names)

                f.write(",".join(row) + "\n")

    def load_history(self, filename: str) -> bool:
        """
        Load state history from a file.

        Args:
            filename: Input filename (.json, .pkl or .pickle)

        Returns:
            True if successful, False otherwise
        """
        _, ext = os.path.splitext(filename)
        ext = ext.lower()

        try:
            if ext in ['.pkl', '.pickle']:
                with open(filename, 'rb') as f:
                    data = pickle.load(f)
            elif ext == '.json':
                with open(filename, 'r') as f:
                    data = json.load(f)
            else:
                logger.error(f"Unsupported file format: {ext}")
                return False
        except (OSError, ValueError, pickle.UnpicklingError) as e:
            logger.error(f"Error loading history: {e}")
            return False

        self.clear()
        for state in data.get("history", []):
            self.record_state(state)

        logger.info(f"Loaded state history from {filename}")
        return True
