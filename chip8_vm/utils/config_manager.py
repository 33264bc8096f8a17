"""
Configuration management for the CHIP-8 virtual machine.

This module provides tools for loading, validating, and managing configuration
settings. It supports JSON and YAML files and validates every value before it
is merged over the defaults.
"""

import os
import json
import logging
import copy
from typing import Dict, Any, Optional, List
import yaml

from .error_handler import error_handler, ErrorCategory
from ..constants import (
    DEFAULT_CLOCK_HZ, DEFAULT_KEYMAP, DISPLAY_BACKENDS, TRACE_FORMATS, LOG_LEVELS, NUM_KEYS
)

logger = logging.getLogger("Chip8VM.ConfigManager")

class ConfigManager:
    """
    Configuration management for the virtual machine and its frontends.

    This class handles loading, validating, and providing access to
    configuration settings. Keys are addressed with dotted paths such as
    ``cpu.wait_for_key``.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to configuration file (None for default values)
        """
        # Default configuration
        self.defaults = {
            "clock_hz": DEFAULT_CLOCK_HZ,
            "cpu": {
                "wait_for_key": True,
                "seed": None
            },
            "display": {
                "backend": "terminal",
                "scale": 10,
                "dark_mode": True,
                "on_char": "#",
                "off_char": "."
            },
            "keymap": dict(DEFAULT_KEYMAP),
            "logging": {
                "level": "INFO",
                "file": None,
                "console": True
            },
            "trace": {
                "enabled": False,
                "max_history": 10000,
                "output": None,
                "format": "json"
            }
        }

        # Current configuration (copy of defaults initially)
        self.config = copy.deepcopy(self.defaults)

        # Set of keys that have been modified from defaults
        self.modified_keys = set()

        if config_path:
            self.load_config(config_path)

        logger.debug("ConfigManager initialized")

    def load_config(self, config_path: str) -> bool:
        """
        Load configuration from file.

        Args:
            config_path: Path to configuration file

        Returns:
            True if configuration loaded successfully, False otherwise
        """
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found: {config_path}")
            return False

        _, ext = os.path.splitext(config_path)
        ext = ext.lower()

        try:
            if ext == '.json':
                with open(config_path, 'r') as f:
                    user_config = json.load(f)
            elif ext in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    user_config = yaml.safe_load(f) or {}
            else:
                logger.error(f"Unsupported configuration format: {ext}")
                return False
        except (OSError, ValueError, yaml.YAMLError) as e:
            error_handler.log_exception(e, message=f"Error loading configuration: {e}",
                                        category=ErrorCategory.CONFIGURATION,
                                        context={"path": config_path})
            return False

        if not isinstance(user_config, dict):
            self._report_errors([f"Configuration root must be a mapping: {config_path}"], config_path)
            return False

        validation_errors = self.validate_config(user_config)
        if validation_errors:
            self._report_errors(validation_errors, config_path)
            return False

        self._merge_config(user_config)

        logger.info(f"Configuration loaded from {config_path}")
        return True

    @staticmethod
    def _report_errors(errors: List[str], source: str) -> None:
        for error in errors:
            error_handler.handle_error(message=f"Configuration validation error: {error}",
                                       category=ErrorCategory.CONFIGURATION,
                                       context={"source": source})

    def _merge_config(self, user_config: Dict[str, Any], path: str = "",
                      target: Optional[Dict[str, Any]] = None) -> None:
        """
        Merge user configuration with the current values, tracking modified keys.

        Args:
            user_config: User configuration dictionary
            path: Current key path for tracking (internal use)
            target: Dictionary being merged into (internal use)
        """
        if target is None:
            target = self.config

        for key, value in user_config.items():
            current_path = f"{path}.{key}" if path else key

            if current_path == "keymap":
                # Replaced wholesale; YAML reads unquoted digit keys as ints
                target[key] = {str(host_key).lower(): index for host_key, index in value.items()}
                self.modified_keys.add(current_path)
            elif isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge_config(value, current_path, target[key])
            else:
                target[key] = copy.deepcopy(value)
                self.modified_keys.add(current_path)

    def validate_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate configuration against schema.

        Args:
            config: Configuration dictionary to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if "clock_hz" in config:
            clock_hz = config["clock_hz"]
            if isinstance(clock_hz, bool) or not isinstance(clock_hz, (int, float)) or clock_hz <= 0:
                errors.append(f"Invalid clock_hz: {clock_hz}. Must be a positive number")

        if "cpu" in config:
            cpu_config = config["cpu"]
            if not isinstance(cpu_config, dict):
                errors.append("Invalid cpu: must be a mapping")
            else:
                if "wait_for_key" in cpu_config and not isinstance(cpu_config["wait_for_key"], bool):
                    errors.append(f"Invalid cpu.wait_for_key: {cpu_config['wait_for_key']}. Must be a boolean")

                seed = cpu_config.get("seed")
                if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int) or seed < 0):
                    errors.append(f"Invalid cpu.seed: {seed}. Must be a non-negative integer or null")

        if "display" in config:
            display_config = config["display"]
            if not isinstance(display_config, dict):
                errors.append("Invalid display: must be a mapping")
            else:
                if "backend" in display_config and display_config["backend"] not in DISPLAY_BACKENDS:
                    valid_backends = ", ".join(DISPLAY_BACKENDS)
                    errors.append(f"Invalid display.backend: {display_config['backend']}. "
                                  f"Valid options: {valid_backends}")

                if "scale" in display_config:
                    scale = display_config["scale"]
                    if isinstance(scale, bool) or not isinstance(scale, int) or scale < 1:
                        errors.append(f"Invalid display.scale: {scale}. Must be a positive integer")

                if "dark_mode" in display_config and not isinstance(display_config["dark_mode"], bool):
                    errors.append(f"Invalid display.dark_mode: {display_config['dark_mode']}. Must be a boolean")

                for key in ["on_char", "off_char"]:
                    if key in display_config:
                        value = display_config[key]
                        if not isinstance(value, str) or len(value) != 1:
                            errors.append(f"Invalid display.{key}: {value!r}. Must be a single character")

        if "keymap" in config:
            keymap = config["keymap"]
            if not isinstance(keymap, dict):
                errors.append("Invalid keymap: must be a mapping of host key to key index")
            else:
                for host_key, index in keymap.items():
                    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < NUM_KEYS:
                        errors.append(f"Invalid keymap entry {host_key!r}: {index}. "
                                      f"Must be an integer between 0 and {NUM_KEYS - 1}")

        if "logging" in config:
            log_config = config["logging"]
            if not isinstance(log_config, dict):
                errors.append("Invalid logging: must be a mapping")
            else:
                if "level" in log_config and log_config["level"] not in LOG_LEVELS:
                    valid_levels = ", ".join(LOG_LEVELS)
                    errors.append(f"Invalid logging.level: {log_config['level']}. Valid options: {valid_levels}")

                if "console" in log_config and not isinstance(log_config["console"], bool):
                    errors.append(f"Invalid logging.console: {log_config['console']}. Must be a boolean")

        if "trace" in config:
            trace_config = config["trace"]
            if not isinstance(trace_config, dict):
                errors.append("Invalid trace: must be a mapping")
            else:
                if "enabled" in trace_config and not isinstance(trace_config["enabled"], bool):
                    errors.append(f"Invalid trace.enabled: {trace_config['enabled']}. Must be a boolean")

                if "max_history" in trace_config:
                    max_history = trace_config["max_history"]
                    if isinstance(max_history, bool) or not isinstance(max_history, int) or max_history < 1:
                        errors.append(f"Invalid trace.max_history: {max_history}. Must be a positive integer")

                if "format" in trace_config and trace_config["format"] not in TRACE_FORMATS:
                    valid_formats = ", ".join(TRACE_FORMATS)
                    errors.append(f"Invalid trace.format: {trace_config['format']}. "
                                  f"Valid options: {valid_formats}")

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key path.

        Args:
            key: Configuration key path (e.g., 'display.scale')
            default: Default value if key not found

        Returns:
            Configuration value or default if not found
        """
        value = self.config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value by key path.

        Args:
            key: Configuration key path (e.g., 'display.scale')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.modified_keys.add(key)

        logger.debug(f"Configuration updated: {key} = {value}")

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset configuration to defaults.

        Args:
            key: Key path to reset (None for all)
        """
        if key is None:
            self.config = copy.deepcopy(self.defaults)
            self.modified_keys.clear()
            logger.info("Configuration reset to defaults")
            return

        keys = key.split('.')
        default_value = self._get_default_value(keys)

        config = self.config
        for k in keys[:-1]:
            if k not in config:
                return
            config = config[k]

        config[keys[-1]] = default_value
        self.modified_keys.discard(key)
        logger.info(f"Configuration key reset to default: {key}")

    def _get_default_value(self, keys: List[str]) -> Any:
        value = self.defaults
        for k in keys:
            if not isinstance(value, dict) or k not in value:
                return None
            value = value[k]
        return copy.deepcopy(value)

    def save_config(self, config_path: str, format: str = 'json') -> bool:
        """
        Save current configuration to file.

        Args:
            config_path: Path to output file
            format: Output format ('json' or 'yaml')

        Returns:
            True if saved successfully, False otherwise
        """
        if format.lower() not in ['json', 'yaml', 'yml']:
            logger.error(f"Unsupported configuration format: {format}")
            return False

        try:
            directory = os.path.dirname(config_path)
            if directory and not os.path.exists(directory):
                os.makedirs(directory)

            with open(config_path, 'w') as f:
                if format.lower() == 'json':
                    json.dump(self.config, f, indent=2)
                else:
                    yaml.dump(self.config, f, default_flow_style=False)

        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

        logger.info(f"Configuration saved to {config_path}")
        return True

    def get_modified_config(self) -> Dict[str, Any]:
        """
        Get a dictionary containing only modified configuration values.

        Returns:
            Dictionary with modified values
        """
        modified_config = {}

        for key in self.modified_keys:
            value = self.get(key)

            keys = key.split('.')
            current = modified_config
            for k in keys[:-1]:
                current = current.setdefault(k, {})

            current[keys[-1]] = value

        return modified_config

    def load_from_dict(self, config_dict: Dict[str, Any]) -> bool:
        """
        Load configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            True if loaded successfully, False otherwise
        """
        validation_errors = self.validate_config(config_dict)
        if validation_errors:
            self._report_errors(validation_errors, "dict")
            return False

        self._merge_config(config_dict)

        logger.debug("Configuration loaded from dictionary")
        return True

    def get_system_config(self) -> Dict[str, Any]:
        """
        Get the subset of configuration consumed by Chip8System.

        Returns:
            System configuration dictionary
        """
        return {
            "clock_hz": self.get("clock_hz", DEFAULT_CLOCK_HZ),
            "cpu": copy.deepcopy(self.get("cpu", {}))
        }
