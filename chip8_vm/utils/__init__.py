"""
Logging, error handling, configuration and event utilities.
"""
from .error_handler import error_handler, ErrorHandler, ErrorLevel, ErrorCategory
from .config_manager import ConfigManager
from .event_manager import EventManager, EventType, EventPriority, Event
