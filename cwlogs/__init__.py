from .backend import LogBackend, make_client
from .client import LogAppender, to_message
from .config import AppenderConfig, AppendOptions
from .errors import APPEND_REJECTED_CODES, ConfigurationError, error_code, is_append_rejected

__all__ = [
    "APPEND_REJECTED_CODES",
    "AppendOptions",
    "AppenderConfig",
    "ConfigurationError",
    "LogAppender",
    "LogBackend",
    "error_code",
    "is_append_rejected",
    "make_client",
    "to_message",
]
