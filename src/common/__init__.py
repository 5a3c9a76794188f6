"""
Общие утилиты, константы и логгер.
"""

from src.common.logger import (
    get_logger,
    log_info,
    log_error,
    log_warning,
    log_debug,
    log_critical,
)
from src.common.constants import TypeMsg

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "log_critical",
    "TypeMsg",
]
