"""Monitoring module for logging and status codes."""

from .logger import get_logger, setup_logger, RangeBarLogger
from .status import StatusLog, StatusRegister

__all__ = [
    "get_logger",
    "setup_logger",
    "RangeBarLogger",
    "StatusLog",
    "StatusRegister",
]
