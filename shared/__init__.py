"""
LIVECOACH Shared Module

Common utilities used across all services.
"""

from .utils import setup_logger, success_response, error_response, get_now_iso

__all__ = [
    'setup_logger',
    'success_response',
    'error_response',
    'get_now_iso',
]
