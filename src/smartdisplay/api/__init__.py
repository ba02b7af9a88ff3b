"""SmartDisplay HTTP API"""

from .app import create_app
from .errors import ApiError, ErrorCode

__all__ = [
    'create_app',
    'ApiError',
    'ErrorCode',
]
