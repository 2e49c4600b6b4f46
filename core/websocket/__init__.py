"""
REPSENSE WebSocket Module
"""

from .messages import (
    MessageType,
    WebSocketMessage,
    error_message
)

__all__ = [
    'MessageType',
    'WebSocketMessage',
    'error_message'
]
