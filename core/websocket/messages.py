"""
REPSENSE WebSocket Messages

Message envelope for the tracking stream: frames and control commands in,
tracker events and snapshots out.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """WebSocket message types."""
    # System messages
    PING = "ping"
    PONG = "pong"
    ERROR = "error"

    # Client -> server
    FRAME = "frame"
    NO_POSE = "no_pose"
    SET_MODE = "set_mode"
    RESET = "reset"
    GET_STATS = "get_stats"

    # Server -> client
    FRAME_PROCESSED = "frame_processed"
    STATS = "stats"


@dataclass
class WebSocketMessage:
    """Structured WebSocket message."""
    type: MessageType
    payload: Any = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps({
            "type": self.type.value if isinstance(self.type, MessageType) else self.type,
            "payload": self.payload,
            "timestamp": self.timestamp
        })

    @classmethod
    def from_json(cls, data: str) -> "WebSocketMessage":
        """
        Parse an incoming message.

        Raises:
            ValueError: On invalid JSON or an unknown message type
        """
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("Message must be a JSON object")
        return cls(
            type=MessageType(parsed.get("type", "")),
            payload=parsed.get("payload"),
            timestamp=parsed.get("timestamp") or datetime.now(timezone.utc).isoformat()
        )


def error_message(detail: str) -> WebSocketMessage:
    return WebSocketMessage(type=MessageType.ERROR, payload={"error": detail})
