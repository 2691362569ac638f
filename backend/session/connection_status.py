"""
Connection status tracking for kiosk sessions.

Connection lifecycle is tracked separately from the conversation state
machine: connection_status is DOWN | CONNECTING | UP.

This is pure data owned by SessionGateway, not by orchestrator state.
"""
from enum import Enum


class ConnectionStatus(Enum):
    """
    Connection lifecycle status of the kiosk WebSocket.

    Separate from and independent of ConversationState.
    IDLE can occur with any ConnectionStatus.
    """
    DOWN = "DOWN"              # Not connected
    CONNECTING = "CONNECTING"  # Handshake in progress
    UP = "UP"                  # Active WebSocket connection
