from .client import (
    Connected,
    ConnectionState,
    Disconnected,
    ToolClient,
    decode_tool_result,
    open_stdio_session,
)
from .manager import ToolManager

__all__ = [
    "Connected",
    "ConnectionState",
    "Disconnected",
    "ToolClient",
    "ToolManager",
    "decode_tool_result",
    "open_stdio_session",
]
