"""
WebSocket client for the RoboPuppy command gateway.

Handles:
- Connecting to the gateway's /ws endpoint
- Sending robot-command events and awaiting the robot-response reply
- Clean shutdown
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

COMMAND_EVENT = "robot-command"
RESPONSE_EVENT = "robot-response"


class GatewayError(Exception):
    """The gateway could not be reached or replied with garbage."""


@dataclass
class ClientStats:
    """Statistics about the client session."""
    connected: bool = False
    connect_time: Optional[float] = None
    commands_sent: int = 0
    commands_failed: int = 0
    last_send_time: Optional[float] = None


def build_event(command: str, **payload: Any) -> str:
    """Encode a robot-command event frame."""
    data = {"command": command}
    data.update({k: v for k, v in payload.items() if v is not None})
    return json.dumps({"event": COMMAND_EVENT, "data": data})


def parse_response(message: str) -> Dict[str, Any]:
    """
    Decode a robot-response frame into its {success, message} data.

    Raises:
        GatewayError: if the frame is not a robot-response event
    """
    try:
        frame = json.loads(message)
        event = frame["event"]
        data = frame["data"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise GatewayError(f"Malformed response: {e}") from e
    if event != RESPONSE_EVENT:
        raise GatewayError(f"Unexpected event: {event}")
    return data


class RobotWebSocketClient:
    """
    Async client for the gateway event boundary.

    One command is in flight at a time; each send waits for its reply.

    Usage:
        async with RobotWebSocketClient("ws://127.0.0.1:3000/ws") as client:
            await client.send_command("stand")
    """

    def __init__(self, server_url: str, response_timeout: float = 15.0):
        """
        Initialize the client.

        Args:
            server_url: Gateway WebSocket URL (e.g., ws://127.0.0.1:3000/ws)
            response_timeout: Seconds to wait for each robot-response
        """
        self.server_url = server_url
        self.response_timeout = response_timeout

        self._ws = None
        self._lock = asyncio.Lock()
        self.stats = ClientStats()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def __aenter__(self) -> 'RobotWebSocketClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> None:
        """Open the WebSocket connection."""
        if self._ws is not None:
            return
        logger.info(f"Connecting to {self.server_url}...")
        try:
            self._ws = await websockets.connect(
                self.server_url,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            )
        except (OSError, WebSocketException) as e:
            raise GatewayError(f"Connection failed: {e}") from e

        self.stats.connected = True
        self.stats.connect_time = time.time()
        logger.info("WebSocket connected successfully")

    async def stop(self) -> None:
        """Close the WebSocket connection."""
        if self._ws is None:
            return
        await self._ws.close()
        self._ws = None
        self.stats.connected = False
        logger.info("WebSocket client stopped")

    async def send_command(self, command: str, **payload: Any) -> Dict[str, Any]:
        """
        Send one command and wait for the gateway's reply.

        Args:
            command: Command name (stand, sit, walk, neutral, down, help, leg)
            **payload: legId, joint and angle for the leg command

        Returns:
            The {success, message} reply

        Raises:
            GatewayError: not connected, connection lost, or reply timed out
        """
        if self._ws is None:
            raise GatewayError("Not connected to gateway")

        async with self._lock:
            try:
                await self._ws.send(build_event(command, **payload))
                self.stats.commands_sent += 1
                self.stats.last_send_time = time.time()
                reply = await asyncio.wait_for(self._ws.recv(), timeout=self.response_timeout)
            except asyncio.TimeoutError:
                self.stats.commands_failed += 1
                raise GatewayError(f"No response to '{command}' within {self.response_timeout:g}s")
            except ConnectionClosed as e:
                self.stats.commands_failed += 1
                raise GatewayError(f"Connection closed: {e}") from e

        result = parse_response(reply)
        if not result.get("success"):
            self.stats.commands_failed += 1
        logger.debug(f"Response to {command}: {result}")
        return result

    def get_stats(self) -> dict:
        """Get client statistics."""
        return {
            "connected": self.connected,
            "connect_time": self.stats.connect_time,
            "commands_sent": self.stats.commands_sent,
            "commands_failed": self.stats.commands_failed,
            "last_send_time": self.stats.last_send_time,
        }
