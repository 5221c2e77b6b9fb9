"""
RoboPuppy serial session.

Handles:
- Endpoint discovery (Arduino marker first, then USB path markers)
- Open with bounded retry and fixed settle delays
- Command validation and dispatch as newline-terminated lines
- Tracking connection state from transport events
- Teardown that never raises
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional

from .commands import format_leg_line, validate_leg_move
from .errors import (
    ConnectionFailedError,
    EndpointNotFoundError,
    NotConnectedError,
    PortBusyError,
    WriteFailedError,
)
from .transport import (
    EndpointInfo,
    SerialSettings,
    SerialTransport,
    TransportError,
)

logger = logging.getLogger(__name__)

# Wait after tearing down an open link so the OS releases the handle
DISCONNECT_SETTLE_S = 1.0
# Opening the port resets the board; wait for its boot sequence
CONNECT_SETTLE_S = 2.0
RETRY_DELAY_S = 2.0
MAX_OPEN_ATTEMPTS = 3

HARDWARE_MARKER = "Arduino"
USB_PATH_MARKERS = ("usb", "ttyUSB", "ttyACM")

PORT_BUSY_PHRASES = (
    "Resource temporarily unavailable",
    "Cannot lock port",
    "Could not exclusively lock port",
    "Device or resource busy",
    "Access is denied",
)

PORT_BUSY_HINTS = (
    "Close the Arduino IDE Serial Monitor",
    "Close any other applications using the port",
    "Wait a few seconds and try again",
)

DEFAULT_SETTINGS = SerialSettings()

Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def is_port_busy(message: str) -> bool:
    """True if an OS error message means another process holds the port."""
    return any(phrase in message for phrase in PORT_BUSY_PHRASES)


def has_hardware_marker(endpoint: EndpointInfo) -> bool:
    fields = (endpoint.manufacturer, endpoint.description, endpoint.friendly_name)
    return any(field and HARDWARE_MARKER in field for field in fields)


def has_usb_path(endpoint: EndpointInfo) -> bool:
    return any(marker in endpoint.address for marker in USB_PATH_MARKERS)


def find_robot_endpoint(endpoints: Iterable[EndpointInfo]) -> Optional[EndpointInfo]:
    """
    Pick the endpoint most likely to be the robot.

    Any endpoint whose metadata names the hardware family wins over one that
    merely has a USB-looking address.
    """
    endpoints = list(endpoints)
    for endpoint in endpoints:
        if has_hardware_marker(endpoint):
            return endpoint
    for endpoint in endpoints:
        if has_usb_path(endpoint):
            return endpoint
    return None


def candidate_endpoints(endpoints: Iterable[EndpointInfo]) -> List[EndpointInfo]:
    """All endpoints discovery would consider, in preference order."""
    endpoints = list(endpoints)
    marked = [e for e in endpoints if has_hardware_marker(e)]
    by_path = [e for e in endpoints if not has_hardware_marker(e) and has_usb_path(e)]
    return marked + by_path


def log_port_busy_hints() -> None:
    logger.warning("Port is busy. Please:")
    for i, hint in enumerate(PORT_BUSY_HINTS, start=1):
        logger.warning(f"{i}. {hint}")


class RoboPuppySession:
    """
    A single connection to the robot over one serial link at a time.

    Blocking transport calls run in the default executor. Transport events
    arrive on the reader thread and are handed to the event loop, where one
    dispatcher updates the connection state. Events from a link that has
    since been torn down are ignored.

    No lock guards the session; callers serialize access.
    """

    def __init__(
        self,
        port: Optional[str] = None,
        transport: Optional[SerialTransport] = None,
        settings: SerialSettings = DEFAULT_SETTINGS,
        on_line: Optional[Callable[[str], None]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the session (no I/O happens until connect()).

        Args:
            port: Serial endpoint; discovered on connect() if None
            transport: Serial transport capability
            settings: Line settings used to open the port
            on_line: Callback for each line received from the robot
            sleep: Coroutine used for settle and retry delays
        """
        self.port = port
        self.transport = transport or SerialTransport()
        self.settings = settings
        self.on_line = on_line
        self._sleep = sleep

        self._link = None
        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        # Generation whose link last reported error/close
        self._lost_generation: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Statistics
        self._commands_sent = 0
        self._lines_received = 0
        self._last_send_time: Optional[float] = None
        self._last_line: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def connecting(self) -> bool:
        return self._state is ConnectionState.CONNECTING

    async def connect(self, port: Optional[str] = None) -> None:
        """
        Connect to the robot, discovering the port if none is known.

        Raises:
            EndpointNotFoundError: discovery found nothing
            PortBusyError: the last open attempt failed because the port is held
            ConnectionFailedError: all open attempts failed
        """
        self._loop = asyncio.get_running_loop()

        if self.connected:
            logger.info("Disconnecting existing connection...")
            await self.disconnect()
            await self._sleep(DISCONNECT_SETTLE_S)
        elif self._link is not None:
            await self.disconnect()

        if port:
            self.port = port

        self._state = ConnectionState.CONNECTING
        try:
            if not self.port:
                self.port = await self._discover()

            logger.info(f"Attempting to connect to: {self.port}")
            link = await self._open_with_retry(self.port)
            if self._lost_generation == self._generation:
                # The reader died before open() returned to us
                self._generation += 1
                await self._close_quietly(link)
                raise ConnectionFailedError("Serial port closed while opening", address=self.port)
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            logger.error(f"Connection failed: {e}")
            raise

        self._link = link
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to RoboPuppy!")

        # Let the board finish its reset before the first command
        await self._sleep(CONNECT_SETTLE_S)

    async def _discover(self) -> str:
        endpoints = await self._loop.run_in_executor(None, self.transport.list_endpoints)
        endpoint = find_robot_endpoint(endpoints)
        if endpoint is None:
            raise EndpointNotFoundError()
        logger.info(f"Found Arduino at: {endpoint.address}")
        return endpoint.address

    async def _open_with_retry(self, address: str):
        for attempt in range(1, MAX_OPEN_ATTEMPTS + 1):
            self._generation += 1
            listener = self._make_listener(self._generation)
            try:
                return await self._loop.run_in_executor(
                    None, self.transport.open, address, self.settings, listener
                )
            except TransportError as e:
                message = str(e)
                busy = is_port_busy(message)
                if busy:
                    log_port_busy_hints()

                remaining = MAX_OPEN_ATTEMPTS - attempt
                if remaining == 0:
                    error_cls = PortBusyError if busy else ConnectionFailedError
                    raise error_cls(message, address=address) from e

                logger.warning(
                    f"Connection attempt failed ({message}), retrying in "
                    f"{RETRY_DELAY_S:g} seconds... ({remaining} attempts left)"
                )
                await self._sleep(RETRY_DELAY_S)

    def _make_listener(self, generation: int):
        loop = self._loop

        def listener(event: str, payload: Optional[str]) -> None:
            loop.call_soon_threadsafe(self._dispatch, generation, event, payload)

        return listener

    def _dispatch(self, generation: int, event: str, payload: Optional[str]) -> None:
        """Apply one transport event; stale generations are dropped."""
        if generation != self._generation:
            logger.debug(f"Ignoring stale transport event: {event}")
            return

        if event == "open":
            logger.debug("Serial port opened")
        elif event == "data":
            self._lines_received += 1
            self._last_line = payload
            logger.info(f"Robot response: {payload}")
            if self.on_line:
                try:
                    self.on_line(payload)
                except Exception as e:
                    logger.error(f"Error in line callback: {e}")
        elif event == "error":
            logger.error(f"Serial port error: {payload}")
            if payload and is_port_busy(payload):
                log_port_busy_hints()
            self._mark_lost(generation)
        elif event == "close":
            if self.connected:
                logger.info("Disconnected from RoboPuppy")
            self._mark_lost(generation)

    def _mark_lost(self, generation: int) -> None:
        self._lost_generation = generation
        if self.connected:
            self._state = ConnectionState.DISCONNECTED

    async def send_command(self, command: str) -> None:
        """
        Write one command line to the robot.

        Raises:
            NotConnectedError: the session is not connected
            WriteFailedError: the transport rejected the write
        """
        if not self.connected or self._link is None:
            raise NotConnectedError()

        data = (command + "\n").encode("utf-8")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._link.write, data)
        except TransportError as e:
            raise WriteFailedError(f"Failed to send command '{command}': {e}") from e

        self._commands_sent += 1
        self._last_send_time = time.time()
        logger.info(f"Sent command: {command}")

    async def stand(self) -> None:
        await self.send_command("stand")

    async def sit(self) -> None:
        await self.send_command("sit")

    async def walk(self) -> None:
        await self.send_command("walk")

    async def neutral(self) -> None:
        await self.send_command("neutral")

    async def down(self) -> None:
        await self.send_command("down")

    async def help(self) -> None:
        await self.send_command("help")

    async def move_leg(self, leg_id: int, joint: str, angle: float) -> None:
        """
        Move one joint of one leg.

        Args:
            leg_id: Leg index 0-3
            joint: "hip" or "knee"
            angle: Target angle in degrees, -90 to 90
        """
        validate_leg_move(leg_id, joint, angle)
        await self.send_command(format_leg_line(leg_id, joint, angle))

    async def disconnect(self) -> None:
        """Close the link if one is owned. Never raises."""
        if self._link is None:
            self._state = ConnectionState.DISCONNECTED
            return

        link = self._link
        was_connected = self.connected

        # Drop events from the old link before closing it
        self._generation += 1
        self._link = None
        self._state = ConnectionState.DISCONNECTED

        if was_connected:
            await self._close_quietly(link)
        logger.info("Disconnected from RoboPuppy")

    async def _close_quietly(self, link) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, link.close)
        except Exception as e:
            logger.error(f"Error during disconnect: {e}")

    def get_stats(self) -> dict:
        """Get session statistics."""
        return {
            "state": self._state.value,
            "port": self.port,
            "commands_sent": self._commands_sent,
            "lines_received": self._lines_received,
            "last_send_time": self._last_send_time,
            "last_line": self._last_line,
        }
