"""
Serial transport for the RoboPuppy microcontroller.

Handles:
- Enumerating serial endpoints (pyserial list_ports)
- Opening a port with fixed line settings
- Background reader thread that splits inbound bytes into lines
- Reporting open/data/error/close events through a listener callback
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import serial
from serial.tools import list_ports

logger = logging.getLogger(__name__)

# listener(event, payload): event is one of "open", "data", "error", "close"
Listener = Callable[[str, Optional[str]], None]


class TransportError(Exception):
    """Raised by a transport when the OS reports a serial failure."""


@dataclass(frozen=True)
class EndpointInfo:
    """A serial endpoint as reported by the operating system."""
    address: str
    manufacturer: Optional[str] = None
    description: Optional[str] = None
    friendly_name: Optional[str] = None
    vendor_id: Optional[str] = None
    product_id: Optional[str] = None

    @classmethod
    def from_port_info(cls, port) -> 'EndpointInfo':
        """Build from a ``serial.tools.list_ports`` entry."""
        return cls(
            address=port.device,
            manufacturer=port.manufacturer,
            description=port.description,
            friendly_name=port.product,
            vendor_id=f"{port.vid:04x}" if port.vid is not None else None,
            product_id=f"{port.pid:04x}" if port.pid is not None else None,
        )


@dataclass(frozen=True)
class SerialSettings:
    """Line settings used to open the robot's port."""
    baudrate: int = 9600
    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_NONE
    stopbits: float = serial.STOPBITS_ONE
    exclusive: bool = False
    read_timeout: float = 0.1


class SerialLink:
    """
    An open serial port plus its reader thread.

    Inbound bytes are buffered and split on newlines; each complete line
    is reported as a "data" event. A read failure reports "error" and then
    "close". An explicit close() reports "close" once the reader exits.
    """

    def __init__(self, ser: serial.Serial, listener: Listener):
        self._ser = ser
        self._listener = listener
        self._rx_buffer = bytearray()
        self._stop = threading.Event()
        self._write_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._reader_loop,
            name=f"serial-reader-{ser.port}",
            daemon=True,
        )

    @property
    def address(self) -> str:
        return self._ser.port

    def start(self) -> None:
        self._emit("open", None)
        self._thread.start()

    def write(self, data: bytes) -> None:
        """Write all bytes and wait until they have left the buffer."""
        if not self._ser.is_open:
            raise TransportError("Port is not open")
        try:
            with self._write_lock:
                self._ser.write(data)
                self._ser.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(str(e)) from e

    def close(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        try:
            if self._ser.is_open:
                self._ser.close()
        except (serial.SerialException, OSError) as e:
            raise TransportError(str(e)) from e

    def _reader_loop(self) -> None:
        while not self._stop.is_set():
            try:
                data = self._ser.read(self._ser.in_waiting or 1)
            except (serial.SerialException, OSError, TypeError) as e:
                # TypeError: pyserial raises it when the fd is closed under us
                if self._stop.is_set():
                    break
                self._emit("error", str(e))
                self._stop.set()
                self._release()
                break

            if data:
                self._rx_buffer.extend(data)
                self._drain_lines()

        self._emit("close", None)

    def _release(self) -> None:
        try:
            self._ser.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Ignoring close error after read failure: {e}")

    def _drain_lines(self) -> None:
        while True:
            idx = self._rx_buffer.find(b"\n")
            if idx < 0:
                return
            raw = bytes(self._rx_buffer[:idx])
            del self._rx_buffer[:idx + 1]
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                self._emit("data", line)

    def _emit(self, event: str, payload: Optional[str]) -> None:
        try:
            self._listener(event, payload)
        except Exception as e:
            logger.error(f"Error in serial listener ({event}): {e}")


class SerialTransport:
    """Opens SerialLinks and enumerates endpoints via pyserial."""

    def list_endpoints(self) -> List[EndpointInfo]:
        try:
            ports = list_ports.comports()
        except OSError as e:
            raise TransportError(str(e)) from e
        return [EndpointInfo.from_port_info(p) for p in ports]

    def open(
        self,
        address: str,
        settings: SerialSettings,
        listener: Listener,
    ) -> SerialLink:
        """
        Open the port and start its reader.

        Raises:
            TransportError: if the OS refuses to open the port
        """
        ser = serial.Serial(
            port=None,
            baudrate=settings.baudrate,
            bytesize=settings.bytesize,
            parity=settings.parity,
            stopbits=settings.stopbits,
            timeout=settings.read_timeout,
            exclusive=True if settings.exclusive else None,
        )
        ser.port = address
        try:
            ser.open()
        except (serial.SerialException, OSError, ValueError) as e:
            raise TransportError(str(e)) from e

        link = SerialLink(ser, listener)
        link.start()
        return link
