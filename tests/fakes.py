import asyncio
from typing import Callable, List, Optional, Tuple

from robopuppy_gateway.transport import EndpointInfo, SerialSettings, TransportError

ROBOT_PORT = "/dev/ttyACM0"


class FakeLink:
    """
    Stand-in for SerialLink.

    - write() records the bytes, or raises if write_error is set
    - emit() plays the reader thread, pushing events to the session
    """
    def __init__(self, address: str, listener: Callable[[str, Optional[str]], None]) -> None:
        self.address = address
        self.listener = listener
        self.written: List[bytes] = []
        self.close_calls = 0
        self.write_error: Optional[str] = None
        self.close_error: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def write(self, data: bytes) -> None:
        if self.write_error:
            raise TransportError(self.write_error)
        self.written.append(data)

    def close(self) -> None:
        self.close_calls += 1
        if self.close_error:
            raise TransportError(self.close_error)

    def emit(self, event: str, payload: Optional[str] = None) -> None:
        self.listener(event, payload)


class FakeTransport:
    """
    Stand-in for SerialTransport.

    open_errors is consumed one message per open() call; once it is empty,
    open() succeeds and returns a FakeLink.
    """
    def __init__(
        self,
        endpoints: Optional[List[EndpointInfo]] = None,
        open_errors: Optional[List[str]] = None,
    ) -> None:
        self.endpoints = list(endpoints or [])
        self.open_errors = list(open_errors or [])
        self.open_calls: List[Tuple[str, SerialSettings]] = []
        self.links: List[FakeLink] = []

    @property
    def last_link(self) -> Optional[FakeLink]:
        return self.links[-1] if self.links else None

    def list_endpoints(self) -> List[EndpointInfo]:
        return list(self.endpoints)

    def open(self, address: str, settings: SerialSettings, listener) -> FakeLink:
        self.open_calls.append((address, settings))
        if self.open_errors:
            raise TransportError(self.open_errors.pop(0))
        link = FakeLink(address, listener)
        self.links.append(link)
        listener("open", None)
        return link


class SleepRecorder:
    """Replaces asyncio.sleep; records each requested delay."""
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


async def drain_events() -> None:
    """Let call_soon_threadsafe callbacks run."""
    for _ in range(3):
        await asyncio.sleep(0)
