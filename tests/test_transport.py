import time
from types import SimpleNamespace

import pytest
import serial

from robopuppy_gateway.transport import (
    EndpointInfo,
    SerialLink,
    SerialSettings,
    SerialTransport,
    TransportError,
)


class FakeSerial:
    """Just enough of serial.Serial for SerialLink."""
    def __init__(self, chunks=None):
        self.port = "/dev/ttyACM0"
        self.is_open = True
        self.in_waiting = 0
        self.written = []
        self._chunks = list(chunks or [])

    def read(self, n):
        if self._chunks:
            return self._chunks.pop(0)
        time.sleep(0.005)
        return b""

    def write(self, data):
        self.written.append(data)
        return len(data)

    def flush(self):
        pass

    def close(self):
        self.is_open = False


def _capture():
    events = []
    return events, lambda event, payload: events.append((event, payload))


def test_endpoint_info_from_port_info():
    port = SimpleNamespace(
        device="/dev/ttyACM0",
        manufacturer="Arduino (www.arduino.cc)",
        description="Arduino Uno",
        product="Uno R3",
        vid=0x2341,
        pid=0x0043,
    )

    info = EndpointInfo.from_port_info(port)

    assert info.address == "/dev/ttyACM0"
    assert info.friendly_name == "Uno R3"
    assert info.vendor_id == "2341"
    assert info.product_id == "0043"


def test_endpoint_info_without_usb_ids():
    port = SimpleNamespace(
        device="/dev/ttyS0", manufacturer=None, description="n/a", product=None, vid=None, pid=None,
    )

    info = EndpointInfo.from_port_info(port)

    assert info.vendor_id is None
    assert info.product_id is None


def test_partial_lines_are_buffered_until_newline():
    events, listener = _capture()
    link = SerialLink(FakeSerial(), listener)

    link._rx_buffer.extend(b"Stand")
    link._drain_lines()
    assert events == []

    link._rx_buffer.extend(b"ing up\r\nREADY\n\npartial")
    link._drain_lines()

    assert events == [("data", "Standing up"), ("data", "READY")]
    assert bytes(link._rx_buffer) == b"partial"


def test_write_sends_bytes():
    ser = FakeSerial()
    link = SerialLink(ser, lambda event, payload: None)

    link.write(b"stand\n")

    assert ser.written == [b"stand\n"]


def test_write_on_closed_port_raises():
    ser = FakeSerial()
    ser.is_open = False
    link = SerialLink(ser, lambda event, payload: None)

    with pytest.raises(TransportError):
        link.write(b"stand\n")


def test_reader_thread_reports_lines_and_close():
    events, listener = _capture()
    ser = FakeSerial(chunks=[b"hello\n", b"wor", b"ld\n"])
    link = SerialLink(ser, listener)

    link.start()
    deadline = time.monotonic() + 2.0
    while ("data", "world") not in events and time.monotonic() < deadline:
        time.sleep(0.01)
    link.close()

    assert events[0] == ("open", None)
    assert ("data", "hello") in events
    assert ("data", "world") in events
    assert events[-1] == ("close", None)
    assert not ser.is_open


class FailingSerial(FakeSerial):
    def read(self, n):
        raise serial.SerialException("device reports readiness to read but returned no data")


def test_read_failure_reports_error_then_close_and_releases_port():
    events, listener = _capture()
    ser = FailingSerial()
    link = SerialLink(ser, listener)

    link.start()
    link._thread.join(timeout=2.0)

    assert [event for event, _ in events] == ["open", "error", "close"]
    assert "returned no data" in events[1][1]
    assert not ser.is_open


@pytest.fixture
def opened(monkeypatch):
    """Replaces serial.Serial; records every port the transport builds."""
    created = []

    class OpenableSerial(FakeSerial):
        open_error = None

        def __init__(self, **kwargs):
            super().__init__()
            self.kwargs = kwargs
            self.is_open = False
            created.append(self)

        def open(self):
            if self.open_error:
                raise serial.SerialException(self.open_error)
            self.is_open = True

    monkeypatch.setattr(serial, "Serial", OpenableSerial)
    return created


@pytest.mark.parametrize("exclusive, flag", [(False, None), (True, True)])
def test_open_applies_line_settings(opened, exclusive, flag):
    events, listener = _capture()

    link = SerialTransport().open("/dev/ttyUSB1", SerialSettings(exclusive=exclusive), listener)
    link.close()

    ser = opened[0]
    assert ser.port == "/dev/ttyUSB1"
    assert ser.kwargs["baudrate"] == 9600
    assert ser.kwargs["bytesize"] == serial.EIGHTBITS
    assert ser.kwargs["parity"] == serial.PARITY_NONE
    assert ser.kwargs["stopbits"] == serial.STOPBITS_ONE
    assert ser.kwargs["exclusive"] is flag
    assert events[0] == ("open", None)
    assert events[-1] == ("close", None)


def test_open_failure_becomes_transport_error(opened, monkeypatch):
    monkeypatch.setattr(serial.Serial, "open_error", "[Errno 16] Device or resource busy: '/dev/ttyACM0'")
    events, listener = _capture()

    with pytest.raises(TransportError) as exc_info:
        SerialTransport().open("/dev/ttyACM0", SerialSettings(), listener)

    assert "Device or resource busy" in str(exc_info.value)
    assert events == []
