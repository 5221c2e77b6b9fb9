# tests/conftest.py

import pytest

from fakes import ROBOT_PORT, FakeTransport, SleepRecorder
from robopuppy_gateway.session import RoboPuppySession
from robopuppy_gateway.transport import EndpointInfo


@pytest.fixture
def transport():
    return FakeTransport(endpoints=[
        EndpointInfo(address="/dev/ttyS0", description="ttyS0"),
        EndpointInfo(address=ROBOT_PORT, manufacturer="Arduino (www.arduino.cc)", description="Arduino Uno"),
    ])


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def lines():
    return []


@pytest.fixture
def session(transport, sleeps, lines):
    return RoboPuppySession(
        port=ROBOT_PORT,
        transport=transport,
        on_line=lines.append,
        sleep=sleeps,
    )
