import pytest

from robopuppy_gateway.commands import (
    CommandName,
    RobotCommand,
    format_angle,
    format_leg_line,
)
from robopuppy_gateway.errors import (
    InvalidAngleError,
    InvalidJointError,
    InvalidLegError,
    UnknownCommandError,
)


class RecordingSession:
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        async def record(*args):
            self.calls.append((name, args))
        return record


@pytest.mark.parametrize("name", ["stand", "sit", "walk", "neutral", "down", "help"])
def test_simple_command_line_is_its_name(name):
    command = RobotCommand.from_payload({"command": name})

    assert command.name is CommandName(name)
    assert command.to_line() == name


def test_leg_payload_parses_and_formats():
    command = RobotCommand.from_payload({"command": "leg", "legId": 2, "joint": "hip", "angle": 45})

    assert (command.leg_id, command.joint, command.angle) == (2, "hip", 45)
    assert command.to_line() == "leg 2 hip 45"


def test_leg_payload_coerces_numeric_strings():
    command = RobotCommand.from_payload({"command": "leg", "legId": "3", "joint": "knee", "angle": "-30"})

    assert command.leg_id == 3
    assert command.to_line() == "leg 3 knee -30"


@pytest.mark.parametrize("payload", [
    {},
    {"command": None},
    {"command": "jump"},
    {"command": "STAND"},
    {"command": ["stand"]},
])
def test_unknown_command(payload):
    with pytest.raises(UnknownCommandError) as exc_info:
        RobotCommand.from_payload(payload)

    assert str(exc_info.value) == "Unknown command"


@pytest.mark.parametrize("payload, error", [
    ({"command": "leg", "legId": 4, "joint": "hip", "angle": 0}, InvalidLegError),
    ({"command": "leg", "legId": "front", "joint": "hip", "angle": 0}, InvalidLegError),
    ({"command": "leg", "joint": "hip", "angle": 0}, InvalidLegError),
    ({"command": "leg", "legId": 1, "joint": "paw", "angle": 0}, InvalidJointError),
    ({"command": "leg", "legId": 1, "joint": "hip", "angle": 120}, InvalidAngleError),
    ({"command": "leg", "legId": 1, "joint": "hip", "angle": "up"}, InvalidAngleError),
    ({"command": "leg", "legId": 1, "joint": "hip"}, InvalidAngleError),
])
def test_invalid_leg_payloads(payload, error):
    with pytest.raises(error):
        RobotCommand.from_payload(payload)


def test_leg_checks_run_in_order():
    # Every field is wrong; the leg is reported first
    with pytest.raises(InvalidLegError):
        RobotCommand.from_payload({"command": "leg", "legId": 9, "joint": "paw", "angle": 500})


def test_bad_joint_reported_before_unparseable_angle():
    with pytest.raises(InvalidJointError):
        RobotCommand.from_payload({"command": "leg", "legId": 0, "joint": "paw", "angle": "up"})


@pytest.mark.parametrize("angle, text", [(45, "45"), (45.0, "45"), (-12.5, "-12.5"), (0, "0")])
def test_format_angle(angle, text):
    assert format_angle(angle) == text


def test_format_leg_line_accepts_integral_float_leg():
    assert format_leg_line(2.0, "knee", 10) == "leg 2 knee 10"


@pytest.mark.asyncio
async def test_dispatch_calls_matching_session_method():
    session = RecordingSession()

    await RobotCommand.from_payload({"command": "walk"}).dispatch(session)
    await RobotCommand.from_payload({"command": "leg", "legId": 0, "joint": "knee", "angle": -30}).dispatch(session)

    assert session.calls == [("walk", ()), ("move_leg", (0, "knee", -30))]
