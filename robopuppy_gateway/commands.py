"""
Command model for the RoboPuppy line protocol.

Every command is a single newline-terminated text line:
    stand | sit | walk | neutral | down | help | leg <legId> <joint> <angle>
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import (
    InvalidAngleError,
    InvalidJointError,
    InvalidLegError,
    UnknownCommandError,
)

VALID_LEGS = (0, 1, 2, 3)
VALID_JOINTS = ("hip", "knee")
MIN_ANGLE = -90
MAX_ANGLE = 90

Number = Union[int, float]


class CommandName(str, Enum):
    STAND = "stand"
    SIT = "sit"
    WALK = "walk"
    NEUTRAL = "neutral"
    DOWN = "down"
    HELP = "help"
    LEG = "leg"


def validate_leg_move(leg_id: Any, joint: Any, angle: Any) -> None:
    """
    Check a leg move against the servo limits.

    Raises:
        InvalidLegError: leg_id is not one of 0-3
        InvalidJointError: joint is not "hip" or "knee"
        InvalidAngleError: angle is not a finite number in [-90, 90]
    """
    if isinstance(leg_id, bool) or leg_id not in VALID_LEGS:
        raise InvalidLegError()
    if joint not in VALID_JOINTS:
        raise InvalidJointError()
    if (
        isinstance(angle, bool)
        or not isinstance(angle, (int, float))
        or not math.isfinite(angle)
        or not MIN_ANGLE <= angle <= MAX_ANGLE
    ):
        raise InvalidAngleError()


def format_angle(angle: Number) -> str:
    """Render 45.0 as "45" and 12.5 as "12.5"."""
    if isinstance(angle, float) and angle.is_integer():
        return str(int(angle))
    return str(angle)


def format_leg_line(leg_id: int, joint: str, angle: Number) -> str:
    return f"leg {int(leg_id)} {joint} {format_angle(angle)}"


def _coerce_leg(value: Any) -> Any:
    # JSON clients send numbers, form posts send strings
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise InvalidLegError()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _coerce_angle(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            # Left as text; validate_leg_move rejects it after leg and joint
            return value
    return value


@dataclass
class RobotCommand:
    """
    A command parsed from a boundary payload.

    Attributes:
        name: Which command to run
        leg_id: Leg index (leg command only)
        joint: "hip" or "knee" (leg command only)
        angle: Target angle in degrees (leg command only)
    """
    name: CommandName
    leg_id: Optional[int] = None
    joint: Optional[str] = None
    angle: Optional[Number] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'RobotCommand':
        """
        Parse ``{command, legId?, joint?, angle?}``.

        Raises:
            UnknownCommandError: if the command name is missing or unknown
            InvalidLegError, InvalidJointError, InvalidAngleError: bad leg move
        """
        raw = payload.get("command")
        try:
            name = CommandName(raw)
        except ValueError:
            raise UnknownCommandError()

        if name is not CommandName.LEG:
            return cls(name=name)

        command = cls(
            name=name,
            leg_id=_coerce_leg(payload.get("legId")),
            joint=payload.get("joint"),
            angle=_coerce_angle(payload.get("angle")),
        )
        validate_leg_move(command.leg_id, command.joint, command.angle)
        return command

    def to_line(self) -> str:
        """Serialize to the wire line, without the newline terminator."""
        if self.name is CommandName.LEG:
            return format_leg_line(self.leg_id, self.joint, self.angle)
        return self.name.value

    async def dispatch(self, session) -> None:
        """Run this command on a RoboPuppySession."""
        if self.name is CommandName.LEG:
            await session.move_leg(self.leg_id, self.joint, self.angle)
            return
        handler = getattr(session, self.name.value)
        await handler()
