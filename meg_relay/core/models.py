"""Domain models for sensing regions, actuators, records and commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class RangePolicy(str, Enum):
    """How sample values are checked against an actuator's position range."""

    PASS = "pass"
    """Forward values unchanged."""

    CLAMP = "clamp"
    """Limit values to ``[min_position, max_position]``."""

    REJECT = "reject"
    """Drop the command for out-of-range values."""


@dataclass(slots=True, frozen=True)
class SensingRegion:
    """A fixed telemetry source (a cortical area) addressed by ``protocol_id``."""

    name: str
    label: str
    protocol_id: str

    def __str__(self) -> str:
        return f"{self.protocol_id} ({self.label})"


@dataclass(slots=True, frozen=True)
class Actuator:
    """A motor or driver target addressed by ``protocol_id``.

    Attributes:
        name: Symbolic name, e.g. ``SERVO_J_1``.
        protocol_id: Identifier used on the outbound wire, e.g. ``s_j_1``.
        min_position: Minimum allowed position (inclusive).
        max_position: Maximum allowed position (inclusive).
        channel: PWM or stepper driver channel.
        default_position: Resting position within the range.
        triggers: Region protocol ids that drive this actuator, in order.
    """

    name: str
    protocol_id: str
    min_position: int
    max_position: int
    channel: int
    default_position: int
    triggers: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.min_position > self.max_position:
            raise ValueError(
                f"{self.protocol_id}: min_position {self.min_position} "
                f"exceeds max_position {self.max_position}"
            )
        if not self.min_position <= self.default_position <= self.max_position:
            raise ValueError(
                f"{self.protocol_id}: default_position {self.default_position} "
                f"outside [{self.min_position}, {self.max_position}]"
            )

    def in_range(self, value: int) -> bool:
        return self.min_position <= value <= self.max_position

    def clamp(self, value: int) -> int:
        return max(self.min_position, min(self.max_position, value))

    def __str__(self) -> str:
        return self.protocol_id


@dataclass(slots=True, frozen=True)
class SampleRecord:
    channel_id: str
    value: int


@dataclass(slots=True, frozen=True)
class CommandLine:
    """One outbound instruction addressed to a single actuator."""

    digits: Tuple[str, ...]
    actuator_id: str

    @classmethod
    def for_value(cls, value: int, actuator_id: str) -> "CommandLine":
        if value < 0:
            raise ValueError(f"Cannot encode negative value {value}")
        return cls(digits=tuple(str(value)), actuator_id=actuator_id)

    def format(self) -> str:
        return f"{','.join(self.digits)}|{self.actuator_id}"

    def __str__(self) -> str:
        return self.format()
