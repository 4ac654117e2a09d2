"""Core primitives for meg-relay."""

from .models import (
    Actuator,
    CommandLine,
    RangePolicy,
    SampleRecord,
    SensingRegion,
)
from .protocols import CommandSink, InboundStream, OutboundStream, RelayTransport

__all__ = [
    "Actuator",
    "CommandLine",
    "CommandSink",
    "InboundStream",
    "OutboundStream",
    "RangePolicy",
    "RelayTransport",
    "SampleRecord",
    "SensingRegion",
]
