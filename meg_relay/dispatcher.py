"""Resolution of telemetry records into actuator command lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .catalog import Catalog, find_region
from .core.models import Actuator, CommandLine, RangePolicy, SampleRecord, SensingRegion
from .index import ChannelMotorIndex

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchStats:
    records: int = 0
    unknown_channels: int = 0
    unmapped_regions: int = 0
    dropped_values: int = 0
    commands: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "records": self.records,
            "unknownChannels": self.unknown_channels,
            "unmappedRegions": self.unmapped_regions,
            "droppedValues": self.dropped_values,
            "commands": self.commands,
        }


class Dispatcher:
    """Map ``(channel, value)`` records onto one command line per actuator.

    Unknown channels and regions without actuators produce no commands and a
    single warning; they are never raised to the caller.
    """

    def __init__(
        self,
        regions: Sequence[SensingRegion],
        index: ChannelMotorIndex,
        *,
        range_policy: RangePolicy = RangePolicy.PASS,
    ) -> None:
        self._regions = tuple(regions)
        self._index = index
        self._range_policy = range_policy
        self.stats = DispatchStats()

    @classmethod
    def from_catalog(
        cls, catalog: Catalog, *, range_policy: RangePolicy = RangePolicy.PASS
    ) -> "Dispatcher":
        index = ChannelMotorIndex.build(catalog.regions, catalog.actuators)
        return cls(catalog.regions, index, range_policy=range_policy)

    @property
    def index(self) -> ChannelMotorIndex:
        return self._index

    @property
    def range_policy(self) -> RangePolicy:
        return self._range_policy

    def dispatch_record(self, record: SampleRecord) -> List[CommandLine]:
        return self.dispatch(record.channel_id, record.value)

    def dispatch(self, channel_id: str, value: int) -> List[CommandLine]:
        self.stats.records += 1

        region = find_region(self._regions, channel_id)
        if region is None:
            self.stats.unknown_channels += 1
            LOGGER.warning("Discarding sample for unknown channel %r", channel_id)
            return []

        actuators = self._index.lookup(region)
        if not actuators:
            self.stats.unmapped_regions += 1
            LOGGER.warning("Discarding sample for %s: no actuators bound", region)
            return []

        commands: List[CommandLine] = []
        skipped: List[Tuple[str, str]] = []
        for actuator in actuators:
            target, reason = self._resolve_value(actuator, value)
            if target is None:
                skipped.append((actuator.protocol_id, reason))
                continue
            commands.append(CommandLine.for_value(target, actuator.protocol_id))

        if skipped:
            self.stats.dropped_values += len(skipped)
            LOGGER.warning(
                "Dropped value %d from %s for %s",
                value,
                channel_id,
                ", ".join(f"{actuator_id} ({reason})" for actuator_id, reason in skipped),
            )

        self.stats.commands += len(commands)
        return commands

    def _resolve_value(self, actuator: Actuator, value: int) -> Tuple[Optional[int], str]:
        target = value
        if self._range_policy is RangePolicy.CLAMP:
            target = actuator.clamp(value)
        elif self._range_policy is RangePolicy.REJECT and not actuator.in_range(value):
            return None, f"outside [{actuator.min_position}, {actuator.max_position}]"

        if target < 0:
            return None, "negative values cannot be encoded"
        return target, ""


def format_commands(commands: Sequence[CommandLine]) -> str:
    """Join command lines into the newline-separated block the sink expects."""

    return "\n".join(command.format() for command in commands)
