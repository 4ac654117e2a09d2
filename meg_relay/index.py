"""Reverse index from sensing regions to the actuators they drive."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from .core.models import Actuator, SensingRegion

LOGGER = logging.getLogger(__name__)


class ChannelMotorIndex:
    """Read-only mapping of region protocol id to an ordered actuator bucket.

    Buckets preserve actuator declaration order. Build it with :meth:`build`;
    the instance never changes afterwards, so it can be shared freely.
    """

    __slots__ = ("_buckets",)

    def __init__(self, buckets: Mapping[str, Tuple[Actuator, ...]]) -> None:
        self._buckets: Mapping[str, Tuple[Actuator, ...]] = MappingProxyType(
            dict(buckets)
        )

    @classmethod
    def build(
        cls, regions: Sequence[SensingRegion], actuators: Iterable[Actuator]
    ) -> "ChannelMotorIndex":
        buckets: Dict[str, List[Actuator]] = {}
        for region in regions:
            if region.protocol_id in buckets:
                LOGGER.warning("Skipping duplicate region declaration %s", region)
                continue
            buckets[region.protocol_id] = []
        region_ids = set(buckets)
        seen_actuators: set[str] = set()

        for actuator in actuators:
            if actuator.protocol_id in seen_actuators:
                LOGGER.warning(
                    "Skipping duplicate actuator declaration %s", actuator.protocol_id
                )
                continue
            seen_actuators.add(actuator.protocol_id)

            if not actuator.triggers:
                LOGGER.warning(
                    "Actuator %s lists no sensing regions; it will never be driven",
                    actuator.protocol_id,
                )
                continue

            listed: set[str] = set()
            for region_id in actuator.triggers:
                if region_id in listed:
                    LOGGER.warning(
                        "Actuator %s lists region %s more than once; ignoring repeat",
                        actuator.protocol_id,
                        region_id,
                    )
                    continue
                listed.add(region_id)

                if region_id not in region_ids:
                    LOGGER.warning(
                        "Actuator %s lists unknown region %s; skipping binding",
                        actuator.protocol_id,
                        region_id,
                    )
                    continue
                buckets[region_id].append(actuator)

        for region_id, bucket in buckets.items():
            if not bucket:
                LOGGER.info("Region %s drives no actuators", region_id)

        return cls({key: tuple(value) for key, value in buckets.items()})

    def lookup(self, region: Union[SensingRegion, str]) -> Tuple[Actuator, ...]:
        key = region.protocol_id if isinstance(region, SensingRegion) else region
        return self._buckets.get(key, ())

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            region_id: [actuator.protocol_id for actuator in bucket]
            for region_id, bucket in self._buckets.items()
        }

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._buckets
