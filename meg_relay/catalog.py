"""Compiled-in sensing regions and actuators.

The tables below are the only source of truth for which regions drive which
actuators: each actuator lists its triggering regions and the reverse index
is derived from them at startup (see :mod:`meg_relay.index`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .core.models import Actuator, SensingRegion

LOGGER = logging.getLogger(__name__)


DEFAULT_REGIONS: Tuple[SensingRegion, ...] = (
    # Left hemisphere motor cortex, right hand and wrist.
    SensingRegion("MOTOR_C3", "motor_cortex_left", "MEG_C3"),
    # Right hemisphere motor cortex, left hand.
    SensingRegion("MOTOR_C4", "motor_cortex_right", "MEG_C4"),
    # Midline motor cortex, trunk and bilateral limbs.
    SensingRegion("MOTOR_CZ", "motor_cortex_midline", "MEG_CZ"),
    SensingRegion("PREMOTOR_L", "premotor_left", "MEG_PM_L"),
    SensingRegion("PREMOTOR_R", "premotor_right", "MEG_PM_R"),
    # Supplementary motor area, sequential and bimanual tasks.
    SensingRegion("SMA", "supplementary_motor_area", "MEG_SMA"),
    SensingRegion("PARIETAL_L", "parietal_left", "MEG_PAR_L"),
    SensingRegion("PARIETAL_R", "parietal_right", "MEG_PAR_R"),
)


DEFAULT_ACTUATORS: Tuple[Actuator, ...] = (
    Actuator("SERVO_L", "s_j_L", 10, 180, 0, 60, ("MEG_PM_R", "MEG_PAR_R")),
    Actuator("SERVO_R", "s_j_R", 10, 180, 1, 60, ("MEG_PM_L", "MEG_PAR_L")),
    Actuator("SERVO_J_1", "s_j_1", 10, 400, 1, 70, ("MEG_C3",)),
    Actuator("SERVO_J_2", "s_j_2", 10, 380, 1, 47, ("MEG_C3",)),
    Actuator("SERVO_J_3", "s_j_3", 10, 380, 1, 63, ("MEG_C4", "MEG_SMA")),
    Actuator("SERVO_J_4", "s_j_4", 10, 120, 1, 63, ("MEG_C4",)),
    Actuator("STEPPER_BASE", "stp_200_360", 10, 180, 1, 10, ("MEG_CZ", "MEG_SMA")),
)


@dataclass(slots=True, frozen=True)
class Catalog:
    regions: Tuple[SensingRegion, ...]
    actuators: Tuple[Actuator, ...]


def find_region(
    regions: Iterable[SensingRegion], protocol_id: str
) -> Optional[SensingRegion]:
    """Return the region whose protocol id matches exactly, if any."""

    for region in regions:
        if region.protocol_id == protocol_id:
            return region
    return None


def apply_bindings(
    actuators: Sequence[Actuator], bindings: Mapping[str, Sequence[str]]
) -> Tuple[Actuator, ...]:
    """Replace the triggering regions of the actuators named in ``bindings``.

    Declaration order of the actuators is preserved. Unknown actuator ids are
    logged and ignored.
    """

    known = {actuator.protocol_id for actuator in actuators}
    for actuator_id in bindings:
        if actuator_id not in known:
            LOGGER.warning("Ignoring binding for unknown actuator %r", actuator_id)

    return tuple(
        replace(actuator, triggers=tuple(bindings[actuator.protocol_id]))
        if actuator.protocol_id in bindings
        else actuator
        for actuator in actuators
    )


def build_catalog(
    bindings: Optional[Mapping[str, Sequence[str]]] = None,
    *,
    regions: Sequence[SensingRegion] = DEFAULT_REGIONS,
    actuators: Sequence[Actuator] = DEFAULT_ACTUATORS,
) -> Catalog:
    resolved = apply_bindings(actuators, bindings) if bindings else tuple(actuators)
    return Catalog(regions=tuple(regions), actuators=resolved)
