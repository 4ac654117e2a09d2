import logging

import pytest

from meg_relay.catalog import (
    DEFAULT_ACTUATORS,
    DEFAULT_REGIONS,
    apply_bindings,
    build_catalog,
    find_region,
)
from meg_relay.core.models import Actuator, CommandLine


def test_default_catalog_declares_regions_and_actuators() -> None:
    catalog = build_catalog()

    assert [region.protocol_id for region in catalog.regions] == [
        "MEG_C3",
        "MEG_C4",
        "MEG_CZ",
        "MEG_PM_L",
        "MEG_PM_R",
        "MEG_SMA",
        "MEG_PAR_L",
        "MEG_PAR_R",
    ]
    assert [actuator.protocol_id for actuator in catalog.actuators] == [
        "s_j_L",
        "s_j_R",
        "s_j_1",
        "s_j_2",
        "s_j_3",
        "s_j_4",
        "stp_200_360",
    ]


def test_default_actuators_have_defaults_within_range() -> None:
    for actuator in DEFAULT_ACTUATORS:
        assert actuator.in_range(actuator.default_position), actuator


def test_actuator_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        Actuator("BROKEN", "b", 100, 10, 0, 50)


def test_actuator_rejects_default_outside_range() -> None:
    with pytest.raises(ValueError):
        Actuator("BROKEN", "b", 10, 100, 0, 0)


def test_actuator_clamp_limits_to_range() -> None:
    actuator = Actuator("SERVO", "s", 10, 180, 0, 60)

    assert actuator.clamp(5) == 10
    assert actuator.clamp(90) == 90
    assert actuator.clamp(500) == 180


def test_find_region_matches_protocol_id_exactly() -> None:
    assert find_region(DEFAULT_REGIONS, "MEG_C3") is DEFAULT_REGIONS[0]
    assert find_region(DEFAULT_REGIONS, "meg_c3") is None
    assert find_region(DEFAULT_REGIONS, "MOTOR_C3") is None


def test_apply_bindings_replaces_triggers_in_declaration_order(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        actuators = apply_bindings(
            DEFAULT_ACTUATORS, {"s_j_4": ["MEG_CZ", "MEG_C4"], "missing": ["MEG_C3"]}
        )

    by_id = {actuator.protocol_id: actuator for actuator in actuators}
    assert by_id["s_j_4"].triggers == ("MEG_CZ", "MEG_C4")
    assert by_id["s_j_1"].triggers == ("MEG_C3",)
    assert [a.protocol_id for a in actuators] == [a.protocol_id for a in DEFAULT_ACTUATORS]
    assert any("missing" in record.getMessage() for record in caplog.records)


def test_command_line_formats_digits_and_actuator() -> None:
    assert CommandLine.for_value(512, "s_j_1").format() == "5,1,2|s_j_1"
    assert str(CommandLine.for_value(0, "s_j_L")) == "0|s_j_L"


def test_command_line_rejects_negative_values() -> None:
    with pytest.raises(ValueError):
        CommandLine.for_value(-1, "s_j_1")
