"""Tests for settings translation and profile text rendering."""
import pytest

from intellislice.errors import UnsupportedValueError
from intellislice.models import InfillPattern, SettingKey, SettingsRecord
from intellislice.settings import (
    DEFAULT_INHERITS,
    DEFAULT_PROFILE_NAME,
    ORCA_SETTINGS_MAP,
    UNMAPPED_KEYS,
    coerce_record,
    format_number,
    map_settings,
    render_settings_text,
)


def test_scenario_record(scenario_settings):
    assert map_settings(scenario_settings) == [
        ("layer_height", "0.2"),
        ("sparse_infill_density", "15%"),
        ("support_enable", "0"),
    ]


def test_booleans():
    pairs = dict(map_settings({"enableSupports": True, "enableFan": False, "sequentialPrinting": True}))
    assert pairs == {"support_enable": "1", "fan_enable": "0", "sequential_print": "1"}


@pytest.mark.parametrize("density, expected", [(20, "20%"), (20.0, "20%"), (12.5, "12.5%"), (0, "0%"), (100, "100%")])
def test_infill_density_percent(density, expected):
    assert map_settings({"infillDensity": density}) == [("sparse_infill_density", expected)]


def test_percent_only_applies_to_infill_density():
    pairs = dict(map_settings({"fanSpeed": 80, "infillWallOverlap": 15}))
    assert pairs == {"cooling_fan_speed": "80", "infill_wall_overlap": "15"}


def test_enum_lowercasing():
    pairs = dict(map_settings({
        "infillPattern": "Gyroid",
        "supportType": "Tree",
        "fuzzySkin": "Outer",
        "brimType": "outer_brim",
        "seamPosition": "Aligned",
        "filamentType": "PETG",
    }))
    assert pairs == {
        "sparse_infill_pattern": "gyroid",
        "support_type": "tree",
        "fuzzy_skin": "outer",
        "brim_type": "outer_brim",
        "seam_position": "aligned",
        "filament_type": "PETG",
    }


def test_enum_values_accepted_in_any_case():
    assert map_settings({"infillPattern": "cubicsubdivision"}) == [
        ("sparse_infill_pattern", "cubicsubdivision")
    ]
    assert map_settings({"filamentType": "pla"}) == [("filament_type", "PLA")]


def test_plain_numbers():
    pairs = dict(map_settings({
        "wallLoops": 3,
        "acceleration": 10000,
        "flowRatio": 0.98,
        "nozzleTemp": 215.0,
        "pressureAdvance": 0.00001,
    }))
    assert pairs == {
        "wall_loops": "3",
        "default_acceleration": "10000",
        "filament_flow_ratio": "0.98",
        "nozzle_temperature": "215",
        "pressure_advance": "0.00001",
    }


def test_unknown_key_is_dropped_without_error():
    assert map_settings({"layerHeight": 0.2, "mysteryKnob": 5}) == [("layer_height", "0.2")]


def test_printer_context_keys_are_not_emitted():
    record = {"nozzleDiameter": 0.4, "bedShape": "Rectangular", "originX": -5, "layerHeight": 0.2}
    assert map_settings(record) == [("layer_height", "0.2")]


def test_none_values_are_omitted():
    assert map_settings({"layerHeight": None, "wallLoops": 2}) == [("wall_loops", "2")]


def test_mapping_follows_insertion_order():
    pairs = map_settings({"bedTemp": 60, "layerHeight": 0.2, "wallLoops": 2})
    assert [k for k, _ in pairs] == ["bed_temperature", "layer_height", "wall_loops"]


def test_record_follows_insertion_order():
    record = SettingsRecord(bedTemp=60, layer_height=0.2, wallLoops=2)
    assert [k for k, _ in map_settings(record)] == ["bed_temperature", "layer_height", "wall_loops"]


def test_copied_record_appends_new_values():
    record = SettingsRecord(wallLoops=2, bedTemp=60).model_copy(update={"layer_height": 0.2})
    assert [k for k, _ in map_settings(record)] == ["wall_loops", "bed_temperature", "layer_height"]


def test_numeric_strings_are_coerced():
    assert map_settings({"layerHeight": "0.2", "wallLoops": "3", "enableSupports": "false"}) == [
        ("layer_height", "0.2"),
        ("wall_loops", "3"),
        ("support_enable", "0"),
    ]


def test_attribute_names_are_accepted():
    assert map_settings({"layer_height": 0.2, "infill_pattern": InfillPattern.GRID}) == [
        ("layer_height", "0.2"),
        ("sparse_infill_pattern", "grid"),
    ]


@pytest.mark.parametrize(
    "record, key",
    [
        ({"infillPattern": "Spaghetti"}, "infillPattern"),
        ({"layerHeight": -0.1}, "layerHeight"),
        ({"infillDensity": 150}, "infillDensity"),
        ({"wallLoops": 2.5}, "wallLoops"),
        ({"enableSupports": "maybe"}, "enableSupports"),
        ({"layerHeight": True}, "layerHeight"),
        ({"wallLoops": False}, "wallLoops"),
        ({"infillDensity": True}, "infillDensity"),
        ({"infillPattern": True}, "infillPattern"),
    ],
)
def test_invalid_values_raise(record, key):
    with pytest.raises(UnsupportedValueError) as exc_info:
        map_settings(record)
    assert exc_info.value.key == key


def test_non_mapping_record():
    with pytest.raises(UnsupportedValueError):
        map_settings([("layerHeight", 0.2)])


def test_coerce_record_passes_records_through():
    record = SettingsRecord(layerHeight=0.2)
    assert coerce_record(record) is record


def test_emitted_keys_come_from_table_once():
    record = {key.value: 1 for key in ORCA_SETTINGS_MAP if key not in {
        SettingKey.FUZZY_SKIN, SettingKey.INFILL_PATTERN, SettingKey.SUPPORT_TYPE,
        SettingKey.BRIM_TYPE, SettingKey.SEAM_POSITION, SettingKey.FILAMENT_TYPE,
    }}
    keys = [k for k, _ in map_settings(record)]
    assert set(keys) <= set(ORCA_SETTINGS_MAP.values())
    assert len(keys) == len(set(keys))


def test_every_setting_is_mapped_or_explicitly_unmapped():
    mapped = set(ORCA_SETTINGS_MAP)
    assert mapped.isdisjoint(UNMAPPED_KEYS)
    assert mapped | UNMAPPED_KEYS == set(SettingKey)


def test_external_keys_are_unique():
    values = list(ORCA_SETTINGS_MAP.values())
    assert len(values) == len(set(values))


def test_record_fields_match_setting_keys():
    aliases = {field.alias for field in SettingsRecord.model_fields.values()}
    assert aliases == {key.value for key in SettingKey}


@pytest.mark.parametrize(
    "value, expected",
    [(0.2, "0.2"), (20.0, "20"), (7, "7"), (1e-05, "0.00001"), (1234567.5, "1234567.5"), (-0.5, "-0.5")],
)
def test_format_number(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_format_number_rejects_non_finite(value):
    with pytest.raises(UnsupportedValueError):
        format_number(value)


def test_render_settings_text(scenario_settings):
    text = render_settings_text(map_settings(scenario_settings))

    assert text.splitlines() == [
        f"[print:{DEFAULT_PROFILE_NAME}]",
        f'inherits = "{DEFAULT_INHERITS}"',
        "layer_height = 0.2",
        "sparse_infill_density = 15%",
        "support_enable = 0",
    ]
    assert text.endswith("\n")
    assert "\r" not in text


def test_render_settings_text_custom_header():
    text = render_settings_text([], profile_name="Fast PLA", inherits="0.28mm Draft")
    assert text == '[print:Fast PLA]\ninherits = "0.28mm Draft"\n'


def test_render_settings_text_rejects_multiline_header():
    with pytest.raises(UnsupportedValueError):
        render_settings_text([], profile_name="bad\nname")
