"""
Settings translation: internal parameter record → OrcaSlicer profile text.

The mapping table is static and pinned to OrcaSlicer's process/filament
key vocabulary. It is keyed by ``SettingKey`` rather than derived from the
settings schema, so parameters without an entry are dropped silently.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .errors import UnsupportedValueError
from .models import SettingKey, SettingsRecord

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "IntelliSlice AI Profile"
DEFAULT_INHERITS = "0.20mm Standard @MyGenericPrinter"

ORCA_SETTINGS_MAP: dict[SettingKey, str] = {
    # Quality
    SettingKey.LAYER_HEIGHT: "layer_height",
    SettingKey.FIRST_LAYER_HEIGHT: "initial_layer_height",
    SettingKey.LINE_WIDTH: "line_width",
    SettingKey.FIRST_LAYER_LINE_WIDTH: "initial_layer_line_width",
    SettingKey.VARIABLE_LAYER_HEIGHT: "adaptive_layer_height",
    # Walls
    SettingKey.WALL_LOOPS: "wall_loops",
    SettingKey.TOP_SHELL_LAYERS: "top_shell_layers",
    SettingKey.TOP_SHELL_THICKNESS: "top_shell_thickness",
    SettingKey.BOTTOM_SHELL_LAYERS: "bottom_shell_layers",
    SettingKey.BOTTOM_SHELL_THICKNESS: "bottom_shell_thickness",
    SettingKey.ENSURE_VERTICAL_SHELL_THICKNESS: "ensure_vertical_shell_thickness",
    SettingKey.FUZZY_SKIN: "fuzzy_skin",
    # Infill
    SettingKey.INFILL_DENSITY: "sparse_infill_density",
    SettingKey.INFILL_PATTERN: "sparse_infill_pattern",
    SettingKey.INFILL_DIRECTION: "infill_direction",
    SettingKey.INFILL_WALL_OVERLAP: "infill_wall_overlap",
    SettingKey.MINIMUM_INFILL_AREA: "min_infill_area",
    # Supports
    SettingKey.ENABLE_SUPPORTS: "support_enable",
    SettingKey.SUPPORT_TYPE: "support_type",
    SettingKey.SUPPORT_ON_BUILD_PLATE_ONLY: "support_on_build_plate_only",
    SettingKey.SUPPORT_OVERHANG_ANGLE: "support_threshold_angle",
    SettingKey.SUPPORT_TOP_Z_DISTANCE: "support_top_z_distance",
    SettingKey.SUPPORT_BOTTOM_Z_DISTANCE: "support_bottom_z_distance",
    SettingKey.SUPPORT_OBJECT_XY_DISTANCE: "support_xy_distance",
    SettingKey.RAFT_LAYERS: "raft_layers",
    # Speed
    SettingKey.FIRST_LAYER_SPEED: "initial_layer_speed",
    SettingKey.OUTER_WALL_SPEED: "outer_wall_speed",
    SettingKey.INNER_WALL_SPEED: "inner_wall_speed",
    SettingKey.SPARSE_INFILL_SPEED: "sparse_infill_speed",
    SettingKey.SOLID_INFILL_SPEED: "solid_infill_speed",
    SettingKey.TOP_SURFACE_SPEED: "top_surface_speed",
    SettingKey.SUPPORT_SPEED: "support_speed",
    SettingKey.TRAVEL_SPEED: "travel_speed",
    SettingKey.ACCELERATION: "default_acceleration",
    SettingKey.MIN_PRINT_SPEED: "slow_down_min_speed",
    # Bed adhesion
    SettingKey.BRIM_TYPE: "brim_type",
    SettingKey.ELEPHANT_FOOT_COMPENSATION: "elefant_foot_compensation",
    # Advanced
    SettingKey.SEAM_POSITION: "seam_position",
    SettingKey.SEQUENTIAL_PRINTING: "sequential_print",
    SettingKey.RETRACTION_LENGTH: "retraction_length",
    SettingKey.RETRACTION_SPEED: "retraction_speed",
    SettingKey.Z_HOP_WHEN_RETRACTED: "z_hop",
    SettingKey.MAX_VOLUMETRIC_SPEED: "max_volumetric_speed",
    # Filament
    SettingKey.FILAMENT_TYPE: "filament_type",
    SettingKey.FILAMENT_DIAMETER: "filament_diameter",
    SettingKey.FLOW_RATIO: "filament_flow_ratio",
    SettingKey.PRESSURE_ADVANCE: "pressure_advance",
    SettingKey.FILAMENT_COST: "filament_cost",
    SettingKey.FILAMENT_DENSITY: "filament_density",
    SettingKey.NOZZLE_TEMP: "nozzle_temperature",
    SettingKey.FIRST_LAYER_NOZZLE_TEMP: "nozzle_temperature_initial_layer",
    SettingKey.BED_TEMP: "bed_temperature",
    SettingKey.FIRST_LAYER_BED_TEMP: "bed_temperature_initial_layer",
    # Cooling
    SettingKey.ENABLE_FAN: "fan_enable",
    SettingKey.FAN_SPEED: "cooling_fan_speed",
    SettingKey.KEEP_FAN_ALWAYS_ON: "fan_always_on",
    SettingKey.SLOW_DOWN_FOR_COOL_DOWN: "slow_down_for_layer_cooling",
}

# Printer-context parameters live in the machine profile, not the process
# profile written into the project.
UNMAPPED_KEYS: frozenset[SettingKey] = frozenset({
    SettingKey.NOZZLE_DIAMETER,
    SettingKey.BED_SHAPE,
    SettingKey.PRINTABLE_AREA_X,
    SettingKey.PRINTABLE_AREA_Y,
    SettingKey.ORIGIN_X,
    SettingKey.ORIGIN_Y,
})

# Enumerations OrcaSlicer expects in lower case.
LOWERCASE_KEYS: frozenset[SettingKey] = frozenset({
    SettingKey.SUPPORT_TYPE,
    SettingKey.INFILL_PATTERN,
    SettingKey.FUZZY_SKIN,
    SettingKey.BRIM_TYPE,
    SettingKey.SEAM_POSITION,
})

PERCENT_KEYS: frozenset[SettingKey] = frozenset({SettingKey.INFILL_DENSITY})

_BY_NAME: dict[str, SettingKey] = {key.value: key for key in SettingKey}


def coerce_record(record: SettingsRecord | Mapping[str, Any]) -> SettingsRecord:
    """Validate a plain mapping into a SettingsRecord.

    Raises:
        UnsupportedValueError: If any value fails its type, range or enum constraint.
    """
    if isinstance(record, SettingsRecord):
        return record
    if not isinstance(record, Mapping):
        raise UnsupportedValueError(
            f"Settings must be a mapping, got {type(record).__name__}"
        )
    try:
        return SettingsRecord.model_validate(dict(record))
    except ValidationError as e:
        first = e.errors()[0]
        key = str(first["loc"][0]) if first.get("loc") else None
        raise UnsupportedValueError(
            f"Invalid value for {key!r}: {first['msg']}", key=key
        ) from e


def map_settings(record: SettingsRecord | Mapping[str, Any]) -> list[tuple[str, str]]:
    """
    Translate a settings record into ordered ``(orca_key, value)`` pairs.

    A plain mapping is validated first. Either way the record is walked in
    the order its keys were supplied. Keys without a table entry and
    ``None`` values are skipped.

    Raises:
        UnsupportedValueError: If a value cannot be represented safely.
    """
    items = coerce_record(record).items_by_key()

    pairs: list[tuple[str, str]] = []
    for name, value in items:
        key = _BY_NAME.get(name)
        if key is None or key not in ORCA_SETTINGS_MAP:
            continue
        pairs.append((ORCA_SETTINGS_MAP[key], format_value(key, value)))

    logger.debug("Mapped %d of %d settings", len(pairs), len(items))
    return pairs


def format_value(key: SettingKey, value: Any) -> str:
    """Format one validated value the way OrcaSlicer profiles expect it."""
    if isinstance(value, bool):
        return "1" if value else "0"

    if isinstance(value, Enum):
        value = value.value

    if isinstance(value, (int, float)):
        text = format_number(value, key)
        return f"{text}%" if key in PERCENT_KEYS else text

    if isinstance(value, str):
        if "\n" in value or "\r" in value:
            raise UnsupportedValueError(
                f"Value for {key.value!r} contains a line break", key=key.value
            )
        return value.lower() if key in LOWERCASE_KEYS else value

    raise UnsupportedValueError(
        f"Unsupported value type {type(value).__name__} for {key.value!r}", key=key.value
    )


def format_number(value: int | float, key: SettingKey | None = None) -> str:
    """
    Render a number in plain decimal notation.

    ``0.2`` → ``"0.2"``, ``20.0`` → ``"20"``, ``1e-05`` → ``"0.00001"``.
    """
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        name = key.value if key is not None else None
        raise UnsupportedValueError(f"Non-finite value {value!r} for {name!r}", key=name)
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def render_settings_text(
    pairs: list[tuple[str, str]],
    profile_name: str = DEFAULT_PROFILE_NAME,
    inherits: str = DEFAULT_INHERITS,
) -> str:
    """Render mapped pairs as an OrcaSlicer INI-style process profile."""
    for label, text in (("profile name", profile_name), ("inherits", inherits)):
        if "\n" in text or "\r" in text:
            raise UnsupportedValueError(f"The {label} must be a single line: {text!r}")
    lines = [f"[print:{profile_name}]", f'inherits = "{inherits}"']
    lines.extend(f"{key} = {value}" for key, value in pairs)
    return "\n".join(lines) + "\n"

