from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, get_args

from pydantic import (
    BaseModel,
    Field,
    PrivateAttr,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .errors import MalformedMeshError


class _CaseInsensitiveEnum(str, Enum):
    """String enum that also accepts its values in any letter case."""

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            folded = value.strip().lower()
            for member in cls:
                if member.value.lower() == folded:
                    return member
        return None


class FuzzySkin(_CaseInsensitiveEnum):
    NONE = "None"
    OUTER = "Outer"
    ALL = "All"


class InfillPattern(_CaseInsensitiveEnum):
    GRID = "Grid"
    GYROID = "Gyroid"
    CUBIC = "Cubic"
    LINES = "Lines"
    TRIANGLES = "Triangles"
    HONEYCOMB = "Honeycomb"
    CUBIC_SUBDIVISION = "CubicSubdivision"
    SUPPORT_CUBIC = "SupportCubic"


class SupportType(_CaseInsensitiveEnum):
    NONE = "None"
    NORMAL = "Normal"
    TREE = "Tree"


class BrimType(_CaseInsensitiveEnum):
    NONE = "none"
    OUTER_BRIM = "outer_brim"
    INNER_BRIM = "inner_brim"
    OUTER_AND_INNER_BRIM = "outer_and_inner_brim"


class SeamPosition(_CaseInsensitiveEnum):
    NEAREST = "Nearest"
    RANDOM = "Random"
    BACK = "Back"
    ALIGNED = "Aligned"


class FilamentType(_CaseInsensitiveEnum):
    PLA = "PLA"
    PETG = "PETG"
    ABS = "ABS"
    ASA = "ASA"
    TPU = "TPU"
    OTHER = "Other"


class BedShape(_CaseInsensitiveEnum):
    RECTANGULAR = "Rectangular"
    CIRCULAR = "Circular"


class SettingKey(str, Enum):
    """Internal parameter names, as used in settings records."""

    # Quality
    LAYER_HEIGHT = "layerHeight"
    FIRST_LAYER_HEIGHT = "firstLayerHeight"
    LINE_WIDTH = "lineWidth"
    FIRST_LAYER_LINE_WIDTH = "firstLayerLineWidth"
    VARIABLE_LAYER_HEIGHT = "variableLayerHeight"

    # Walls
    WALL_LOOPS = "wallLoops"
    TOP_SHELL_LAYERS = "topShellLayers"
    TOP_SHELL_THICKNESS = "topShellThickness"
    BOTTOM_SHELL_LAYERS = "bottomShellLayers"
    BOTTOM_SHELL_THICKNESS = "bottomShellThickness"
    ENSURE_VERTICAL_SHELL_THICKNESS = "ensureVerticalShellThickness"
    FUZZY_SKIN = "fuzzySkin"

    # Infill
    INFILL_DENSITY = "infillDensity"
    INFILL_PATTERN = "infillPattern"
    INFILL_DIRECTION = "infillDirection"
    INFILL_WALL_OVERLAP = "infillWallOverlap"
    MINIMUM_INFILL_AREA = "minimumInfillArea"

    # Supports
    ENABLE_SUPPORTS = "enableSupports"
    SUPPORT_TYPE = "supportType"
    SUPPORT_ON_BUILD_PLATE_ONLY = "supportOnBuildPlateOnly"
    SUPPORT_OVERHANG_ANGLE = "supportOverhangAngle"
    SUPPORT_TOP_Z_DISTANCE = "supportTopZDistance"
    SUPPORT_BOTTOM_Z_DISTANCE = "supportBottomZDistance"
    SUPPORT_OBJECT_XY_DISTANCE = "supportObjectXYDistance"
    RAFT_LAYERS = "raftLayers"

    # Speed
    FIRST_LAYER_SPEED = "firstLayerSpeed"
    OUTER_WALL_SPEED = "outerWallSpeed"
    INNER_WALL_SPEED = "innerWallSpeed"
    SPARSE_INFILL_SPEED = "sparseInfillSpeed"
    SOLID_INFILL_SPEED = "solidInfillSpeed"
    TOP_SURFACE_SPEED = "topSurfaceSpeed"
    SUPPORT_SPEED = "supportSpeed"
    TRAVEL_SPEED = "travelSpeed"
    ACCELERATION = "acceleration"
    MIN_PRINT_SPEED = "minPrintSpeed"

    # Bed adhesion
    BRIM_TYPE = "brimType"
    ELEPHANT_FOOT_COMPENSATION = "elephantFootCompensation"

    # Advanced
    SEAM_POSITION = "seamPosition"
    SEQUENTIAL_PRINTING = "sequentialPrinting"
    RETRACTION_LENGTH = "retractionLength"
    RETRACTION_SPEED = "retractionSpeed"
    Z_HOP_WHEN_RETRACTED = "zHopWhenRetracted"
    MAX_VOLUMETRIC_SPEED = "maxVolumetricSpeed"

    # Filament
    FILAMENT_TYPE = "filamentType"
    FILAMENT_DIAMETER = "filamentDiameter"
    FLOW_RATIO = "flowRatio"
    PRESSURE_ADVANCE = "pressureAdvance"
    FILAMENT_COST = "filamentCost"
    FILAMENT_DENSITY = "filamentDensity"
    NOZZLE_TEMP = "nozzleTemp"
    FIRST_LAYER_NOZZLE_TEMP = "firstLayerNozzleTemp"
    BED_TEMP = "bedTemp"
    FIRST_LAYER_BED_TEMP = "firstLayerBedTemp"

    # Cooling
    ENABLE_FAN = "enableFan"
    FAN_SPEED = "fanSpeed"
    KEEP_FAN_ALWAYS_ON = "keepFanAlwaysOn"
    SLOW_DOWN_FOR_COOL_DOWN = "slowDownForCoolDown"

    # Printer (contextual)
    NOZZLE_DIAMETER = "nozzleDiameter"
    BED_SHAPE = "bedShape"
    PRINTABLE_AREA_X = "printableAreaX"
    PRINTABLE_AREA_Y = "printableAreaY"
    ORIGIN_X = "originX"
    ORIGIN_Y = "originY"


def _setting(key: SettingKey, **constraints: Any) -> Any:
    """Declare an optional record field aliased to its internal parameter name."""
    return Field(default=None, alias=key.value, **constraints)


class SettingsRecord(BaseModel):
    """
    A flat record of named slicer parameters.

    Every parameter is optional. Unknown keys are kept on the record
    (``extra="allow"``) but have no mapping and are never emitted.
    Fields accept either the internal camelCase name or the attribute name.
    """

    model_config = {"extra": "allow", "populate_by_name": True, "frozen": True}

    _input_order: tuple[str, ...] = PrivateAttr(default=())

    # Quality
    layer_height: float | None = _setting(SettingKey.LAYER_HEIGHT, ge=0)
    first_layer_height: float | None = _setting(SettingKey.FIRST_LAYER_HEIGHT, ge=0)
    line_width: float | None = _setting(SettingKey.LINE_WIDTH, ge=0)
    first_layer_line_width: float | None = _setting(SettingKey.FIRST_LAYER_LINE_WIDTH, ge=0)
    variable_layer_height: bool | None = _setting(SettingKey.VARIABLE_LAYER_HEIGHT)

    # Walls
    wall_loops: int | None = _setting(SettingKey.WALL_LOOPS, ge=0)
    top_shell_layers: int | None = _setting(SettingKey.TOP_SHELL_LAYERS, ge=0)
    top_shell_thickness: float | None = _setting(SettingKey.TOP_SHELL_THICKNESS, ge=0)
    bottom_shell_layers: int | None = _setting(SettingKey.BOTTOM_SHELL_LAYERS, ge=0)
    bottom_shell_thickness: float | None = _setting(SettingKey.BOTTOM_SHELL_THICKNESS, ge=0)
    ensure_vertical_shell_thickness: bool | None = _setting(
        SettingKey.ENSURE_VERTICAL_SHELL_THICKNESS
    )
    fuzzy_skin: FuzzySkin | None = _setting(SettingKey.FUZZY_SKIN)

    # Infill
    infill_density: float | None = _setting(SettingKey.INFILL_DENSITY, ge=0, le=100)
    infill_pattern: InfillPattern | None = _setting(SettingKey.INFILL_PATTERN)
    infill_direction: float | None = _setting(SettingKey.INFILL_DIRECTION, ge=0, le=360)
    infill_wall_overlap: float | None = _setting(SettingKey.INFILL_WALL_OVERLAP, ge=0, le=100)
    minimum_infill_area: float | None = _setting(SettingKey.MINIMUM_INFILL_AREA, ge=0)

    # Supports
    enable_supports: bool | None = _setting(SettingKey.ENABLE_SUPPORTS)
    support_type: SupportType | None = _setting(SettingKey.SUPPORT_TYPE)
    support_on_build_plate_only: bool | None = _setting(SettingKey.SUPPORT_ON_BUILD_PLATE_ONLY)
    support_overhang_angle: float | None = _setting(SettingKey.SUPPORT_OVERHANG_ANGLE, ge=0, le=90)
    support_top_z_distance: float | None = _setting(SettingKey.SUPPORT_TOP_Z_DISTANCE, ge=0)
    support_bottom_z_distance: float | None = _setting(SettingKey.SUPPORT_BOTTOM_Z_DISTANCE, ge=0)
    support_object_xy_distance: float | None = _setting(SettingKey.SUPPORT_OBJECT_XY_DISTANCE, ge=0)
    raft_layers: int | None = _setting(SettingKey.RAFT_LAYERS, ge=0)

    # Speed (mm/s, acceleration mm/s^2)
    first_layer_speed: float | None = _setting(SettingKey.FIRST_LAYER_SPEED, ge=0)
    outer_wall_speed: float | None = _setting(SettingKey.OUTER_WALL_SPEED, ge=0)
    inner_wall_speed: float | None = _setting(SettingKey.INNER_WALL_SPEED, ge=0)
    sparse_infill_speed: float | None = _setting(SettingKey.SPARSE_INFILL_SPEED, ge=0)
    solid_infill_speed: float | None = _setting(SettingKey.SOLID_INFILL_SPEED, ge=0)
    top_surface_speed: float | None = _setting(SettingKey.TOP_SURFACE_SPEED, ge=0)
    support_speed: float | None = _setting(SettingKey.SUPPORT_SPEED, ge=0)
    travel_speed: float | None = _setting(SettingKey.TRAVEL_SPEED, ge=0)
    acceleration: float | None = _setting(SettingKey.ACCELERATION, ge=0)
    min_print_speed: float | None = _setting(SettingKey.MIN_PRINT_SPEED, ge=0)

    # Bed adhesion
    brim_type: BrimType | None = _setting(SettingKey.BRIM_TYPE)
    elephant_foot_compensation: float | None = _setting(SettingKey.ELEPHANT_FOOT_COMPENSATION, ge=0)

    # Advanced
    seam_position: SeamPosition | None = _setting(SettingKey.SEAM_POSITION)
    sequential_printing: bool | None = _setting(SettingKey.SEQUENTIAL_PRINTING)
    retraction_length: float | None = _setting(SettingKey.RETRACTION_LENGTH, ge=0)
    retraction_speed: float | None = _setting(SettingKey.RETRACTION_SPEED, ge=0)
    z_hop_when_retracted: float | None = _setting(SettingKey.Z_HOP_WHEN_RETRACTED, ge=0)
    max_volumetric_speed: float | None = _setting(SettingKey.MAX_VOLUMETRIC_SPEED, ge=0)

    # Filament
    filament_type: FilamentType | None = _setting(SettingKey.FILAMENT_TYPE)
    filament_diameter: float | None = _setting(SettingKey.FILAMENT_DIAMETER, ge=0)
    flow_ratio: float | None = _setting(SettingKey.FLOW_RATIO, ge=0)
    pressure_advance: float | None = _setting(SettingKey.PRESSURE_ADVANCE, ge=0)
    filament_cost: float | None = _setting(SettingKey.FILAMENT_COST, ge=0)
    filament_density: float | None = _setting(SettingKey.FILAMENT_DENSITY, ge=0)
    nozzle_temp: float | None = _setting(SettingKey.NOZZLE_TEMP, ge=0)
    first_layer_nozzle_temp: float | None = _setting(SettingKey.FIRST_LAYER_NOZZLE_TEMP, ge=0)
    bed_temp: float | None = _setting(SettingKey.BED_TEMP, ge=0)
    first_layer_bed_temp: float | None = _setting(SettingKey.FIRST_LAYER_BED_TEMP, ge=0)

    # Cooling
    enable_fan: bool | None = _setting(SettingKey.ENABLE_FAN)
    fan_speed: float | None = _setting(SettingKey.FAN_SPEED, ge=0, le=100)
    keep_fan_always_on: bool | None = _setting(SettingKey.KEEP_FAN_ALWAYS_ON)
    slow_down_for_cool_down: bool | None = _setting(SettingKey.SLOW_DOWN_FOR_COOL_DOWN)

    # Printer (contextual, origin may be negative)
    nozzle_diameter: float | None = _setting(SettingKey.NOZZLE_DIAMETER, ge=0)
    bed_shape: BedShape | None = _setting(SettingKey.BED_SHAPE)
    printable_area_x: float | None = _setting(SettingKey.PRINTABLE_AREA_X, ge=0)
    printable_area_y: float | None = _setting(SettingKey.PRINTABLE_AREA_Y, ge=0)
    origin_x: float | None = _setting(SettingKey.ORIGIN_X)
    origin_y: float | None = _setting(SettingKey.ORIGIN_Y)

    @field_validator("*", mode="before")
    @classmethod
    def reject_bool_for_non_bool(cls, value: Any, info: ValidationInfo) -> Any:
        # Lax mode would turn True into 1 for numeric fields
        if isinstance(value, bool):
            annotation = cls.model_fields[info.field_name].annotation
            if annotation is not bool and bool not in get_args(annotation):
                raise ValueError("boolean is not a valid value for this parameter")
        return value

    @model_validator(mode="wrap")
    @classmethod
    def remember_input_order(cls, data: Any, handler: Any) -> SettingsRecord:
        record = handler(data)
        if isinstance(data, Mapping):
            names = []
            for name in data:
                name = name.value if isinstance(name, Enum) else str(name)
                field = cls.model_fields.get(name)
                names.append(field.alias if field is not None and field.alias else name)
            record._input_order = tuple(dict.fromkeys(names))
        return record

    def items_by_key(self) -> list[tuple[str, Any]]:
        """Return ``(internal key, value)`` pairs for every value that is set.

        Keys come in the order they were supplied. Values set later, for
        example through ``model_copy``, follow in declaration order.
        """
        dumped = self.model_dump(by_alias=True, exclude_none=True)
        order = [key for key in self._input_order if key in dumped]
        order.extend(key for key in dumped if key not in self._input_order)
        return [(key, dumped[key]) for key in order]


Vertex = tuple[float, float, float]
Triangle = tuple[int, int, int]


@dataclass(frozen=True)
class MeshModel:
    """
    An in-memory triangle mesh.

    The decoder produces a non-indexed soup: triangle ``i`` owns vertices
    ``3i``, ``3i+1`` and ``3i+2``. That layout is kept as-is.
    """

    vertices: tuple[Vertex, ...]
    triangles: tuple[Triangle, ...]

    def __post_init__(self) -> None:
        count = len(self.vertices)
        for n, tri in enumerate(self.triangles):
            if len(tri) != 3:
                raise MalformedMeshError(f"Triangle {n} has {len(tri)} indices, expected 3")
            for index in tri:
                if not 0 <= index < count:
                    raise MalformedMeshError(
                        f"Triangle {n} references vertex {index}, mesh has {count} vertices"
                    )

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return not self.triangles

    def bounds(self) -> tuple[Vertex, Vertex]:
        """Return the ``(min, max)`` corners of the axis-aligned bounding box."""
        if not self.vertices:
            return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
        xs, ys, zs = zip(*self.vertices)
        return (min(xs), min(ys), min(zs)), (max(xs), max(ys), max(zs))

    def size(self) -> Vertex:
        """Return the bounding box extents along x, y and z."""
        low, high = self.bounds()
        return tuple(hi - lo for lo, hi in zip(low, high))  # type: ignore[return-value]


@dataclass(frozen=True)
class PackagePart:
    """A named archive part with its content and declared media type."""

    path: str
    data: bytes
    media_type: str

    @property
    def extension(self) -> str:
        name = self.path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[-1].lower() if "." in name else ""


class PipelineState(str, Enum):
    IDLE = "idle"
    DECODING = "decoding"
    SERIALIZING = "serializing"
    MAPPING = "mapping"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


class ConversionResult(BaseModel):
    """Result of converting a mesh and a settings record into a project."""

    filename: str
    data: bytes
    vertex_count: int
    triangle_count: int
    settings_count: int
    mapped_keys: list[str] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)
