"""
intellislice — STL + slicer settings → 3MF project packages

Decodes binary and ASCII STL meshes, translates a named slicer-parameter
record into OrcaSlicer profile keys, and assembles both into a single
OPC-style 3MF archive that OrcaSlicer-family slicers can open.
"""

from .errors import (
    ConversionError,
    MalformedMeshError,
    UnsupportedValueError,
    PackagingError,
    SourceError,
)
from .models import (
    SettingKey,
    SettingsRecord,
    MeshModel,
    PackagePart,
    PipelineState,
    ConversionResult,
    FuzzySkin,
    InfillPattern,
    SupportType,
    BrimType,
    SeamPosition,
    FilamentType,
    BedShape,
)
from .config import ProjectOptions, load_options
from .mesh import decode_mesh
from .settings import ORCA_SETTINGS_MAP, map_settings, render_settings_text
from .serializer import serialize_model
from .package import assemble_package, build_parts, write_package
from .pipeline import ConversionPipeline, convert, project_filename

__version__ = "0.1.0"

__all__ = [
    # Enums
    "SettingKey",
    "PipelineState",
    "FuzzySkin",
    "InfillPattern",
    "SupportType",
    "BrimType",
    "SeamPosition",
    "FilamentType",
    "BedShape",
    # Models
    "SettingsRecord",
    "MeshModel",
    "PackagePart",
    "ConversionResult",
    "ProjectOptions",
    "load_options",
    # Components
    "decode_mesh",
    "ORCA_SETTINGS_MAP",
    "map_settings",
    "render_settings_text",
    "serialize_model",
    "assemble_package",
    "build_parts",
    "write_package",
    # Pipeline
    "ConversionPipeline",
    "convert",
    "project_filename",
    # Exceptions
    "ConversionError",
    "MalformedMeshError",
    "UnsupportedValueError",
    "PackagingError",
    "SourceError",
]
