"""
Conversion pipeline: decode → serialize → map → assemble.

High-level interface that turns mesh bytes and a settings record into a
single 3MF project package. Each call is independent and all-or-nothing.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any

from .config import PACKAGE_EXTENSION, PRODUCT_SUFFIX, ProjectOptions
from .errors import ConversionError, MalformedMeshError
from .mesh import decode_mesh
from .models import ConversionResult, MeshModel, PipelineState, SettingsRecord
from .package import MODEL_PART_NAME, assemble_package
from .progress import NullProgressReporter, ProgressReporter
from .serializer import serialize_model
from .settings import map_settings, render_settings_text

logger = logging.getLogger(__name__)

_STAGES = (
    PipelineState.DECODING,
    PipelineState.SERIALIZING,
    PipelineState.MAPPING,
    PipelineState.ASSEMBLING,
)

# Characters XML 1.0 cannot carry, even escaped
_XML_ILLEGAL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def model_display_name(original_filename: str) -> str:
    """Base name without directories or extension (``"parts/Cube.stl"`` → ``"Cube"``)."""
    name = PureWindowsPath(PurePosixPath(original_filename or "").name).name
    stem = name.rsplit(".", 1)[0] if "." in name.lstrip(".") else name
    return _XML_ILLEGAL_RE.sub("_", stem).strip() or "model"


def project_filename(original_filename: str) -> str:
    """Output name for a project: ``<basename>_IntelliSlice.3mf``."""
    return f"{model_display_name(original_filename)}_{PRODUCT_SUFFIX}{PACKAGE_EXTENSION}"


class ConversionPipeline:
    """
    Runs one conversion and records which stage it reached.

    Usage:
        pipeline = ConversionPipeline()
        result = pipeline.run(stl_bytes, {"layerHeight": 0.2}, "cube.stl")
        Path(result.filename).write_bytes(result.data)

    On failure ``state`` is ``FAILED``, ``failure`` holds the error and the
    error is re-raised unchanged. A pipeline object may be reused; every
    ``run`` starts again from ``IDLE``.
    """

    def __init__(
        self,
        options: ProjectOptions | None = None,
        reporter: ProgressReporter | None = None,
    ):
        self.options = options or ProjectOptions()
        self.reporter: ProgressReporter = reporter or NullProgressReporter()
        self.state = PipelineState.IDLE
        self.failed_stage: PipelineState | None = None
        self.failure: ConversionError | None = None

    def run(
        self,
        mesh_bytes: bytes,
        settings: SettingsRecord | Mapping[str, Any],
        original_filename: str,
    ) -> ConversionResult:
        self.state = PipelineState.IDLE
        self.failed_stage = None
        self.failure = None

        display_name = model_display_name(original_filename)
        try:
            self._enter(PipelineState.DECODING)
            mesh = decode_mesh(mesh_bytes)
            if mesh.is_empty:
                raise MalformedMeshError("Mesh contains no triangles")

            self._enter(PipelineState.SERIALIZING)
            markup = serialize_model(
                mesh,
                display_name,
                designer=self.options.designer,
                application=self.options.application,
            )

            self._enter(PipelineState.MAPPING)
            pairs = map_settings(settings)
            settings_text = render_settings_text(
                pairs,
                profile_name=self.options.profile_name,
                inherits=self.options.inherits,
            )

            self._enter(PipelineState.ASSEMBLING)
            data = assemble_package(markup, settings_text, MODEL_PART_NAME)
        except ConversionError as e:
            self.failed_stage = self.state
            self.failure = e
            self.state = PipelineState.FAILED
            logger.info("Conversion of %s failed while %s: %s",
                        original_filename, self.failed_stage.value, e)
            self.reporter.finish(PipelineState.FAILED, f"{self.failed_stage.value}: {e}")
            raise

        self.state = PipelineState.DONE
        result = _make_result(project_filename(original_filename), data, mesh, pairs)
        logger.info(
            "Converted %s -> %s (%d triangles, %d settings, %d bytes)",
            original_filename, result.filename, result.triangle_count,
            result.settings_count, result.size,
        )
        self.reporter.finish(
            PipelineState.DONE,
            f"{result.filename} ({result.triangle_count} triangles, {result.settings_count} settings)",
        )
        return result

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        self.reporter.stage(state.value, _STAGES.index(state) + 1, len(_STAGES))


def _make_result(
    filename: str,
    data: bytes,
    mesh: MeshModel,
    pairs: list[tuple[str, str]],
) -> ConversionResult:
    return ConversionResult(
        filename=filename,
        data=data,
        vertex_count=mesh.vertex_count,
        triangle_count=mesh.triangle_count,
        settings_count=len(pairs),
        mapped_keys=[key for key, _ in pairs],
    )


def convert(
    mesh_bytes: bytes,
    settings: SettingsRecord | Mapping[str, Any],
    original_filename: str,
    options: ProjectOptions | None = None,
    reporter: ProgressReporter | None = None,
) -> ConversionResult:
    """
    Convert an STL buffer and a settings record into a 3MF project.

    Raises:
        MalformedMeshError: The mesh buffer is unparseable, inconsistent or empty.
        UnsupportedValueError: A settings value fails its constraint.
        PackagingError: The archive could not be built.
    """
    return ConversionPipeline(options, reporter).run(mesh_bytes, settings, original_filename)
