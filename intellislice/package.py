"""
3MF (OPC-style) package assembly.

A package is a ZIP archive of named parts plus two manifests:
- ``[Content_Types].xml`` maps each part extension to a media type.
- ``_rels/.rels`` marks the 3D model part as the package's primary model.

Everything happens in memory; the archive bytes are the only output.
"""

import io
import logging
import zipfile
import xml.etree.ElementTree as ET

from .errors import PackagingError
from .models import PackagePart

logger = logging.getLogger(__name__)

NS_CONTENT_TYPES = "http://schemas.openxmlformats.org/package/2006/content-types"
NS_RELATIONSHIPS = "http://schemas.openxmlformats.org/package/2006/relationships"
REL_TYPE_3DMODEL = "http://schemas.microsoft.com/3dmanufacturing/2013/01/3dmodel"

MEDIA_TYPE_RELATIONSHIPS = "application/vnd.openxmlformats-package.relationships+xml"
MEDIA_TYPE_3DMODEL = "application/vnd.ms-package.3dmanufacturing-3dmodel+xml"
MEDIA_TYPE_TEXT = "text/plain"
PACKAGE_MEDIA_TYPE = MEDIA_TYPE_3DMODEL

CONTENT_TYPES_PATH = "[Content_Types].xml"
RELATIONSHIPS_PATH = "_rels/.rels"
MODEL_DIR = "3D"
MODEL_PART_NAME = "3dmodel.model"

# The same settings text is written under several names; different
# OrcaSlicer-family builds look in different places.
SETTINGS_PART_PATHS = (
    "Metadata/Slicer_settings.config",
    "Metadata/print_profile.config",
)

COMPRESSION = zipfile.ZIP_DEFLATED
COMPRESS_LEVEL = 6
# Fixed entry timestamp (the ZIP epoch) so equal inputs give equal archives.
ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def model_part_path(model_part_name: str = MODEL_PART_NAME) -> str:
    name = model_part_name.strip().strip("/")
    if not name or "/" in name or "\\" in name:
        raise PackagingError(f"Invalid model part name: {model_part_name!r}")
    return f"{MODEL_DIR}/{name}"


def content_types_xml(parts: list[PackagePart]) -> str:
    """
    Build ``[Content_Types].xml`` with one Default entry per extension.

    Raises:
        PackagingError: If two parts share an extension but not a media type.
    """
    defaults: dict[str, str] = {}
    for part in parts:
        ext = part.extension
        if not ext:
            raise PackagingError(f"Part {part.path!r} has no extension for a content type")
        existing = defaults.get(ext)
        if existing is not None and existing != part.media_type:
            raise PackagingError(
                f"Conflicting media types for .{ext}: {existing!r} vs {part.media_type!r}"
            )
        defaults[ext] = part.media_type

    root = ET.Element("Types", attrib={"xmlns": NS_CONTENT_TYPES})
    for ext, media_type in defaults.items():
        ET.SubElement(root, "Default", attrib={"Extension": ext, "ContentType": media_type})
    return _XML_DECLARATION + ET.tostring(root, encoding="unicode")


def relationships_xml(target_path: str) -> str:
    """Build ``_rels/.rels`` with one root → model relationship."""
    root = ET.Element("Relationships", attrib={"xmlns": NS_RELATIONSHIPS})
    ET.SubElement(
        root,
        "Relationship",
        attrib={"Target": f"/{target_path}", "Id": "rel0", "Type": REL_TYPE_3DMODEL},
    )
    return _XML_DECLARATION + ET.tostring(root, encoding="unicode")


def build_parts(
    model_markup: str,
    settings_text: str,
    model_part_name: str = MODEL_PART_NAME,
) -> list[PackagePart]:
    """Return every package part, manifests first, in archive order."""
    model_path = model_part_path(model_part_name)

    content_parts = [
        PackagePart(
            path=RELATIONSHIPS_PATH,
            data=relationships_xml(model_path).encode("utf-8"),
            media_type=MEDIA_TYPE_RELATIONSHIPS,
        ),
        PackagePart(
            path=model_path,
            data=model_markup.encode("utf-8"),
            media_type=MEDIA_TYPE_3DMODEL,
        ),
    ]
    settings_data = settings_text.encode("utf-8")
    content_parts.extend(
        PackagePart(path=path, data=settings_data, media_type=MEDIA_TYPE_TEXT)
        for path in SETTINGS_PART_PATHS
    )

    manifest = PackagePart(
        path=CONTENT_TYPES_PATH,
        data=content_types_xml(content_parts).encode("utf-8"),
        media_type="application/xml",
    )
    return [manifest, *content_parts]


def write_package(parts: list[PackagePart]) -> bytes:
    """
    Write parts into an in-memory deflate ZIP archive.

    Raises:
        PackagingError: On invalid or duplicate part paths, or if the archive
            cannot be written.
    """
    seen: set[str] = set()
    for part in parts:
        if not part.path or part.path.startswith("/") or "\\" in part.path:
            raise PackagingError(f"Invalid part path: {part.path!r}")
        if part.path in seen:
            raise PackagingError(f"Duplicate part path: {part.path!r}")
        seen.add(part.path)

    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=COMPRESSION, compresslevel=COMPRESS_LEVEL) as zf:
            for part in parts:
                info = zipfile.ZipInfo(part.path, date_time=ENTRY_DATE_TIME)
                info.compress_type = COMPRESSION
                zf.writestr(info, part.data, compresslevel=COMPRESS_LEVEL)
    except (OSError, MemoryError, ValueError, zipfile.LargeZipFile) as e:
        raise PackagingError(f"Failed to write package archive: {e}") from e

    data = buffer.getvalue()
    logger.debug("Wrote package: %d parts, %d bytes", len(parts), len(data))
    return data


def assemble_package(
    model_markup: str,
    settings_text: str,
    model_part_name: str = MODEL_PART_NAME,
) -> bytes:
    """Build a complete 3MF package from model markup and settings text."""
    return write_package(build_parts(model_markup, settings_text, model_part_name))


def read_package(data: bytes) -> dict[str, bytes]:
    """Read a package back into ``{part path: content}``.

    Raises:
        PackagingError: If the data is not a readable ZIP archive.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return {name: zf.read(name) for name in zf.namelist()}
    except zipfile.BadZipFile as e:
        raise PackagingError(f"Not a package archive: {e}") from e
