"""
3MF model XML serialization.

Renders a MeshModel as the ``3D/3dmodel.model`` document of a 3MF package:
one mesh object, identity build placement, fixed 6-decimal coordinates.
The output depends only on its inputs, so equal meshes give equal bytes.
"""

import logging
import xml.etree.ElementTree as ET

from .models import MeshModel

logger = logging.getLogger(__name__)

NS_3MF_CORE = "http://schemas.microsoft.com/3dmanufacturing/core/2015/02"
MODEL_UNIT = "millimeter"
MODEL_LANGUAGE = "en-US"
COORDINATE_DECIMALS = 6

DEFAULT_DESIGNER = "IntelliSlice"
DEFAULT_APPLICATION = "IntelliSlice"

OBJECT_ID = "1"


def format_coordinate(value: float) -> str:
    """Fixed-point with exactly six decimals: ``1`` → ``"1.000000"``."""
    text = f"{value:.{COORDINATE_DECIMALS}f}"
    # -0.0 and tiny negatives round to "-0.000000"
    if text.startswith("-") and text.strip("-0.") == "":
        return text[1:]
    return text


def build_model_element(
    mesh: MeshModel,
    display_name: str,
    designer: str = DEFAULT_DESIGNER,
    application: str = DEFAULT_APPLICATION,
) -> ET.Element:
    """Build the ``<model>`` element tree for a mesh."""
    root = ET.Element(
        "model",
        attrib={
            "unit": MODEL_UNIT,
            "xml:lang": MODEL_LANGUAGE,
            "xmlns": NS_3MF_CORE,
        },
    )

    for name, value in (
        ("Title", display_name),
        ("Designer", designer),
        ("Application", application),
    ):
        meta = ET.SubElement(root, "metadata", attrib={"name": name})
        meta.text = value

    resources = ET.SubElement(root, "resources")
    obj = ET.SubElement(
        resources,
        "object",
        attrib={"id": OBJECT_ID, "type": "model", "name": display_name},
    )
    mesh_elem = ET.SubElement(obj, "mesh")

    vertices_elem = ET.SubElement(mesh_elem, "vertices")
    for x, y, z in mesh.vertices:
        ET.SubElement(
            vertices_elem,
            "vertex",
            attrib={
                "x": format_coordinate(x),
                "y": format_coordinate(y),
                "z": format_coordinate(z),
            },
        )

    triangles_elem = ET.SubElement(mesh_elem, "triangles")
    for v1, v2, v3 in mesh.triangles:
        ET.SubElement(
            triangles_elem,
            "triangle",
            attrib={"v1": str(v1), "v2": str(v2), "v3": str(v3)},
        )

    build = ET.SubElement(root, "build")
    ET.SubElement(build, "item", attrib={"objectid": OBJECT_ID})
    return root


def serialize_model(
    mesh: MeshModel,
    display_name: str,
    designer: str = DEFAULT_DESIGNER,
    application: str = DEFAULT_APPLICATION,
) -> str:
    """Serialize a mesh to 3MF model markup (UTF-8 XML text with declaration)."""
    root = build_model_element(mesh, display_name, designer, application)
    body = ET.tostring(root, encoding="unicode")
    logger.debug(
        "Serialized model %r: %d vertices, %d triangles",
        display_name, mesh.vertex_count, mesh.triangle_count,
    )
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body
