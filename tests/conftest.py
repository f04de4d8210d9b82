import struct

import pytest

UNIT_TRIANGLE = (
    (0.0, 0.0, 1.0),
    (0.0, 0.0, 0.0),
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 0.0),
)

TETRAHEDRON = [
    ((0.0, 0.0, -1.0), (0.0, 0.0, 0.0), (0.0, 10.0, 0.0), (10.0, 0.0, 0.0)),
    ((0.0, -1.0, 0.0), (0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (0.0, 0.0, 10.0)),
    ((-1.0, 0.0, 0.0), (0.0, 0.0, 0.0), (0.0, 0.0, 10.0), (0.0, 10.0, 0.0)),
    ((0.577, 0.577, 0.577), (10.0, 0.0, 0.0), (0.0, 10.0, 0.0), (0.0, 0.0, 10.0)),
]

ASCII_TWO_FACETS = """solid test part
  facet normal 0 0 1
    outer loop
      vertex 0 0 0
      vertex 1 0 0
      vertex 0 1 0
    endloop
  endfacet
  facet normal 0 0 -1
    outer loop
      vertex -1.5 2.25 3e-1
      vertex 1.0E+1 0 0
      vertex 0 -12.345678 0
    endloop
  endfacet
endsolid test part
"""


def make_binary_stl(triangles, header=b"\x00" * 80):
    """Build a binary STL from (normal, v1, v2, v3) tuples."""
    data = bytearray(header.ljust(80, b"\x00")[:80])
    data += struct.pack("<I", len(triangles))
    for normal, v1, v2, v3 in triangles:
        data += struct.pack("<12fH", *normal, *v1, *v2, *v3, 0)
    return bytes(data)


@pytest.fixture
def single_triangle_stl():
    return make_binary_stl([UNIT_TRIANGLE])


@pytest.fixture
def tetrahedron_stl():
    return make_binary_stl(TETRAHEDRON)


@pytest.fixture
def ascii_stl():
    return ASCII_TWO_FACETS.encode("ascii")


@pytest.fixture
def scenario_settings():
    return {"layerHeight": 0.2, "infillDensity": 15, "enableSupports": False}
