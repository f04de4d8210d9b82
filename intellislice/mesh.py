"""
STL mesh decoding.

Handles both STL layouts:
- Binary: 80-byte header, little-endian uint32 triangle count, then one
  50-byte record per triangle (normal, three vertices, attribute word).
- ASCII: ``solid ... facet normal ... outer loop ... vertex x y z ...
  endloop endfacet ... endsolid``.

Output is always a non-indexed triangle soup. No scaling, centering or unit
conversion happens here.
"""

import logging
import math
import struct
from pathlib import PurePath

from .errors import MalformedMeshError
from .models import MeshModel

logger = logging.getLogger(__name__)

BINARY_HEADER_SIZE = 80
BINARY_COUNT_SIZE = 4
BINARY_RECORD_SIZE = 50
BINARY_PREFIX_SIZE = BINARY_HEADER_SIZE + BINARY_COUNT_SIZE

# normal (3f) + 3 vertices (9f) + attribute byte count (H)
_RECORD = struct.Struct("<12fH")
_COUNT = struct.Struct("<I")

_ASCII_MARKER = b"solid"

_STRUCTURE_KEYWORDS = frozenset(
    {"facet", "outer", "vertex", "endloop", "endfacet", "endsolid"}
)


def looks_like_stl(filename: str) -> bool:
    """Return True if a file name carries the ``.stl`` extension."""
    return PurePath(filename).suffix.lower() == ".stl"


def expected_binary_size(triangle_count: int) -> int:
    return BINARY_PREFIX_SIZE + BINARY_RECORD_SIZE * triangle_count


def decode_mesh(raw: bytes) -> MeshModel:
    """
    Decode an STL buffer into a MeshModel.

    ASCII is tried first when the buffer starts with ``solid``. Binary files
    whose free-form header also starts with ``solid`` are common, so a failed
    ASCII parse falls back to binary when the buffer is length-consistent.

    Raises:
        MalformedMeshError: If the buffer matches neither layout.
    """
    if not isinstance(raw, (bytes, bytearray, memoryview)):
        raise MalformedMeshError(f"Expected a bytes buffer, got {type(raw).__name__}")
    raw = bytes(raw)

    if raw.lstrip()[: len(_ASCII_MARKER)] == _ASCII_MARKER:
        text = _as_text(raw)
        if text is not None:
            try:
                mesh = decode_ascii(text)
                logger.debug("Decoded ASCII STL: %d triangles", mesh.triangle_count)
                return mesh
            except MalformedMeshError as e:
                if not _binary_size_matches(raw):
                    raise
                logger.debug("ASCII parse failed (%s), retrying as binary", e)

    mesh = decode_binary(raw)
    logger.debug("Decoded binary STL: %d triangles", mesh.triangle_count)
    return mesh


def decode_binary(raw: bytes) -> MeshModel:
    """Decode a binary STL buffer. The length must be exactly ``84 + 50*N``."""
    if len(raw) < BINARY_PREFIX_SIZE:
        raise MalformedMeshError(
            f"Binary STL too short: {len(raw)} bytes, need at least {BINARY_PREFIX_SIZE}"
        )

    (count,) = _COUNT.unpack_from(raw, BINARY_HEADER_SIZE)
    expected = expected_binary_size(count)
    if len(raw) != expected:
        raise MalformedMeshError(
            f"Binary STL declares {count} triangles ({expected} bytes) "
            f"but buffer is {len(raw)} bytes"
        )

    vertices: list[tuple[float, float, float]] = []
    triangles: list[tuple[int, int, int]] = []
    for i, record in enumerate(_RECORD.iter_unpack(raw[BINARY_PREFIX_SIZE:])):
        # record[0:3] is the facet normal, record[12] the attribute word
        coords = record[3:12]
        if not all(math.isfinite(c) for c in coords):
            raise MalformedMeshError(f"Triangle {i} has a non-finite vertex coordinate")
        vertices.append(coords[0:3])
        vertices.append(coords[3:6])
        vertices.append(coords[6:9])
        base = 3 * i
        triangles.append((base, base + 1, base + 2))

    return MeshModel(vertices=tuple(vertices), triangles=tuple(triangles))


def decode_ascii(text: str) -> MeshModel:
    """Decode ASCII STL text. One or more ``solid`` blocks are accepted."""
    tokens = text.split()
    parser = _AsciiParser(tokens)
    return parser.parse()


class _AsciiParser:
    """Token-stream parser for ASCII STL."""

    def __init__(self, tokens: list[str]):
        self.tokens = tokens
        self.pos = 0
        self.vertices: list[tuple[float, float, float]] = []
        self.triangles: list[tuple[int, int, int]] = []

    def parse(self) -> MeshModel:
        self._expect("solid")
        while True:
            self._parse_solid_body()
            # Skip the optional name after endsolid; another solid may follow
            while self._peek() not in (None, "solid"):
                if self._peek() in _STRUCTURE_KEYWORDS:
                    raise MalformedMeshError(
                        f"Unexpected '{self._peek()}' after 'endsolid' at token {self.pos}"
                    )
                self.pos += 1
            if self.pos >= len(self.tokens):
                break
            self.pos += 1

        return MeshModel(vertices=tuple(self.vertices), triangles=tuple(self.triangles))

    def _parse_solid_body(self) -> None:
        # Solid name: any tokens up to the first facet or endsolid
        while self._peek() not in ("facet", "endsolid"):
            if self._peek() is None:
                raise MalformedMeshError("ASCII STL ended without 'endsolid'")
            if self._peek() in _STRUCTURE_KEYWORDS - {"facet", "endsolid"}:
                raise MalformedMeshError(
                    f"Unexpected '{self._peek()}' outside of a facet at token {self.pos}"
                )
            self.pos += 1

        while True:
            token = self._next()
            if token == "endsolid":
                return
            if token != "facet":
                raise MalformedMeshError(f"Expected 'facet' or 'endsolid', got {token!r}")
            self._parse_facet()

    def _parse_facet(self) -> None:
        self._expect("normal")
        self._number()
        self._number()
        self._number()
        self._expect("outer")
        self._expect("loop")

        base = len(self.vertices)
        for _ in range(3):
            self._expect("vertex")
            self.vertices.append((self._number(), self._number(), self._number()))

        self._expect("endloop")
        self._expect("endfacet")
        self.triangles.append((base, base + 1, base + 2))

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise MalformedMeshError("Unexpected end of ASCII STL (unbalanced facet/loop markers)")
        self.pos += 1
        return token

    def _expect(self, keyword: str) -> None:
        token = self._next()
        if token != keyword:
            raise MalformedMeshError(
                f"Expected '{keyword}' at token {self.pos - 1}, got {token!r}"
            )

    def _number(self) -> float:
        token = self._next()
        try:
            value = float(token)
        except ValueError:
            raise MalformedMeshError(
                f"Non-numeric coordinate {token!r} at token {self.pos - 1}"
            ) from None
        if not math.isfinite(value):
            raise MalformedMeshError(f"Non-finite coordinate {token!r} at token {self.pos - 1}")
        return value


def _as_text(raw: bytes) -> str | None:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _binary_size_matches(raw: bytes) -> bool:
    if len(raw) < BINARY_PREFIX_SIZE:
        return False
    (count,) = _COUNT.unpack_from(raw, BINARY_HEADER_SIZE)
    return len(raw) == expected_binary_size(count)
