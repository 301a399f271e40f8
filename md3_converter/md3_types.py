"""On-disk MD3 layouts and the in-memory model they decode into."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MD3_IDENT = b"IDP3"
MD3_VERSION = 15
MD3_XYZ_SCALE = 1.0 / 64.0
MAX_QPATH = 64

# Packed little-endian records, no inter-field padding.
# ident, version, name[64], flags, numFrames, numTags, numSurfaces, numSkins,
# ofsFrames, ofsTags, ofsSurfaces, ofsEnd
HEADER_STRUCT = struct.Struct("<4si64s9i")

# ident, name[64], flags, numFrames, numShaders, numVerts, numTriangles,
# ofsTriangles, ofsShaders, ofsSt, ofsXyzNormals, ofsEnd
SURFACE_STRUCT = struct.Struct("<4s64s10i")

# name[64], origin[3], axis[3][3]
TAG_STRUCT = struct.Struct("<64s3f9f")

TRIANGLE_DTYPE = np.dtype("<i4")
TEXCOORD_DTYPE = np.dtype("<f4")
VERTEX_DTYPE = np.dtype([("xyz", "<i2", (3,)), ("normal", "<u2")])


def decode_qpath(raw: bytes) -> str:
    null_pos = raw.find(b"\x00")
    if null_pos >= 0:
        raw = raw[:null_pos]
    return raw.decode("ascii", errors="replace")


# ---------------------------------------------------------------------------
# Decoded structures
# ---------------------------------------------------------------------------

@dataclass
class Md3Header:
    ident: bytes
    version: int
    name: str
    flags: int
    num_frames: int
    num_tags: int
    num_surfaces: int
    num_skins: int
    ofs_frames: int
    ofs_tags: int
    ofs_surfaces: int
    ofs_end: int


@dataclass
class Md3SurfaceHeader:
    ident: bytes
    name: str
    flags: int
    num_frames: int
    num_shaders: int
    num_verts: int
    num_triangles: int
    ofs_triangles: int
    ofs_shaders: int
    ofs_st: int
    ofs_verts: int
    ofs_end: int


@dataclass
class Md3Surface:
    header: Md3SurfaceHeader
    triangles: np.ndarray   # (num_triangles, 3) int32
    texcoords: np.ndarray   # (num_verts, 2) float32
    vertices: np.ndarray    # (num_verts * num_frames,) VERTEX_DTYPE
    base_index: int = 0     # 1-based, assigned by the emitter

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def num_verts(self) -> int:
        return self.header.num_verts

    @property
    def num_frames(self) -> int:
        return self.header.num_frames

    def frame_vertices(self, frame: int) -> np.ndarray:
        start = frame * self.num_verts
        return self.vertices[start:start + self.num_verts]


@dataclass
class Md3Tag:
    name: str
    origin: np.ndarray      # (3,)
    axis: np.ndarray        # (3, 3), row-major


@dataclass
class Md3Model:
    header: Md3Header
    surfaces: List[Md3Surface] = field(default_factory=list)
    tags: Optional[List[Md3Tag]] = None
    source_name: str = ""

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def num_frames(self) -> int:
        return self.header.num_frames

    @property
    def first_tag(self) -> Optional[Md3Tag]:
        return self.tags[0] if self.tags else None
