"""In-memory MD3 builders shared by the test modules."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .md3_types import HEADER_STRUCT, MD3_IDENT, MD3_VERSION, SURFACE_STRUCT, TAG_STRUCT

IDENTITY_AXIS = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)

# (x, y, z, encoded_normal); positions in MD3 units (1/64).
RawVertex = Tuple[int, int, int, int]


@dataclass
class SurfaceSpec:
    name: str
    triangles: List[Tuple[int, int, int]]
    texcoords: List[Tuple[float, float]]
    frames: List[List[RawVertex]]
    ident: bytes = MD3_IDENT
    num_frames: Optional[int] = None
    padding: int = 0
    ofs_triangles_override: Optional[int] = None


@dataclass
class TagSpec:
    name: str
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    axis: Tuple[float, ...] = IDENTITY_AXIS


@dataclass
class ModelSpec:
    name: str = "test_model"
    surfaces: List[SurfaceSpec] = field(default_factory=list)
    tags: List[TagSpec] = field(default_factory=list)
    num_frames: Optional[int] = None
    ident: bytes = MD3_IDENT
    version: int = MD3_VERSION
    ofs_end_extra: int = 0
    ofs_tags_override: Optional[int] = None


def triangle_surface(name: str = "tri", frames: int = 1, offset: int = 0) -> SurfaceSpec:
    """Three-vertex surface; frame k is shifted by k units on X."""
    return SurfaceSpec(
        name=name,
        triangles=[(0, 1, 2)],
        texcoords=[(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)],
        frames=[
            [
                (64 * (k + offset), 0, 0, 0x0000),
                (64 * (k + offset + 1), 0, 0, 0x0000),
                (64 * (k + offset), 64, 0, 0x0000),
            ]
            for k in range(frames)
        ],
    )


def quad_surface(name: str = "quad") -> SurfaceSpec:
    return SurfaceSpec(
        name=name,
        triangles=[(0, 1, 2), (2, 1, 3)],
        texcoords=[(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)],
        frames=[[
            (0, 0, 0, 0x4040),
            (64, 0, 0, 0x4040),
            (0, 64, 0, 0x4040),
            (64, 64, 0, 0x4040),
        ]],
    )


def build_surface(spec: SurfaceSpec) -> bytes:
    num_verts = len(spec.texcoords)
    num_frames = spec.num_frames if spec.num_frames is not None else len(spec.frames)

    triangles = b"".join(struct.pack("<3i", *tri) for tri in spec.triangles)
    texcoords = b"".join(struct.pack("<2f", *st) for st in spec.texcoords)
    vertices = b"".join(
        struct.pack("<3hH", *vertex) for frame in spec.frames for vertex in frame
    )

    ofs_triangles = SURFACE_STRUCT.size
    ofs_shaders = ofs_triangles + len(triangles)
    ofs_st = ofs_shaders
    ofs_verts = ofs_st + len(texcoords)
    ofs_end = ofs_verts + len(vertices) + spec.padding

    header = SURFACE_STRUCT.pack(
        spec.ident,
        spec.name.encode("ascii"),
        0,
        num_frames,
        0,
        num_verts,
        len(spec.triangles),
        spec.ofs_triangles_override if spec.ofs_triangles_override is not None else ofs_triangles,
        ofs_shaders,
        ofs_st,
        ofs_verts,
        ofs_end,
    )
    return header + triangles + texcoords + vertices + b"\x00" * spec.padding


def build_md3(spec: ModelSpec) -> bytes:
    num_frames = spec.num_frames
    if num_frames is None:
        num_frames = max((len(s.frames) for s in spec.surfaces), default=1)

    tag_block = b"".join(
        TAG_STRUCT.pack(tag.name.encode("ascii"), *tag.origin, *tag.axis)
        for _frame in range(num_frames)
        for tag in spec.tags
    )
    surface_block = b"".join(build_surface(s) for s in spec.surfaces)

    ofs_frames = HEADER_STRUCT.size
    ofs_tags = ofs_frames
    ofs_surfaces = ofs_tags + len(tag_block)
    ofs_end = ofs_surfaces + len(surface_block)

    header = HEADER_STRUCT.pack(
        spec.ident,
        spec.version,
        spec.name.encode("ascii"),
        0,
        num_frames,
        len(spec.tags),
        len(spec.surfaces),
        0,
        ofs_frames,
        spec.ofs_tags_override if spec.ofs_tags_override is not None else ofs_tags,
        ofs_surfaces,
        ofs_end + spec.ofs_end_extra,
    )
    return header + tag_block + surface_block


def write_md3(path: Path, spec: ModelSpec) -> Path:
    path.write_bytes(build_md3(spec))
    return path


def obj_lines(path: Path, keyword: str) -> List[str]:
    return [
        line for line in path.read_text().splitlines()
        if line.split(" ", 1)[0] == keyword
    ]


def face_indices(lines: Sequence[str]) -> List[List[int]]:
    """Position indices of each ``f`` line."""
    return [
        [int(triple.split("/")[0]) for triple in line.split()[1:]]
        for line in lines
    ]
