"""
obj_writer.py
=============

Wavefront OBJ emission for decoded MD3 models.

OBJ numbers positions, texture coordinates and normals in one flat 1-based
space per file, so every entry point writes in four passes: all ``v``, all
``vt``, all ``vn``, then one ``g`` group of ``f`` lines per surface. Each
surface's ``base_index`` is assigned before the first pass. Positions,
texcoords and normals are emitted 1:1 per vertex, so a face reuses the same
index for all three.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TextIO

import numpy as np

from .errors import Md3FormatError
from .geometry import (
    ConversionOptions,
    apply_axis_policy_array,
    apply_tag_transform,
    apply_uv_policy,
    decode_normals,
    decode_positions,
    face_winding,
)
from .md3_types import Md3Header, Md3Model, Md3Surface, Md3Tag

MERGED_OBJECT_NAME = "MergedMD3"


@dataclass
class _SurfaceFrame:
    surface: Md3Surface
    vertices: np.ndarray
    tag: Optional[Md3Tag] = None


def assign_base_indices(surfaces: Iterable[Md3Surface], start: int = 1) -> int:
    """Give each surface its first global index; returns the next free one."""
    index = start
    for surface in surfaces:
        surface.base_index = index
        index += surface.num_verts
    return index


def _select_frame(surface: Md3Surface, frame: int) -> np.ndarray:
    if frame < 0 or frame >= surface.num_frames:
        raise Md3FormatError(
            f"Surface '{surface.name}' has no frame {frame} ({surface.num_frames} frames)"
        )
    vertices = surface.frame_vertices(frame)
    if len(vertices) != surface.num_verts:
        raise Md3FormatError(f"Surface '{surface.name}' vertex block is short for frame {frame}")
    return vertices


def _write_passes(
    out: TextIO,
    object_name: str,
    entries: Sequence[_SurfaceFrame],
    options: ConversionOptions,
) -> None:
    out.write(f"o {object_name}\n")

    for entry in entries:
        positions = apply_tag_transform(decode_positions(entry.vertices["xyz"]), entry.tag)
        positions = apply_axis_policy_array(positions, options.swap_yz)
        for x, y, z in positions.tolist():
            out.write(f"v {x:f} {y:f} {z:f}\n")

    # Texture coordinates do not change per frame.
    for entry in entries:
        for u, v in entry.surface.texcoords.tolist():
            out.write(f"vt {u:f} {apply_uv_policy(v, options.flip_uvs):f}\n")

    for entry in entries:
        normals = decode_normals(entry.vertices["normal"])
        normals = apply_tag_transform(normals, entry.tag, translate=False)
        normals = apply_axis_policy_array(normals, options.swap_yz)
        for x, y, z in normals.tolist():
            out.write(f"vn {x:f} {y:f} {z:f}\n")

    for entry in entries:
        surface = entry.surface
        out.write(f"g {surface.name}\n")
        base = surface.base_index
        for triangle in surface.triangles.tolist():
            i1, i2, i3 = (base + i for i in face_winding(triangle, options.swap_yz))
            out.write(f"f {i1}/{i1}/{i1} {i2}/{i2}/{i2} {i3}/{i3}/{i3}\n")


def emit_single_frame(
    header: Md3Header,
    surfaces: List[Md3Surface],
    frame_index: int,
    out: TextIO,
    options: ConversionOptions,
) -> None:
    """Write one animation frame of one model as an OBJ document."""
    entries = [_SurfaceFrame(surface, _select_frame(surface, frame_index)) for surface in surfaces]
    assign_base_indices(surfaces)
    _write_passes(out, header.name, entries, options)


def emit_merged(models: Sequence[Md3Model], out: TextIO, options: ConversionOptions) -> None:
    """Write frame 0 of every model into one OBJ, placed by each model's first tag."""
    entries: List[_SurfaceFrame] = []
    for model in models:
        tag = model.first_tag
        for surface in model.surfaces:
            entries.append(_SurfaceFrame(surface, _select_frame(surface, 0), tag))
    assign_base_indices(entry.surface for entry in entries)
    _write_passes(out, MERGED_OBJECT_NAME, entries, options)
