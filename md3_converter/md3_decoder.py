"""
md3_decoder.py
==============

Decoder for Quake III MD3 model files (ident "IDP3", version 15).

Layout notes:
  - The file header is followed by frames, tags and surfaces, each located
    by an absolute offset in the header.
  - Surfaces are stored back to back starting at ``ofsSurfaces``. Every
    surface header is read at the current position and all of its internal
    offsets (triangles, texcoords, vertices, end) are relative to the start
    of that surface header.
  - Only the first frame's tags are read; the tag block is optional and a
    broken one is treated as absent.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import numpy as np

from .binary_reader import ByteSource
from .errors import (
    Md3BadMagicError,
    Md3BadVersionError,
    Md3BoundsError,
    Md3ParseError,
    Md3TagReadError,
    Md3TruncatedError,
)
from .md3_types import (
    HEADER_STRUCT,
    MD3_IDENT,
    MD3_VERSION,
    SURFACE_STRUCT,
    TAG_STRUCT,
    TEXCOORD_DTYPE,
    TRIANGLE_DTYPE,
    VERTEX_DTYPE,
    Md3Header,
    Md3Model,
    Md3Surface,
    Md3SurfaceHeader,
    Md3Tag,
    decode_qpath,
)


def _checked_count(value: int, what: str) -> int:
    if value < 0:
        raise Md3BoundsError(f"Negative {what}: {value}")
    return value


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

def decode_header(source: ByteSource) -> Md3Header:
    """Read and validate the file header at offset 0."""
    if source.total_size < HEADER_STRUCT.size:
        raise Md3TruncatedError(
            f"File too small for MD3 header ({source.total_size} < {HEADER_STRUCT.size})"
        )
    fields = source.unpack_at(HEADER_STRUCT, 0)
    header = Md3Header(
        ident=fields[0],
        version=fields[1],
        name=decode_qpath(fields[2]),
        flags=fields[3],
        num_frames=fields[4],
        num_tags=fields[5],
        num_surfaces=fields[6],
        num_skins=fields[7],
        ofs_frames=fields[8],
        ofs_tags=fields[9],
        ofs_surfaces=fields[10],
        ofs_end=fields[11],
    )
    if header.ident != MD3_IDENT:
        raise Md3BadMagicError(f"Not an MD3 file (magic: {header.ident!r})")
    if header.version != MD3_VERSION:
        raise Md3BadVersionError(
            f"Unsupported MD3 version {header.version} (expected {MD3_VERSION})"
        )
    if header.ofs_end > source.total_size:
        raise Md3TruncatedError(
            f"File appears truncated (ofsEnd={header.ofs_end} exceeds file size {source.total_size})"
        )
    return header


# ---------------------------------------------------------------------------
# Surfaces
# ---------------------------------------------------------------------------

def _decode_surface_header(raw: bytes) -> Md3SurfaceHeader:
    fields = SURFACE_STRUCT.unpack(raw)
    return Md3SurfaceHeader(
        ident=fields[0],
        name=decode_qpath(fields[1]),
        flags=fields[2],
        num_frames=fields[3],
        num_shaders=fields[4],
        num_verts=fields[5],
        num_triangles=fields[6],
        ofs_triangles=fields[7],
        ofs_shaders=fields[8],
        ofs_st=fields[9],
        ofs_verts=fields[10],
        ofs_end=fields[11],
    )


def _decode_surface(source: ByteSource, index: int) -> Md3Surface:
    surface_start = source.tell()
    header = _decode_surface_header(source.read_at(surface_start, SURFACE_STRUCT.size))
    if header.ident != MD3_IDENT:
        raise Md3BadMagicError(f"Invalid surface id at surface {index} ({header.ident!r})")

    num_triangles = _checked_count(header.num_triangles, f"triangle count in surface {header.name}")
    num_verts = _checked_count(header.num_verts, f"vertex count in surface {header.name}")
    num_frames = _checked_count(header.num_frames, f"frame count in surface {header.name}")

    try:
        raw = source.read_at(
            surface_start + header.ofs_triangles,
            num_triangles * 3 * TRIANGLE_DTYPE.itemsize,
        )
    except Md3BoundsError as exc:
        raise Md3BoundsError(f"Error reading triangles for surface {header.name}: {exc}") from exc
    triangles = np.frombuffer(raw, dtype=TRIANGLE_DTYPE).reshape(num_triangles, 3)
    if num_triangles and (triangles.min() < 0 or triangles.max() >= num_verts):
        raise Md3BoundsError(
            f"Triangle index out of range 0..{num_verts - 1} in surface {header.name}"
        )

    try:
        raw = source.read_at(
            surface_start + header.ofs_st,
            num_verts * 2 * TEXCOORD_DTYPE.itemsize,
        )
    except Md3BoundsError as exc:
        raise Md3BoundsError(
            f"Error reading texture coordinates for surface {header.name}: {exc}"
        ) from exc
    texcoords = np.frombuffer(raw, dtype=TEXCOORD_DTYPE).reshape(num_verts, 2)

    try:
        raw = source.read_at(
            surface_start + header.ofs_verts,
            num_verts * num_frames * VERTEX_DTYPE.itemsize,
        )
    except Md3BoundsError as exc:
        raise Md3BoundsError(f"Error reading vertices for surface {header.name}: {exc}") from exc
    vertices = np.frombuffer(raw, dtype=VERTEX_DTYPE)

    # Resume at the next surface regardless of padding.
    source.seek(surface_start + header.ofs_end)

    logging.debug(
        "Surface %d '%s' at %d: verts=%d tris=%d frames=%d",
        index, header.name, surface_start, num_verts, num_triangles, num_frames,
    )
    return Md3Surface(
        header=header,
        triangles=triangles,
        texcoords=texcoords,
        vertices=vertices,
    )


def decode_surfaces(source: ByteSource, header: Md3Header) -> List[Md3Surface]:
    """Walk the surface block; all-or-nothing."""
    num_surfaces = _checked_count(header.num_surfaces, "surface count")
    source.seek(header.ofs_surfaces)

    # Only handed to the caller once every surface decoded.
    surfaces: List[Md3Surface] = []
    for index in range(num_surfaces):
        surface = _decode_surface(source, index)
        if surface.num_frames != header.num_frames:
            logging.warning(
                "Surface '%s' declares %d frames, model declares %d",
                surface.name, surface.num_frames, header.num_frames,
            )
        surfaces.append(surface)
    return surfaces


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

def _read_tags(source: ByteSource, header: Md3Header) -> List[Md3Tag]:
    try:
        raw = source.read_at(header.ofs_tags, header.num_tags * TAG_STRUCT.size)
    except (Md3BoundsError, OSError) as exc:
        raise Md3TagReadError(str(exc)) from exc

    tags: List[Md3Tag] = []
    for name, *values in TAG_STRUCT.iter_unpack(raw):
        tags.append(Md3Tag(
            name=decode_qpath(name),
            origin=np.array(values[0:3], dtype=np.float64),
            axis=np.array(values[3:12], dtype=np.float64).reshape(3, 3),
        ))
    return tags


def decode_tags(source: ByteSource, header: Md3Header) -> Optional[List[Md3Tag]]:
    """Frame 0 tags, or None when absent or unreadable."""
    if header.num_tags <= 0:
        return None
    try:
        return _read_tags(source, header)
    except Md3TagReadError as exc:
        logging.warning("Error reading tags for %s: %s", source.name, exc)
        return None


# ---------------------------------------------------------------------------
# Whole model
# ---------------------------------------------------------------------------

def decode_md3(source: ByteSource, read_tags: bool = True) -> Md3Model:
    """Decode a whole model; tags are only needed when merging."""
    header = decode_header(source)
    tags = decode_tags(source, header) if read_tags else None
    surfaces = decode_surfaces(source, header)
    return Md3Model(header=header, surfaces=surfaces, tags=tags, source_name=source.name)


def load_md3(path: Path, read_tags: bool = True) -> Md3Model:
    """Decode the MD3 file at *path*.

    Raises Md3ParseError for malformed files and OSError for I/O failures.
    """
    with open(path, "rb") as stream:
        source = ByteSource(stream, name=str(path))
        try:
            return decode_md3(source, read_tags=read_tags)
        except Md3ParseError as exc:
            raise type(exc)(f"{path}: {exc}") from exc
