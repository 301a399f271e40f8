"""
geometry.py
===========

Coordinate math applied between decoding and OBJ emission: encoded normal
decoding, the Y/Z swap and UV flip policies, and tag (attachment point)
transforms used when merging models.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .md3_types import MD3_XYZ_SCALE, Md3Tag

Q_ANGLE_SCALE = math.pi / 128.0


@dataclass(frozen=True)
class ConversionOptions:
    swap_yz: bool = True
    flip_uvs: bool = True


# ---------------------------------------------------------------------------
# Normals
# ---------------------------------------------------------------------------

def decode_normal(encoded: int) -> Tuple[float, float, float]:
    """Decode a 16-bit lat/lng normal (lat in the high byte, lng in the low)."""
    lat = ((encoded >> 8) & 0xFF) * Q_ANGLE_SCALE
    lng = (encoded & 0xFF) * Q_ANGLE_SCALE
    return (
        math.cos(lat) * math.sin(lng),
        math.sin(lat) * math.sin(lng),
        math.cos(lng),
    )


def decode_normals(encoded: np.ndarray) -> np.ndarray:
    """Vectorised decode_normal(); returns an (N, 3) float64 array."""
    encoded = np.asarray(encoded).astype(np.uint16)
    lat = ((encoded >> 8) & 0xFF).astype(np.float64) * Q_ANGLE_SCALE
    lng = (encoded & 0xFF).astype(np.float64) * Q_ANGLE_SCALE
    sin_lng = np.sin(lng)
    return np.stack((np.cos(lat) * sin_lng, np.sin(lat) * sin_lng, np.cos(lng)), axis=-1)


def decode_positions(xyz: np.ndarray) -> np.ndarray:
    return np.asarray(xyz, dtype=np.float64) * MD3_XYZ_SCALE


# ---------------------------------------------------------------------------
# Axis / UV policies
# ---------------------------------------------------------------------------

def apply_axis_policy(x: float, y: float, z: float, swap_yz: bool) -> Tuple[float, float, float]:
    if swap_yz:
        return x, z, y
    return x, y, z


def apply_axis_policy_array(points: np.ndarray, swap_yz: bool) -> np.ndarray:
    if swap_yz:
        return points[..., [0, 2, 1]]
    return points


def face_winding(
    indices: Tuple[int, int, int], swap_yz: bool
) -> Tuple[int, int, int]:
    """Reverse the winding when Y/Z are not swapped to keep faces outward."""
    if swap_yz:
        return indices[0], indices[1], indices[2]
    return indices[2], indices[1], indices[0]


def apply_uv_policy(v: float, flip: bool) -> float:
    return 1.0 - v if flip else v


# ---------------------------------------------------------------------------
# Tag transforms
# ---------------------------------------------------------------------------

def apply_tag_transform(
    local: np.ndarray, tag: Optional[Md3Tag], translate: bool = True
) -> np.ndarray:
    """world = origin + axis . local for points; rotation only for normals.

    *local* is (3,) or (N, 3). A missing tag is the identity.
    """
    if tag is None:
        return local
    world = np.asarray(local, dtype=np.float64) @ tag.axis.T
    if translate:
        world = world + tag.origin
    return world
