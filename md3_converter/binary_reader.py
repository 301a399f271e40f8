"""
binary_reader.py
================

Bounds-checked block reads from a seekable binary stream of known size.

MD3 mixes two addressing modes: surfaces are walked with a cursor, while the
blocks inside a surface are addressed by offsets relative to the surface
start. ``ByteSource`` exposes both.
"""

from __future__ import annotations

import io
import os
import struct
from typing import BinaryIO, Tuple

from .errors import Md3BoundsError


def stream_size(stream: BinaryIO) -> int:
    """Return the total size of *stream*, leaving its position unchanged."""
    current = stream.tell()
    size = stream.seek(0, os.SEEK_END)
    stream.seek(current, os.SEEK_SET)
    return size


def read_block(stream: BinaryIO, offset: int, length: int, total_size: int) -> bytes:
    """Read *length* bytes at *offset*, never past *total_size*.

    The stream position is moved as a side effect.
    """
    if length < 0:
        raise Md3BoundsError(f"Negative block length {length} at offset {offset}")
    if offset < 0 or offset + length > total_size:
        raise Md3BoundsError(
            f"Invalid offset {offset} or size {length} (file size={total_size})"
        )
    stream.seek(offset, os.SEEK_SET)
    data = stream.read(length)
    if len(data) != length:
        raise OSError(f"Short read at offset {offset}: need {length}, got {len(data)}")
    return data


class ByteSource:
    __slots__ = ("stream", "total_size", "name")

    def __init__(self, stream: BinaryIO, name: str = "<stream>"):
        self.stream = stream
        self.total_size = stream_size(stream)
        self.name = name

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<bytes>") -> "ByteSource":
        return cls(io.BytesIO(data), name=name)

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, offset: int) -> None:
        # Seeking past the end is allowed; the next read reports it.
        if offset < 0:
            raise Md3BoundsError(f"Cannot seek to negative offset {offset}")
        self.stream.seek(offset, os.SEEK_SET)

    def read_at(self, offset: int, length: int) -> bytes:
        return read_block(self.stream, offset, length, self.total_size)

    def read_next(self, length: int) -> bytes:
        """Read at the cursor and advance it."""
        return read_block(self.stream, self.tell(), length, self.total_size)

    def unpack_at(self, fmt: struct.Struct, offset: int) -> Tuple:
        return fmt.unpack(self.read_at(offset, fmt.size))
