"""Exceptions raised while decoding MD3 files."""

from __future__ import annotations


class Md3ParseError(Exception):
    pass


class Md3BoundsError(Md3ParseError):
    """A block lies outside the file, or a length/count is negative."""


class Md3TruncatedError(Md3BoundsError):
    pass


class Md3FormatError(Md3ParseError):
    pass


class Md3BadMagicError(Md3FormatError):
    pass


class Md3BadVersionError(Md3FormatError):
    pass


class Md3TagReadError(Md3ParseError):
    """Tag block could not be read. Never escapes decode_tags()."""
