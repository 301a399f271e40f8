"""Quake III MD3 to Wavefront OBJ conversion."""

from .errors import (
    Md3BadMagicError,
    Md3BadVersionError,
    Md3BoundsError,
    Md3FormatError,
    Md3ParseError,
    Md3TruncatedError,
)
from .geometry import ConversionOptions
from .md3_decoder import decode_md3, load_md3
from .md3_types import Md3Model, Md3Surface, Md3Tag

__version__ = "1.0.0"
