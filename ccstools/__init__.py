"""Decoder for CCS game-asset containers (palette images and strip meshes)."""
from .buffer import Cursor, renumber  # noqa: F401
from .container import Container, load_container  # noqa: F401
from .errors import (  # noqa: F401
    CCSError, InvalidHeader, MalformedChunk, SourceError, TruncatedInput, UnsupportedFormat,
)
from .raster import Raster, composite  # noqa: F401
from .source import read_source  # noqa: F401
