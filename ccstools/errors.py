"""Error taxonomy for CCS container decoding."""

from __future__ import annotations


class CCSError(ValueError):
    """Base class for every decode failure."""

    kind = "CCSError"


class SourceError(CCSError):
    """Input could not be opened or decompressed."""

    kind = "SourceError"


class InvalidHeader(CCSError):
    kind = "InvalidHeader"


class TruncatedInput(CCSError):
    """A read or seek ran past the end of the buffer."""

    kind = "TruncatedInput"


class MalformedChunk(CCSError):
    """Size/count inconsistency, sentinel hit or impossible field value."""

    kind = "MalformedChunk"


class UnsupportedFormat(CCSError):
    kind = "UnsupportedFormat"
