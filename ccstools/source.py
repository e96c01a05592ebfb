from __future__ import annotations

import gzip
import pathlib
import zlib
from typing import Union

from .buffer import Cursor
from .errors import SourceError

GZIP_MAGIC = b"\x1f\x8b"
READ_BLOCK = 4096000


def read_source(path: Union[str, pathlib.Path]) -> Cursor:
    """Load a possibly gzip-compressed file into a cursor at offset 0."""
    path = pathlib.Path(path)
    cur = Cursor()
    try:
        with path.open("rb") as f:
            compressed = f.read(2) == GZIP_MAGIC
        if compressed:
            with gzip.open(path, "rb") as gz:
                while True:
                    block = gz.read(READ_BLOCK)
                    if not block:
                        break
                    cur.write(block)
        else:
            cur.write(path.read_bytes())
    except OSError as e:
        # gzip.BadGzipFile is an OSError subclass.
        raise SourceError(f"cannot open {path}: {e}") from e
    except (EOFError, zlib.error) as e:
        raise SourceError(f"cannot decompress {path}: {e}") from e
    cur.seek(0)
    return cur
