from __future__ import annotations

import dataclasses
import logging

import numpy as np

from .image import IndexedImage

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Raster:
    width: int
    height: int
    data: bytes  # RGBA8888, top row first

    def to_array(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


def composite(image: IndexedImage, palette_index: int = 0) -> Raster:
    if not image.palettes:
        raise ValueError(f"image {image.id} has no attached palette")
    if palette_index < 0 or palette_index >= len(image.palettes):
        raise ValueError(
            f"palette {palette_index} out of range, image {image.id} has {len(image.palettes)}"
        )
    palette = image.palettes[palette_index]

    # One spare transparent-black entry catches indices past the table.
    lut = np.zeros((palette.num_colors + 1, 4), dtype=np.uint8)
    if palette.num_colors:
        lut[: palette.num_colors] = np.asarray(palette.colors, dtype=np.uint8)

    idx = np.frombuffer(image.indices, dtype=np.uint8).astype(np.intp)
    bad = idx >= palette.num_colors
    nbad = int(bad.sum())
    if nbad:
        log.warning(
            "image %d: %d pixel(s) index past %d palette colors, written transparent",
            image.id,
            nbad,
            palette.num_colors,
        )
        idx = np.where(bad, palette.num_colors, idx)

    rgba = lut[idx].reshape(image.height, image.width, 4)
    # Stored planes are bottom-up.
    rgba = np.flipud(rgba)
    return Raster(width=image.width, height=image.height, data=np.ascontiguousarray(rgba).tobytes())
