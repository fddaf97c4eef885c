"""Decode uploaded images into RGBA rasters for shape extraction."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np
from PIL import Image

from routista.core.models import RasterImage

log = logging.getLogger(__name__)


def to_raster(img: Image.Image, max_dimension: int = 800) -> RasterImage:
    """Convert to RGBA, shrinking so the longer side is at most ``max_dimension``."""
    rgba = img.convert("RGBA")
    if max(rgba.size) > max_dimension:
        scale = max_dimension / max(rgba.size)
        size = (max(1, round(rgba.width * scale)), max(1, round(rgba.height * scale)))
        log.debug("Resizing image %s -> %s", rgba.size, size)
        rgba = rgba.resize(size, Image.LANCZOS)
    return RasterImage.from_array(np.asarray(rgba, dtype=np.uint8))


def load_image(source: Union[str, Path, BinaryIO], max_dimension: int = 800) -> RasterImage:
    with Image.open(source) as img:
        return to_raster(img, max_dimension)
