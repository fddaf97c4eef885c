"""Shape extraction: RGBA raster -> closed, normalized boundary curve.

Steps:
  1. Otsu threshold over a 256-bin brightness histogram
  2. Polarity detection (dark-on-light vs light-on-dark)
  3. Binary foreground grid
  4. Component discovery (4-connected flood fill) + Moore-neighbour tracing
  5. Left-to-right ordering of components by centroid
  6. Stitching all components into one open path
  7. Uniform resampling + normalization
  8. Advisory noise flag
"""
from __future__ import annotations

import functools
import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from routista.config import Settings
from routista.core.models import RasterImage, ShapeExtraction
from routista.errors import NoShapeFound, NoSignificantShape

log = logging.getLogger(__name__)

Pixel = Tuple[int, int]

# Moore neighbourhood, clockwise starting north: N, NE, E, SE, S, SW, W, NW
_DX = (0, 1, 1, 1, 0, -1, -1, -1)
_DY = (-1, -1, 0, 1, 1, 1, 0, -1)
_OFFSET_TO_DIR = {(dx, dy): k for k, (dx, dy) in enumerate(zip(_DX, _DY))}
_WEST = 6


# ---------------------------------------------------------------------------
# Thresholding
# ---------------------------------------------------------------------------

def _rgb_sum(pixels: np.ndarray) -> np.ndarray:
    return pixels[..., :3].astype(np.int32).sum(axis=2)


def otsu_threshold(image: RasterImage, settings: Settings) -> int:
    """Brightness cut maximizing inter-class variance.

    Falls back to ``settings.otsu_default_threshold`` when the optimum lies
    outside ``[otsu_min_threshold, otsu_max_threshold]`` (near-uniform image).
    """
    brightness = _rgb_sum(image.pixels()) // 3
    hist = np.bincount(brightness.ravel(), minlength=256).astype(np.float64)
    total = float(image.width * image.height)

    levels = np.arange(256, dtype=np.float64)
    w_b = np.cumsum(hist)
    sum_b = np.cumsum(levels * hist)
    w_f = total - w_b
    total_sum = sum_b[-1]

    valid = (w_b > 0) & (w_f > 0)
    variance = np.full(256, -1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        mean_b = sum_b / w_b
        mean_f = (total_sum - sum_b) / w_f
        variance[valid] = (w_b * w_f * (mean_b - mean_f) ** 2)[valid]

    threshold = settings.otsu_default_threshold
    best = int(np.argmax(variance))  # first maximum wins ties
    if variance[best] > 0:
        threshold = best

    if threshold < settings.otsu_min_threshold or threshold > settings.otsu_max_threshold:
        log.info("Extreme Otsu threshold %d, falling back to %d", threshold, settings.otsu_default_threshold)
        return settings.otsu_default_threshold

    log.debug("Otsu threshold: %d", threshold)
    return threshold


def should_invert(image: RasterImage, threshold: int, min_light_coverage: float) -> bool:
    """True when light pixels should be treated as the shape."""
    px = image.pixels()
    opaque = px[..., 3] > 128
    opaque_count = int(opaque.sum())
    if opaque_count == 0:
        log.debug("No opaque pixels, not inverting")
        return False

    # mean(r,g,b) < t  <=>  r+g+b < 3t for integer channels
    dark = opaque & (_rgb_sum(px) < 3 * threshold)
    dark_count = int(dark.sum())

    dark_ratio = dark_count / opaque_count
    light_coverage = (opaque_count - dark_count) / float(image.width * image.height)
    invert = dark_ratio > 0.5 and light_coverage > min_light_coverage
    log.debug(
        "Dark ratio %.1f%% of opaque, light coverage %.1f%%, invert=%s",
        dark_ratio * 100, light_coverage * 100, invert,
    )
    return invert


def foreground_mask(image: RasterImage, threshold: int, inverted: bool) -> np.ndarray:
    """Boolean ``(height, width)`` mask of shape pixels. Transparent pixels never count."""
    px = image.pixels()
    opaque = px[..., 3] > 128
    rgb = _rgb_sum(px)
    if inverted:
        return opaque & (rgb >= 3 * threshold)
    return opaque & (rgb < 3 * threshold)


# ---------------------------------------------------------------------------
# Component discovery + boundary tracing
# ---------------------------------------------------------------------------

def _flood_fill(grid: List[int], visited: bytearray, width: int, height: int, x0: int, y0: int) -> None:
    """Mark the 4-connected component containing (x0, y0). Explicit stack, no recursion."""
    stack = [(x0, y0)]
    while stack:
        x, y = stack.pop()
        if x < 0 or x >= width or y < 0 or y >= height:
            continue
        idx = y * width + x
        if grid[idx] != 1 or visited[idx]:
            continue
        visited[idx] = 1
        stack.append((x + 1, y))
        stack.append((x - 1, y))
        stack.append((x, y + 1))
        stack.append((x, y - 1))


def _trace_boundary(grid: List[int], width: int, height: int, x0: int, y0: int) -> List[Pixel]:
    """Moore-neighbour trace of the outer boundary starting at (x0, y0).

    (x0, y0) must be the first foreground pixel of its component in row-major
    order, so its west neighbour is background.
    """
    points: List[Pixel] = [(x0, y0)]
    cx, cy = x0, y0
    bx, by = x0 - 1, y0
    max_steps = 2 * width * height

    steps = 0
    while steps < max_steps:
        back = _OFFSET_TO_DIR.get((bx - cx, by - cy), _WEST)

        found = False
        for j in range(8):
            k = (back + j) % 8
            sx = cx + _DX[k]
            sy = cy + _DY[k]
            if 0 <= sx < width and 0 <= sy < height and grid[sy * width + sx] == 1:
                prev = (k + 7) % 8
                bx, by = cx + _DX[prev], cy + _DY[prev]
                cx, cy = sx, sy
                found = True
                break

        if not found:
            break  # isolated pixel
        if cx == x0 and cy == y0:
            break

        points.append((cx, cy))
        steps += 1

    return points


def trace_components(mask: np.ndarray, min_significant_points: int) -> List[List[Pixel]]:
    """All significant component boundaries, in row-major discovery order."""
    height, width = mask.shape
    grid = mask.astype(np.uint8).ravel().tolist()
    visited = bytearray(width * height)

    shapes: List[List[Pixel]] = []
    for y in range(height):
        row = y * width
        for x in range(width):
            idx = row + x
            if grid[idx] != 1 or visited[idx]:
                continue
            _flood_fill(grid, visited, width, height, x, y)
            boundary = _trace_boundary(grid, width, height, x, y)
            if len(boundary) > min_significant_points:
                shapes.append(boundary)
                log.debug("Component %d: %d boundary points at %d,%d", len(shapes), len(boundary), x, y)
    return shapes


# ---------------------------------------------------------------------------
# Ordering, stitching, sampling
# ---------------------------------------------------------------------------

def _centroid(points: Sequence[Pixel]) -> Tuple[float, float]:
    n = len(points)
    return sum(p[0] for p in points) / n, sum(p[1] for p in points) / n


def sort_by_centroid(shapes: List[List[Pixel]], tie_px: float = 20.0) -> List[List[Pixel]]:
    """Left-to-right reading order; top-to-bottom when centroids share a column."""
    keyed = [(_centroid(s), s) for s in shapes]

    def compare(a, b) -> int:
        (ax, ay), _ = a
        (bx, by), _ = b
        diff = ax - bx
        if abs(diff) <= tie_px:
            diff = ay - by
        return (diff > 0) - (diff < 0)

    keyed.sort(key=functools.cmp_to_key(compare))
    return [s for _, s in keyed]


def stitch_components(shapes: List[List[Pixel]]) -> List[Pixel]:
    """Concatenate ordered boundaries, entering each at the point nearest the path end."""
    combined: List[Pixel] = []
    for shape in shapes:
        if not combined:
            combined = list(shape)
            continue
        lx, ly = combined[-1]
        best_idx = 0
        best = math.inf
        for j, (x, y) in enumerate(shape):
            d = math.hypot(x - lx, y - ly)
            if d < best:
                best = d
                best_idx = j
        combined.extend(shape[best_idx:])
        combined.extend(shape[:best_idx])
    return combined


def sample_path(points: Sequence[Pixel], num_points: int, width: int, height: int) -> List[Tuple[float, float]]:
    """``num_points`` index-spaced samples normalized to [0, 1], closed by repeating the first."""
    out: List[Tuple[float, float]] = []
    n = len(points)
    for i in range(num_points):
        x, y = points[(i * n) // num_points]
        out.append((x / width, y / height))
    if out:
        out.append(out[0])
    return out


def detect_noise(shapes: List[List[Pixel]], settings: Settings) -> bool:
    small = [s for s in shapes if len(s) < settings.small_component_points]
    has_large = any(len(s) >= settings.small_component_points for s in shapes)
    if not has_large and len(small) > settings.max_small_components:
        return True
    return len(shapes) > 1 and all(len(s) < settings.tiny_component_points for s in shapes)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_shape(
    image: RasterImage,
    settings: Settings,
    num_points: Optional[int] = None,
) -> ShapeExtraction:
    """
    Extract an ordered, closed boundary curve from a raster image.

    Parameters
    ----------
    image : RasterImage
        Decoded RGBA pixels.
    settings : Settings
        Threshold, significance and noise configuration.
    num_points : int, optional
        Samples along the boundary (defaults to ``settings.default_num_points``).
        The returned loop has ``num_points + 1`` entries.

    Raises
    ------
    NoShapeFound
        No foreground pixel at all.
    NoSignificantShape
        Foreground exists but every component is below the significance threshold.
    """
    n = num_points if num_points is not None else settings.default_num_points
    if n < 1:
        raise ValueError(f"num_points must be positive, got {n}")

    threshold = otsu_threshold(image, settings)
    inverted = should_invert(image, threshold, settings.min_light_coverage_for_invert)
    mask = foreground_mask(image, threshold, inverted)
    found = int(mask.sum())

    log.info("Threshold %d, inverted=%s, %d foreground pixels", threshold, inverted, found)
    if found == 0:
        raise NoShapeFound()

    shapes = trace_components(mask, settings.min_significant_points)
    log.info("Found %d significant component(s)", len(shapes))
    if not shapes:
        raise NoSignificantShape()

    ordered = sort_by_centroid(shapes, settings.centroid_tie_px)
    combined = stitch_components(ordered)
    points = sample_path(combined, n, image.width, image.height)
    log.info("Sampled %d points from a %d point path", len(points), len(combined))

    return ShapeExtraction(
        points=points,
        component_count=len(shapes),
        is_likely_noise=detect_noise(shapes, settings),
        threshold=threshold,
        is_inverted=inverted,
    )
