"""Sector sampling, statistics and selection for the Kuwahara filter.

This module contains pure, stateless functions. Each stage exists in two
forms: a scalar form working on one pixel (used as the reference path) and a
band form working on a block of rows at once (used by the engine). Both forms
use the same integer accumulation, so they agree bit for bit.

Offsets are ``(dx, dy)`` pairs in image coordinates: ``dx`` grows to the
right and ``dy`` grows downwards.
"""

import math
from functools import lru_cache
from typing import List, Sequence, Tuple

import numpy as np

from .errors import InvariantViolation
from .raster import Raster

# Sector lookup for the 4-sector case, keyed by (dx >= 0, dy >= 0).
# Offsets on an axis count as non-negative.
QUADRANT_TABLE = {
    (True, True): 0,
    (False, True): 1,
    (False, False): 2,
    (True, False): 3,
}

_ANGLE_TOLERANCE = 1e-9


def sector_index(dx: int, dy: int, sector_count: int) -> int:
    """Return the sector an offset belongs to.

    With four sectors the quadrant table is used. Otherwise the angle of
    ``(dx, dy)`` is split into equal half-open slices ``[k*w, (k+1)*w)``,
    so an offset lying exactly on a boundary ray belongs to the slice that
    starts there.

    Args:
        dx (int): Horizontal offset from the pixel centre.
        dy (int): Vertical offset from the pixel centre.
        sector_count (int): Number of sectors.

    Returns:
        int: Sector index in ``[0, sector_count)``.
    """
    if sector_count == 4:
        return QUADRANT_TABLE[(dx >= 0, dy >= 0)]

    angle = math.degrees(math.atan2(dy, dx)) % 360.0
    width = 360.0 / sector_count
    return int(math.floor(angle / width + _ANGLE_TOLERANCE)) % sector_count


@lru_cache(maxsize=32)
def sector_offsets(radius: int, sector_count: int) -> Tuple[np.ndarray, ...]:
    """Partition the square neighbourhood of a pixel into sectors.

    The centre offset ``(0, 0)`` is part of every sector; every other offset
    belongs to exactly one.

    Args:
        radius (int): Half-size of the square neighbourhood.
        sector_count (int): Number of sectors.

    Returns:
        Tuple[np.ndarray, ...]: One read-only ``(n, 2)`` array of ``(dx, dy)``
        pairs per sector, centre first, then in row-major order.
    """
    buckets: List[List[Tuple[int, int]]] = [[(0, 0)] for _ in range(sector_count)]
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            if dx == 0 and dy == 0:
                continue
            buckets[sector_index(dx, dy, sector_count)].append((dx, dy))

    offsets = []
    for bucket in buckets:
        table = np.array(bucket, dtype=np.intp)
        table.flags.writeable = False
        offsets.append(table)
    return tuple(offsets)


def sample_neighborhood(raster: Raster, x: int, y: int,
                        offsets: Sequence[np.ndarray]) -> List[np.ndarray]:
    """Collect the RGB samples of every sector around one pixel.

    Offsets falling outside the image are dropped, so sectors near an edge
    hold fewer samples.

    Args:
        raster (Raster): Source image.
        x (int): Column of the pixel.
        y (int): Row of the pixel.
        offsets (Sequence[np.ndarray]): Sector table from :func:`sector_offsets`.

    Returns:
        List[np.ndarray]: One ``(n, 3)`` int64 array per sector.

    Raises:
        ValueError: If ``(x, y)`` lies outside the raster.
    """
    h, w = raster.shape
    if not (0 <= x < w and 0 <= y < h):
        raise ValueError(f"Pixel ({x}, {y}) outside {w}x{h} raster")

    rgb = raster.rgb
    samples = []
    for sector in offsets:
        xs = x + sector[:, 0]
        ys = y + sector[:, 1]
        inside = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
        samples.append(rgb[ys[inside], xs[inside]].astype(np.int64))
    return samples


def pad_source(raster: Raster, radius: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Zero-pad the RGB data, its squares and a validity mask by ``radius``.

    Padded cells contribute nothing to a sector, which drops out-of-bounds
    offsets without any per-pixel bounds checks.

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: Read-only int32 arrays of
        shape ``(H+2r, W+2r, 3)``, ``(H+2r, W+2r, 3)`` and ``(H+2r, W+2r)``.
    """
    pad = ((radius, radius), (radius, radius))
    rgb = raster.rgb.astype(np.int32)
    padded_rgb = np.pad(rgb, pad + ((0, 0),), mode="constant")
    padded_sq = padded_rgb * padded_rgb
    padded_valid = np.pad(np.ones(raster.shape, dtype=np.int32), pad, mode="constant")

    for arr in (padded_rgb, padded_sq, padded_valid):
        arr.flags.writeable = False
    return padded_rgb, padded_sq, padded_valid


def accumulate_sectors(padded_rgb: np.ndarray, padded_sq: np.ndarray, padded_valid: np.ndarray,
                       radius: int, y0: int, y1: int,
                       offsets: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Accumulate sample counts, sums and sums of squares for a row band.

    Args:
        padded_rgb, padded_sq, padded_valid: Output of :func:`pad_source`.
        radius (int): Padding used when building the arrays.
        y0 (int): First output row of the band.
        y1 (int): One past the last output row of the band.
        offsets (Sequence[np.ndarray]): Sector table from :func:`sector_offsets`.

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: ``counts`` of shape
        ``(S, h, W)`` and ``sums``/``sumsq`` of shape ``(S, h, W, 3)``,
        all int64.
    """
    n_sectors = len(offsets)
    rows = y1 - y0
    width = padded_rgb.shape[1] - 2 * radius

    counts = np.zeros((n_sectors, rows, width), dtype=np.int64)
    sums = np.zeros((n_sectors, rows, width, 3), dtype=np.int64)
    sumsq = np.zeros((n_sectors, rows, width, 3), dtype=np.int64)

    for s, sector in enumerate(offsets):
        for dx, dy in sector:
            ys = slice(y0 + radius + dy, y1 + radius + dy)
            xs = slice(radius + dx, radius + dx + width)
            sums[s] += padded_rgb[ys, xs]
            sumsq[s] += padded_sq[ys, xs]
            counts[s] += padded_valid[ys, xs]

    return counts, sums, sumsq


def sector_statistics(samples: np.ndarray) -> Tuple[np.ndarray, float]:
    """Compute the mean colour and dispersion of one sector.

    The dispersion is the sum of the per-channel population variances,
    evaluated in one pass as ``(n * sum(x^2) - sum(x)^2) / n^2`` with an
    exact integer numerator.

    Args:
        samples (np.ndarray): ``(n, 3)`` RGB samples.

    Returns:
        Tuple[np.ndarray, float]: Mean RGB as float64 and the dispersion.

    Raises:
        InvariantViolation: If ``samples`` is empty.
    """
    samples = np.asarray(samples, dtype=np.int64).reshape(-1, 3)
    n = samples.shape[0]
    if n == 0:
        raise InvariantViolation("Sector statistics requested for a sector with no samples")

    total = samples.sum(axis=0)
    total_sq = (samples * samples).sum(axis=0)
    numerator = np.int64(n) * total_sq.sum() - (total * total).sum()
    return total / np.int64(n), float(numerator / np.int64(n * n))


def band_statistics(counts: np.ndarray, sums: np.ndarray,
                    sumsq: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorised :func:`sector_statistics` over a row band.

    Empty sectors get dispersion ``inf`` and a zero mean so that neither
    selection policy can pick them.

    Returns:
        Tuple[np.ndarray, np.ndarray]: ``means`` of shape ``(S, h, W, 3)`` and
        ``dispersions`` of shape ``(S, h, W)``, both float64.

    Raises:
        InvariantViolation: If some pixel has no samples in any sector.
    """
    empty = counts == 0
    if empty.all(axis=0).any():
        raise InvariantViolation("Pixel with no samples in any sector")

    with np.errstate(divide="ignore", invalid="ignore"):
        means = sums / counts[..., None]
        numerator = counts * sumsq.sum(axis=-1) - (sums * sums).sum(axis=-1)
        dispersions = numerator / (counts * counts)

    means[empty] = 0.0
    dispersions[empty] = np.inf
    return means, dispersions


def exclude_centre_only(counts: np.ndarray, dispersions: np.ndarray) -> np.ndarray:
    """Withdraw sectors that hold nothing but the centre sample.

    A one-sample sector always has dispersion 0 and would win every
    selection, which leaves the pixel unfiltered along the top and left
    edges and whenever sectors outnumber the offsets. Such a sector only
    stays a candidate when no sector of the pixel holds a neighbour sample,
    as in a 1x1 image.

    Args:
        counts (np.ndarray): Samples per sector, shape ``(S, ...)``.
        dispersions (np.ndarray): Dispersions of the same shape.

    Returns:
        np.ndarray: A copy of ``dispersions`` with withdrawn sectors set to ``inf``.
    """
    counts = np.asarray(counts)
    withdrawn = (counts == 1) & (counts > 1).any(axis=0, keepdims=True)
    return np.where(withdrawn, np.inf, dispersions)


def _require_candidates(dispersions: np.ndarray) -> None:
    if not np.isfinite(dispersions).any(axis=0).all():
        raise InvariantViolation("No non-empty sector to select from")


def select_hard_band(means: np.ndarray, dispersions: np.ndarray) -> np.ndarray:
    """Pick, per pixel, the mean of the least dispersed sector.

    ``np.argmin`` returns the first minimum, so ties go to the lowest
    sector index.

    Returns:
        np.ndarray: ``(h, W, 3)`` float64 colours.
    """
    _require_candidates(dispersions)
    best = np.argmin(dispersions, axis=0)
    return np.take_along_axis(means, best[None, ..., None], axis=0)[0]


def select_weighted_band(means: np.ndarray, dispersions: np.ndarray,
                         sharpness: float, epsilon: float) -> np.ndarray:
    """Blend all sector means with weights ``(dispersion + epsilon) ** -sharpness``.

    Weights are computed in log space and normalised per pixel; empty sectors
    get weight zero.

    Returns:
        np.ndarray: ``(h, W, 3)`` float64 colours.
    """
    _require_candidates(dispersions)
    valid = np.isfinite(dispersions)
    log_weights = np.where(valid, -sharpness * np.log(dispersions + epsilon), -np.inf)
    log_weights -= log_weights.max(axis=0, keepdims=True)
    weights = np.exp(log_weights)
    weights /= weights.sum(axis=0, keepdims=True)
    return (weights[..., None] * means).sum(axis=0)


def _as_band(means, dispersions) -> Tuple[np.ndarray, np.ndarray]:
    means = np.asarray(means, dtype=np.float64).reshape(-1, 1, 1, 3)
    dispersions = np.asarray(dispersions, dtype=np.float64).reshape(-1, 1, 1)
    return means, dispersions


def select_hard(means: Sequence[np.ndarray], dispersions: Sequence[float]) -> np.ndarray:
    """Single-pixel form of :func:`select_hard_band`.

    Args:
        means: One RGB mean per sector (any value for empty sectors).
        dispersions: One dispersion per sector, ``inf`` for empty sectors.

    Returns:
        np.ndarray: The selected RGB colour as float64.
    """
    return select_hard_band(*_as_band(means, dispersions))[0, 0]


def select_weighted(means: Sequence[np.ndarray], dispersions: Sequence[float],
                    sharpness: float, epsilon: float) -> np.ndarray:
    """Single-pixel form of :func:`select_weighted_band`."""
    return select_weighted_band(*_as_band(means, dispersions), sharpness, epsilon)[0, 0]


def to_channel_values(colors: np.ndarray) -> np.ndarray:
    """Round half to even and clip floating-point colours into ``uint8``."""
    return np.clip(np.rint(colors), 0, 255).astype(np.uint8)
