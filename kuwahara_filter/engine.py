"""Parallel driver for the Kuwahara filter.

The output image is split into horizontal row bands. Each band is an
independent job on a thread pool that reads the shared, read-only source
arrays and writes only its own rows of the preallocated output, so no
locking is needed on pixel data. Every pixel goes through the same sequence
of integer additions whatever the band layout, which keeps the output
byte-identical for any worker count.
"""

import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from . import processing
from .errors import FilterCancelled, InvalidParameters
from .params import FilterParameters, SelectionPolicy, _is_int
from .raster import Raster

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
BANDS_PER_WORKER = 4

ProgressCallback = Callable[[int, int], None]


def default_worker_count() -> int:
    """Number of worker threads used when the caller does not choose one."""
    return max(1, min(DEFAULT_MAX_WORKERS, os.cpu_count() or 1))


def _check_option(name: str, value) -> None:
    if value is None:
        return
    if not _is_int(value) or value < 1:
        raise InvalidParameters(name, value, "must be an integer >= 1")


def _select(params: FilterParameters, counts: np.ndarray, means: np.ndarray,
            dispersions: np.ndarray) -> np.ndarray:
    dispersions = processing.exclude_centre_only(counts, dispersions)
    if params.policy is SelectionPolicy.WEIGHTED:
        return processing.select_weighted_band(means, dispersions, params.sharpness, params.epsilon)
    return processing.select_hard_band(means, dispersions)


def filter_pixel(raster: Raster, x: int, y: int,
                 params: Optional[FilterParameters] = None) -> tuple:
    """Filter a single pixel without touching the rest of the image.

    This is the unvectorised reference for :func:`apply_kuwahara`: sample the
    sectors, reduce each to a mean and a dispersion, then select.

    Args:
        raster (Raster): Source image.
        x (int): Column of the pixel.
        y (int): Row of the pixel.
        params (FilterParameters, optional): Filter settings. Defaults to
                                             ``FilterParameters()``.

    Returns:
        tuple: The filtered RGBA sample.
    """
    params = (params or FilterParameters()).validate()
    offsets = processing.sector_offsets(params.radius, params.sector_count)
    samples = processing.sample_neighborhood(raster, x, y, offsets)

    means = np.zeros((len(samples), 3), dtype=np.float64)
    dispersions = np.full(len(samples), np.inf)
    for s, sector in enumerate(samples):
        if len(sector):
            means[s], dispersions[s] = processing.sector_statistics(sector)
    counts = np.array([len(sector) for sector in samples])
    dispersions = processing.exclude_centre_only(counts, dispersions)

    if params.policy is SelectionPolicy.WEIGHTED:
        color = processing.select_weighted(means, dispersions, params.sharpness, params.epsilon)
    else:
        color = processing.select_hard(means, dispersions)

    rgb = processing.to_channel_values(color)
    return tuple(int(c) for c in rgb) + (raster.pixel(x, y)[3],)


def apply_kuwahara(raster, params: Optional[FilterParameters] = None, *,
                   max_workers: Optional[int] = None,
                   rows_per_partition: Optional[int] = None,
                   cancel_event: Optional[threading.Event] = None,
                   progress_callback: Optional[ProgressCallback] = None) -> Raster:
    """Apply the Kuwahara filter to an image.

    Each output pixel takes the mean colour of the least dispersed sector
    around it (or an inverse-dispersion blend of all sectors with the
    weighted policy). The alpha channel is copied from the source.

    Args:
        raster: A :class:`Raster`, or any array accepted by
              :meth:`Raster.from_array`.
        params (FilterParameters, optional): Filter settings. Defaults to
                                             ``FilterParameters()``.
        max_workers (int, optional): Thread count. Defaults to
                                   :func:`default_worker_count`.
        rows_per_partition (int, optional): Height of each row band. Defaults
                                          to spreading the image over
                                          ``BANDS_PER_WORKER`` bands per worker.
        cancel_event (threading.Event, optional): When set, workers stop
                                                  picking up new bands.
        progress_callback (Callable[[int, int], None], optional): Called with
            ``(completed_bands, total_bands)`` after each band.

    Returns:
        Raster: A new image with the same dimensions.

    Raises:
        InvalidParameters: If ``params`` or an engine option is invalid.
        EmptyInput: If the image has no rows or no columns.
        FilterCancelled: If ``cancel_event`` was set before every band ran.
    """
    params = (params or FilterParameters()).validate()
    _check_option("max_workers", max_workers)
    _check_option("rows_per_partition", rows_per_partition)
    raster = Raster.from_array(raster)

    height, width = raster.shape
    workers = max_workers or default_worker_count()
    band_rows = rows_per_partition or max(1, math.ceil(height / (workers * BANDS_PER_WORKER)))
    bands = [(y0, min(y0 + band_rows, height)) for y0 in range(0, height, band_rows)]

    LOGGER.debug(
        "Filtering %dx%d raster: radius=%d sectors=%d policy=%s, %d bands on %d workers",
        width, height, params.radius, params.sector_count, params.policy.value,
        len(bands), workers,
    )
    start = time.perf_counter()

    offsets = processing.sector_offsets(params.radius, params.sector_count)
    padded_rgb, padded_sq, padded_valid = processing.pad_source(raster, params.radius)

    output = np.empty((height, width, 4), dtype=np.uint8)
    output[:, :, 3] = raster.alpha

    lock = threading.Lock()
    completed = [0]

    def run_band(y0: int, y1: int) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return False
        counts, sums, sumsq = processing.accumulate_sectors(
            padded_rgb, padded_sq, padded_valid, params.radius, y0, y1, offsets
        )
        means, dispersions = processing.band_statistics(counts, sums, sumsq)
        colors = _select(params, counts, means, dispersions)
        output[y0:y1, :, :3] = processing.to_channel_values(colors)

        with lock:
            completed[0] += 1
            if progress_callback is not None:
                progress_callback(completed[0], len(bands))
        return True

    if workers == 1 or len(bands) == 1:
        results = [run_band(y0, y1) for y0, y1 in bands]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kuwahara") as executor:
            futures = [executor.submit(run_band, y0, y1) for y0, y1 in bands]
            results = [future.result() for future in futures]

    if not all(results):
        LOGGER.debug("Filter cancelled after %d/%d bands", sum(results), len(bands))
        raise FilterCancelled(sum(results), len(bands))

    LOGGER.debug("Filtered %dx%d raster in %.3fs", width, height, time.perf_counter() - start)
    return Raster(output)
