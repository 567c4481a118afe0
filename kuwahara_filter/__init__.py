"""Edge-preserving Kuwahara smoothing for RGBA images."""

import logging

from .engine import apply_kuwahara, filter_pixel
from .errors import EmptyInput, FilterCancelled, FilterError, InvalidParameters, InvariantViolation
from .params import FilterParameters, SelectionPolicy
from .pipeline import KuwaharaFilter
from .raster import Raster

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "apply_kuwahara",
    "filter_pixel",
    "EmptyInput",
    "FilterCancelled",
    "FilterError",
    "InvalidParameters",
    "InvariantViolation",
    "FilterParameters",
    "SelectionPolicy",
    "KuwaharaFilter",
    "Raster",
]
