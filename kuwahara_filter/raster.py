"""Immutable RGBA8 image container used as the filter's input and output.

Every supported in-memory layout is widened to a single canonical form,
``uint8`` RGBA of shape ``(H, W, 4)``, when a :class:`Raster` is created, so
the filtering code never has to branch on colour formats.
"""

from typing import Sequence, Tuple

import numpy as np

from .errors import EmptyInput


def _to_uint8(image: np.ndarray) -> np.ndarray:
    """Convert an array of any supported dtype to ``uint8`` channel values.

    Args:
        image (np.ndarray): Input array. ``uint8`` is kept, ``uint16`` is
                          shifted down, floats are read as ``[0, 1]`` and
                          booleans map to 0/255.

    Returns:
        np.ndarray: Array with the same shape and ``uint8`` dtype.

    Raises:
        ValueError: If the dtype is not supported.
    """
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.bool_:
        return image.astype(np.uint8) * 255
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(np.rint(image * 255.0), 0, 255).astype(np.uint8)
    raise ValueError(f"Unsupported image dtype: {image.dtype}")


def _to_rgba(image: np.ndarray) -> np.ndarray:
    """Widen a grey, RGB or RGBA ``uint8`` array to RGBA."""
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 2:
        rgba = np.empty(image.shape + (4,), dtype=np.uint8)
        rgba[:, :, :3] = image[:, :, None]
        rgba[:, :, 3] = 255
        return rgba
    if image.ndim == 3 and image.shape[2] == 3:
        rgba = np.empty(image.shape[:2] + (4,), dtype=np.uint8)
        rgba[:, :, :3] = image
        rgba[:, :, 3] = 255
        return rgba
    if image.ndim == 3 and image.shape[2] == 4:
        return image
    raise ValueError(f"Unsupported image shape: {image.shape}")


class Raster:
    """A fixed-size grid of RGBA colour samples with 8 bits per channel.

    The pixel data is copied on construction and marked read-only, so a
    Raster can be shared between threads without locking.

    Attributes:
        width (int): Number of columns.
        height (int): Number of rows.

    Example:
        >>> raster = Raster.from_array(np.zeros((2, 3, 3), dtype=np.uint8))
        >>> raster.width, raster.height
        (3, 2)
    """
    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        """Wrap an RGBA array.

        Args:
            pixels (np.ndarray): ``uint8`` array of shape ``(H, W, 4)``.

        Raises:
            EmptyInput: If H or W is zero.
            ValueError: If the array is not ``uint8`` RGBA.
        """
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Raster expects an (H, W, 4) array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Raster expects uint8 samples, got {pixels.dtype}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise EmptyInput(pixels.shape)

        data = np.array(pixels, dtype=np.uint8, order="C", copy=True)
        data.flags.writeable = False
        self._pixels = data

    @classmethod
    def from_array(cls, image) -> 'Raster':
        """Build a Raster from a grey, RGB or RGBA array of any common dtype.

        Args:
            image: Array-like of shape ``(H, W)``, ``(H, W, 1)``, ``(H, W, 3)``
                 or ``(H, W, 4)``.

        Returns:
            Raster: The widened image.

        Raises:
            EmptyInput: If the image has no rows or no columns.
            ValueError: If the layout or dtype is not supported.
        """
        if isinstance(image, Raster):
            return image
        image = np.asarray(image)
        if image.ndim in (2, 3) and (image.shape[0] == 0 or image.shape[1] == 0):
            raise EmptyInput(image.shape)
        return cls(_to_rgba(_to_uint8(image)))

    @classmethod
    def uniform(cls, width: int, height: int, color: Sequence[int]) -> 'Raster':
        """Create a Raster filled with a single RGBA (or RGB, opaque) colour."""
        color = tuple(color)
        if len(color) == 3:
            color = color + (255,)
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width), matching numpy's row-major order."""
        return self._pixels.shape[:2]

    @property
    def pixels(self) -> np.ndarray:
        """Read-only view of the ``(H, W, 4)`` sample array."""
        return self._pixels

    @property
    def rgb(self) -> np.ndarray:
        return self._pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self._pixels[:, :, 3]

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """Return the RGBA sample at column ``x`` and row ``y``."""
        return tuple(int(c) for c in self._pixels[y, x])

    def to_array(self) -> np.ndarray:
        """Return a writable copy of the sample array."""
        return self._pixels.copy()

    def tobytes(self) -> bytes:
        return self._pixels.tobytes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Raster):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self) -> str:
        return f"Raster(width={self.width}, height={self.height})"
