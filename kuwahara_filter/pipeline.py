import logging
import os
import time
from typing import Optional, Tuple

import cv2
import matplotlib.pyplot as plt
import numpy as np

# Import modules
from . import engine
from . import rendering
from .params import FilterParameters
from .raster import Raster

LOGGER = logging.getLogger(__name__)


def _decode_rgba(image_path: str) -> np.ndarray:
    """Decode an image file into an RGBA array.

    Raises:
        FileNotFoundError: If OpenCV cannot read the file.
    """
    image = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise FileNotFoundError(f"Cannot read image: {image_path}")

    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


class KuwaharaFilter:
    """Interactive workflow around the Kuwahara filter engine.

    Loads an image, optionally shrinks it, runs the filter and shows the
    result next to the original. The filtering itself is delegated to
    :func:`kuwahara_filter.engine.apply_kuwahara`.

    Attributes:
        file_name (str): Name of the loaded file.
        original_image (Raster): The image as loaded.
        source_image (Raster): The image the next filter pass will read.
        filtered_image (Raster): Result of the last filter pass, if any.
        last_duration (float): Seconds spent in the last filter pass.

    Example:
        >>> kf = KuwaharaFilter("photo.png")
        >>> kf.resize(2.0).filter(FilterParameters(radius=5))
        >>> kf.display_results()
    """
    def __init__(self, image_path: str) -> None:
        """Initialize a KuwaharaFilter instance with an image file.

        Args:
            image_path (str): Path to the input image file.

        Raises:
            FileNotFoundError: If the file cannot be decoded.
        """
        self._load(Raster.from_array(_decode_rgba(image_path)), os.path.basename(image_path))
        LOGGER.info("Loaded %s (%dx%d)", self.file_name, self.width, self.height)

    @classmethod
    def from_array(cls, image, name: str = "<array>") -> 'KuwaharaFilter':
        """Create a KuwaharaFilter from an in-memory grey, RGB or RGBA image."""
        instance = cls.__new__(cls)
        instance._load(Raster.from_array(image), name)
        return instance

    def _load(self, raster: Raster, name: str) -> None:
        self.file_name = name
        self.original_image = raster
        self.source_image = raster
        self.filtered_image: Optional[Raster] = None
        self.last_duration = 0.0

    @property
    def width(self) -> int:
        return self.source_image.width

    @property
    def height(self) -> int:
        return self.source_image.height

    @property
    def is_filtered(self) -> bool:
        return self.filtered_image is not None

    def reset(self) -> 'KuwaharaFilter':
        """Discard resizing and filter results.

        Returns:
            KuwaharaFilter: Self for method chaining.
        """
        self.source_image = self.original_image
        self.filtered_image = None
        return self

    def resize(self, factor: float = 1.0) -> 'KuwaharaFilter':
        """Resize the source image by dividing its dimensions by the given factor.

        Args:
            factor (float): Divisor for width and height. Values > 1 reduce size.
                          Defaults to 1.0 (no change).

        Returns:
            KuwaharaFilter: Self for method chaining.

        Raises:
            ValueError: If factor is not positive.
        """
        if factor <= 0:
            raise ValueError(f"Resize factor must be positive, got {factor}")
        if factor == 1.0:
            return self

        new_w = max(1, int(self.width / factor))
        new_h = max(1, int(self.height / factor))
        interpolation = cv2.INTER_AREA if factor > 1 else cv2.INTER_LINEAR
        resized = cv2.resize(self.source_image.to_array(), (new_w, new_h), interpolation=interpolation)
        self.source_image = Raster(resized)
        self.filtered_image = None
        return self

    def filter(self, params: Optional[FilterParameters] = None, **engine_options) -> 'KuwaharaFilter':
        """Run the Kuwahara filter on the source image.

        Args:
            params (FilterParameters, optional): Filter settings.
            **engine_options: Passed on to ``apply_kuwahara`` (``max_workers``,
                            ``rows_per_partition``, ``cancel_event``,
                            ``progress_callback``).

        Returns:
            KuwaharaFilter: Self for method chaining.

        Raises:
            FilterError: If the engine rejects the input or is cancelled.
                       The previous result is kept in that case.
        """
        start = time.perf_counter()
        result = engine.apply_kuwahara(self.source_image, params, **engine_options)
        self.last_duration = time.perf_counter() - start
        self.filtered_image = result
        LOGGER.info("Filtered %s in %.2fs", self.file_name, self.last_duration)
        return self

    def status(self) -> str:
        """One-line description of the current state for display."""
        if self.is_filtered:
            return f"Picked file: {self.file_name} (filtered in {self.last_duration:.2f}s)"
        return f"Picked file: {self.file_name}"

    def comparison(self, padding: int = 20) -> np.ndarray:
        """Return the side-by-side before/after canvas.

        Raises:
            RuntimeError: If filter() has not been called yet.
        """
        if self.filtered_image is None:
            raise RuntimeError("No filtered image. Call filter() first.")
        return rendering.compose_comparison(self.source_image, self.filtered_image, padding)

    def display_results(self, figsize: Tuple[int, int] = (16, 8), padding: int = 20) -> None:
        """Display the before/after comparison canvas.

        Args:
            figsize (Tuple[int, int]): Figure size as (width, height) in inches.
                                      Defaults to (16, 8).
            padding (int): Border around each image in pixels. Defaults to 20.
        """
        if self.filtered_image is None:
            print("Run filter() first.")
            return

        _, ax = plt.subplots(figsize=figsize)
        ax.imshow(self.comparison(padding))
        ax.set_title(f"Original | Kuwahara\n{self.status()}")
        ax.axis('off')

        plt.tight_layout()
        plt.show()
