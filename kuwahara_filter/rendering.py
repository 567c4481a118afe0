"""Rendering helpers for showing filter results.

These functions turn RGBA rasters into opaque RGB images suitable for display
and lay out the before/after comparison shown by the shell.
"""

from typing import Tuple

import cv2
import numpy as np

from .raster import Raster

Color = Tuple[int, int, int]


def flatten_alpha(raster: Raster, background: Color = (255, 255, 255)) -> np.ndarray:
    """Composite an RGBA raster over a solid background colour.

    Args:
        raster (Raster): Image to flatten.
        background (Tuple[int, int, int]): RGB colour shown through transparent
                                          pixels. Defaults to white.

    Returns:
        np.ndarray: Opaque ``(H, W, 3)`` uint8 image in RGB format.
    """
    rgb = raster.rgb.astype(np.float32)
    alpha = raster.alpha.astype(np.float32)[:, :, None] / 255.0
    backdrop = np.array(background, dtype=np.float32)
    blended = rgb * alpha + backdrop * (1.0 - alpha)
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)


def create_padded_canvas(base_image: np.ndarray, padding: int,
                         frame_color: Color = (0, 0, 0)) -> np.ndarray:
    """Add a white border and a thin frame around an image.

    Args:
        base_image (np.ndarray): RGB image to wrap.
        padding (int): Width of the white border in pixels.
        frame_color (Tuple[int, int, int]): Colour of the frame drawn around
                                          the original image area.

    Returns:
        np.ndarray: Padded image with border and frame.
    """
    h, w = base_image.shape[:2]
    canvas = cv2.copyMakeBorder(
        base_image, padding, padding, padding, padding,
        cv2.BORDER_CONSTANT, value=(255, 255, 255)
    )
    if padding > 0:
        cv2.rectangle(canvas, (padding - 1, padding - 1), (w + padding, h + padding), frame_color, 1)
    return canvas


def compose_comparison(original: Raster, filtered: Raster, padding: int = 20) -> np.ndarray:
    """Place the original and filtered images side by side on one canvas.

    Both images are flattened over white and framed.

    Args:
        original (Raster): Image before filtering.
        filtered (Raster): Image after filtering.
        padding (int): Border around each image in pixels. Defaults to 20.

    Returns:
        np.ndarray: RGB canvas of height ``H + 2 * padding``.

    Raises:
        ValueError: If the two images differ in size.
    """
    if original.shape != filtered.shape:
        raise ValueError(f"Cannot compare a {original.width}x{original.height} image "
                         f"with a {filtered.width}x{filtered.height} one")

    left = flatten_alpha(original)
    right = flatten_alpha(filtered)

    return np.hstack([
        create_padded_canvas(left, padding),
        create_padded_canvas(right, padding),
    ])
