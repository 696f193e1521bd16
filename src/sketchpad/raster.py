"""
Immutable RGBA raster images passed between the drawing surface,
the normalizer and the preview display.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

from .constants import BACKGROUND_RGBA


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    RGBA image of ``width`` x ``height`` pixels.

    ``pixels`` is a read-only uint8 array of shape (height, width, 4), so
    its buffer always holds width * height * 4 values.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel buffer shape {pixels.shape} does not match "
                f"{self.height}x{self.width}x4"
            )
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def blank(cls, width: int, height: int, color=BACKGROUND_RGBA) -> "RasterImage":
        """Solid image, white and opaque by default."""
        if width < 1 or height < 1:
            raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = np.asarray(color, dtype=np.uint8)
        return cls(width, height, pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        """Build from a gray (H, W), RGB (H, W, 3) or RGBA (H, W, 4) uint8 array."""
        arr = np.asarray(array)
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)

        if arr.ndim == 2:
            rgba = np.empty(arr.shape + (4,), dtype=np.uint8)
            rgba[..., :3] = arr[..., None]
            rgba[..., 3] = 255
        elif arr.ndim == 3 and arr.shape[2] == 3:
            rgba = np.empty(arr.shape[:2] + (4,), dtype=np.uint8)
            rgba[..., :3] = arr
            rgba[..., 3] = 255
        elif arr.ndim == 3 and arr.shape[2] == 4:
            rgba = arr
        else:
            raise ValueError(f"Unsupported image array shape: {arr.shape}")

        h, w = rgba.shape[:2]
        return cls(w, h, rgba)

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        return cls.from_array(np.asarray(image.convert("RGBA")))

    @classmethod
    def load(cls, path: str) -> "RasterImage":
        """Load an image file from disk"""
        with Image.open(path) as img:
            return cls.from_pil(img)

    def as_array(self) -> np.ndarray:
        """Writable copy of the pixel buffer."""
        return self.pixels.copy()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.as_array())

    def save(self, path: str) -> None:
        self.to_pil().save(path)

    @property
    def size(self):
        return self.width, self.height

    def __eq__(self, other):
        if not isinstance(other, RasterImage):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)

    def __hash__(self):
        return hash((self.width, self.height, self.pixels.tobytes()))
