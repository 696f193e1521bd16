"""
Image Preprocessing Module for the Sketchpad Character Classifier
Converts a freehand drawing into a canonical 28x28 image and a
784-value feature vector for the classifiers
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Tuple

import cv2
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle
from PIL import Image

from .constants import BACKGROUND_RGBA, PADDING_FACTOR, PREVIEW_SCALE, TARGET_SIZE
from .raster import RasterImage


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel bounds of the ink, or EMPTY (all -1) for a blank canvas."""

    left: int
    top: int
    right: int
    bottom: int

    EMPTY: ClassVar["BoundingBox"]

    @property
    def is_empty(self) -> bool:
        return self.left == -1

    @property
    def width(self) -> int:
        return 0 if self.is_empty else self.right - self.left + 1

    @property
    def height(self) -> int:
        return 0 if self.is_empty else self.bottom - self.top + 1


BoundingBox.EMPTY = BoundingBox(-1, -1, -1, -1)


@dataclass(frozen=True)
class SourceRegion:
    """Area of the source canvas that is stretched onto the canonical image."""

    x: float
    y: float
    width: float
    height: float


def find_bounding_box(image: RasterImage) -> BoundingBox:
    """
    Locate the tight rectangle around all foreground pixels.

    A pixel is foreground when its red channel is below 255; strokes are
    assumed to be achromatic so the other channels are not inspected.
    """
    ink = image.pixels[..., 0] < 255

    rows = np.flatnonzero(ink.any(axis=1))
    if rows.size == 0:
        return BoundingBox.EMPTY
    cols = np.flatnonzero(ink.any(axis=0))

    return BoundingBox(
        left=int(cols[0]),
        top=int(rows[0]),
        right=int(cols[-1]),
        bottom=int(rows[-1]),
    )


def source_region(image: RasterImage, box: BoundingBox,
                  padding_factor: float = PADDING_FACTOR) -> SourceRegion:
    """
    Square around the bounding box centre, padded by ``padding_factor``.

    The origin is clamped at 0 and the extent is clipped at the right and
    bottom canvas edges, so content near an edge yields an off-centre,
    possibly non-square region.
    """
    if box.is_empty:
        raise ValueError("Cannot compute a source region for an empty bounding box")

    max_dim = max(box.width, box.height)
    padded_size = min(max_dim * padding_factor, min(image.width, image.height))

    center_x = (box.left + box.right) / 2
    center_y = (box.top + box.bottom) / 2

    source_x = max(0.0, center_x - padded_size / 2)
    source_y = max(0.0, center_y - padded_size / 2)
    used_width = min(padded_size, image.width - source_x)
    used_height = min(padded_size, image.height - source_y)

    return SourceRegion(source_x, source_y, used_width, used_height)


class CanonicalImageNormalizer:
    """
    Crop, centre and rescale drawn content onto a fixed-size white image
    """

    def __init__(self, target_size: int = TARGET_SIZE, padding_factor: float = PADDING_FACTOR):
        if target_size < 1:
            raise ValueError(f"target_size must be positive, got {target_size}")
        self.target_size = int(target_size)
        self.padding_factor = float(padding_factor)

    def blank(self) -> RasterImage:
        return RasterImage.blank(self.target_size, self.target_size)

    def normalize(self, image: RasterImage, box: BoundingBox | None = None) -> RasterImage:
        """
        Produce the canonical image for ``image``.

        Args:
            image: Raw drawing
            box: Bounding box of the drawing; located when omitted

        A blank drawing yields a solid white canonical image.
        """
        if box is None:
            box = find_bounding_box(image)
        if box.is_empty:
            return self.blank()

        region = source_region(image, box, self.padding_factor)
        x1 = min(float(image.width), region.x + region.width)
        y1 = min(float(image.height), region.y + region.height)

        size = (self.target_size, self.target_size)
        resampled = image.to_pil().resize(
            size,
            resample=Image.Resampling.BILINEAR,
            box=(region.x, region.y, x1, y1),
        )

        canvas = Image.new("RGBA", size, BACKGROUND_RGBA)
        canvas.alpha_composite(resampled)
        return RasterImage.from_pil(canvas)


def image_to_features(image: RasterImage, target_size: int = TARGET_SIZE) -> np.ndarray:
    """
    Flatten a canonical image into an inverted, normalised feature vector.

    Grayscale is the plain RGB mean (alpha ignored); ink maps towards 1.0
    and white background to 0.0.
    """
    if image.size != (target_size, target_size):
        raise ValueError(
            f"Expected a {target_size}x{target_size} canonical image, got {image.width}x{image.height}"
        )

    rgb = image.pixels[..., :3].astype(np.float32)
    grayscale = rgb.sum(axis=2) / 3.0
    features = (255.0 - grayscale) / 255.0
    return np.clip(features.reshape(-1), 0.0, 1.0).astype(np.float32)


_default_normalizer = CanonicalImageNormalizer()


def preprocess_drawing(image: RasterImage,
                       normalizer: CanonicalImageNormalizer | None = None) -> Tuple[RasterImage, np.ndarray]:
    """Locate, normalise and tensorise a drawing in one pass."""
    normalizer = normalizer or _default_normalizer
    box = find_bounding_box(image)
    canonical = normalizer.normalize(image, box)
    return canonical, image_to_features(canonical, normalizer.target_size)


def preview_image(canonical: RasterImage, scale: int = PREVIEW_SCALE) -> RasterImage:
    """Upscale with nearest-neighbour magnification so each pixel stays visible"""
    if scale < 1:
        raise ValueError(f"scale must be >= 1, got {scale}")
    enlarged = cv2.resize(
        canonical.as_array(),
        (canonical.width * scale, canonical.height * scale),
        interpolation=cv2.INTER_NEAREST,
    )
    return RasterImage.from_array(enlarged)


def visualize_pipeline(image: RasterImage,
                       normalizer: CanonicalImageNormalizer | None = None) -> None:
    """Show the drawing with its bounding box and source region next to the canonical image"""
    normalizer = normalizer or _default_normalizer
    box = find_bounding_box(image)
    canonical = normalizer.normalize(image, box)

    fig, axes = plt.subplots(1, 2, figsize=(10, 5))

    axes[0].imshow(image.pixels)
    axes[0].set_title('Drawing')
    if not box.is_empty:
        region = source_region(image, box, normalizer.padding_factor)
        axes[0].add_patch(Rectangle((box.left, box.top), box.width, box.height,
                                    fill=False, edgecolor='tab:blue', linewidth=1.5))
        axes[0].add_patch(Rectangle((region.x, region.y), region.width, region.height,
                                    fill=False, edgecolor='tab:red', linestyle='--'))
    axes[0].axis('off')

    axes[1].imshow(canonical.pixels, interpolation='nearest')
    axes[1].set_title(f'Canonical {normalizer.target_size}x{normalizer.target_size}')
    axes[1].axis('off')

    plt.tight_layout()
    plt.show()
