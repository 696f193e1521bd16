"""
Drawing session: the canvas, pointer and selected mode as explicit state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .constants import (
    BACKGROUND_RGBA,
    BRUSH_WIDTH,
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    INK_RGBA,
    RecognitionMode,
    parse_mode,
)
from .image_preprocessing import CanonicalImageNormalizer, preprocess_drawing
from .raster import RasterImage


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a prediction needs, captured at request time."""

    mode: RecognitionMode
    drawing: RasterImage
    canonical: RasterImage
    features: np.ndarray


class SketchSession:
    """
    In-memory drawing surface.

    Strokes are round-capped, round-joined segments of a fixed brush width
    in black ink on a white canvas. Every stroke update recomputes the
    canonical preview from a fresh copy of the canvas.
    """

    def __init__(self, width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT,
                 brush_width: int = BRUSH_WIDTH,
                 mode: RecognitionMode | str = RecognitionMode.DIGIT,
                 normalizer: CanonicalImageNormalizer | None = None):
        if width < 1 or height < 1:
            raise ValueError(f"Canvas dimensions must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.brush_width = int(brush_width)
        self.mode = parse_mode(mode)
        self.normalizer = normalizer or CanonicalImageNormalizer()

        self.last_point: Optional[Tuple[float, float]] = None
        self._image = None
        self._draw = None
        self.preview: RasterImage = self.normalizer.blank()
        self.features: np.ndarray = np.zeros(self.normalizer.target_size ** 2, dtype=np.float32)
        self.clear()

    @property
    def is_drawing(self) -> bool:
        return self.last_point is not None

    def clear(self) -> RasterImage:
        """Wipe the canvas and forget the pointer"""
        self._image = Image.new('RGBA', (self.width, self.height), BACKGROUND_RGBA)
        self._draw = ImageDraw.Draw(self._image)
        self.last_point = None
        return self._refresh()

    def set_mode(self, mode: RecognitionMode | str) -> RecognitionMode:
        self.mode = parse_mode(mode)
        return self.mode

    def begin_stroke(self, x: float, y: float) -> None:
        """Start a stroke; nothing is inked until the pointer moves"""
        self.last_point = (float(x), float(y))

    def extend_stroke(self, x: float, y: float) -> RasterImage | None:
        """
        Draw a segment from the last pointer position to (x, y).

        Returns the refreshed canonical preview, or None when no stroke is
        in progress.
        """
        if self.last_point is None:
            return None
        point = (float(x), float(y))
        self._segment(self.last_point, point)
        self.last_point = point
        return self._refresh()

    def end_stroke(self) -> None:
        self.last_point = None

    def draw_stroke(self, points) -> RasterImage:
        """Convenience: draw a whole polyline as one stroke"""
        points = list(points)
        if not points:
            return self.preview
        self.begin_stroke(*points[0])
        if len(points) == 1:
            # A click without movement still leaves a round dot
            self._segment(self.last_point, self.last_point)
            self._refresh()
        for x, y in points[1:]:
            self.extend_stroke(x, y)
        self.end_stroke()
        return self.preview

    def _segment(self, start, end) -> None:
        radius = self.brush_width / 2
        if start != end:
            self._draw.line([start, end], fill=INK_RGBA, width=self.brush_width, joint='curve')
        for cx, cy in (start, end):
            self._draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=INK_RGBA)

    def _refresh(self) -> RasterImage:
        self.preview, self.features = preprocess_drawing(self.drawing(), self.normalizer)
        return self.preview

    def drawing(self) -> RasterImage:
        """Independent copy of the current canvas"""
        return RasterImage.from_pil(self._image)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            mode=self.mode,
            drawing=self.drawing(),
            canonical=self.preview,
            features=self.features.copy(),
        )
