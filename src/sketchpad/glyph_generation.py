"""
Synthetic glyph generators used to train the classifiers at startup.

Two interchangeable generators are provided:
  PatternGlyphGenerator - fixed stroke patterns on a 28x28 grid plus speckle noise
  FontGlyphGenerator    - OpenCV Hershey fonts with random rotation/shift/blur/noise

Both render ink as 1.0 on a 0.0 background, i.e. already in feature space.

Usage:
  sketchpad --make-dataset data/synth_digits --mode digit
  sketchpad --make-dataset data/synth_letters --mode letter --generator font
"""

from __future__ import annotations

import os
import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, Sequence, Tuple

import numpy as np
import cv2

from .constants import (
    FEATURE_LENGTH,
    TARGET_SIZE,
    RecognitionMode,
    mode_config,
    parse_mode,
)


FONTS = [
    cv2.FONT_HERSHEY_SIMPLEX,
    cv2.FONT_HERSHEY_COMPLEX,
    cv2.FONT_HERSHEY_DUPLEX,
    cv2.FONT_HERSHEY_TRIPLEX,
    cv2.FONT_HERSHEY_PLAIN,
]


def ensure_dir(p: str) -> None:
    if not os.path.isdir(p):
        os.makedirs(p, exist_ok=True)


class SampleGenerator(ABC):
    """Produces one flattened 28x28 training glyph per call."""

    def __init__(self, mode: RecognitionMode | str = RecognitionMode.DIGIT,
                 rng: np.random.Generator | None = None):
        self.mode = parse_mode(mode)
        self.rng = rng if rng is not None else np.random.default_rng()

    @property
    def labels(self) -> Sequence[str]:
        return mode_config(self.mode).labels

    @abstractmethod
    def render(self, label_index: int) -> np.ndarray:
        """Return a (784,) float32 vector with ink close to 1.0."""


# ---------------------------------------------------------------------------
# Pattern glyphs
# ---------------------------------------------------------------------------

def _set_pixel(grid: np.ndarray, x: float, y: float, value: float = 1.0) -> None:
    # Fractional coordinates truncate towards zero
    xi, yi = int(x), int(y)
    if 0 <= xi < TARGET_SIZE and 0 <= yi < TARGET_SIZE:
        grid[yi, xi] = value


def _hline(grid, x0, x1, y):
    for x in range(x0, x1):
        _set_pixel(grid, x, y)


def _vline(grid, x, y0, y1):
    for y in range(y0, y1):
        _set_pixel(grid, x, y)


def _ring(grid, cy, rows, cols, outer, inner):
    """Elliptical band between two axis-aligned ellipses centred at (14, cy)."""
    for y in rows:
        for x in cols:
            dx, dy = x - 14, y - cy
            if (dx * dx / outer[0] + dy * dy / outer[1] < 1
                    and dx * dx / inner[0] + dy * dy / inner[1] > 1):
                _set_pixel(grid, x, y)


def draw_oval(grid):
    _ring(grid, 14, range(4, 24), range(6, 22), (64, 100), (36, 81))


def draw_vertical_line(grid):
    for x in (13, 14, 15):
        _vline(grid, x, 4, 24)


def draw_two(grid):
    _hline(grid, 6, 22, 4)
    _hline(grid, 6, 22, 5)
    for i in range(15):
        _set_pixel(grid, 20 - i, 6 + i)
    _hline(grid, 6, 22, 22)
    _hline(grid, 6, 22, 23)


def draw_three(grid):
    for y in (4, 13, 23):
        _hline(grid, 6, 20, y)
    _vline(grid, 19, 5, 13)
    _vline(grid, 19, 14, 23)


def draw_four(grid):
    _vline(grid, 8, 4, 15)
    _hline(grid, 8, 20, 14)
    _vline(grid, 19, 4, 24)


def draw_five(grid):
    _hline(grid, 6, 20, 4)
    _vline(grid, 6, 4, 14)
    _hline(grid, 6, 18, 14)
    _vline(grid, 18, 14, 23)
    _hline(grid, 6, 18, 23)


def draw_six(grid):
    draw_five(grid)
    _vline(grid, 6, 14, 23)


def draw_seven(grid):
    _hline(grid, 6, 22, 4)
    for i in range(19):
        _set_pixel(grid, 21 - i * 0.8, 5 + i)


def draw_eight(grid):
    draw_oval(grid)
    for y in (13, 14, 15):
        _hline(grid, 8, 20, y)


def draw_nine(grid):
    _ring(grid, 9, range(4, 15), range(6, 22), (64, 25), (36, 16))
    _vline(grid, 20, 9, 24)


def draw_a(grid):
    for i in range(20):
        _set_pixel(grid, 6 + i * 0.4, 23 - i)
        _set_pixel(grid, 22 - i * 0.4, 23 - i)
    _hline(grid, 10, 18, 15)


def draw_b(grid):
    _vline(grid, 6, 4, 24)
    _hline(grid, 6, 18, 4)
    _hline(grid, 6, 16, 14)
    _hline(grid, 6, 18, 23)
    _vline(grid, 17, 5, 14)
    _vline(grid, 17, 14, 23)


def draw_c(grid):
    _vline(grid, 8, 6, 22)
    _hline(grid, 8, 20, 6)
    _hline(grid, 8, 20, 22)


def draw_hatch(grid, seed: int):
    """Diagonal hatch whose phase depends on the letter index."""
    for y in range(4, 24):
        for x in range(6, 22):
            if (x + y + seed) % 7 == 0:
                _set_pixel(grid, x, y, 0.8)


DIGIT_PATTERNS: Dict[int, Callable[[np.ndarray], None]] = {
    0: draw_oval,
    1: draw_vertical_line,
    2: draw_two,
    3: draw_three,
    4: draw_four,
    5: draw_five,
    6: draw_six,
    7: draw_seven,
    8: draw_eight,
    9: draw_nine,
}

LETTER_PATTERNS: Dict[int, Callable[[np.ndarray], None]] = {
    0: draw_a,
    1: draw_b,
    2: draw_c,
}


class PatternGlyphGenerator(SampleGenerator):
    """Hand-coded stroke patterns with random speckle noise."""

    def __init__(self, mode=RecognitionMode.DIGIT, rng=None,
                 noise_probability: float = 0.1, noise_max: float = 0.3):
        super().__init__(mode, rng)
        self.noise_probability = float(noise_probability)
        self.noise_max = float(noise_max)

    def render(self, label_index: int) -> np.ndarray:
        if not 0 <= label_index < len(self.labels):
            raise ValueError(f"Label index {label_index} out of range for {self.mode.value} mode")

        grid = np.zeros((TARGET_SIZE, TARGET_SIZE), dtype=np.float32)
        if self.mode is RecognitionMode.DIGIT:
            DIGIT_PATTERNS[label_index](grid)
        elif label_index in LETTER_PATTERNS:
            LETTER_PATTERNS[label_index](grid)
        else:
            draw_hatch(grid, label_index)

        # Speckle noise overwrites both ink and background
        mask = self.rng.random(grid.shape) < self.noise_probability
        grid[mask] = self.rng.random(int(mask.sum())) * self.noise_max
        return grid.reshape(FEATURE_LENGTH)


# ---------------------------------------------------------------------------
# Font glyphs
# ---------------------------------------------------------------------------

class FontGlyphGenerator(SampleGenerator):
    """Render labels with OpenCV fonts and random style/augmentations."""

    def __init__(self, mode=RecognitionMode.DIGIT, rng=None, img_size: int = TARGET_SIZE):
        super().__init__(mode, rng)
        self.img_size = int(img_size)
        self._random = random.Random(int(self.rng.integers(0, 2**31 - 1)))

    def render(self, label_index: int) -> np.ndarray:
        if not 0 <= label_index < len(self.labels):
            raise ValueError(f"Label index {label_index} out of range for {self.mode.value} mode")

        rnd = self._random
        img_size = self.img_size
        canvas = np.zeros((img_size, img_size), dtype=np.uint8)

        font = rnd.choice(FONTS)
        scale = rnd.uniform(0.7, 1.1)
        thickness = rnd.randint(1, 3)

        text = self.labels[label_index]
        (tw, th), _ = cv2.getTextSize(text, font, scale, thickness)
        x = (img_size - tw) // 2 + rnd.randint(-2, 2)
        y = (img_size + th) // 2 + rnd.randint(-2, 2)

        cv2.putText(canvas, text, (x, y), font, scale, 255, thickness, lineType=cv2.LINE_AA)

        # Random rotation
        if rnd.random() < 0.6:
            ang = rnd.uniform(-15, 15)
            M = cv2.getRotationMatrix2D((img_size // 2, img_size // 2), ang, 1.0)
            canvas = cv2.warpAffine(canvas, M, (img_size, img_size), flags=cv2.INTER_LINEAR,
                                    borderMode=cv2.BORDER_CONSTANT, borderValue=0)

        # Random shift
        if rnd.random() < 0.6:
            tx, ty = rnd.randint(-2, 2), rnd.randint(-2, 2)
            M = np.float32([[1, 0, tx], [0, 1, ty]])
            canvas = cv2.warpAffine(canvas, M, (img_size, img_size), flags=cv2.INTER_LINEAR,
                                    borderMode=cv2.BORDER_CONSTANT, borderValue=0)

        # Random blur/noise
        if rnd.random() < 0.5:
            canvas = cv2.GaussianBlur(canvas, (3, 3), sigmaX=0.7)
        if rnd.random() < 0.5:
            noise = self.rng.normal(0, rnd.uniform(5, 20), canvas.shape).astype(np.float32)
            canvas = np.clip(canvas.astype(np.float32) + noise, 0, 255).astype(np.uint8)

        if img_size != TARGET_SIZE:
            canvas = cv2.resize(canvas, (TARGET_SIZE, TARGET_SIZE), interpolation=cv2.INTER_AREA)
        return (canvas.astype(np.float32) / 255.0).reshape(FEATURE_LENGTH)


GENERATORS = {
    "pattern": PatternGlyphGenerator,
    "font": FontGlyphGenerator,
}


def create_generator(name: str, mode: RecognitionMode | str,
                     rng: np.random.Generator | None = None) -> SampleGenerator:
    try:
        cls = GENERATORS[name]
    except KeyError:
        raise ValueError(f"Unknown generator {name!r}; choose from {sorted(GENERATORS)}") from None
    return cls(mode, rng=rng)


def generate_training_data(mode: RecognitionMode | str = RecognitionMode.DIGIT,
                           generator: SampleGenerator | None = None,
                           num_samples: int = 1000,
                           rng: np.random.Generator | None = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw ``num_samples`` glyphs with uniformly random labels.

    Returns:
        X: (num_samples, 784) float32 features in [0, 1]
        Y: (num_samples, num_classes) float32 one-hot labels
    """
    mode = parse_mode(mode)
    rng = rng if rng is not None else np.random.default_rng()
    if generator is None:
        generator = PatternGlyphGenerator(mode, rng=rng)
    elif generator.mode is not mode:
        raise ValueError(f"Generator renders {generator.mode.value} glyphs, not {mode.value}")

    num_classes = mode_config(mode).num_classes
    label_indices = rng.integers(0, num_classes, size=num_samples)

    X = np.empty((num_samples, FEATURE_LENGTH), dtype=np.float32)
    Y = np.zeros((num_samples, num_classes), dtype=np.float32)
    for i, idx in enumerate(label_indices):
        X[i] = np.clip(generator.render(int(idx)), 0.0, 1.0)
        Y[i, idx] = 1.0
    return X, Y


def write_dataset(out_root: str, generator: SampleGenerator, per_class: int, split: str = "train") -> int:
    """Write black-on-white PNGs to <out_root>/<split>/<label>/<label>_<i>.png"""
    written = 0
    for idx, label in enumerate(generator.labels):
        cls_dir = os.path.join(out_root, split, label)
        ensure_dir(cls_dir)
        for i in range(per_class):
            features = generator.render(idx).reshape(TARGET_SIZE, TARGET_SIZE)
            img = (255 - np.clip(features, 0, 1) * 255).astype(np.uint8)
            path = os.path.join(cls_dir, f"{label}_{i:05d}.png")
            cv2.imwrite(path, img)
            written += 1
    return written
