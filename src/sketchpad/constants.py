"""
Label configuration and defaults for the sketchpad classifier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

# Drawing surface
CANVAS_WIDTH: int = 280
CANVAS_HEIGHT: int = 280
BRUSH_WIDTH: int = 8
BACKGROUND_RGBA: Tuple[int, int, int, int] = (255, 255, 255, 255)
INK_RGBA: Tuple[int, int, int, int] = (0, 0, 0, 255)

# Canonical image
TARGET_SIZE: int = 28
FEATURE_LENGTH: int = TARGET_SIZE * TARGET_SIZE
PADDING_FACTOR: float = 1.2
PREVIEW_SCALE: int = 10

DIGIT_LABELS: List[str] = [str(d) for d in range(10)]
LETTER_LABELS: List[str] = [chr(ord("A") + i) for i in range(26)]


class RecognitionMode(Enum):
    DIGIT = "digit"
    LETTER = "letter"


@dataclass(frozen=True)
class ModeConfig:
    """Label alphabet and display name for one recognition mode."""

    label: str
    labels: Tuple[str, ...]

    @property
    def num_classes(self) -> int:
        return len(self.labels)


MODE_CONFIGS: Dict[RecognitionMode, ModeConfig] = {
    RecognitionMode.DIGIT: ModeConfig("Digits (0-9)", tuple(DIGIT_LABELS)),
    RecognitionMode.LETTER: ModeConfig("Letters (A-Z)", tuple(LETTER_LABELS)),
}

# Friendly display names for the CLI.
MODEL_DISPLAY_NAMES: Dict[str, str] = {
    "cnn": "CNN",
    "svm": "SVM",
    "rf": "Random Forest",
}


@dataclass(frozen=True)
class TrainingConfig:
    """Startup training parameters."""

    model_type: str = "cnn"
    num_samples: int = 1000
    epochs: int = 5
    batch_size: int = 32
    generator: str = "pattern"
    seed: int | None = None


def mode_config(mode: RecognitionMode) -> ModeConfig:
    return MODE_CONFIGS[mode]


def parse_mode(value: str | RecognitionMode) -> RecognitionMode:
    """Accept a RecognitionMode or its string value ('digit' / 'letter')."""
    if isinstance(value, RecognitionMode):
        return value
    key = str(value).strip().lower()
    if key in {"alphabet", "letters"}:
        key = "letter"
    if key == "digits":
        key = "digit"
    try:
        return RecognitionMode(key)
    except ValueError:
        raise ValueError(f"Unknown recognition mode: {value}") from None


def default_label_mapping(mode: RecognitionMode) -> Dict[int, str]:
    """
    Deterministic index->label mapping used for saved models.
    """
    return {idx: label for idx, label in enumerate(MODE_CONFIGS[mode].labels)}
