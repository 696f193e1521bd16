"""
Per-mode classifier registry with startup training and asynchronous prediction.
"""

from __future__ import annotations

import itertools
import json
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .constants import (
    MODEL_DISPLAY_NAMES,
    RecognitionMode,
    TrainingConfig,
    default_label_mapping,
    mode_config,
    parse_mode,
)
from .glyph_generation import create_generator, generate_training_data
from .models import MODEL_FILE_EXTENSIONS, create_model
from .predictions import Prediction, rank_predictions, runner_ups, top_prediction
from .session import SessionSnapshot, SketchSession


class ClassifierNotReadyError(RuntimeError):
    """Raised when a prediction is requested before the classifier is trained."""


@dataclass
class PredictionRequest:
    request_id: int
    snapshot: SessionSnapshot
    future: Future

    @property
    def mode(self) -> RecognitionMode:
        return self.snapshot.mode

    def result(self, timeout: float | None = None) -> List[Prediction]:
        return self.future.result(timeout=timeout)


@dataclass
class PredictionBoard:
    """
    Results shown to the user.

    A completed request replaces the displayed results only when it is newer
    than the request currently displayed; older completions are kept in
    ``history`` keyed by request id.
    """

    displayed_id: int = 0
    mode: Optional[RecognitionMode] = None
    predictions: List[Prediction] = field(default_factory=list)
    error: Optional[str] = None
    history: Dict[int, List[Prediction]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def publish(self, request_id: int, mode: RecognitionMode, predictions: List[Prediction]) -> bool:
        with self._lock:
            self.history[request_id] = list(predictions)
            if request_id <= self.displayed_id:
                return False
            self.displayed_id = request_id
            self.mode = mode
            self.predictions = list(predictions)
            self.error = None
            return True

    def publish_error(self, request_id: int, message: str) -> bool:
        """Show a failed request; results from older requests are withdrawn"""
        with self._lock:
            if request_id <= self.displayed_id:
                return False
            self.displayed_id = request_id
            self.mode = None
            self.predictions = []
            self.error = message
            return True

    def clear(self) -> None:
        with self._lock:
            self.mode = None
            self.predictions = []
            self.error = None

    @property
    def top(self) -> Optional[Prediction]:
        return top_prediction(self.predictions)

    @property
    def runner_ups(self) -> List[Prediction]:
        return runner_ups(self.predictions)


class Recognizer:
    """Owns one classifier per recognition mode."""

    def __init__(self, config: TrainingConfig | None = None, max_workers: int = 1):
        self.config = config or TrainingConfig()
        self.classifiers: Dict[RecognitionMode, Any] = {}
        self.board = PredictionBoard()
        self.max_workers = int(max_workers)
        self._executor: ThreadPoolExecutor | None = None
        self._ids = itertools.count(1)
        self._request_lock = threading.Lock()

    # ------------------------------------------------------------------
    # readiness
    # ------------------------------------------------------------------
    def is_mode_ready(self, mode: RecognitionMode | str) -> bool:
        return parse_mode(mode) in self.classifiers

    @property
    def is_ready(self) -> bool:
        return all(mode in self.classifiers for mode in RecognitionMode)

    # ------------------------------------------------------------------
    # training / persistence
    # ------------------------------------------------------------------
    def train(self, modes: Iterable[RecognitionMode | str] | None = None) -> Dict[RecognitionMode, Any]:
        """Train classifiers on freshly generated synthetic glyphs"""
        cfg = self.config
        modes = list(RecognitionMode) if modes is None else [parse_mode(m) for m in modes]
        rng = np.random.default_rng(cfg.seed)
        display = MODEL_DISPLAY_NAMES.get(cfg.model_type, cfg.model_type)

        trained = {}
        for mode in modes:
            labels = mode_config(mode).labels
            generator = create_generator(cfg.generator, mode, rng=rng)
            print(f"Generating {cfg.num_samples} synthetic {mode.value} samples ({cfg.generator})...")
            X, Y = generate_training_data(mode, generator, cfg.num_samples, rng=rng)

            model = create_model(cfg.model_type, len(labels))
            print(f"Training {display} for {mode.value}s...")
            model.train(X, Y, epochs=cfg.epochs, batch_size=cfg.batch_size)
            trained[mode] = model

        # Publish together so readiness never reflects a half-trained set
        self.classifiers.update(trained)
        print("Classifiers ready: " + ", ".join(m.value for m in self.classifiers))
        return trained

    def _model_path(self, model_dir: str, mode: RecognitionMode) -> str:
        ext = MODEL_FILE_EXTENSIONS[self.config.model_type]
        return os.path.join(model_dir, f"{mode.value}_{self.config.model_type}{ext}")

    def save(self, model_dir: str) -> List[str]:
        os.makedirs(model_dir, exist_ok=True)
        paths = []
        for mode, model in self.classifiers.items():
            path = self._model_path(model_dir, mode)
            model.save_model(path)
            mapping_path = os.path.join(model_dir, f"label_mapping_{mode.value}.json")
            with open(mapping_path, "w", encoding="utf-8") as handle:
                json.dump(default_label_mapping(mode), handle, indent=2)
            paths.append(path)
        return paths

    def load(self, model_dir: str, modes: Iterable[RecognitionMode | str] | None = None) -> bool:
        """Load saved classifiers; returns True only when every requested mode was found"""
        modes = list(RecognitionMode) if modes is None else [parse_mode(m) for m in modes]
        loaded = {}
        for mode in modes:
            path = self._model_path(model_dir, mode)
            if not os.path.exists(path):
                print(f"Warning: {self.config.model_type} weights not found for {mode.value} mode at {path}")
                return False
            model = create_model(self.config.model_type, mode_config(mode).num_classes)
            model.load_model(path)
            loaded[mode] = model
        self.classifiers.update(loaded)
        return True

    # ------------------------------------------------------------------
    # prediction
    # ------------------------------------------------------------------
    def classify(self, features: np.ndarray, mode: RecognitionMode | str) -> List[Prediction]:
        """Ranked predictions for one feature vector"""
        mode = parse_mode(mode)
        model = self.classifiers.get(mode)
        if model is None:
            raise ClassifierNotReadyError(f"No trained classifier for {mode.value} mode yet")
        probabilities = model.predict_proba(features)
        return rank_predictions(probabilities, mode_config(mode).labels)

    def request_prediction(self, session: SketchSession) -> PredictionRequest:
        """
        Classify the session's current drawing on a worker thread.

        The snapshot is taken immediately, so strokes drawn while the request
        is in flight do not affect its result.
        """
        snapshot = session.snapshot()
        if not self.is_mode_ready(snapshot.mode):
            raise ClassifierNotReadyError(f"No trained classifier for {snapshot.mode.value} mode yet")

        with self._request_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                                    thread_name_prefix="sketchpad-predict")
            request_id = next(self._ids)
            # Submitting under the lock keeps queue order equal to id order
            future = self._executor.submit(self._run_request, request_id, snapshot)
        return PredictionRequest(request_id, snapshot, future)

    def _run_request(self, request_id: int, snapshot: SessionSnapshot) -> List[Prediction]:
        try:
            predictions = self.classify(snapshot.features, snapshot.mode)
        except Exception as exc:
            print(f"Prediction error: {exc}")
            self.board.publish_error(request_id, f"Prediction failed, please try again ({exc})")
            raise
        self.board.publish(request_id, snapshot.mode, predictions)
        return predictions

    def switch_mode(self, session: SketchSession, mode: RecognitionMode | str) -> RecognitionMode:
        """Change the session's mode and clear results shown for the previous one"""
        new_mode = session.set_mode(mode)
        self.board.clear()
        return new_mode

    def shutdown(self, wait: bool = True) -> None:
        with self._request_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown()
