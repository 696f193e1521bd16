"""
Ranking of classifier output for display.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class Prediction:
    label: str
    confidence: float


def rank_predictions(probabilities: Sequence[float], labels: Sequence[str]) -> List[Prediction]:
    """
    Pair each label with its probability and sort by confidence, highest first.

    Ties keep alphabet order because ``sorted`` is stable.
    """
    probabilities = [float(p) for p in probabilities]
    if len(probabilities) != len(labels):
        raise ValueError(
            f"Got {len(probabilities)} probabilities for {len(labels)} labels"
        )
    pairs = [Prediction(label, prob) for label, prob in zip(labels, probabilities)]
    return sorted(pairs, key=lambda p: p.confidence, reverse=True)


def top_prediction(ranked: Sequence[Prediction]) -> Optional[Prediction]:
    return ranked[0] if ranked else None


def runner_ups(ranked: Sequence[Prediction], count: int = 3) -> List[Prediction]:
    """The ``count`` predictions after the top one."""
    return list(ranked[1:1 + count])
