import math
from typing import Sequence

import numpy as np

from .config import SoulGraphConfig
from .models import Classification


def vector_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Absolute cosine similarity over the common prefix of two feature vectors.

    Anti-correlated vectors score as high as correlated ones. Returns 0.0 when
    either vector is empty, has zero magnitude or holds a non-finite value.
    Each vector is divided by its largest magnitude first, so the sums stay
    within [1, n] and cannot under- or overflow. The result is identical for
    (a, b) and (b, a): fsum is correctly rounded, so the reductions do not
    depend on summation order.
    """
    n = min(len(a), len(b))
    if n == 0:
        return 0.0
    x = np.asarray(a[:n], dtype=float)
    y = np.asarray(b[:n], dtype=float)
    if not (np.isfinite(x).all() and np.isfinite(y).all()):
        return 0.0
    scale_x = float(np.max(np.abs(x)))
    scale_y = float(np.max(np.abs(y)))
    if scale_x == 0.0 or scale_y == 0.0:
        return 0.0
    x = x / scale_x
    y = y / scale_y
    denom = math.sqrt(math.fsum(x * x) * math.fsum(y * y))
    score = abs(math.fsum(x * y)) / denom
    return min(1.0, score)


def classify(score: float, config: SoulGraphConfig) -> Classification:
    if score >= config.harmonic_threshold:
        return Classification.similar
    if score <= config.dissonant_threshold:
        return Classification.dissimilar
    return Classification.neutral
