"""
Deterministic fingerprinting of text.

A SHA-256 digest is taken over the UTF-8 bytes; the id is a prefix of its hex
form and the feature vector is the digest split into eight big-endian uint32
segments, each scaled into [0, 1).
"""
from __future__ import annotations

import hashlib
import re
from typing import Optional, Sequence, Tuple

import numpy as np

from .models import Fingerprint

ID_PREFIX = "fp:v1:"
ID_HEX_CHARS = 16
VECTOR_DIMS = 8

_SEGMENT_SCALE = float(2 ** 32)
_NOTES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
BASE_FREQUENCY = 432

# Checked in order; the first match wins.
_PATTERNS = [
    ("async_function", re.compile(r"\basync\b")),
    ("promise", re.compile(r"Promise")),
    ("array_map", re.compile(r"\.map\(")),
    ("array_filter", re.compile(r"\.filter\(")),
    ("array_reduce", re.compile(r"\.reduce\(")),
    ("recursion", re.compile(r"(?:function|def)\s+(\w+)[^}]*?\b\1\(", re.S)),
    ("comparison", re.compile(r"[<>]=?|===?|!==?")),
    ("binary_addition", re.compile(r"\+")),
    ("binary_subtraction", re.compile(r"-")),
    ("binary_multiplication", re.compile(r"\*")),
    ("binary_division", re.compile(r"/")),
]


def compute_fingerprint(text: str) -> Fingerprint:
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    segments = np.frombuffer(raw, dtype=">u4")
    vector = tuple(float(v) for v in segments / _SEGMENT_SCALE)
    digest = raw.hex()
    return Fingerprint(id=f"{ID_PREFIX}{digest[:ID_HEX_CHARS]}", digest=digest, vector=vector)


def chord_label(vector: Sequence[float]) -> Optional[str]:
    """Decorative chord-style tag; root note from the first value, quality from the sign of the sum."""
    if not vector:
        return None
    root = _NOTES[int(abs(vector[0] * 12)) % 12]
    quality = "maj7" if sum(vector) > 0 else "m7"
    return f"{root}{quality}"


def harmonics(vector: Sequence[float]) -> Tuple[int, ...]:
    freqs = (round(BASE_FREQUENCY * abs(v)) for v in vector[:6])
    return tuple(f for f in freqs if 20 < f < 20000)


def detect_pattern(text: str) -> Optional[str]:
    for name, regex in _PATTERNS:
        if regex.search(text):
            return name
    return None
