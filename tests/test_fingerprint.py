import hashlib

import pytest

from src.soulgraph import fingerprint
from src.soulgraph.fingerprint import chord_label, compute_fingerprint, detect_pattern, harmonics


@pytest.mark.parametrize("text", ["", "alpha", "const x = 1;", "ünïcødé ☃", "a" * 10_000])
def test_fingerprint_is_deterministic(text):
    """Tests that fingerprinting the same text twice yields the same id, digest and vector."""
    first = compute_fingerprint(text)
    second = compute_fingerprint(text)
    assert first.id == second.id
    assert first.digest == second.digest
    assert first.vector == second.vector


def test_fingerprint_shape():
    fp = compute_fingerprint("alpha")
    digest = hashlib.sha256(b"alpha").hexdigest()
    assert fp.digest == digest
    assert fp.id == f"fp:v1:{digest[:16]}"
    assert len(fp.vector) == fingerprint.VECTOR_DIMS
    assert all(0.0 <= v < 1.0 for v in fp.vector)


def test_vector_segments_are_big_endian_words():
    fp = compute_fingerprint("beta")
    raw = hashlib.sha256(b"beta").digest()
    first_word = int.from_bytes(raw[:4], "big")
    assert fp.vector[0] == first_word / 2 ** 32


def test_distinct_texts_get_distinct_ids():
    assert compute_fingerprint("alpha").id != compute_fingerprint("beta").id


def test_empty_string_is_valid():
    fp = compute_fingerprint("")
    assert fp.digest == hashlib.sha256(b"").hexdigest()
    assert len(fp.vector) == 8


def test_chord_label():
    assert chord_label([]) is None
    assert chord_label([0.0, 0.5]) == "Cmaj7"
    assert chord_label([0.2, 0.1]) == "Dmaj7"
    assert chord_label([-0.2, -0.1]) == "Dm7"


def test_harmonics_stay_in_audible_range():
    assert harmonics([0.5, 0.01, 1.0]) == (216, 432)
    assert harmonics([0.0] * 8) == ()
    # only the first six values contribute
    assert len(harmonics([0.5] * 8)) == 6


@pytest.mark.parametrize("text,expected", [
    ("async function go() {}", "async_function"),
    ("xs.map(x => x)", "array_map"),
    ("xs.filter(Boolean)", "array_filter"),
    ("def fact(n):\n    return n * fact(n - 1)", "recursion"),
    ("a < b", "comparison"),
    ("a + b", "binary_addition"),
    ("hello world", None),
])
def test_detect_pattern(text, expected):
    assert detect_pattern(text) == expected
