import itertools

import numpy as np
import pytest

from src.soulgraph.clustering import greedy_threshold_clusters
from src.soulgraph.fingerprint import compute_fingerprint
from src.soulgraph.models import Entity
from src.soulgraph.similarity import vector_similarity


def _entity(i, vector):
    return Entity(id=f"e{i}", digest=f"{i:064x}", feature_vector=tuple(vector))


def _score(a, b):
    return vector_similarity(a.feature_vector, b.feature_vector)


def _average_pairwise(cluster):
    pairs = list(itertools.combinations(cluster, 2))
    return sum(_score(a, b) for a, b in pairs) / len(pairs)


@pytest.mark.parametrize("seed", [1, 2, 3])
@pytest.mark.parametrize("min_score", [0.7, 0.8, 0.9])
def test_cluster_average_meets_threshold(seed, min_score):
    """Tests that every returned cluster's average pairwise similarity clears the threshold."""
    rng = np.random.default_rng(seed)
    entities = [_entity(i, rng.uniform(0, 1, 8)) for i in range(40)]
    clusters = greedy_threshold_clusters(entities, _score, min_score)
    assert clusters
    for cluster in clusters:
        assert len(cluster) > 1
        assert _average_pairwise(cluster) >= min_score


def test_fingerprint_vectors_cluster_invariant():
    entities = [
        Entity(id=fp.id, digest=fp.digest, feature_vector=fp.vector)
        for fp in (compute_fingerprint(f"sample {i}") for i in range(30))
    ]
    for cluster in greedy_threshold_clusters(entities, _score, 0.7):
        assert _average_pairwise(cluster) >= 0.7


def test_each_item_lands_in_at_most_one_cluster():
    rng = np.random.default_rng(5)
    entities = [_entity(i, rng.uniform(0, 1, 8)) for i in range(25)]
    clusters = greedy_threshold_clusters(entities, _score, 0.75, include_singletons=True)
    ids = [e.id for cluster in clusters for e in cluster]
    assert sorted(ids) == sorted(e.id for e in entities)


def test_singletons_dropped_by_default():
    a = _entity(0, (1.0, 0.0))
    b = _entity(1, (0.9, 0.1))
    lonely = _entity(2, (0.0, 1.0))
    assert greedy_threshold_clusters([a, b, lonely], _score) == [[a, b]]
    assert greedy_threshold_clusters([a, b, lonely], _score, include_singletons=True) == [[a, b], [lonely]]


def test_grouping_depends_on_input_order():
    # b sits between a and c: a+b and b+c both clear 0.9, a+c does not
    a = _entity(0, (1.0, 0.0))
    b = _entity(1, (1.0, 0.45))
    c = _entity(2, (1.0, 0.9))
    assert _score(a, c) < 0.9 <= min(_score(a, b), _score(b, c))

    assert greedy_threshold_clusters([a, b, c], _score, 0.9) == [[a, b]]
    assert greedy_threshold_clusters([c, b, a], _score, 0.9) == [[c, b]]


def test_empty_input():
    assert greedy_threshold_clusters([], _score) == []
