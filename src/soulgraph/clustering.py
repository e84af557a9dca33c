from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")


def greedy_threshold_clusters(
    items: Sequence[T],
    score: Callable[[T, T], float],
    min_score: float = 0.7,
    key: Callable[[T], str] = lambda item: item.id,
    include_singletons: bool = False,
) -> List[List[T]]:
    """
    Greedy, input-order-dependent threshold clustering.

    Each unvisited item seeds a cluster; every later unvisited candidate joins
    when its average score against the members gathered so far is at least
    `min_score`. The grouping is not globally optimal, but every returned
    cluster has an average pairwise score >= `min_score`, since each member
    cleared the threshold against all members that preceded it.
    """
    clusters: List[List[T]] = []
    visited = set()

    for seed in items:
        if key(seed) in visited:
            continue
        cluster = [seed]
        visited.add(key(seed))
        for candidate in items:
            if key(candidate) in visited:
                continue
            total = sum(score(member, candidate) for member in cluster)
            if total / len(cluster) >= min_score:
                cluster.append(candidate)
                visited.add(key(candidate))
        if len(cluster) > 1 or include_singletons:
            clusters.append(cluster)

    return clusters
