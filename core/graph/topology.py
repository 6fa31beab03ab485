"""
Topological ordering (Kahn's algorithm) over node ids and edges.

Edges whose endpoints are not among the given node ids are ignored here;
they are reported separately as edge integrity errors.
"""

import heapq
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set, Tuple


class CycleError(ValueError):
    """Raised when an ordering is requested for a graph that has a cycle."""

    def __init__(self, unresolved: List[str]):
        self.unresolved = unresolved
        super().__init__(f"Graph contains a cycle involving: {', '.join(unresolved)}")


@dataclass
class TopologyResult:
    order: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    @property
    def is_acyclic(self) -> bool:
        return not self.unresolved


def _adjacency(node_ids: Sequence[str], edges: Iterable[Tuple[str, str]]):
    known = set(node_ids)
    indegree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    successors: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    for source, target in edges:
        if source not in known or target not in known:
            continue
        successors[source].append(target)
        indegree[target] += 1
    return indegree, successors


def topological_sort(node_ids: Sequence[str], edges: Iterable[Tuple[str, str]],
                     stable: bool = False) -> TopologyResult:
    """
    Order ``node_ids`` so every edge points forward.

    Args:
        node_ids: Unique node ids in encounter order
        edges: ``(from, to)`` pairs
        stable: Break ties by node id instead of encounter order

    Returns:
        TopologyResult with the ordered ids and any ids left on a cycle
    """
    node_ids = list(dict.fromkeys(node_ids))
    indegree, successors = _adjacency(node_ids, edges)
    order: List[str] = []

    if stable:
        heap = [node_id for node_id in node_ids if indegree[node_id] == 0]
        heapq.heapify(heap)
        while heap:
            current = heapq.heappop(heap)
            order.append(current)
            for target in successors[current]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    heapq.heappush(heap, target)
    else:
        queue = deque(node_id for node_id in node_ids if indegree[node_id] == 0)
        while queue:
            current = queue.popleft()
            order.append(current)
            for target in successors[current]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    queue.append(target)

    placed = set(order)
    unresolved = [node_id for node_id in node_ids if node_id not in placed]
    return TopologyResult(order=order, unresolved=unresolved)


def topological_order(node_ids: Sequence[str], edges: Iterable[Tuple[str, str]]) -> List[str]:
    """Encounter-order Kahn ordering; raises CycleError on a cycle."""
    result = topological_sort(node_ids, edges)
    if not result.is_acyclic:
        raise CycleError(result.unresolved)
    return result.order


def stable_topological_order(node_ids: Sequence[str], edges: Iterable[Tuple[str, str]]) -> List[str]:
    """Kahn ordering with ties broken by node id; raises CycleError on a cycle."""
    result = topological_sort(node_ids, edges, stable=True)
    if not result.is_acyclic:
        raise CycleError(result.unresolved)
    return result.order


def reachable_from(start: str, edges: Iterable[Tuple[str, str]]) -> Set[str]:
    """Every node reachable from ``start`` along edges, including ``start``."""
    successors: Dict[str, List[str]] = {}
    for source, target in edges:
        successors.setdefault(source, []).append(target)
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for target in successors.get(current, []):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen
