"""Priority frontier of search nodes.

Entries are ``(objective, depth, sequence, node_index)`` so ties resolve by
shallower depth and then by insertion order. A node's key is captured when it
is pushed; a node is never in the frontier twice and is never mutated while
queued.
"""

from __future__ import annotations

import heapq
import itertools
from typing import List, Set, Tuple

from .errors import SearchInvariantError
from .search_node import NodeState, SearchNode


class Frontier:
    """Min-heap of nodes keyed on objective."""

    def __init__(self):
        self._heap: List[Tuple[float, int, int, int]] = []
        self._counter = itertools.count()
        self._queued: Set[int] = set()
        self.pushes = 0

    def push(self, node: SearchNode) -> None:
        """Queue ``node`` with its current objective.

        Raises:
            SearchInvariantError: If the node is expanded or already queued
        """
        if node.state is NodeState.EXPANDED:
            raise SearchInvariantError(f"Expanded node {node.index} re-inserted into frontier")
        if node.index in self._queued:
            raise SearchInvariantError(f"Node {node.index} is already in the frontier")
        heapq.heappush(self._heap, (node.objective, node.depth, next(self._counter), node.index))
        self._queued.add(node.index)
        self.pushes += 1

    def pop(self) -> int:
        """Remove and return the index of the lowest-key node.

        Raises:
            SearchInvariantError: If the frontier is empty
        """
        if not self._heap:
            raise SearchInvariantError("Pop from empty frontier")
        _, _, _, index = heapq.heappop(self._heap)
        self._queued.discard(index)
        return index

    def peek_objective(self) -> float:
        return self._heap[0][0]

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def __contains__(self, index: int) -> bool:
        return index in self._queued
