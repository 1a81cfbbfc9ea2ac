"""
Facet Fragment Store
====================
Holds parsed interface fragments and the extends relation between them.

The relation is kept as a networkx DiGraph with an edge child → parent for
every extends entry; the edge carries the position of the parent in the
child's extends list. Parents that have not been inserted yet are present
as bare nodes without a fragment, so fragments may arrive in any order.

The store is append-only. Every insertion bumps `generation`, which callers
can use to invalidate resolutions they cached.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Iterator

import networkx as nx

from .errors import CyclicInheritance, DuplicateFragment, UnknownFragment, UnknownParent
from .model import Fragment

logger = logging.getLogger(__name__)


class FragmentStore:
    """
    Append-only registry of fragments forming an inheritance DAG.

    Usage:
        store = FragmentStore()
        store.insert(fragment)
        order = store.linearize("RGB20Fixed")
    """

    def __init__(self, fragments: Iterable[Fragment] = ()):
        self._graph = nx.DiGraph()
        self._lock = threading.RLock()
        self._order: list[str] = []
        self.generation = 0
        for fragment in fragments:
            self.insert(fragment)

    # ─────────────────────────────────────────────────────────
    #  Mutation
    # ─────────────────────────────────────────────────────────

    def insert(self, fragment: Fragment):
        """Add a fragment. Fails on duplicates and on edges that close a cycle."""
        with self._lock:
            name = fragment.name
            if self._has_fragment(name):
                raise DuplicateFragment(name)

            self._graph.add_node(name, fragment=fragment)
            for index, parent in enumerate(fragment.extends):
                self._graph.add_edge(name, parent, order=index)

            cycle = self._find_cycle(name)
            if cycle is not None:
                self._graph.remove_edges_from(
                    [(name, parent) for parent in fragment.extends]
                )
                if self._graph.in_degree(name) > 0:
                    # Referenced by earlier fragments: stay as a bare parent node
                    del self._graph.nodes[name]["fragment"]
                else:
                    self._graph.remove_node(name)
                raise CyclicInheritance(cycle)

            self._order.append(name)
            self.generation += 1
            logger.debug(
                "Inserted fragment %s (extends %s), generation %d",
                name, list(fragment.extends), self.generation,
            )

    def extend(self, fragments: Iterable[Fragment]):
        for fragment in fragments:
            self.insert(fragment)

    def _find_cycle(self, source: str) -> list[str] | None:
        try:
            edges = nx.find_cycle(self._graph, source=source)
        except nx.NetworkXNoCycle:
            return None
        cycle = [edges[0][0]] + [v for _, v in edges]
        return cycle

    # ─────────────────────────────────────────────────────────
    #  Lookup
    # ─────────────────────────────────────────────────────────

    def _has_fragment(self, name: str) -> bool:
        return name in self._graph and "fragment" in self._graph.nodes[name]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._has_fragment(name)

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Fragment]:
        return (self.get(name) for name in list(self._order))

    def names(self) -> list[str]:
        """Fragment names in insertion order."""
        return list(self._order)

    def get(self, name: str) -> Fragment:
        if not self._has_fragment(name):
            raise UnknownFragment(name)
        return self._graph.nodes[name]["fragment"]

    def parents_of(self, name: str) -> tuple[str, ...]:
        return self.get(name).extends

    def missing_parents(self) -> list[tuple[str, str]]:
        """(fragment, missing parent) pairs for every dangling extends entry."""
        missing = []
        for name in self._order:
            for parent in self.get(name).extends:
                if not self._has_fragment(parent):
                    missing.append((name, parent))
        return missing

    def check(self):
        """Raise UnknownParent for the first dangling extends entry, if any."""
        missing = self.missing_parents()
        if missing:
            raise UnknownParent(*missing[0])

    # ─────────────────────────────────────────────────────────
    #  Graph queries
    # ─────────────────────────────────────────────────────────

    def ancestors_of(self, name: str) -> frozenset[str]:
        """Transitive extends-closure of `name`, excluding `name` itself."""
        self.get(name)
        # Edges point child → parent, so ancestors are graph descendants
        closure = nx.descendants(self._graph, name)
        for member in sorted(closure | {name}):
            if not self._has_fragment(member):
                continue
            for parent in self.get(member).extends:
                if not self._has_fragment(parent):
                    raise UnknownParent(member, parent)
        return frozenset(closure)

    def linearize(self, name: str) -> tuple[str, ...]:
        """Deterministic nearest-first order over `name` and its ancestors.

        Every fragment precedes all of its own ancestors. Among fragments that
        are free to come next, the one discovered first by a depth-first walk
        following extends declaration order wins.
        """
        closure = self.ancestors_of(name) | {name}
        rank: dict[str, int] = {}
        stack = [name]
        while stack:
            current = stack.pop()
            if current in rank:
                continue
            rank[current] = len(rank)
            # Reversed so the first-declared parent is visited first
            stack.extend(reversed(self.get(current).extends))

        subgraph = self._graph.subgraph(closure)
        return tuple(nx.lexicographical_topological_sort(subgraph, key=rank.__getitem__))

    def ancestry(self, name: str) -> dict[str, frozenset[str]]:
        """Ancestor sets for `name` and every fragment in its closure."""
        closure = self.ancestors_of(name) | {name}
        return {member: self.ancestors_of(member) for member in closure}
