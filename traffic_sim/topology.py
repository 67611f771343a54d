"""
topology.py - Bidirectional connection graph between traffic light nodes.
"""

import logging

logger = logging.getLogger(__name__)


class ConnectionGraph:
    """Undirected adjacency sets keyed by node id."""

    def __init__(self):
        self._adjacency = {}  # {node_id: set(neighbor_ids)}

    def add_edge(self, a, b):
        """
        Connect two nodes in both directions.

        Returns:
            bool: True if the edge was new, False if it already existed.
        """
        if a == b:
            logger.debug(f"Ignoring self-connection for {a}")
            return False

        created = b not in self._adjacency.get(a, ())
        self._adjacency.setdefault(a, set()).add(b)
        self._adjacency.setdefault(b, set()).add(a)
        return created

    def remove_edge(self, a, b):
        """Remove the edge between a and b. Returns True if it existed."""
        if not self.has_edge(a, b):
            return False
        self._adjacency[a].discard(b)
        self._adjacency[b].discard(a)
        return True

    def has_edge(self, a, b):
        return b in self._adjacency.get(a, ())

    def neighbors(self, node_id):
        """Return the neighbor ids of node_id as a list (empty if unknown)."""
        return list(self._adjacency.get(node_id, ()))

    def nodes(self):
        return list(self._adjacency.keys())

    def edges(self):
        """Return every edge once, as sorted tuples."""
        seen = set()
        for a, neighbors in self._adjacency.items():
            for b in neighbors:
                seen.add(tuple(sorted((a, b))))
        return sorted(seen)

    def __contains__(self, node_id):
        return node_id in self._adjacency
