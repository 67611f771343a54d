"""
simulation.py - Simulation context owning the coordinator, the sink and all nodes.

Every control operation used by viewers (add node, fail, revive) goes through
this object; unknown node ids are ignored rather than raised.
"""

import logging

from . import config
from . import message
from .coordinator import Coordinator
from .exceptions import DuplicateNodeError
from .node import TrafficLightNode
from .sink import LogSink

logger = logging.getLogger(__name__)


class Simulation:
    def __init__(self, sink=None, clock=message.now_ms, time_scale=config.TIME_SCALE,
                 base_red_ms=config.BASE_RED_MS, base_green_ms=config.BASE_GREEN_MS):
        self.sink = sink if sink is not None else LogSink()
        self.clock = clock
        self.time_scale = time_scale
        self.base_red_ms = base_red_ms
        self.base_green_ms = base_green_ms

        self.coordinator = Coordinator(self.sink, clock=clock, time_scale=time_scale)
        self.nodes = {}  # insertion order == creation order
        self._next_index = 1
        self._running = False

    @property
    def running(self):
        return self._running

    def start(self, initial_nodes=config.INITIAL_NODE_COUNT):
        """
        Start the coordinator and create the initial nodes connected in a ring.
        Must be called from inside a running event loop.
        """
        if self._running:
            return
        self._running = True
        self.coordinator.start()

        ids = []
        for _ in range(initial_nodes):
            node_id = self.suggest_node_id()
            self._create_node(node_id)
            ids.append(node_id)

        if len(ids) == 2:
            self.connect(ids[0], ids[1])
        elif len(ids) > 2:
            for index, node_id in enumerate(ids):
                self.connect(node_id, ids[(index + 1) % len(ids)])

        self.coordinator.set_nodes(self.nodes)
        logger.info(f"Simulation started with {len(ids)} nodes")

    def shutdown(self):
        """Stop every node timer and the coordinator monitor."""
        for node in self.nodes.values():
            node.stop()
        self.coordinator.stop()
        self._running = False
        logger.info("Simulation stopped")

    # ----------------------------
    # Topology
    # ----------------------------
    def suggest_node_id(self):
        """Return the next free '<prefix><n>' id."""
        while f"{config.NODE_ID_PREFIX}{self._next_index}" in self.nodes:
            self._next_index += 1
        return f"{config.NODE_ID_PREFIX}{self._next_index}"

    def add_node(self, node_id=None):
        """
        Create a node and connect it to up to MAX_AUTO_CONNECTIONS of the most
        recently added nodes.

        Raises:
            DuplicateNodeError: if node_id is already in use.
        """
        if node_id is None:
            node_id = self.suggest_node_id()
        node_id = str(node_id).strip()
        if not node_id:
            raise ValueError("node id must not be empty")
        if node_id in self.nodes:
            raise DuplicateNodeError(node_id)

        existing = list(self.nodes)[-config.MAX_AUTO_CONNECTIONS:]
        node = self._create_node(node_id)

        for other_id in existing:
            self.connect(node_id, other_id)
            if self.nodes[other_id].disabled:
                node.update_neighbor_status(other_id, True)

        self.coordinator.set_nodes(self.nodes)
        self.sink.emit(message.TYPE_CONTROL, config.COORDINATOR_NAME,
                       f"Added node {node_id} connected to {', '.join(existing) or 'nothing'}",
                       {'node_id': node_id, 'connected_to': existing})
        return node

    def connect(self, a, b):
        """Connect two existing nodes on the graph and on both nodes."""
        if a == b or a not in self.nodes or b not in self.nodes:
            return False
        self.coordinator.register_connection(a, b)
        self.nodes[a].add_neighbor(b)
        self.nodes[b].add_neighbor(a)
        return True

    def disconnect(self, a, b):
        if a not in self.nodes or b not in self.nodes:
            return False
        self.coordinator.remove_connection(a, b)
        self.nodes[a].remove_neighbor(b)
        self.nodes[b].remove_neighbor(a)
        return True

    def _create_node(self, node_id):
        node = TrafficLightNode.create(
            node_id, self.coordinator, self.sink,
            base_red_ms=self.base_red_ms, base_green_ms=self.base_green_ms,
            clock=self.clock, time_scale=self.time_scale,
        )
        self.nodes[node_id] = node
        return node

    # ----------------------------
    # Control operations
    # ----------------------------
    def simulate_failure(self, node_id):
        node = self.nodes.get(node_id)
        if node is None:
            logger.debug(f"simulate_failure: unknown node {node_id}")
            return False
        self.sink.emit(message.TYPE_CONTROL, config.COORDINATOR_NAME, f"Simulating failure for node {node_id}")
        return node.simulate_failure()

    def revive(self, node_id):
        node = self.nodes.get(node_id)
        if node is None:
            logger.debug(f"revive: unknown node {node_id}")
            return False
        self.sink.emit(message.TYPE_CONTROL, config.COORDINATOR_NAME, f"Reviving node {node_id}")
        return node.revive()

    # ----------------------------
    # Views
    # ----------------------------
    def snapshot(self, node_id):
        node = self.nodes.get(node_id)
        return node.snapshot() if node is not None else None

    def snapshots(self):
        return [node.snapshot() for node in self.nodes.values()]

    def heartbeat_status(self, threshold_ms=config.DISPLAY_STALE_THRESHOLD_MS, now=None):
        """
        Liveness view over every known node, sorted by id.

        Returns:
            list: (node_id, last_seen_ms or None, stale) tuples. Nodes that never
            reported have last_seen None and count as stale.
        """
        if now is None:
            now = self.clock()
        heartbeats = self.coordinator.heartbeat_snapshot()

        status = []
        for node_id in sorted(set(self.nodes) | set(heartbeats)):
            last_seen = heartbeats.get(node_id)
            stale = last_seen is None or now - last_seen > threshold_ms
            status.append((node_id, last_seen, stale))
        return status
