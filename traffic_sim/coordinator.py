"""
coordinator.py - Central heartbeat registry and failure/revival dispatcher.

The coordinator never owns nodes: it keeps weak references so it can push
neighbor status updates, and silently skips ids it cannot resolve.
"""

import logging
import weakref

from . import config
from . import message
from .heartbeat import HeartbeatMonitor
from .topology import ConnectionGraph

logger = logging.getLogger(__name__)


class Coordinator:
    def __init__(self, sink, clock=message.now_ms, time_scale=config.TIME_SCALE,
                 heartbeat_timeout_ms=config.HEARTBEAT_TIMEOUT_MS):
        """
        Initialize the coordinator.

        Args:
            sink (LogSink): Event stream shared with the nodes.
            clock (callable): Returns the current epoch time in milliseconds.
            time_scale (float): Real seconds per simulated second.
            heartbeat_timeout_ms (int): Staleness threshold of the monitor.
        """
        self.name = config.COORDINATOR_NAME
        self.sink = sink
        self.clock = clock
        self.time_scale = time_scale

        self.graph = ConnectionGraph()
        self.heartbeat = HeartbeatMonitor(
            sink, source=self.name, clock=clock,
            timeout_ms=heartbeat_timeout_ms, time_scale=time_scale,
        )
        self._nodes = weakref.WeakValueDictionary()

    def start(self):
        """Start the stale heartbeat monitor. Requires a running event loop."""
        self.heartbeat.start()
        self._log(message.TYPE_INFO, "Coordinator started")

    def stop(self):
        self.heartbeat.stop()

    # ----------------------------
    # Registry
    # ----------------------------
    def set_nodes(self, nodes):
        """Replace the dispatch table with the given {node_id: node} mapping."""
        self._nodes = weakref.WeakValueDictionary(nodes)

    def get_node(self, node_id):
        return self._nodes.get(node_id)

    # ----------------------------
    # Heartbeats
    # ----------------------------
    def receive_heartbeat(self, node_id):
        self.heartbeat.record(node_id)

    def heartbeat_snapshot(self):
        """Return {node_id: last_seen_epoch_ms}; absent ids never reported."""
        return self.heartbeat.snapshot()

    def scan_stale(self, now=None):
        return self.heartbeat.scan(now)

    # ----------------------------
    # Connection graph
    # ----------------------------
    def register_connection(self, a, b):
        """Register a bidirectional connection. Registering an existing edge is a no-op."""
        if self.graph.add_edge(a, b):
            logger.debug(f"Registered connection {a} <-> {b}")

    def remove_connection(self, a, b):
        if self.graph.remove_edge(a, b):
            logger.debug(f"Removed connection {a} <-> {b}")

    def get_connected_nodes(self, node_id):
        return self.graph.neighbors(node_id)

    # ----------------------------
    # Failure / revival dispatch
    # ----------------------------
    def notify_failure(self, node_id):
        """
        Tell every neighbor of node_id that it failed.

        Returns the number of neighbors actually updated; neighbors without a
        registered node are skipped and not counted.
        """
        count = self._dispatch_status(node_id, failed=True)
        self._log(message.TYPE_NOTIFY, f"Notified {count} nodes about failure of {node_id}",
                  {'node_id': node_id, 'failed': True, 'notified': count})
        return count

    def notify_revival(self, node_id):
        """Tell every neighbor of node_id that it is back. Counts like notify_failure."""
        count = self._dispatch_status(node_id, failed=False)
        self._log(message.TYPE_NOTIFY, f"Notified {count} nodes about revival of {node_id}",
                  {'node_id': node_id, 'failed': False, 'notified': count})
        return count

    def _dispatch_status(self, node_id, failed):
        notified = 0
        for neighbor_id in self.get_connected_nodes(node_id):
            node = self._nodes.get(neighbor_id)
            if node is None:
                logger.debug(f"No registered node for {neighbor_id}, skipping status update")
                continue
            node.update_neighbor_status(node_id, failed)
            notified += 1
        return notified

    def _log(self, msg_type, text, payload=None):
        self.sink.emit(msg_type, self.name, text, payload)
