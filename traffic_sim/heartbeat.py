"""
heartbeat.py - Heartbeat registry and stale-heartbeat monitoring.

Tracks the last time each node reported and periodically logs nodes whose
heartbeat is older than the timeout. Staleness is only reported, never
turned into a failure.
"""

import asyncio
import logging

from . import config
from . import message

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    def __init__(self, sink, source=config.COORDINATOR_NAME, clock=message.now_ms,
                 timeout_ms=config.HEARTBEAT_TIMEOUT_MS,
                 scan_interval_ms=config.STALE_SCAN_INTERVAL_MS,
                 time_scale=config.TIME_SCALE):
        """
        Initialize Heartbeat Monitor.

        Args:
            sink (LogSink): Event stream receiving heartbeat and staleness lines.
            source (str): Sender name used for emitted lines.
            clock (callable): Returns the current epoch time in milliseconds.
            timeout_ms (int): Age after which a heartbeat is reported as stale.
            scan_interval_ms (int): Simulated time between two scans.
            time_scale (float): Real seconds per simulated second.
        """
        self.sink = sink
        self.source = source
        self.clock = clock
        self.timeout_ms = timeout_ms
        self.scan_interval_ms = scan_interval_ms
        self.time_scale = time_scale

        self._last_seen = {}  # {node_id: epoch_ms}, entries are only ever overwritten
        self._running = False
        self._monitor_task = None

    def start(self):
        """Start the stale scan task on the running event loop."""
        if self._running:
            return
        self._running = True
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor_loop())
        logger.info("Heartbeat monitor started")

    def stop(self):
        """Stop the monitor. No-op if it was never started."""
        if not self._running:
            return
        self._running = False
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None
        logger.info("Heartbeat monitor stopped")

    @property
    def running(self):
        return self._running

    def record(self, node_id):
        """Overwrite the last seen timestamp for a node."""
        if node_id not in self._last_seen:
            logger.info(f"First heartbeat from {node_id}")
        self._last_seen[node_id] = self.clock()
        self.sink.emit(message.TYPE_HEARTBEAT, self.source, f"Received heartbeat from node {node_id}",
                       {'node_id': node_id})

    def last_seen(self, node_id):
        """Return the last heartbeat time in epoch ms, or None if the node never reported."""
        return self._last_seen.get(node_id)

    def snapshot(self):
        """Return a copy of the heartbeat map."""
        return dict(self._last_seen)

    def scan(self, now=None):
        """
        Check every entry once and log the stale ones.

        Returns:
            list: Ids whose last heartbeat is older than the timeout.
        """
        if now is None:
            now = self.clock()

        stale = []
        for node_id, last_seen in list(self._last_seen.items()):
            if now - last_seen > self.timeout_ms:
                stale.append(node_id)
                self.sink.emit(
                    message.TYPE_STALE, self.source,
                    f"Node {node_id} FAILED: No heartbeat for {self.timeout_ms // 1000} seconds",
                    {'node_id': node_id, 'age_ms': now - last_seen},
                )
        return stale

    async def _monitor_loop(self):
        """Periodically check for stale heartbeats."""
        while self._running:
            await asyncio.sleep(self.scan_interval_ms / 1000 * self.time_scale)
            self.scan()
