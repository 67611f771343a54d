import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum

from . import config
from . import message

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    RED = "RED"
    GREEN = "GREEN"
    YELLOW = "YELLOW"

    @property
    def next(self):
        return _NEXT_PHASE[self]


_NEXT_PHASE = {
    Phase.RED: Phase.GREEN,
    Phase.GREEN: Phase.YELLOW,
    Phase.YELLOW: Phase.RED,
}


def initial_phase_for(node_id):
    """
    Deterministic starting phase so neighboring lights start out of step.

    The trailing number of the id picks the phase: n % 3 == 2 starts GREEN,
    everything else (including ids without a number) starts RED.
    """
    match = re.search(r"(\d+)$", str(node_id))
    if match and int(match.group(1)) % 3 == 2:
        return Phase.GREEN
    return Phase.RED


def adjusted_durations(base_red_ms, base_green_ms, failure_ratio):
    """
    Compute (red_ms, green_ms) for a given fraction of failed neighbors.

    Green grows with the ratio up to MAX_GREEN_MS, red shrinks down to MIN_RED_MS.
    Yellow is not part of the computation.
    """
    if failure_ratio <= 0:
        return base_red_ms, base_green_ms

    green = min(base_green_ms * (1 + failure_ratio), config.MAX_GREEN_MS)
    red = max(base_red_ms * (1 - failure_ratio * 0.5), config.MIN_RED_MS)
    return int(round(red)), int(round(green))


@dataclass(frozen=True)
class NodeSnapshot:
    """Read-only view of a node used for rendering."""
    id: str
    phase: Phase
    last_transition_time: int
    disabled: bool
    red_duration_ms: int
    green_duration_ms: int
    yellow_duration_ms: int

    @property
    def phase_duration_ms(self):
        return {
            Phase.RED: self.red_duration_ms,
            Phase.GREEN: self.green_duration_ms,
            Phase.YELLOW: self.yellow_duration_ms,
        }[self.phase]


class TrafficLightNode:
    def __init__(self, node_id, coordinator, sink,
                 base_red_ms=config.BASE_RED_MS, base_green_ms=config.BASE_GREEN_MS,
                 clock=message.now_ms, time_scale=config.TIME_SCALE):
        """
        Initialize a traffic light node. Timers are not started until start().

        Args:
            node_id (str): Unique id of this node.
            coordinator (Coordinator): Receives heartbeats and failure/revival notices.
            sink (LogSink): Event stream for transitions, heartbeats and timing changes.
            base_red_ms (int): Red duration with no failed neighbors.
            base_green_ms (int): Green duration with no failed neighbors.
            clock (callable): Returns the current epoch time in milliseconds.
            time_scale (float): Real seconds per simulated second.
        """
        if base_red_ms < config.MIN_RED_MS:
            raise ValueError(f"base_red_ms must be at least {config.MIN_RED_MS}, got {base_red_ms}")
        if base_green_ms <= 0 or base_green_ms > config.MAX_GREEN_MS:
            raise ValueError(f"base_green_ms must be in (0, {config.MAX_GREEN_MS}], got {base_green_ms}")

        self.node_id = node_id
        self.coordinator = coordinator
        self.sink = sink
        self.clock = clock
        self.time_scale = time_scale

        self.base_red_ms = base_red_ms
        self.base_green_ms = base_green_ms
        self.yellow_ms = config.YELLOW_MS
        self.red_ms = base_red_ms
        self.green_ms = base_green_ms

        self.current_phase = initial_phase_for(node_id)
        self.last_transition_time = clock()

        self.active = False
        self.disabled = False
        self.neighbors = set()
        self.failed_neighbors = set()

        # At most one pending phase timer and one heartbeat task at any time
        self._phase_handle = None
        self._heartbeat_task = None

        self._log(message.TYPE_INFO, f"Traffic light initialized to {self.current_phase.value}")

    @classmethod
    def create(cls, node_id, coordinator, sink, **kwargs):
        """Build a node and start its heartbeat and phase timers right away."""
        node = cls(node_id, coordinator, sink, **kwargs)
        node.start()
        return node

    # ----------------------------
    # Lifecycle
    # ----------------------------
    def start(self):
        """
        Start heartbeat emission and the phase loop on the running event loop.
        Sends one heartbeat immediately.
        """
        if self.active:
            return
        loop = asyncio.get_running_loop()
        self.active = True

        self._heartbeat_task = loop.create_task(self._heartbeat_loop())
        self._arm_phase_timer()
        self._send_heartbeat()
        logger.debug(f"Node {self.node_id} started in phase {self.current_phase.value}")

    def stop(self):
        """Cancel the pending phase timer and the heartbeat task. Safe to call repeatedly."""
        self.active = False

        if self._phase_handle is not None:
            self._phase_handle.cancel()
            self._phase_handle = None

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    def simulate_failure(self):
        """Disable the node and tell the coordinator. No-op if already disabled."""
        if self.disabled:
            return False

        self.active = False
        self.disabled = True
        self.stop()
        self.coordinator.notify_failure(self.node_id)
        self._log(message.TYPE_FAILURE, f"Node {self.node_id} simulated failure")
        return True

    def revive(self):
        """Restart a stopped or disabled node and tell the coordinator. No-op if active."""
        if self.active:
            return False

        self.start()
        self.disabled = False
        self.coordinator.notify_revival(self.node_id)
        self._log(message.TYPE_REVIVAL, f"Node {self.node_id} revived")
        return True

    # ----------------------------
    # Phase loop
    # ----------------------------
    def phase_duration_ms(self, phase=None):
        phase = phase or self.current_phase
        if phase is Phase.RED:
            return self.red_ms
        if phase is Phase.GREEN:
            return self.green_ms
        return self.yellow_ms

    def _arm_phase_timer(self):
        delay = self.phase_duration_ms() / 1000 * self.time_scale
        self._phase_handle = asyncio.get_running_loop().call_later(delay, self._on_phase_timer)

    def _on_phase_timer(self):
        self._phase_handle = None
        if not self.active:
            return

        self.current_phase = self.current_phase.next
        self.last_transition_time = self.clock()
        self._arm_phase_timer()
        self._log(message.TYPE_TRANSITION, f"Traffic light changed to {self.current_phase.value}",
                  {'phase': self.current_phase.value})

    # ----------------------------
    # Heartbeats
    # ----------------------------
    def _send_heartbeat(self):
        self.coordinator.receive_heartbeat(self.node_id)
        self._log(message.TYPE_HEARTBEAT, f"Sent heartbeat from node {self.node_id}")

    async def _heartbeat_loop(self):
        interval = config.HEARTBEAT_INTERVAL_MS / 1000 * self.time_scale
        while self.active:
            await asyncio.sleep(interval)
            if self.active:
                self._send_heartbeat()

    # ----------------------------
    # Neighbors and adaptive timing
    # ----------------------------
    def add_neighbor(self, node_id):
        if node_id == self.node_id:
            return
        self.neighbors.add(node_id)
        self.adjust_timings()

    def remove_neighbor(self, node_id):
        self.neighbors.discard(node_id)
        self.failed_neighbors.discard(node_id)
        self.adjust_timings()

    def update_neighbor_status(self, node_id, failed):
        """Mark a neighbor failed or recovered, then recompute durations."""
        if node_id not in self.neighbors:
            logger.debug(f"Node {self.node_id}: ignoring status of non-neighbor {node_id}")
            return

        if failed:
            self.failed_neighbors.add(node_id)
        else:
            self.failed_neighbors.discard(node_id)
        self.adjust_timings()

    @property
    def failure_ratio(self):
        if not self.neighbors:
            return 0.0
        return len(self.failed_neighbors) / len(self.neighbors)

    def adjust_timings(self):
        """Recompute red/green durations from the current failure ratio."""
        red, green = adjusted_durations(self.base_red_ms, self.base_green_ms, self.failure_ratio)
        if (red, green) == (self.red_ms, self.green_ms):
            return

        self.red_ms = red
        self.green_ms = green
        if self.failed_neighbors:
            text = f"Adjusted timings - Red: {red}ms, Green: {green}ms"
        else:
            text = f"Reset timings to base - Red: {red}ms, Green: {green}ms"
        self._log(message.TYPE_TIMING, text, {'red_ms': red, 'green_ms': green})

    # ----------------------------
    # Views
    # ----------------------------
    def snapshot(self):
        return NodeSnapshot(
            id=self.node_id,
            phase=self.current_phase,
            last_transition_time=self.last_transition_time,
            disabled=self.disabled,
            red_duration_ms=self.red_ms,
            green_duration_ms=self.green_ms,
            yellow_duration_ms=self.yellow_ms,
        )

    def _log(self, msg_type, text, payload=None):
        self.sink.emit(msg_type, self.node_id, text, payload)
