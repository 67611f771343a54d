"""
Shared fixtures for the traffic light simulation tests.

Timed tests run with a small time scale so that simulated seconds pass in
milliseconds of real time.
"""

import pytest
import pytest_asyncio

from traffic_sim.coordinator import Coordinator
from traffic_sim.node import TrafficLightNode
from traffic_sim.simulation import Simulation
from traffic_sim.sink import LogSink



class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def sink():
    return LogSink(history_limit=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(sink, clock):
    return Coordinator(sink, clock=clock)


@pytest.fixture
def make_node(coordinator, sink, clock):
    """Build nodes without starting their timers."""
    def factory(node_id, **kwargs):
        kwargs.setdefault("clock", clock)
        return TrafficLightNode(node_id, coordinator, sink, **kwargs)
    return factory


@pytest.fixture
def ring(make_node, coordinator):
    """Three unstarted nodes wired N1-N2, N2-N3, N3-N1 on the graph and on each node."""
    nodes = {node_id: make_node(node_id) for node_id in ("Node1", "Node2", "Node3")}
    for a, b in (("Node1", "Node2"), ("Node2", "Node3"), ("Node3", "Node1")):
        coordinator.register_connection(a, b)
        nodes[a].add_neighbor(b)
        nodes[b].add_neighbor(a)
    coordinator.set_nodes(nodes)
    return nodes


@pytest_asyncio.fixture
async def simulation(sink, clock):
    sim = Simulation(sink=sink, clock=clock)
    sim.start()
    yield sim
    sim.shutdown()
