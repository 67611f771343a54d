"""
config.py - Configuration constants for the Traffic Light Network Simulation.

All durations are simulated milliseconds.
"""

# Heartbeat Configuration
HEARTBEAT_INTERVAL_MS = 3000
HEARTBEAT_TIMEOUT_MS = 10000  # Coordinator staleness threshold
STALE_SCAN_INTERVAL_MS = 2000
DISPLAY_STALE_THRESHOLD_MS = 8000  # Consumer-side threshold, independent of the coordinator

# Phase Timing
BASE_RED_MS = 10000
BASE_GREEN_MS = 10000
YELLOW_MS = 3000  # Fixed for safety
MAX_GREEN_MS = 20000
MIN_RED_MS = 5000

# Topology
MAX_AUTO_CONNECTIONS = 3
INITIAL_NODE_COUNT = 3
NODE_ID_PREFIX = "Node"
COORDINATOR_NAME = "Coordinator"

# Simulation
TIME_SCALE = 1.0  # Real seconds per simulated second
SPEED_SCALES = {
    "Slow": 2.0,
    "Normal": 1.0,
    "Fast": 0.5,
}
LOG_HISTORY_LIMIT = 5000
