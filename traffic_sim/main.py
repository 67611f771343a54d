import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import config
from .exceptions import SimulationError
from .simulation import Simulation

logger = logging.getLogger(__name__)


def parse_event(value):
    """Parse 'NODE@SECONDS' into (node_id, seconds)."""
    node_id, sep, at = value.rpartition("@")
    if not sep or not node_id:
        raise argparse.ArgumentTypeError(f"expected NODE@SECONDS, got {value!r}")
    try:
        seconds = float(at)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid time in {value!r}")
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"time must not be negative in {value!r}")
    return node_id, seconds


def build_parser():
    parser = argparse.ArgumentParser(description="Traffic Light Network Simulation")
    parser.add_argument("--nodes", type=int, default=config.INITIAL_NODE_COUNT,
                        help="Number of initial nodes connected in a ring")
    parser.add_argument("--duration", type=float, default=60.0,
                        help="Simulated seconds to run")
    parser.add_argument("--speed", choices=sorted(config.SPEED_SCALES), default="Normal",
                        help="Simulation speed preset")
    parser.add_argument("--time-scale", type=float, default=None,
                        help="Real seconds per simulated second (overrides --speed)")
    parser.add_argument("--base-red", type=int, default=config.BASE_RED_MS, help="Base red duration (ms)")
    parser.add_argument("--base-green", type=int, default=config.BASE_GREEN_MS, help="Base green duration (ms)")
    parser.add_argument("--add", type=parse_event, action="append", default=[], metavar="NODE@SEC",
                        help="Add a node at the given simulated second")
    parser.add_argument("--fail", type=parse_event, action="append", default=[], metavar="NODE@SEC",
                        help="Simulate a node failure at the given simulated second")
    parser.add_argument("--revive", type=parse_event, action="append", default=[], metavar="NODE@SEC",
                        help="Revive a node at the given simulated second")
    parser.add_argument("--status-interval", type=float, default=5.0,
                        help="Simulated seconds between status prints (0 disables)")
    parser.add_argument("--log-dir", type=Path, default=Path.cwd() / "log",
                        help="Directory for the log file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Also log heartbeats")
    return parser


def setup_logging(log_dir, verbose=False):
    """Console + file logging into log_dir. Returns the log file path."""
    log_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()  # prevent duplicate logs if main() is run multiple times

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    file_path = log_dir / "traffic_sim.log"
    file_handler = logging.FileHandler(file_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    root.addHandler(console_handler)
    root.addHandler(file_handler)
    return file_path


def format_status(sim):
    """One line per node: phase, durations and heartbeat freshness."""
    heartbeats = {node_id: stale for node_id, _, stale in sim.heartbeat_status()}
    lines = []
    for snap in sim.snapshots():
        state = "DISABLED" if snap.disabled else snap.phase.value
        liveness = "stale" if heartbeats.get(snap.id, True) else "ok"
        lines.append(
            f"{snap.id:<10} {state:<8} red={snap.red_duration_ms}ms green={snap.green_duration_ms}ms "
            f"yellow={snap.yellow_duration_ms}ms heartbeat={liveness}"
        )
    return "\n".join(lines)


def schedule_events(sim, loop, args, time_scale):
    def safe_add(node_id):
        try:
            sim.add_node(node_id)
        except SimulationError as e:
            logger.error(f"Cannot add node: {e}")

    for node_id, at in args.add:
        loop.call_later(at * time_scale, safe_add, node_id)
    for node_id, at in args.fail:
        loop.call_later(at * time_scale, sim.simulate_failure, node_id)
    for node_id, at in args.revive:
        loop.call_later(at * time_scale, sim.revive, node_id)


async def run(args):
    time_scale = args.time_scale if args.time_scale is not None else config.SPEED_SCALES[args.speed]

    sim = Simulation(time_scale=time_scale, base_red_ms=args.base_red, base_green_ms=args.base_green)
    sim.start(initial_nodes=args.nodes)
    schedule_events(sim, asyncio.get_running_loop(), args, time_scale)

    elapsed = 0.0
    step = args.status_interval if args.status_interval > 0 else args.duration
    try:
        while elapsed < args.duration:
            wait = min(step, args.duration - elapsed)
            await asyncio.sleep(wait * time_scale)
            elapsed += wait
            if args.status_interval > 0:
                print(f"--- t={elapsed:.1f}s ---\n{format_status(sim)}")
    finally:
        sim.shutdown()
    return sim


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.nodes < 0 or args.duration < 0:
        print("--nodes and --duration must not be negative", file=sys.stderr)
        return 2

    file_path = setup_logging(args.log_dir, args.verbose)
    logger.info(f"Logging to file: {file_path}")

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Shutting down simulation...")
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
