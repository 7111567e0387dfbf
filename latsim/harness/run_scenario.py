#!/usr/bin/env python3
"""
run_scenario.py - latsim Scenario Execution

Loads a latency scenario from YAML, prints its delay breakdown and runs the
simulation tracker headless to the end of its window.

Usage:
    python3 -m latsim.harness.run_scenario scenarios/simple.yaml
    python3 -m latsim.harness.run_scenario scenarios/wan.yaml --mode interval --interval 5
    python3 -m latsim.harness.run_scenario scenarios/wan.yaml --dry-run

The script will:
1. Load scenario from YAML
2. Validate the path and print the per-hop delay breakdown
3. Step the tracker frame by frame until the window closes
4. Report packet statistics (optionally as CSV)
"""

import argparse
import logging
import sys
from pathlib import Path

from latsim.config.scenario import Scenario, load_scenario
from latsim.errors import LatencySimError
from latsim.harness.events import PacketDelivered, PacketLimitExceeded, PacketSent
from latsim.harness.tracker import SEND_MODES, SimulationTracker
from latsim.network.delay_model import (
    bandwidth_delay_product,
    round_trip_time,
    total_path_delay,
)

logger = logging.getLogger('run_scenario')

# Upper bound on frames, in case a window is huge compared to the step
MAX_FRAMES = 1_000_000


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Run a latsim latency scenario from YAML configuration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single packet, settings from the YAML file
  python3 -m latsim.harness.run_scenario scenarios/simple.yaml

  # Override the send policy
  python3 -m latsim.harness.run_scenario scenarios/simple.yaml --mode burst --interval 20 --burst-size 4

  # Validate and print the delay breakdown only
  python3 -m latsim.harness.run_scenario scenarios/simple.yaml --dry-run
        """
    )

    parser.add_argument("config", type=Path, help="Path to scenario YAML file")
    parser.add_argument("--mode", choices=SEND_MODES, default=None,
                        help="Override send mode (default: from YAML)")
    parser.add_argument("--interval", type=float, default=None,
                        help="Override spawn interval in ms")
    parser.add_argument("--burst-size", type=int, default=None,
                        help="Override packets per burst")
    parser.add_argument("--max-time", type=float, default=None,
                        help="Override simulation window in ms")
    parser.add_argument("--step", type=float, default=1.0,
                        help="Frame length passed to advance() in ms (default: 1.0)")
    parser.add_argument("--speed", type=float, default=None,
                        help="Playback speed (default: engine default)")
    parser.add_argument("--metrics-csv", type=Path, default=None,
                        help="Write packet statistics to this CSV file")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Verbose output (debug logging)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate scenario and print delays without running the tracker")

    return parser.parse_args(argv)


def print_breakdown(scenario: Scenario):
    """Print per-hop and aggregate delays of the scenario path."""
    path = scenario.path
    delays = total_path_delay(path, scenario.engine)

    print(f"\nScenario: {path.name or '(unnamed)'}")
    if scenario.description:
        print(f"  {scenario.description}")
    print(f"  Packet size: {path.packet_size} bytes, {len(path.hops)} hops")

    print(f"\n  {'Hop':<28} {'Trans':>10} {'Prop':>10} {'Proc':>10} {'Queue':>10} {'Total':>10}")
    for hop in delays.by_hop:
        source, destination = path.hop_endpoints(hop.index)
        label = f"{source.name} -> {destination.name}"
        d = hop.delays
        print(f"  {label:<28} {d.transmission:>10.4f} {d.propagation:>10.4f} "
              f"{d.processing:>10.4f} {d.queuing:>10.4f} {d.total:>10.4f}")

    b = delays.breakdown
    print(f"  {'Total (ms)':<28} {b.transmission:>10.4f} {b.propagation:>10.4f} "
          f"{b.processing:>10.4f} {b.queuing:>10.4f} {b.total:>10.4f}")

    print(f"\n  One-way delay: {delays.total:.4f} ms")
    print(f"  Round-trip time: {round_trip_time(path, scenario.engine):.4f} ms")
    print(f"  Dominant component: {delays.dominant} ({delays.dominant_percent:.1f}%)")

    bandwidths = [hop.bandwidth for hop in path.hops if hop.bandwidth]
    if bandwidths:
        bdp = bandwidth_delay_product(min(bandwidths), delays.total, path.packet_size)
        print(f"  Bottleneck BDP: {bdp.bits:.0f} bits ({bdp.bytes:.0f} bytes, {bdp.packets} packets)")


def run(scenario: Scenario, args: argparse.Namespace) -> SimulationTracker:
    """Step a tracker through the whole window, logging packet events."""
    sim = scenario.simulation
    tracker = SimulationTracker(
        scenario.path,
        send_mode=args.mode or sim.send_mode,
        interval=args.interval if args.interval is not None else sim.interval_ms,
        burst_size=args.burst_size if args.burst_size is not None else sim.burst_size,
        max_time=args.max_time if args.max_time is not None else sim.max_time_ms,
        config=scenario.engine,
    )
    if args.speed is not None:
        tracker.set_playback_speed(args.speed)

    if tracker.send_mode == "manual":
        tracker.manual_send()

    tracker.play()
    frames = 0
    while tracker.is_playing and frames < MAX_FRAMES:
        for event in tracker.advance(args.step):
            if isinstance(event, PacketSent):
                logger.debug(f"t={event.packet.send_time:.4f} ms: packet {event.packet.id} sent")
            elif isinstance(event, PacketDelivered):
                logger.debug(f"packet {event.packet.id} delivered after {event.latency_ms:.4f} ms")
            elif isinstance(event, PacketLimitExceeded):
                logger.debug(f"t={event.send_time:.4f} ms: spawn skipped "
                             f"({event.active_packets}/{event.max_packets} in flight)")
        frames += 1

    if frames >= MAX_FRAMES:
        logger.warning(f"Stopped after {MAX_FRAMES} frames at t={tracker.current_time:.4f} ms")

    return tracker


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        0 on success, 1 on failure
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='[%(name)s] %(levelname)s: %(message)s',
        stream=sys.stderr
    )

    if not args.config.exists():
        print(f"ERROR: Scenario file not found: {args.config}", file=sys.stderr)
        return 1

    if args.step <= 0:
        print(f"ERROR: --step must be positive, got {args.step}", file=sys.stderr)
        return 1

    try:
        print(f"Loading scenario from: {args.config}")
        scenario = load_scenario(str(args.config))
        print_breakdown(scenario)

        if args.dry_run:
            print("\n✓ Scenario validation PASSED")
            print("\n(Use without --dry-run to execute)")
            return 0

        print("\n" + "=" * 60)
        print("Executing Scenario")
        print("=" * 60)

        tracker = run(scenario, args)
        metrics = tracker.get_metrics()

        print("\nResults:")
        print(f"  Mode: {tracker.send_mode}")
        print(f"  Simulated time: {tracker.current_time:.4f} ms")
        print(f"  Packets sent: {metrics.packets_sent}")
        print(f"  Packets delivered: {metrics.packets_delivered}")
        print(f"  Spawns skipped at limit: {metrics.packets_limited}")
        print(f"  One-way latency per packet: {metrics.journey_time_ms:.4f} ms")
        print(f"  Peak tracked packets: {metrics.peak_tracked_packets}")

        if args.metrics_csv is not None:
            metrics.export_csv(str(args.metrics_csv))
            print(f"\nMetrics written to {args.metrics_csv}")

        return 0

    except LatencySimError as e:
        print("\nERROR: Invalid scenario configuration:", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        return 1

    except Exception as e:
        print("\nERROR: Unexpected error:", file=sys.stderr)
        print(f"  {type(e).__name__}: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
