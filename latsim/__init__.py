"""
latsim - Network latency simulation engine

Decomposes a packet's journey across a sequence of hops into transmission,
propagation, processing and queuing delay, and drives a seekable simulation
clock over one or many packets.
"""

from latsim.config.engine import EngineConfig, DEFAULT_CONFIG
from latsim.errors import InvalidPathError, LatencySimError, ScenarioError
from latsim.harness.tracker import SimulationTracker
from latsim.journey.planner import build_segments
from latsim.journey.resolver import Phase, resolve
from latsim.network.delay_model import (
    bandwidth_delay_product,
    compute_hop_delays,
    dominant_component,
    round_trip_time,
    total_path_delay,
)
from latsim.network.path import Hop, Medium, Node, Path, ProcessingTier

__version__ = "0.1.0"

__all__ = [
    'EngineConfig', 'DEFAULT_CONFIG',
    'InvalidPathError', 'LatencySimError', 'ScenarioError',
    'SimulationTracker',
    'build_segments', 'Phase', 'resolve',
    'bandwidth_delay_product', 'compute_hop_delays', 'dominant_component',
    'round_trip_time', 'total_path_delay',
    'Hop', 'Medium', 'Node', 'Path', 'ProcessingTier',
]
