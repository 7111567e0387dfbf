"""
latsim.network - Path data model and delay computation

Hops, nodes and paths, and the pure delay model that turns them into
transmission, propagation, processing and queuing delays.
"""

from latsim.network.path import Hop, Medium, Node, Path, ProcessingTier
from latsim.network.delay_model import (
    DelayBreakdown,
    PathDelay,
    bandwidth_delay_product,
    compute_hop_delays,
    dominant_component,
    round_trip_time,
    total_path_delay,
)

__all__ = ['Hop', 'Medium', 'Node', 'Path', 'ProcessingTier',
           'DelayBreakdown', 'PathDelay', 'bandwidth_delay_product',
           'compute_hop_delays', 'dominant_component', 'round_trip_time',
           'total_path_delay']
