"""
latsim.harness - Simulation tracker and scenario runner
"""

from latsim.harness.events import (
    Complete,
    PacketDelivered,
    PacketLimitExceeded,
    PacketSent,
    PacketState,
    SimulationEvent,
    Snapshot,
    Tick,
)
from latsim.harness.tracker import SimulationTracker

__all__ = ['Complete', 'PacketDelivered', 'PacketLimitExceeded', 'PacketSent',
           'PacketState', 'SimulationEvent', 'Snapshot', 'Tick',
           'SimulationTracker']
