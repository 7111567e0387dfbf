"""
events.py - Simulation events and snapshots

The tracker reports what happened during a call by returning a list of
events instead of invoking registered callbacks. Every call ends with a Tick
carrying the snapshot at the new time.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from latsim.journey.resolver import Phase


@dataclass(frozen=True)
class PacketState:
    """Read-only view of a tracked packet at one instant."""
    id: int
    phase: Phase
    hop_index: int
    progress: float
    send_time: float
    color: str
    leading_edge: float = 0.0
    trailing_edge: float = 0.0
    trailing_edge_started: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'phase': self.phase.value,
            'hop_index': self.hop_index,
            'progress': self.progress,
            'send_time': self.send_time,
            'color': self.color,
            'leading_edge': self.leading_edge,
            'trailing_edge': self.trailing_edge,
            'trailing_edge_started': self.trailing_edge_started,
        }


@dataclass(frozen=True)
class Snapshot:
    """State of every tracked packet at simulated time `time` (ms)."""
    time: float
    packets: Tuple[PacketState, ...] = ()
    queue_depths: Tuple[int, ...] = ()

    def packet(self, packet_id: int) -> PacketState:
        """Look up a packet by id."""
        for state in self.packets:
            if state.id == packet_id:
                return state
        raise KeyError(f"No packet with id {packet_id} in snapshot at t={self.time}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time': self.time,
            'packets': [p.to_dict() for p in self.packets],
            'queue_depths': list(self.queue_depths),
        }


@dataclass(frozen=True)
class PacketSent:
    """A packet was injected at `packet.send_time`."""
    packet: PacketState


@dataclass(frozen=True)
class PacketDelivered:
    """A packet reached the last node."""
    packet: PacketState
    latency_ms: float


@dataclass(frozen=True)
class PacketLimitExceeded:
    """A spawn was skipped because too many packets were in flight."""
    send_time: float
    active_packets: int
    max_packets: int


@dataclass(frozen=True)
class Complete:
    """The single packet of a single-send simulation was delivered."""
    time: float


@dataclass(frozen=True)
class Tick:
    """Snapshot after the call that produced this event list."""
    snapshot: Snapshot = field(default_factory=lambda: Snapshot(time=0.0))


SimulationEvent = Union[PacketSent, PacketDelivered, PacketLimitExceeded, Complete, Tick]


def events_of_type(events: List[SimulationEvent], event_type: type) -> List[SimulationEvent]:
    """Filter an event list down to one event type."""
    return [event for event in events if isinstance(event, event_type)]
