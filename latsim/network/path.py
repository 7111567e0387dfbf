"""
path.py - Path data model

Defines the immutable inputs of the engine: hops, nodes and the path that
strings them together, plus the tagged delay values used to pick between an
explicitly configured delay and one derived from link or device parameters.

A path with N hops has N + 1 nodes:

    nodes:  Source ---- Router ---- Destination
    hops:          hop 0       hop 1
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from latsim.errors import InvalidPathError


class Medium(Enum):
    """Physical medium of a link."""
    FIBER = "fiber"
    COPPER = "copper"
    WIRELESS = "wireless"
    SATELLITE = "satellite"


class ProcessingTier(Enum):
    """Processing power class of the device at the far end of a hop."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Node:
    """Network node. Purely descriptive; does not affect delays."""
    name: str
    type: str = "router"


@dataclass(frozen=True)
class Hop:
    """
    A single link between two consecutive nodes.

    Attributes:
        bandwidth: Link capacity in bits per second (None: no transmission)
        distance: Link length in meters
        medium: Physical medium, used to look up the signal speed
        propagation_speed: Explicit signal speed in m/s (wins over medium)
        processing_delay: Explicit processing delay in ms
        queuing_delay: Explicit queuing delay in ms
        utilization: Fraction of capacity already in use, 0-1
        processing_tier: Device tier used to derive processing delay
        current_load: Device load, 0-1
        processing_time_base: Base processing time in seconds (overrides the tier default)
        name: Optional display label
    """
    bandwidth: Optional[float] = None
    distance: Optional[float] = None
    medium: Optional[Medium] = None
    propagation_speed: Optional[float] = None
    processing_delay: Optional[float] = None
    queuing_delay: Optional[float] = None
    utilization: Optional[float] = None
    processing_tier: Optional[ProcessingTier] = None
    current_load: float = 0.0
    processing_time_base: Optional[float] = None
    name: Optional[str] = None

    def has_delay_source(self) -> bool:
        """True if at least one delay component can be computed for this hop."""
        # A satellite hop propagates via the orbit even without a ground distance
        if self.medium is Medium.SATELLITE:
            return True
        return any(value is not None for value in (
            self.bandwidth,
            self.distance,
            self.processing_delay,
            self.queuing_delay,
            self.utilization,
            self.processing_tier,
        ))


@dataclass(frozen=True)
class Path:
    """
    Ordered nodes and hops plus the packet size carried along them.

    Attributes:
        nodes: Nodes in traversal order (len(hops) + 1 entries)
        hops: Hops in traversal order
        packet_size: Packet size in bytes
        name: Optional scenario name
    """
    nodes: Tuple[Node, ...]
    hops: Tuple[Hop, ...]
    packet_size: int
    name: str = ""

    def __post_init__(self):
        # Accept lists from callers but store tuples
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "hops", tuple(self.hops))

    def validate(self):
        """
        Check the structural invariants of the path.

        Raises:
            InvalidPathError: If the path cannot be simulated
        """
        if not self.hops:
            raise InvalidPathError("Path must contain at least one hop")

        if len(self.nodes) != len(self.hops) + 1:
            raise InvalidPathError(
                f"Path with {len(self.hops)} hops needs {len(self.hops) + 1} nodes, "
                f"got {len(self.nodes)}"
            )

        if self.packet_size <= 0:
            raise InvalidPathError(f"packet_size must be positive, got {self.packet_size}")

        for i, hop in enumerate(self.hops):
            if not hop.has_delay_source():
                raise InvalidPathError(
                    f"Hop {i} ({self.nodes[i].name} -> {self.nodes[i + 1].name}): "
                    "no bandwidth, distance or explicit delay given"
                )

    def hop_endpoints(self, index: int) -> Tuple[Node, Node]:
        """Source and destination node of hop `index`."""
        return self.nodes[index], self.nodes[index + 1]


@dataclass(frozen=True)
class Explicit:
    """A delay given directly in milliseconds."""
    ms: float


@dataclass(frozen=True)
class Derived:
    """A delay to be computed from hop parameters."""
    params: Dict[str, Any] = field(default_factory=dict)


Delay = Union[Explicit, Derived]


def select_delay(explicit_ms: Optional[float], **params: Any) -> Optional[Delay]:
    """
    Decide how a delay component is obtained.

    An explicit value always wins over derivable parameters. Parameters that
    are None are dropped; if nothing is left the component has no source.

    Returns:
        Explicit, Derived, or None when the hop carries no information
    """
    if explicit_ms is not None:
        return Explicit(float(explicit_ms))

    present = {key: value for key, value in params.items() if value is not None}
    if not present:
        return None
    return Derived(present)


def hop_label(path: Path, index: int) -> str:
    """Display label of a hop ("Hop 1" style when unnamed)."""
    hop = path.hops[index]
    return hop.name or f"Hop {index + 1}"
