"""
engine.py - Engine tuning record

Every magic number the delay model and tracker depend on lives here, so that
several simulations with different tuning can coexist in one process.

Example:
    config = EngineConfig(max_packets=50, delivered_grace_ms=0.0)
    tracker = SimulationTracker(path, send_mode="interval", config=config)
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


def _default_medium_speeds() -> Dict[str, float]:
    # Signal speed per medium (m/s)
    return {
        "fiber": 2e8,
        "copper": 2e8,
        "wireless": 3e8,
        "satellite": 3e8,
    }


def _default_tier_multipliers() -> Dict[str, float]:
    return {
        "low": 3.0,     # Home routers, client devices
        "medium": 1.5,  # ISP routers
        "high": 1.0,    # Core routers, servers
    }


def _default_tier_base_times() -> Dict[str, float]:
    # Seconds
    return {
        "low": 0.001,
        "medium": 0.0005,
        "high": 0.0002,
    }


DEFAULT_PACKET_COLORS: Tuple[str, ...] = (
    "#3498db",  # Blue
    "#2ecc71",  # Green
    "#9b59b6",  # Purple
    "#e67e22",  # Orange
    "#1abc9c",  # Turquoise
    "#f39c12",  # Yellow
    "#e74c3c",  # Red
    "#34495e",  # Dark gray
)


@dataclass(frozen=True)
class EngineConfig:
    """
    Tuning parameters for the delay model and the simulation tracker.

    Attributes:
        medium_speeds: Signal speed per medium name (m/s)
        default_propagation_speed: Speed used when a hop names no medium
        satellite_altitude_m: Geostationary altitude, added twice to satellite hops
        tier_multipliers: Processing power multiplier per device tier
        tier_base_times_s: Base processing time per device tier (seconds)
        saturation_transmission_ms: Transmission delay reported for a saturated link
        max_utilization: Utilization at or above which queuing is capped
        queuing_cap_ms: Queuing delay of a saturated queue
        min_utilization: Utilization at or below which queuing is floored
        queuing_floor_ms: Queuing delay of a nearly idle queue
        max_packets: Concurrently tracked packet limit
        delivered_grace_ms: How long a delivered packet stays in snapshots
        playback_speed: Initial playback speed
        min_playback_speed: Lower bound for set_playback_speed()
        max_playback_speed: Upper bound for set_playback_speed()
        multi_packet_window_factor: Window length in journeys for multi-packet modes
        multi_packet_window_cap_ms: Upper bound of the multi-packet window
        packet_colors: Display palette, indexed by packet id
    """
    medium_speeds: Dict[str, float] = field(default_factory=_default_medium_speeds)
    default_propagation_speed: float = 2e8
    satellite_altitude_m: float = 35_786_000.0
    tier_multipliers: Dict[str, float] = field(default_factory=_default_tier_multipliers)
    tier_base_times_s: Dict[str, float] = field(default_factory=_default_tier_base_times)
    saturation_transmission_ms: float = 1000.0
    max_utilization: float = 0.95
    queuing_cap_ms: float = 100.0
    min_utilization: float = 0.05
    queuing_floor_ms: float = 0.1
    max_packets: int = 20
    delivered_grace_ms: float = 5.0
    playback_speed: float = 1.0
    min_playback_speed: float = 0.05
    max_playback_speed: float = 2.0
    multi_packet_window_factor: float = 20.0
    multi_packet_window_cap_ms: float = 500.0
    packet_colors: Tuple[str, ...] = DEFAULT_PACKET_COLORS

    def __post_init__(self):
        """Validate engine configuration."""
        for medium, speed in self.medium_speeds.items():
            if speed <= 0:
                raise ValueError(f"medium_speeds[{medium!r}] must be positive, got {speed}")

        if self.default_propagation_speed <= 0:
            raise ValueError(
                f"default_propagation_speed must be positive, got {self.default_propagation_speed}"
            )

        for tier in ("low", "medium", "high"):
            if tier not in self.tier_multipliers:
                raise ValueError(f"tier_multipliers missing tier '{tier}'")
            if tier not in self.tier_base_times_s:
                raise ValueError(f"tier_base_times_s missing tier '{tier}'")

        if not (0.0 <= self.min_utilization < self.max_utilization < 1.0):
            raise ValueError(
                "utilization bounds must satisfy 0 <= min_utilization < max_utilization < 1, "
                f"got {self.min_utilization} and {self.max_utilization}"
            )

        if self.max_packets < 1:
            raise ValueError(f"max_packets must be at least 1, got {self.max_packets}")

        if self.delivered_grace_ms < 0:
            raise ValueError(f"delivered_grace_ms must be non-negative, got {self.delivered_grace_ms}")

        if not (0 < self.min_playback_speed <= self.max_playback_speed):
            raise ValueError(
                "playback speed bounds must satisfy 0 < min <= max, "
                f"got {self.min_playback_speed} and {self.max_playback_speed}"
            )

        if not self.packet_colors:
            raise ValueError("packet_colors must not be empty")

    def color_for(self, packet_id: int) -> str:
        """Display color for a packet id."""
        return self.packet_colors[packet_id % len(self.packet_colors)]


DEFAULT_CONFIG = EngineConfig()
