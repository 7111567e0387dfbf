"""
delay_model.py - M1 Delay Model

Computes the four delay components of a hop and aggregates them over a path.

DESIGN PHILOSOPHY:
- Pure functions: no state, no side effects, same input → same output
- Never raises on numeric edge cases: degenerate hops are clamped so the
  scenario stays animatable
- Explicit delays always win over derived ones (see select_delay)
- All delays are in milliseconds

Delay components:
    transmission = bits / effective_bandwidth
    propagation  = distance / signal_speed
    processing   = base(tier) * multiplier(tier) * (1 + 2 * load)
    queuing      = 1 / (1 - u)^3 - 1, floored and capped
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from latsim.config.engine import EngineConfig, DEFAULT_CONFIG
from latsim.network.path import (
    Explicit,
    Hop,
    Medium,
    Path,
    ProcessingTier,
    hop_label,
    select_delay,
)

logger = logging.getLogger(__name__)

BITS_PER_BYTE = 8
MS_PER_SECOND = 1000.0

COMPONENTS = ("transmission", "propagation", "processing", "queuing")

# Below these values a component is too small to be worth displaying (ms)
SIGNIFICANCE_THRESHOLDS = {
    "transmission": 0.001,
    "propagation": 0.1,
    "processing": 0.1,
}


@dataclass(frozen=True)
class DelayBreakdown:
    """Delay components of one hop or a whole path, in milliseconds."""
    transmission: float = 0.0
    propagation: float = 0.0
    processing: float = 0.0
    queuing: float = 0.0

    @property
    def total(self) -> float:
        return self.transmission + self.propagation + self.processing + self.queuing

    def __add__(self, other: 'DelayBreakdown') -> 'DelayBreakdown':
        return DelayBreakdown(
            transmission=self.transmission + other.transmission,
            propagation=self.propagation + other.propagation,
            processing=self.processing + other.processing,
            queuing=self.queuing + other.queuing,
        )

    def component(self, name: str) -> float:
        if name not in COMPONENTS:
            raise KeyError(f"Unknown delay component: {name}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, float]:
        return {
            'transmission': self.transmission,
            'propagation': self.propagation,
            'processing': self.processing,
            'queuing': self.queuing,
            'total': self.total,
        }


@dataclass(frozen=True)
class HopDelay:
    """Delay breakdown of one hop within a path."""
    index: int
    name: str
    delays: DelayBreakdown


@dataclass(frozen=True)
class PathDelay:
    """
    Aggregate delays over all hops of a path.

    Attributes:
        breakdown: Component sums over all hops
        by_hop: Per-hop breakdowns as incurred on the path
        dominant: Name of the largest component
        dominant_percent: Share of the dominant component in the total
        percentages: Share of every component in the total
    """
    breakdown: DelayBreakdown
    by_hop: Tuple[HopDelay, ...]
    dominant: str
    dominant_percent: float
    percentages: Dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return self.breakdown.total


@dataclass(frozen=True)
class BandwidthDelayProduct:
    """Amount of data in flight on a link."""
    bits: float
    bytes: float
    packets: int


@dataclass(frozen=True)
class MultiPacketTiming:
    """Timing estimate for a train of packets sent along a path."""
    first_packet_time: float
    last_packet_send_time: float
    last_packet_arrival_time: float
    effective_throughput: float
    bottleneck_bandwidth: Optional[float]
    bottleneck_hop: Optional[int]
    bottleneck_utilization: float

    @property
    def total_duration(self) -> float:
        return self.last_packet_arrival_time


def _finite_or(value: Optional[float], fallback: float) -> float:
    if value is None or math.isnan(value):
        return fallback
    return value


def clamp_utilization(utilization: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Clamp a utilization into [0, max_utilization]; NaN counts as idle."""
    u = _finite_or(utilization, 0.0)
    return min(max(u, 0.0), config.max_utilization)


def transmission_delay_ms(packet_size_bytes: float,
                          bandwidth: Optional[float],
                          utilization: Optional[float] = None,
                          config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Time to push every bit of the packet onto the link.

    Args:
        packet_size_bytes: Packet size in bytes
        bandwidth: Link capacity in bps, None for a hop without transmission
        utilization: Fraction of capacity already in use (reduces effective bandwidth)
        config: Engine configuration

    Returns:
        Delay in ms, or the saturation sentinel when no capacity is left
    """
    if bandwidth is None:
        return 0.0

    effective_bandwidth = bandwidth
    if utilization is not None:
        effective_bandwidth = bandwidth * (1.0 - clamp_utilization(utilization, config))

    if math.isnan(effective_bandwidth) or effective_bandwidth <= 0:
        logger.debug(f"Link saturated (effective bandwidth {effective_bandwidth}), "
                     f"using {config.saturation_transmission_ms} ms")
        return config.saturation_transmission_ms

    bits = max(packet_size_bytes, 0) * BITS_PER_BYTE
    return bits / effective_bandwidth * MS_PER_SECOND


def signal_speed(medium: Optional[Medium],
                 propagation_speed: Optional[float] = None,
                 config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Signal speed in m/s: explicit speed, else medium table, else default."""
    if propagation_speed is not None:
        return propagation_speed
    if medium is not None:
        return config.medium_speeds.get(medium.value, config.default_propagation_speed)
    return config.default_propagation_speed


def propagation_delay_ms(distance: Optional[float],
                         medium: Optional[Medium] = None,
                         propagation_speed: Optional[float] = None,
                         config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Time for the signal to travel the link.

    Satellite links travel up to the geostationary orbit and back down, so
    twice the orbit altitude is added to the ground distance.
    """
    meters = max(_finite_or(distance, 0.0), 0.0)
    if medium is Medium.SATELLITE:
        meters += 2 * config.satellite_altitude_m

    if meters <= 0:
        return 0.0

    speed = signal_speed(medium, propagation_speed, config)
    if math.isnan(speed) or speed <= 0:
        logger.debug(f"Non-positive signal speed {speed}, propagation treated as 0")
        return 0.0

    return meters / speed * MS_PER_SECOND


def processing_delay_ms(tier: ProcessingTier,
                        current_load: float = 0.0,
                        base_time_s: Optional[float] = None,
                        config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Processing delay derived from device tier and load."""
    base = base_time_s if base_time_s is not None else config.tier_base_times_s[tier.value]
    load = min(max(_finite_or(current_load, 0.0), 0.0), 1.0)
    # Load increases processing time up to 3x at 100% load
    load_factor = 1.0 + 2.0 * load
    return max(base, 0.0) * config.tier_multipliers[tier.value] * load_factor * MS_PER_SECOND


def queuing_delay_from_utilization(utilization: float,
                                   config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Closed-form queuing delay: 1 / (1 - u)^3 - 1 ms.

    At or below min_utilization the queue is floored at queuing_floor_ms so
    the component stays visible; the result never exceeds queuing_cap_ms and
    reaches it for every u >= max_utilization.
    """
    u = _finite_or(utilization, 0.0)
    if u >= config.max_utilization:
        return config.queuing_cap_ms
    if u <= config.min_utilization:
        return config.queuing_floor_ms

    delay = (1.0 / (1.0 - u) ** 3) - 1.0
    return min(max(delay, config.queuing_floor_ms), config.queuing_cap_ms)


def _resolve_processing(hop: Hop, config: EngineConfig) -> float:
    source = select_delay(hop.processing_delay, tier=hop.processing_tier)
    if source is None:
        return 0.0
    if isinstance(source, Explicit):
        return max(_finite_or(source.ms, 0.0), 0.0)
    return processing_delay_ms(source.params['tier'], hop.current_load,
                               hop.processing_time_base, config)


def _resolve_queuing(hop: Hop, config: EngineConfig) -> float:
    source = select_delay(hop.queuing_delay, utilization=hop.utilization)
    if source is None:
        return 0.0
    if isinstance(source, Explicit):
        if hop.utilization is not None:
            logger.debug(f"Hop has both queuing_delay={hop.queuing_delay} and "
                         f"utilization={hop.utilization}; explicit delay wins")
        return max(_finite_or(source.ms, 0.0), 0.0)
    return queuing_delay_from_utilization(source.params['utilization'], config)


def compute_hop_delays(hop: Hop,
                       packet_size_bytes: float,
                       config: EngineConfig = DEFAULT_CONFIG) -> DelayBreakdown:
    """
    Compute all four delay components for a single hop.

    Args:
        hop: Hop configuration
        packet_size_bytes: Packet size in bytes
        config: Engine configuration

    Returns:
        DelayBreakdown in milliseconds (every component >= 0)
    """
    return DelayBreakdown(
        transmission=transmission_delay_ms(packet_size_bytes, hop.bandwidth, hop.utilization, config),
        propagation=propagation_delay_ms(hop.distance, hop.medium, hop.propagation_speed, config),
        processing=_resolve_processing(hop, config),
        queuing=_resolve_queuing(hop, config),
    )


def path_hop_delays(path: Path, config: EngineConfig = DEFAULT_CONFIG) -> List[DelayBreakdown]:
    """
    Per-hop delays as incurred along the path.

    A packet that has not been sent yet cannot be queued at its origin, so
    the first hop never contributes queuing delay.

    Raises:
        InvalidPathError: If the path is structurally invalid
    """
    path.validate()

    delays = []
    for i, hop in enumerate(path.hops):
        breakdown = compute_hop_delays(hop, path.packet_size, config)
        if i == 0 and breakdown.queuing > 0:
            breakdown = DelayBreakdown(
                transmission=breakdown.transmission,
                propagation=breakdown.propagation,
                processing=breakdown.processing,
                queuing=0.0,
            )
        delays.append(breakdown)
    return delays


def delay_percentages(breakdown: DelayBreakdown) -> Dict[str, float]:
    """Share of each component in the total, in percent (all 0 for a zero total)."""
    total = breakdown.total
    if total <= 0:
        return {name: 0.0 for name in COMPONENTS}
    return {name: breakdown.component(name) / total * 100.0 for name in COMPONENTS}


def dominant_component(breakdown: DelayBreakdown) -> Tuple[str, float]:
    """
    Largest delay component and its share of the total.

    Ties resolve in the order transmission, propagation, processing, queuing.

    Returns:
        (component name, percent of total)
    """
    name = max(COMPONENTS, key=breakdown.component)
    return name, delay_percentages(breakdown)[name]


def total_path_delay(path: Path, config: EngineConfig = DEFAULT_CONFIG) -> PathDelay:
    """
    Sum the delays of every hop of a path.

    Raises:
        InvalidPathError: If the path is structurally invalid
    """
    per_hop = path_hop_delays(path, config)

    breakdown = DelayBreakdown()
    by_hop = []
    for i, delays in enumerate(per_hop):
        breakdown = breakdown + delays
        by_hop.append(HopDelay(index=i, name=hop_label(path, i), delays=delays))

    dominant, dominant_percent = dominant_component(breakdown)
    return PathDelay(
        breakdown=breakdown,
        by_hop=tuple(by_hop),
        dominant=dominant,
        dominant_percent=dominant_percent,
        percentages=delay_percentages(breakdown),
    )


def round_trip_time(path: Path, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Round-trip time of a symmetric path (ms)."""
    return 2 * total_path_delay(path, config).total


def bandwidth_delay_product(bandwidth: float, delay_ms: float,
                            packet_size_bytes: int = 1500) -> BandwidthDelayProduct:
    """
    Bandwidth-delay product.

    Args:
        bandwidth: Link bandwidth in bps
        delay_ms: One-way delay in ms
        packet_size_bytes: Packet size used to express the BDP in packets
    """
    bits = bandwidth * (delay_ms / MS_PER_SECOND)
    size = bits / BITS_PER_BYTE
    packets = math.ceil(size / packet_size_bytes) if packet_size_bytes > 0 else 0
    return BandwidthDelayProduct(bits=bits, bytes=size, packets=packets)


def multi_packet_timing(path: Path, num_packets: int, interval_ms: float = 0.0,
                        config: EngineConfig = DEFAULT_CONFIG) -> MultiPacketTiming:
    """
    Estimate end-to-end timing for a train of packets.

    Every packet is assumed to see the single-packet delay; the train is
    limited by the narrowest hop (the bottleneck).
    """
    single = total_path_delay(path, config).total
    last_send = max(num_packets - 1, 0) * interval_ms
    last_arrival = last_send + single

    total_bits = path.packet_size * BITS_PER_BYTE * num_packets
    total_seconds = last_arrival / MS_PER_SECOND
    throughput = total_bits / total_seconds if total_seconds > 0 else 0.0

    bottleneck_bandwidth = None
    bottleneck_hop = None
    for i, hop in enumerate(path.hops):
        if hop.bandwidth and (bottleneck_bandwidth is None or hop.bandwidth < bottleneck_bandwidth):
            bottleneck_bandwidth = hop.bandwidth
            bottleneck_hop = i

    utilization = throughput / bottleneck_bandwidth if bottleneck_bandwidth else 0.0

    return MultiPacketTiming(
        first_packet_time=single,
        last_packet_send_time=last_send,
        last_packet_arrival_time=last_arrival,
        effective_throughput=throughput,
        bottleneck_bandwidth=bottleneck_bandwidth,
        bottleneck_hop=bottleneck_hop,
        bottleneck_utilization=utilization,
    )


def is_significant_delay(delay_ms: float, component: str) -> bool:
    """Whether a delay component is large enough to be worth displaying."""
    threshold = SIGNIFICANCE_THRESHOLDS.get(component)
    if threshold is None:
        return delay_ms > 0
    return delay_ms >= threshold
