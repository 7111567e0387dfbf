"""
resolver.py - M3 Phase Resolver

Maps "time since the packet was sent" onto a phase of its journey.

resolve() is pure and total: any real input (including negative values and
NaN) yields a definite phase. The tracker relies on this to make seeking and
stepping produce identical results.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from latsim.journey.planner import Segment, TransmissionPropagationSegment, journey_duration


class Phase(Enum):
    """Where a packet is in its journey."""
    WAITING = "waiting"
    QUEUING = "queuing"
    TRANSMITTING = "transmitting"
    PROPAGATING = "propagating"
    PROCESSING = "processing"
    DELIVERED = "delivered"


@dataclass(frozen=True)
class ResolvedPhase:
    """
    Phase of a packet at one instant.

    Attributes:
        phase: Current phase
        hop_index: Hop being traversed (hop count once delivered)
        progress: Fraction of the current phase completed, 0-1
        leading_edge: Position of the first bit along the hop, 0-1
        trailing_edge: Position of the last bit along the hop, 0-1
        trailing_edge_started: Whether the last bit has left the source node
    """
    phase: Phase
    hop_index: int
    progress: float
    leading_edge: float = 0.0
    trailing_edge: float = 0.0
    trailing_edge_started: bool = False


def _fraction(elapsed: float, start: float, duration: float) -> float:
    """Clamped progress through a window; zero-length windows are complete."""
    if duration <= 0:
        return 1.0
    return min(max((elapsed - start) / duration, 0.0), 1.0)


def _resolve_transit(segment: TransmissionPropagationSegment, elapsed: float) -> ResolvedPhase:
    leading = _fraction(elapsed, segment.first_bit_start, segment.propagation_time)
    trailing_started = elapsed >= segment.last_bit_start
    trailing = _fraction(elapsed, segment.last_bit_start, segment.propagation_time) if trailing_started else 0.0

    if elapsed < segment.last_bit_start:
        return ResolvedPhase(
            phase=Phase.TRANSMITTING,
            hop_index=segment.hop_index,
            progress=_fraction(elapsed, segment.first_bit_start, segment.transmission_time),
            leading_edge=leading,
            trailing_edge=0.0,
            trailing_edge_started=False,
        )

    return ResolvedPhase(
        phase=Phase.PROPAGATING,
        hop_index=segment.hop_index,
        progress=leading,
        leading_edge=leading,
        trailing_edge=trailing,
        trailing_edge_started=True,
    )


def resolve(segments: Sequence[Segment], elapsed: float) -> ResolvedPhase:
    """
    Resolve the phase of a packet `elapsed` ms after it was sent.

    Args:
        segments: Journey timeline from build_segments()
        elapsed: Time since send (ms)

    Returns:
        ResolvedPhase for that instant
    """
    if math.isnan(elapsed) or elapsed < 0:
        return ResolvedPhase(phase=Phase.WAITING, hop_index=0, progress=0.0)

    if elapsed >= journey_duration(segments):
        hop_count = segments[-1].hop_index + 1 if segments else 0
        return ResolvedPhase(
            phase=Phase.DELIVERED,
            hop_index=hop_count,
            progress=1.0,
            leading_edge=1.0,
            trailing_edge=1.0,
            trailing_edge_started=True,
        )

    for segment in segments:
        if not (segment.start <= elapsed <= segment.end):
            continue

        if isinstance(segment, TransmissionPropagationSegment):
            return _resolve_transit(segment, elapsed)

        phase = Phase.QUEUING if segment.kind == "queuing" else Phase.PROCESSING
        return ResolvedPhase(
            phase=phase,
            hop_index=segment.hop_index,
            progress=_fraction(elapsed, segment.start, segment.duration),
        )

    # Segments are contiguous, so this is only reachable through a gap in a
    # hand-built timeline: report the packet as waiting at the next segment.
    upcoming = next((s for s in segments if s.start > elapsed), segments[-1])
    return ResolvedPhase(phase=Phase.WAITING, hop_index=upcoming.hop_index, progress=0.0)
