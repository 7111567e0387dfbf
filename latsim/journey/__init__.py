"""
latsim.journey - Journey timelines

Builds the segment timeline of one packet and resolves its phase at any
instant.
"""

from latsim.journey.planner import (
    ProcessingSegment,
    QueuingSegment,
    Segment,
    TransmissionPropagationSegment,
    build_segments,
    journey_duration,
)
from latsim.journey.resolver import Phase, ResolvedPhase, resolve

__all__ = ['ProcessingSegment', 'QueuingSegment', 'Segment',
           'TransmissionPropagationSegment', 'build_segments',
           'journey_duration', 'Phase', 'ResolvedPhase', 'resolve']
