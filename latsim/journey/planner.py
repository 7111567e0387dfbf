"""
planner.py - M2 Journey Planner

Turns a path into the ordered timeline of a single packet's journey.

Transmission and propagation overlap: the first bit starts propagating the
instant it is put on the wire, while the last bit only starts once the whole
packet has been transmitted. Both travel the same distance, offset by exactly
the transmission time:

    first bit:  |==== propagation ====|
    last bit:   |-- transmission --|==== propagation ====|
                ^ first_bit_start  ^ last_bit_start      ^ last_bit_end

Times are relative to the moment the packet is sent (ms).
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Union

from latsim.config.engine import EngineConfig, DEFAULT_CONFIG
from latsim.network.delay_model import path_hop_delays
from latsim.network.path import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuingSegment:
    """Packet waits in the buffer of `at_node` before hop `hop_index`."""
    start_time: float
    end_time: float
    at_node: str
    hop_index: int

    kind = "queuing"

    @property
    def start(self) -> float:
        return self.start_time

    @property
    def end(self) -> float:
        return self.end_time

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class ProcessingSegment:
    """Packet is examined by `at_node` after crossing hop `hop_index`."""
    start_time: float
    end_time: float
    at_node: str
    hop_index: int

    kind = "processing"

    @property
    def start(self) -> float:
        return self.start_time

    @property
    def end(self) -> float:
        return self.end_time

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class TransmissionPropagationSegment:
    """Packet is put on the wire and travels from `from_node` to `to_node`."""
    first_bit_start: float
    first_bit_end: float
    last_bit_start: float
    last_bit_end: float
    from_node: str
    to_node: str
    transmission_time: float
    propagation_time: float
    hop_index: int

    kind = "transmission-propagation"

    @property
    def start(self) -> float:
        return self.first_bit_start

    @property
    def end(self) -> float:
        return self.last_bit_end

    @property
    def duration(self) -> float:
        return self.last_bit_end - self.first_bit_start


Segment = Union[QueuingSegment, TransmissionPropagationSegment, ProcessingSegment]


def build_segments(path: Path, config: EngineConfig = DEFAULT_CONFIG) -> List[Segment]:
    """
    Build the journey timeline of one packet along `path`.

    Args:
        path: Path to traverse
        config: Engine configuration

    Returns:
        Segments in traversal order; the end of the last one is the
        one-way delay of the path

    Raises:
        InvalidPathError: If the path is structurally invalid (no partial result)
    """
    hop_delays = path_hop_delays(path, config)

    segments: List[Segment] = []
    first_bit_time = 0.0
    last_bit_time = 0.0

    for i, delays in enumerate(hop_delays):
        source, destination = path.hop_endpoints(i)

        # No queuing at the origin: path_hop_delays already zeroes hop 0
        if i > 0 and delays.queuing > 0:
            segments.append(QueuingSegment(
                start_time=first_bit_time,
                end_time=first_bit_time + delays.queuing,
                at_node=source.name,
                hop_index=i,
            ))
            first_bit_time += delays.queuing
            last_bit_time += delays.queuing

        segment = TransmissionPropagationSegment(
            first_bit_start=first_bit_time,
            first_bit_end=first_bit_time + delays.propagation,
            last_bit_start=first_bit_time + delays.transmission,
            last_bit_end=first_bit_time + delays.transmission + delays.propagation,
            from_node=source.name,
            to_node=destination.name,
            transmission_time=delays.transmission,
            propagation_time=delays.propagation,
            hop_index=i,
        )
        segments.append(segment)

        # The packet has fully arrived once its last bit has
        first_bit_time = segment.last_bit_end
        last_bit_time = segment.last_bit_end

        if delays.processing > 0:
            segments.append(ProcessingSegment(
                start_time=first_bit_time,
                end_time=first_bit_time + delays.processing,
                at_node=destination.name,
                hop_index=i,
            ))
            first_bit_time += delays.processing
            last_bit_time += delays.processing

    logger.debug(f"Built {len(segments)} segments for '{path.name or 'path'}', "
                 f"journey ends at {last_bit_time:.6f} ms")
    return segments


def journey_duration(segments: Sequence[Segment]) -> float:
    """One-way delay encoded by a segment list (0 for an empty list)."""
    if not segments:
        return 0.0
    return segments[-1].end
