#!/usr/bin/env python3
"""
test_phase_resolver.py - M3 Unit Tests for the Phase Resolver

Tests mapping of elapsed time onto journey phases, including the leading
and trailing bit edges used for rendering.
"""

import math
import sys
from pathlib import Path as FilePath

import pytest

# Add project root to path
project_root = FilePath(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from latsim.journey.planner import (
    QueuingSegment,
    TransmissionPropagationSegment,
    build_segments,
)
from latsim.journey.resolver import Phase, resolve
from latsim.network.path import Hop, Node, Path


@pytest.fixture
def segments():
    """
    One hop: 8 ms transmission, 10 ms propagation, 2 ms processing.

    Timeline: transmitting [0, 8), propagating [8, 18], processing [18, 20].
    """
    path = Path(
        nodes=[Node("A", "host"), Node("B", "host")],
        hops=[Hop(bandwidth=1e6, distance=2e6, propagation_speed=2e8, processing_delay=2.0)],
        packet_size=1000,
    )
    return build_segments(path)


def test_before_send_is_waiting(segments):
    """Test negative elapsed time resolves to waiting."""
    state = resolve(segments, -1.0)
    assert state.phase == Phase.WAITING
    assert state.progress == 0.0


def test_nan_is_waiting(segments):
    """Test NaN elapsed time resolves to waiting instead of raising."""
    assert resolve(segments, math.nan).phase == Phase.WAITING


def test_transmitting(segments):
    """Test phase and edges while the packet is being put on the wire."""
    state = resolve(segments, 4.0)

    assert state.phase == Phase.TRANSMITTING
    assert state.hop_index == 0
    assert state.progress == pytest.approx(0.5)
    assert state.leading_edge == pytest.approx(0.4)
    assert state.trailing_edge == 0.0
    assert not state.trailing_edge_started


def test_send_instant_is_transmitting(segments):
    """Test elapsed 0 is the start of transmission."""
    state = resolve(segments, 0.0)
    assert state.phase == Phase.TRANSMITTING
    assert state.progress == 0.0


def test_propagating_starts_with_last_bit(segments):
    """Test the boundary at last_bit_start belongs to propagation."""
    state = resolve(segments, 8.0)

    assert state.phase == Phase.PROPAGATING
    assert state.leading_edge == pytest.approx(0.8)
    assert state.trailing_edge == 0.0
    assert state.trailing_edge_started


def test_propagating(segments):
    """Test progress follows the leading edge, clamped once it arrives."""
    state = resolve(segments, 13.0)

    assert state.phase == Phase.PROPAGATING
    assert state.progress == 1.0
    assert state.leading_edge == 1.0
    assert state.trailing_edge == pytest.approx(0.5)


def test_processing(segments):
    """Test processing progress at the destination."""
    state = resolve(segments, 19.0)

    assert state.phase == Phase.PROCESSING
    assert state.hop_index == 0
    assert state.progress == pytest.approx(0.5)


@pytest.mark.parametrize("elapsed", [20.0, 25.0, 1e9, math.inf])
def test_delivered(segments, elapsed):
    """Test the journey end and anything after it is delivered."""
    state = resolve(segments, elapsed)

    assert state.phase == Phase.DELIVERED
    assert state.hop_index == 1
    assert state.progress == 1.0


def test_progress_always_in_unit_range(segments):
    """Test progress and edges stay in [0, 1] across the whole timeline."""
    for step in range(-10, 230):
        state = resolve(segments, step * 0.1)
        for value in (state.progress, state.leading_edge, state.trailing_edge):
            assert 0.0 <= value <= 1.0


def test_zero_duration_segment_is_complete():
    """Test a zero-length window reports full progress."""
    timeline = [
        QueuingSegment(start_time=0.0, end_time=0.0, at_node="A", hop_index=1),
        TransmissionPropagationSegment(
            first_bit_start=0.0, first_bit_end=1.0, last_bit_start=1.0, last_bit_end=2.0,
            from_node="A", to_node="B", transmission_time=1.0, propagation_time=1.0,
            hop_index=1,
        ),
    ]
    state = resolve(timeline, 0.0)

    assert state.phase == Phase.QUEUING
    assert state.progress == 1.0


def test_zero_propagation_hop():
    """Test a hop with no distance goes straight to full leading edge."""
    path = Path(
        nodes=[Node("A"), Node("B")],
        hops=[Hop(bandwidth=1e6, processing_delay=1.0)],
        packet_size=1000,
    )
    state = resolve(build_segments(path), 8.0)

    # last_bit_end == 8.0, so the segment and the processing window both contain it
    assert state.phase == Phase.PROPAGATING
    assert state.leading_edge == 1.0
    assert state.trailing_edge == 1.0


def test_empty_timeline_is_delivered():
    """Test an empty timeline has nothing left to do."""
    state = resolve([], 0.0)
    assert state.phase == Phase.DELIVERED
    assert state.hop_index == 0
