"""
latsim.metrics - Run statistics

Packet counts and latency statistics collected by the tracker.
"""

from .tracker_metrics import TrackerMetrics

__all__ = ['TrackerMetrics']
