"""
tracker_metrics.py - Tracker Metrics

Run statistics of a SimulationTracker at its current time.

DESIGN PHILOSOPHY:
- Derived, not accumulated: the tracker rebuilds the record on every call,
  so seeking backwards rolls the statistics back too
- Flat record: one CSV row per export
"""

import csv
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class TrackerMetrics:
    """
    Packet statistics up to simulated time `time_ms`.

    Attributes:
        time_ms: Simulated time the statistics refer to
        packets_sent: Spawns accepted so far
        packets_delivered: Sent packets whose last bit has been processed
        packets_limited: Spawns skipped because max_packets were tracked
        packets_in_flight: Sent but not yet delivered
        packets_tracked: Packets currently in the arena (in flight or
            delivered within the grace window)
        peak_tracked_packets: Largest arena size seen at any spawn so far
        journey_time_ms: One-way latency every packet experiences
    """
    time_ms: float = 0.0
    packets_sent: int = 0
    packets_delivered: int = 0
    packets_limited: int = 0
    packets_in_flight: int = 0
    packets_tracked: int = 0
    peak_tracked_packets: int = 0
    journey_time_ms: float = 0.0

    def delivery_ratio(self) -> float:
        """Share of sent packets already delivered (0.0 before the first send)."""
        if self.packets_sent == 0:
            return 0.0
        return self.packets_delivered / self.packets_sent

    def limit_ratio(self) -> float:
        """Share of attempted spawns skipped at the packet limit."""
        attempted = self.packets_sent + self.packets_limited
        if attempted == 0:
            return 0.0
        return self.packets_limited / attempted

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row['delivery_ratio'] = self.delivery_ratio()
        row['limit_ratio'] = self.limit_ratio()
        return row

    def export_csv(self, csv_path: str) -> str:
        """
        Write the metrics as a one-row CSV file.

        Args:
            csv_path: Destination file (parent directories are created)

        Returns:
            Path to created CSV file
        """
        output_path = Path(csv_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        row = self.to_row()
        with open(output_path, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=list(row.keys()))
            writer.writeheader()
            writer.writerow(row)

        return str(output_path)
