#!/usr/bin/env python3
"""
test_run_scenario.py - Integration tests for scenario execution

Runs the bundled YAML scenarios end to end through the command-line entry
point: load, print the breakdown, step the tracker and export metrics.
"""

import csv
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from latsim.harness.run_scenario import main, parse_args

SCENARIO_DIR = project_root / "scenarios"


def read_metrics(csv_path):
    with open(csv_path, newline='') as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    return rows[0]


@pytest.mark.parametrize("name", ["simple", "wan", "satellite", "home_internet"])
def test_dry_run(name, capsys):
    """Test every bundled scenario validates and prints its breakdown."""
    exit_code = main([str(SCENARIO_DIR / f"{name}.yaml"), "--dry-run"])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "One-way delay" in output
    assert "Round-trip time" in output
    assert "Scenario validation PASSED" in output
    assert "Executing Scenario" not in output


@pytest.mark.parametrize("name", ["simple", "wan", "satellite", "home_internet"])
def test_full_run(name, tmp_path):
    """Test every bundled scenario runs to the end of its window."""
    csv_path = tmp_path / f"{name}.csv"
    exit_code = main([str(SCENARIO_DIR / f"{name}.yaml"), "--step", "5", "--metrics-csv", str(csv_path)])

    assert exit_code == 0
    row = read_metrics(csv_path)
    assert int(row['packets_sent']) >= 1
    assert int(row['packets_delivered']) >= 1


def test_single_packet_run(tmp_path, capsys):
    """Test the simple scenario sends and delivers exactly one packet."""
    csv_path = tmp_path / "simple.csv"
    exit_code = main([str(SCENARIO_DIR / "simple.yaml"), "--metrics-csv", str(csv_path)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Packets delivered: 1" in out
    assert "Peak tracked packets: 1" in out

    row = read_metrics(csv_path)
    assert row['packets_sent'] == '1'
    assert row['packets_delivered'] == '1'
    assert float(row['journey_time_ms']) == pytest.approx(1.341)


def test_command_line_overrides(tmp_path):
    """Test send policy overrides from the command line."""
    csv_path = tmp_path / "interval.csv"
    exit_code = main([
        str(SCENARIO_DIR / "simple.yaml"),
        "--mode", "interval",
        "--interval", "0.5",
        "--max-time", "10",
        "--step", "0.25",
        "--speed", "2",
        "--metrics-csv", str(csv_path),
    ])

    assert exit_code == 0
    row = read_metrics(csv_path)
    assert row['packets_sent'] == '21'
    assert row['packets_limited'] == '0'


def test_packet_limit_run(tmp_path):
    """Test the packet limit from the engine section caps concurrent packets."""
    csv_path = tmp_path / "burst.csv"
    exit_code = main([
        str(SCENARIO_DIR / "home_internet.yaml"),
        "--interval", "1",
        "--burst-size", "5",
        "--max-time", "20",
        "--metrics-csv", str(csv_path),
    ])

    assert exit_code == 0
    assert int(read_metrics(csv_path)['packets_limited']) > 0


def test_manual_mode_sends_one_packet(tmp_path):
    """Test manual mode runs with a single packet injected at t=0."""
    csv_path = tmp_path / "manual.csv"
    exit_code = main([str(SCENARIO_DIR / "simple.yaml"), "--mode", "manual", "--metrics-csv", str(csv_path)])

    assert exit_code == 0
    assert read_metrics(csv_path)['packets_sent'] == '1'


def test_missing_file(tmp_path):
    """Test a missing scenario file fails cleanly."""
    assert main([str(tmp_path / "missing.yaml")]) == 1


def test_invalid_scenario(tmp_path, capsys):
    """Test configuration errors are reported with exit code 1."""
    yaml_path = tmp_path / "broken.yaml"
    yaml_path.write_text("nodes:\n  - A\n  - B\n  - C\nhops:\n  - bandwidth: 1e6\n")

    assert main([str(yaml_path)]) == 1
    assert "Invalid scenario configuration" in capsys.readouterr().err


def test_non_positive_step():
    """Test the frame length must be positive."""
    assert main([str(SCENARIO_DIR / "simple.yaml"), "--step", "0"]) == 1


def test_parse_args_defaults():
    """Test argument defaults leave scenario settings in charge."""
    args = parse_args(["scenario.yaml"])

    assert args.config == Path("scenario.yaml")
    assert args.mode is None
    assert args.interval is None
    assert args.step == 1.0
    assert not args.dry_run
