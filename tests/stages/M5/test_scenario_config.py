#!/usr/bin/env python3
"""
test_scenario_config.py - M5 Unit Tests for Scenario and Engine Configuration

Tests YAML scenario parsing and EngineConfig validation.
"""

import os
import sys
import tempfile
from pathlib import Path as FilePath

import pytest
import yaml

# Add project root to path
project_root = FilePath(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from latsim.config.engine import EngineConfig
from latsim.config.scenario import load_scenario, parse_scenario
from latsim.errors import InvalidPathError, ScenarioError
from latsim.network.delay_model import total_path_delay
from latsim.network.path import Medium, ProcessingTier

SCENARIO_DIR = project_root / "scenarios"


def write_yaml(content):
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(content)
        return f.name


def test_parse_valid_scenario():
    """Test parsing a complete, valid YAML scenario."""
    yaml_path = write_yaml("""
name: Test Network
description: Two hops
packet_size: 1000

nodes:
  - Client:Host
  - {name: Router, type: router}
  - name: Server

hops:
  - bandwidth: 100e6
    distance: 100
    propagation_speed: 2e8
    processing_delay: 0.5
  - bandwidth: 1e9
    distance: 5000
    medium: wifi
    utilization: 0.5
    processing_tier: HIGH
    current_load: 0.25

simulation:
  send_mode: burst
  interval_ms: 20
  burst_size: 4
  max_time_ms: 150

engine:
  max_packets: 8
  tier_multipliers:
    low: 4
""")

    try:
        scenario = load_scenario(yaml_path)

        assert scenario.name == "Test Network"
        assert scenario.description == "Two hops"

        path = scenario.path
        assert path.packet_size == 1000
        assert [n.name for n in path.nodes] == ["Client", "Router", "Server"]
        assert [n.type for n in path.nodes] == ["host", "router", "router"]

        first, second = path.hops
        assert first.bandwidth == 100e6
        assert first.processing_delay == 0.5
        assert second.medium is Medium.WIRELESS
        assert second.processing_tier is ProcessingTier.HIGH
        assert second.utilization == 0.5
        assert second.current_load == 0.25

        assert scenario.simulation.send_mode == "burst"
        assert scenario.simulation.interval_ms == 20.0
        assert scenario.simulation.burst_size == 4
        assert scenario.simulation.max_time_ms == 150.0

        assert scenario.engine.max_packets == 8
        assert scenario.engine.tier_multipliers == {"low": 4.0, "medium": 1.5, "high": 1.0}
    finally:
        os.unlink(yaml_path)


def test_defaults_for_optional_sections():
    """Test simulation and engine sections are optional."""
    scenario = parse_scenario({
        'nodes': ['A', 'B'],
        'hops': [{'bandwidth': 1e6}],
    })

    assert scenario.path.packet_size == 1500
    assert scenario.simulation.send_mode == "single"
    assert scenario.simulation.max_time_ms is None
    assert scenario.engine == EngineConfig()


@pytest.mark.parametrize("yaml_file", sorted(SCENARIO_DIR.glob("*.yaml")), ids=lambda p: p.stem)
def test_shipped_scenarios_load(yaml_file):
    """Test every bundled scenario parses and has a positive delay."""
    scenario = load_scenario(str(yaml_file))
    assert total_path_delay(scenario.path, scenario.engine).total > 0


def test_simple_scenario_delay():
    """Test the simple scenario's one-way delay."""
    scenario = load_scenario(str(SCENARIO_DIR / "simple.yaml"))
    assert total_path_delay(scenario.path).total == pytest.approx(1.341)


def test_satellite_scenario_dominated_by_propagation():
    """Test the satellite hop makes propagation the dominant component."""
    scenario = load_scenario(str(SCENARIO_DIR / "satellite.yaml"))
    delays = total_path_delay(scenario.path, scenario.engine)
    assert delays.dominant == "propagation"
    assert delays.breakdown.propagation > 238.0


def test_parse_missing_file():
    """Test error handling for non-existent file."""
    with pytest.raises(FileNotFoundError):
        load_scenario('nonexistent_scenario.yaml')


def test_parse_invalid_yaml():
    """Test error handling for malformed YAML."""
    yaml_path = write_yaml("nodes: [A, B\nhops: {")
    try:
        with pytest.raises(yaml.YAMLError):
            load_scenario(yaml_path)
    finally:
        os.unlink(yaml_path)


@pytest.mark.parametrize("data,message", [
    ([1, 2], "must be a dict"),
    ({'hops': [{'bandwidth': 1}]}, "nodes"),
    ({'nodes': ['A', 'B']}, "hops"),
    ({'nodes': 'A', 'hops': []}, "must be a list"),
    ({'nodes': ['A', 'B'], 'hops': [{'bandwidth': 1, 'colour': 'red'}]}, "unknown fields"),
    ({'nodes': ['A', 'B'], 'hops': [{'bandwidth': 'fast'}]}, "expected a number"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1, 'medium': 'carrier pigeon'}]}, "medium"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1, 'processing_tier': 'ultra'}]}, "processing_tier"),
    ({'nodes': [{'type': 'host'}, 'B'], 'hops': [{'distance': 1}]}, "name"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1}], 'simulation': {'send_mode': 'often'}}, "send_mode"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1}], 'simulation': {'interval_ms': 0}}, "interval_ms"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1}], 'engine': {'warp': 9}}, "unknown fields"),
    ({'nodes': ['A', 'B'], 'hops': [{'distance': 1}], 'engine': {'max_packets': 0}}, "max_packets"),
])
def test_invalid_scenarios(data, message):
    """Test configuration errors raise ScenarioError with a useful message."""
    with pytest.raises(ScenarioError, match=message):
        parse_scenario(data)


def test_structural_errors_raise_invalid_path():
    """Test node/hop count mismatches are reported as path errors."""
    with pytest.raises(InvalidPathError):
        parse_scenario({'nodes': ['A', 'B', 'C'], 'hops': [{'bandwidth': 1e6}]})

    with pytest.raises(InvalidPathError):
        parse_scenario({'nodes': ['A', 'B'], 'hops': [{'name': 'empty'}]})


def test_scenario_error_is_value_error():
    """Test ScenarioError can be caught as ValueError."""
    with pytest.raises(ValueError):
        parse_scenario({'nodes': ['A', 'B']})


@pytest.mark.parametrize("overrides", [
    {'max_packets': 0},
    {'delivered_grace_ms': -1.0},
    {'min_utilization': 0.5, 'max_utilization': 0.4},
    {'max_utilization': 1.0},
    {'min_playback_speed': 0.0},
    {'min_playback_speed': 3.0, 'max_playback_speed': 2.0},
    {'default_propagation_speed': 0.0},
    {'medium_speeds': {'fiber': -1.0}},
    {'tier_multipliers': {'low': 3.0}},
    {'packet_colors': ()},
])
def test_engine_config_validation(overrides):
    """Test invalid engine tuning is rejected at construction."""
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_engine_config_colors():
    """Test packet colors cycle through the palette."""
    config = EngineConfig(packet_colors=("red", "blue"))
    assert config.color_for(0) == "red"
    assert config.color_for(1) == "blue"
    assert config.color_for(4) == "red"
