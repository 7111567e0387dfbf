"""
scenario.py - YAML Scenario Parser

Parses latency scenarios (a path plus optional simulation and engine
settings) from YAML configuration files.

Design philosophy:
- Keep it simple: minimal validation, no schema framework
- Fail fast: raise clear exceptions on errors
- No magic: explicit field names, no dynamic configuration

Example YAML:
    name: Simple 2-Hop Network
    packet_size: 1500

    nodes:
      - Source:Host
      - {name: Router, type: router}
      - Destination:Host

    hops:
      - bandwidth: 100e6        # bps
        distance: 100           # meters
        propagation_speed: 2e8  # m/s
        processing_delay: 0.5   # ms
      - bandwidth: 100e6
        distance: 100
        medium: fiber
        utilization: 0.3
        processing_tier: medium
        current_load: 0.4

    simulation:  # Optional
      send_mode: interval
      interval_ms: 10
      burst_size: 3
      max_time_ms: 100

    engine:  # Optional EngineConfig overrides
      max_packets: 20
"""

import yaml
from dataclasses import dataclass, field, fields
from pathlib import Path as FilePath
from typing import Any, Dict, List, Optional

from latsim.config.engine import EngineConfig
from latsim.errors import ScenarioError
from latsim.network.path import Hop, Medium, Node, Path, ProcessingTier

HOP_FIELDS = (
    'name', 'bandwidth', 'distance', 'medium', 'propagation_speed',
    'processing_delay', 'queuing_delay', 'utilization',
    'processing_tier', 'current_load', 'processing_time_base',
)

# Spellings accepted for media in scenario files
MEDIUM_ALIASES = {
    'wifi': Medium.WIRELESS,
    'radio': Medium.WIRELESS,
}


@dataclass
class SimulationConfig:
    """
    Tracker settings for a scenario.

    Attributes:
        send_mode: "single", "interval", "burst" or "manual"
        interval_ms: Spawn interval for interval and burst modes
        burst_size: Packets per burst
        max_time_ms: Window length (None: derived from the journey time)
    """
    send_mode: str = "single"
    interval_ms: float = 10.0
    burst_size: int = 3
    max_time_ms: Optional[float] = None

    def __post_init__(self):
        """Validate simulation configuration."""
        if self.send_mode not in ("single", "interval", "burst", "manual"):
            raise ScenarioError(
                f"simulation.send_mode must be single, interval, burst or manual, got '{self.send_mode}'"
            )

        if self.interval_ms <= 0:
            raise ScenarioError(f"simulation.interval_ms must be positive, got {self.interval_ms}")

        if self.burst_size < 1:
            raise ScenarioError(f"simulation.burst_size must be at least 1, got {self.burst_size}")

        if self.max_time_ms is not None and self.max_time_ms < 0:
            raise ScenarioError(f"simulation.max_time_ms must be non-negative, got {self.max_time_ms}")


@dataclass
class Scenario:
    """
    Latency scenario.

    Attributes:
        path: Nodes, hops and packet size
        description: Free text shown by front ends
        simulation: Tracker settings
        engine: Engine tuning
    """
    path: Path
    description: str = ""
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)

    @property
    def name(self) -> str:
        return self.path.name


def _number(value: Any, where: str) -> float:
    """Coerce YAML scalars such as 100e6 (read as a string) to float."""
    if isinstance(value, bool):
        raise ScenarioError(f"{where}: expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ScenarioError(f"{where}: expected a number, got {value!r}")


def _parse_node(node: Any, i: int) -> Node:
    if isinstance(node, str):
        name, _, node_type = node.partition(':')
        if not name.strip():
            raise ScenarioError(f"Node {i}: empty name in '{node}'")
        return Node(name=name.strip(), type=node_type.strip().lower() or "router")

    if not isinstance(node, dict):
        raise ScenarioError(f"Node {i} must be a dict or 'Name:Type' string, got {type(node)}")

    if 'name' not in node:
        raise ScenarioError(f"Node {i}: Missing required field 'name'")

    return Node(name=str(node['name']), type=str(node.get('type', 'router')).lower())


def _parse_medium(value: Any, where: str) -> Medium:
    key = str(value).strip().lower()
    if key in MEDIUM_ALIASES:
        return MEDIUM_ALIASES[key]
    try:
        return Medium(key)
    except ValueError:
        choices = ', '.join(m.value for m in Medium)
        raise ScenarioError(f"{where}: medium must be one of {choices}, got '{value}'")


def _parse_tier(value: Any, where: str) -> ProcessingTier:
    try:
        return ProcessingTier(str(value).strip().lower())
    except ValueError:
        raise ScenarioError(f"{where}: processing_tier must be low, medium or high, got '{value}'")


def _parse_hop(hop: Any, i: int) -> Hop:
    if not isinstance(hop, dict):
        raise ScenarioError(f"Hop {i} must be a dict, got {type(hop)}")

    unknown = set(hop) - set(HOP_FIELDS)
    if unknown:
        raise ScenarioError(f"Hop {i}: unknown fields {sorted(unknown)}")

    where = f"Hop {i}"
    kwargs: Dict[str, Any] = {}
    for key in ('bandwidth', 'distance', 'propagation_speed', 'processing_delay',
                'queuing_delay', 'utilization', 'processing_time_base'):
        if hop.get(key) is not None:
            kwargs[key] = _number(hop[key], f"{where}.{key}")

    if hop.get('current_load') is not None:
        kwargs['current_load'] = _number(hop['current_load'], f"{where}.current_load")

    if hop.get('medium') is not None:
        kwargs['medium'] = _parse_medium(hop['medium'], where)

    if hop.get('processing_tier') is not None:
        kwargs['processing_tier'] = _parse_tier(hop['processing_tier'], where)

    if hop.get('name') is not None:
        kwargs['name'] = str(hop['name'])

    return Hop(**kwargs)


def _parse_engine(engine: Any) -> EngineConfig:
    if engine is None:
        return EngineConfig()
    if not isinstance(engine, dict):
        raise ScenarioError("'engine' section must be a dict")

    known = {f.name: f for f in fields(EngineConfig)}
    unknown = set(engine) - set(known)
    if unknown:
        raise ScenarioError(f"engine: unknown fields {sorted(unknown)}")

    defaults = EngineConfig()
    overrides: Dict[str, Any] = {}
    for key, value in engine.items():
        current = getattr(defaults, key)
        if isinstance(current, dict):
            if not isinstance(value, dict):
                raise ScenarioError(f"engine.{key} must be a dict")
            merged = dict(current)
            merged.update({str(k): _number(v, f"engine.{key}.{k}") for k, v in value.items()})
            overrides[key] = merged
        elif isinstance(current, tuple):
            if not isinstance(value, list):
                raise ScenarioError(f"engine.{key} must be a list")
            overrides[key] = tuple(str(v) for v in value)
        elif isinstance(current, int) and not isinstance(current, bool):
            overrides[key] = int(_number(value, f"engine.{key}"))
        else:
            overrides[key] = _number(value, f"engine.{key}")

    try:
        return EngineConfig(**overrides)
    except ValueError as e:
        raise ScenarioError(f"engine: {e}")


def _parse_simulation(sim: Any) -> SimulationConfig:
    if sim is None:
        return SimulationConfig()
    if not isinstance(sim, dict):
        raise ScenarioError("'simulation' section must be a dict")

    max_time = sim.get('max_time_ms')
    return SimulationConfig(
        send_mode=str(sim.get('send_mode', 'single')),
        interval_ms=_number(sim.get('interval_ms', 10.0), "simulation.interval_ms"),
        burst_size=int(_number(sim.get('burst_size', 3), "simulation.burst_size")),
        max_time_ms=None if max_time is None else _number(max_time, "simulation.max_time_ms"),
    )


def parse_scenario(data: Any) -> Scenario:
    """
    Build a Scenario from already-loaded YAML data.

    Raises:
        ScenarioError: If required sections or fields are missing or invalid
        InvalidPathError: If nodes and hops do not form a valid path
    """
    if not isinstance(data, dict):
        raise ScenarioError(f"Scenario must be a dict, got {type(data)}")

    for section in ('nodes', 'hops'):
        if section not in data:
            raise ScenarioError(f"Missing required section: '{section}'")
        if not isinstance(data[section], list):
            raise ScenarioError(f"'{section}' section must be a list")

    nodes: List[Node] = [_parse_node(node, i) for i, node in enumerate(data['nodes'])]
    hops: List[Hop] = [_parse_hop(hop, i) for i, hop in enumerate(data['hops'])]

    packet_size = data.get('packet_size', 1500)
    path = Path(
        nodes=nodes,
        hops=hops,
        packet_size=int(_number(packet_size, "packet_size")),
        name=str(data.get('name', '')),
    )
    path.validate()

    return Scenario(
        path=path,
        description=str(data.get('description', '')),
        simulation=_parse_simulation(data.get('simulation')),
        engine=_parse_engine(data.get('engine')),
    )


def load_scenario(yaml_path: str) -> Scenario:
    """
    Load scenario from YAML file.

    Args:
        yaml_path: Path to YAML scenario file

    Returns:
        Scenario object with parsed configuration

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ScenarioError: If required fields are missing or invalid
        InvalidPathError: If nodes and hops do not form a valid path
        yaml.YAMLError: If YAML syntax is invalid
    """
    path = FilePath(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {yaml_path}")

    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML syntax in {yaml_path}: {e}")

    return parse_scenario(data)
