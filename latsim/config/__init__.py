"""
latsim.config - Engine tuning and scenario configuration

Provides the EngineConfig record and YAML-based scenario parsing.
"""

from .engine import EngineConfig, DEFAULT_CONFIG
from .scenario import Scenario, SimulationConfig, load_scenario, parse_scenario

__all__ = ['EngineConfig', 'DEFAULT_CONFIG', 'Scenario', 'SimulationConfig',
           'load_scenario', 'parse_scenario']
