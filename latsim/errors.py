"""
errors.py - Exception types for latsim

Structural input problems are raised to the caller immediately.
Numeric edge cases (degenerate hops, out-of-range seeks) are never raised;
the engine clamps them so a scenario stays animatable.
"""


class LatencySimError(Exception):
    """Base class for all latsim errors."""
    pass


class InvalidPathError(LatencySimError, ValueError):
    """Raised when a path cannot be turned into a journey timeline."""
    pass


class ScenarioError(LatencySimError, ValueError):
    """Raised when a scenario file is structurally invalid."""
    pass
