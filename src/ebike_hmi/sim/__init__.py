"""
eBike HMI Simulation Mode

Provides a simulated display for testing and demonstration.
"""

from ebike_hmi.sim.mock_display import MockDisplay, SimulationConfig

__all__ = [
    "MockDisplay",
    "SimulationConfig",
]
