"""Transport module: Beam sampling, event loop and parallel runs."""

from reactmc.transport.engine import SimulationEngine, estimate_geometric_efficiency

__all__ = ["SimulationEngine", "estimate_geometric_efficiency"]
