"""Terminal flow assignment policies."""

from ..core.types import Point3D
from .interfaces import TerminalFlowFunction


class ConstantTerminalFlow(TerminalFlowFunction):
    """Every terminal receives the same flow (m^3/s)."""

    def __init__(self, flow: float):
        if flow <= 0:
            raise ValueError(f"flow ({flow}) must be positive")
        self.flow = float(flow)

    def flow_for(self, terminal_index: int, position: Point3D) -> float:
        return self.flow


class UniformTerminalFlow(TerminalFlowFunction):
    """
    Split a total perfusion flow evenly over a planned number of terminals.

    Parameters
    ----------
    perfusion_flow : float
        Flow through the root once the tree is complete (m^3/s).
    number_of_terminals : int
        Planned number of terminals, including the one created with the root.
    """

    def __init__(self, perfusion_flow: float, number_of_terminals: int):
        if perfusion_flow <= 0:
            raise ValueError(f"perfusion_flow ({perfusion_flow}) must be positive")
        if number_of_terminals < 1:
            raise ValueError(f"number_of_terminals ({number_of_terminals}) must be at least 1")
        self.perfusion_flow = float(perfusion_flow)
        self.number_of_terminals = int(number_of_terminals)

    def flow_for(self, terminal_index: int, position: Point3D) -> float:
        return self.perfusion_flow / self.number_of_terminals
