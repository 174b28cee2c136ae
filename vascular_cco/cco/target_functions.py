"""
Target functions minimized at each insertion.

All of them are instances of Karch's power-law family

    T = sum_i c * r_i ** lambda * l_i ** mu

with lambda = 2 (volume), 1 (surface) or 0 (length), and mu the length
exponent supplied by the driver.
"""

from typing import TYPE_CHECKING, Optional
import numpy as np

from .interfaces import TargetFunction

if TYPE_CHECKING:
    from ..core.tree import ArterialTree, BifurcationProposal


class PowerLawTargetFunction(TargetFunction):
    """
    Sum of ``coefficient * r**radius_power * l**length_exponent`` over all segments.

    Parameters
    ----------
    radius_power : float
        Exponent lambda applied to radii.
    coefficient : float
        Constant factor c.
    """

    def __init__(self, radius_power: float, coefficient: float = 1.0):
        if coefficient <= 0:
            raise ValueError(f"coefficient ({coefficient}) must be positive")
        self.radius_power = float(radius_power)
        self.coefficient = float(coefficient)

    def evaluate(
        self,
        tree: "ArterialTree",
        proposal: Optional["BifurcationProposal"] = None,
        length_exponent: float = 1.0,
    ) -> float:
        # Radii are root_radius * prod(beta), so the sum factors through the root.
        if proposal is not None:
            root_radius = proposal.root_radius
            total = proposal.weighted_length_sum(self.radius_power, length_exponent)
        elif tree.root is not None:
            root_radius = tree.root.radius
            total = tree.weighted_length_sum(self.radius_power, length_exponent)
        else:
            return 0.0
        return self.coefficient * root_radius ** self.radius_power * total

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(radius_power={self.radius_power}, "
            f"coefficient={self.coefficient})"
        )


class VolumeTargetFunction(PowerLawTargetFunction):
    """Total lumen volume, pi * r^2 * l (with l raised to the length exponent)."""

    def __init__(self):
        super().__init__(radius_power=2.0, coefficient=np.pi)


class SurfaceTargetFunction(PowerLawTargetFunction):
    """Total lateral surface, 2 * pi * r * l."""

    def __init__(self):
        super().__init__(radius_power=1.0, coefficient=2.0 * np.pi)


class LengthTargetFunction(PowerLawTargetFunction):
    """Total length."""

    def __init__(self):
        super().__init__(radius_power=0.0, coefficient=1.0)
