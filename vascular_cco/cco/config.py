"""
Configuration for constrained constructive optimization runs.
"""

import numbers
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from ..core.errors import ConfigurationError


@dataclass
class CCOConfig:
    """
    Parameters of a CCO growth run.

    Defaults follow Karch et al. (1999): blood viscosity 3.6 cP, perfusion
    pressure 100 mmHg, terminal pressure 63 mmHg, perfusion flow 500 ml/min.
    All values are SI.
    """

    number_of_terminals: int = 100
    number_of_connections: int = 20
    maximum_number_of_attempts: int = 10
    radius_exponent: float = 3.0
    length_exponent: float = 1.0

    root_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    root_radius: Optional[float] = None  # meters; None derives it from the pressure drop
    perfusion_flow: float = 8.33e-6  # m^3/s
    perfusion_pressure: float = 1.33e4  # Pa
    terminal_pressure: float = 8.38e3  # Pa
    viscosity: float = 3.6e-3  # Pa*s

    clearance_factor: float = 0.25
    bifurcation_clearance_factor: float = 0.5
    grid_resolution: int = 4
    minimum_segment_length: float = 0.0  # meters
    seed: Optional[int] = None

    def __post_init__(self):
        self.root_position = tuple(float(c) for c in self.root_position)

    def validate(self) -> None:
        """
        Check parameter ranges.

        Raises
        ------
        ConfigurationError
            On the first invalid parameter.
        """
        validate_growth_parameters(
            self.number_of_terminals,
            self.number_of_connections,
            self.maximum_number_of_attempts,
            self.radius_exponent,
            self.length_exponent,
        )
        if len(self.root_position) != 3:
            raise ConfigurationError(
                f"root_position must have 3 coordinates, got {len(self.root_position)}"
            )
        if self.root_radius is not None and self.root_radius <= 0:
            raise ConfigurationError(f"root_radius ({self.root_radius}) must be positive")
        if self.perfusion_flow <= 0:
            raise ConfigurationError(f"perfusion_flow ({self.perfusion_flow}) must be positive")
        if self.viscosity <= 0:
            raise ConfigurationError(f"viscosity ({self.viscosity}) must be positive")
        if self.root_radius is None and self.perfusion_pressure <= self.terminal_pressure:
            raise ConfigurationError(
                f"perfusion_pressure ({self.perfusion_pressure}) must exceed "
                f"terminal_pressure ({self.terminal_pressure})"
            )
        if self.clearance_factor < 0 or self.bifurcation_clearance_factor < 0:
            raise ConfigurationError("clearance factors must be non-negative")
        if self.grid_resolution < 1:
            raise ConfigurationError(f"grid_resolution ({self.grid_resolution}) must be at least 1")
        if self.minimum_segment_length < 0:
            raise ConfigurationError(
                f"minimum_segment_length ({self.minimum_segment_length}) must be non-negative"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["root_position"] = list(self.root_position)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CCOConfig":
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


def validate_growth_parameters(
    number_of_terminals: int,
    number_of_connections: int,
    maximum_number_of_attempts: int,
    radius_exponent: float,
    length_exponent: float,
) -> None:
    """Raise ConfigurationError for invalid driver parameters."""
    for name, value in (
        ("number_of_terminals", number_of_terminals),
        ("number_of_connections", number_of_connections),
        ("maximum_number_of_attempts", maximum_number_of_attempts),
    ):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ConfigurationError(f"{name} ({value}) must be positive")
    if not radius_exponent > 0:
        raise ConfigurationError(f"radius_exponent ({radius_exponent}) must be positive")
    if not length_exponent >= 0:
        raise ConfigurationError(f"length_exponent ({length_exponent}) must be non-negative")
