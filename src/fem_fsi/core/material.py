from dataclasses import dataclass

from fem_fsi.core.exceptions import ConfigurationError


@dataclass
class IsotropicMaterial:
    """
    Class representing an isotropic linear elastic solid.

    Parameters
    ----------
    name : str
        The name of the material.
    E : float
        Young's Modulus of the material.
    nu : float
        Poisson's ratio of the material.
    rho : float
        Density of the material.
    """

    name: str
    E: float
    nu: float
    rho: float

    def __post_init__(self):
        if self.E <= 0 or self.rho <= 0:
            raise ConfigurationError(f"Material '{self.name}': E and rho must be positive")
        if not -1.0 < self.nu < 0.5:
            raise ConfigurationError(f"Material '{self.name}': nu must lie in (-1, 0.5)")

    @property
    def lame_parameters(self):
        """Lamé coefficients (lambda, mu)."""
        lambd = self.E * self.nu / ((1 + self.nu) * (1 - 2 * self.nu))
        mu = self.E / (2 * (1 + self.nu))
        return lambd, mu


@dataclass
class FluidMaterial:
    """
    Newtonian fluid properties.

    Parameters
    ----------
    viscosity : float
        Dynamic viscosity.
    density : float
        Density.
    """

    viscosity: float
    density: float

    def __post_init__(self):
        if self.viscosity < 0 or self.density <= 0:
            raise ConfigurationError(
                f"Fluid viscosity must be non-negative and density positive: "
                f"{self.viscosity}, {self.density}"
            )
