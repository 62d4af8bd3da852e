"""
Simulation parameters.

Parameters are read once, before any solver or driver is built, either from a
YAML document or from a deal.II style parameter file (``.prm``)::

    subsection Simulation
      set Dimension = 2
      set End time = 0.1
      set Time step size = 0.01
    end

Example YAML configuration:
    simulation:
      dimension: 2
      global_refinement: 1
      end_time: 0.1
      time_step: 0.01
      output_interval: 0.02

    fluid:
      viscosity: 1.0
      density: 1.0
      penalty_factor: 1.0e4
      mesh:
        generator: SquareShapeMesh
        width: 1.0
        height: 1.0
        nx: 8
        ny: 8
      velocity_bcs:
        - boundary_id: 3
          value: [1.0, 0.0]

    solid:
      E: 1.0e4
      nu: 0.3
      rho: 1.0
      dirichlet_boundary_ids: []
      mesh:
        generator: DiskMesh
        center: [0.5, 0.5]
        radius: 0.2
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from fem_fsi.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class MeshGeneratorType(str, Enum):
    """Available mesh generators."""

    SQUARE = "SquareShapeMesh"
    DISK = "DiskMesh"
    BOX = "BoxMesh"


class InterpolationFallback(str, Enum):
    """What to do when a transfer point cannot be located in the other mesh.

    ZERO stores a zero value for the point. RAISE raises
    :class:`GeometricQueryFailure`.
    """

    ZERO = "zero"
    RAISE = "raise"


# =============================================================================
# deal.II style parameter files
# =============================================================================

_SUBSECTION = re.compile(r"^subsection\s+(.+)$", re.IGNORECASE)
_SET = re.compile(r"^set\s+([^=]+?)\s*=\s*(.*)$", re.IGNORECASE)


def parse_prm(text: str) -> Dict[str, Any]:
    """
    Parse deal.II parameter-file text into nested dictionaries.

    Subsection and entry names are kept as written; values stay strings.

    Raises
    ------
    ConfigurationError
        On unbalanced ``subsection``/``end`` pairs or unknown statements.
    """
    root: Dict[str, Any] = {}
    stack = [root]
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        match = _SUBSECTION.match(line)
        if match:
            section = stack[-1].setdefault(match.group(1).strip(), {})
            if not isinstance(section, dict):
                raise ConfigurationError(f"line {lineno}: '{match.group(1)}' is not a subsection")
            stack.append(section)
            continue
        if line.lower() == "end":
            if len(stack) == 1:
                raise ConfigurationError(f"line {lineno}: 'end' without subsection")
            stack.pop()
            continue
        match = _SET.match(line)
        if match:
            stack[-1][match.group(1).strip()] = match.group(2).strip()
            continue
        raise ConfigurationError(f"line {lineno}: cannot parse '{raw.strip()}'")
    if len(stack) != 1:
        raise ConfigurationError("Unterminated subsection at end of parameter file")
    return root


def _key(name: str) -> str:
    return re.sub(r"[^0-9a-z]+", "_", name.strip().lower()).strip("_")


def _value(text: str) -> Any:
    """Convert a parameter-file string to a number, bool, list or string."""
    text = text.strip()
    if "," in text:
        return [_value(part) for part in text.split(",") if part.strip()]
    lowered = text.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered in ("free", "none", "*"):
        return None
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            pass
    return text


def _as_list(value: Any) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def prm_to_dict(sections: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map parsed ``.prm`` sections to the YAML document layout.

    Recognized subsections: ``Simulation``, ``Fluid``, ``Fluid mesh``,
    ``Fluid Dirichlet BCs`` (``set Boundary <id> = <v0>, <v1>``, ``free``
    leaves a component unconstrained), ``Solid``, ``Solid mesh`` and
    ``Solid Dirichlet BCs`` (``set Dirichlet boundary ids = ...``).
    """
    normalized = {_key(name): content for name, content in sections.items()}

    def entries(section: str) -> Dict[str, Any]:
        content = normalized.get(section, {})
        if not isinstance(content, dict):
            raise ConfigurationError(f"'{section}' must be a subsection")
        return {_key(k): _value(v) for k, v in content.items() if not isinstance(v, dict)}

    simulation = entries("simulation")
    if "time_step_size" in simulation:
        simulation["time_step"] = simulation.pop("time_step_size")

    fluid = entries("fluid")
    for alias, name in (("dynamic_viscosity", "viscosity"), ("fluid_density", "density")):
        if alias in fluid:
            fluid[name] = fluid.pop(alias)
    fluid["mesh"] = entries("fluid_mesh")
    bcs = []
    for name, value in entries("fluid_dirichlet_bcs").items():
        match = re.match(r"boundary_(\d+)$", name)
        if not match:
            raise ConfigurationError(f"Unknown fluid boundary entry '{name}'")
        bcs.append({"boundary_id": int(match.group(1)), "value": _as_list(value)})
    fluid["velocity_bcs"] = bcs

    solid = entries("solid")
    for alias, name in (
        ("young_s_modulus", "E"),
        ("youngs_modulus", "E"),
        ("e", "E"),
        ("poisson_s_ratio", "nu"),
        ("poissons_ratio", "nu"),
        ("solid_density", "rho"),
    ):
        if alias in solid:
            solid[name] = solid.pop(alias)
    solid["mesh"] = entries("solid_mesh")
    solid_bcs = entries("solid_dirichlet_bcs")
    solid["dirichlet_boundary_ids"] = _as_list(solid_bcs.get("dirichlet_boundary_ids"))

    return {"simulation": simulation, "fluid": fluid, "solid": solid}


# =============================================================================
# Configuration Data Classes
# =============================================================================


@dataclass
class MeshConfig:
    """Mesh source: a generator with its parameters, or a mesh file."""

    generator: Optional[str] = None
    file: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if (self.generator is None) == (self.file is None):
            raise ConfigurationError("Mesh needs exactly one of 'generator' or 'file'")
        if self.generator is not None:
            valid = [g.value for g in MeshGeneratorType]
            if self.generator not in valid:
                raise ConfigurationError(
                    f"Unknown mesh generator '{self.generator}'. Valid: {valid}"
                )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_path: Optional[Path] = None) -> "MeshConfig":
        data = dict(data or {})
        generator = data.pop("generator", None)
        file = data.pop("file", None)
        if file is not None and base_path is not None and not Path(file).is_absolute():
            file = str(base_path / file)
        return cls(generator=generator, file=file, params=data)

    def create(self, name: str):
        """Build the mesh.

        Raises
        ------
        ConfigurationError
            If the generator parameters are invalid.
        """
        from fem_fsi.core.mesh import BoxMesh, DiskMesh, MeshModel, SquareShapeMesh

        if self.file is not None:
            mesh = MeshModel.load(self.file)
            mesh.name = name
            return mesh

        generators = {
            MeshGeneratorType.SQUARE.value: SquareShapeMesh,
            MeshGeneratorType.DISK.value: DiskMesh,
            MeshGeneratorType.BOX.value: BoxMesh,
        }
        try:
            return generators[self.generator](**self.params).generate(name)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid {self.generator} parameters: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        if self.file is not None:
            return {"file": self.file}
        return {"generator": self.generator, **self.params}


@dataclass
class SimulationConfig:
    """Global simulation and time parameters."""

    dimension: int
    end_time: float
    time_step: float
    global_refinement: int = 0
    output_interval: float = 0.0
    refinement_interval: float = 0.0
    output_folder: Optional[str] = None
    interpolation_fallback: str = InterpolationFallback.ZERO.value

    def __post_init__(self):
        if self.dimension not in (2, 3):
            raise ConfigurationError(f"Dimension must be 2 or 3: {self.dimension}")
        if self.time_step <= 0:
            raise ConfigurationError(f"time_step must be positive: {self.time_step}")
        if self.end_time < 0:
            raise ConfigurationError(f"end_time must be non-negative: {self.end_time}")
        if self.global_refinement < 0:
            raise ConfigurationError(
                f"global_refinement must be non-negative: {self.global_refinement}"
            )
        if self.output_interval < 0 or self.refinement_interval < 0:
            raise ConfigurationError("Output and refinement intervals must be non-negative")
        valid = [p.value for p in InterpolationFallback]
        if self.interpolation_fallback not in valid:
            raise ConfigurationError(
                f"Invalid interpolation fallback '{self.interpolation_fallback}'. Valid: {valid}"
            )


@dataclass
class VelocityBCConfig:
    """Constant fluid velocity on one boundary; None components are free."""

    boundary_id: int
    value: List[Optional[float]]


@dataclass
class FluidConfig:
    """Fluid material, solver and mesh parameters."""

    viscosity: float
    density: float
    mesh: MeshConfig
    penalty_factor: float = 1.0e4
    velocity_bcs: List[VelocityBCConfig] = field(default_factory=list)

    def __post_init__(self):
        if self.viscosity < 0:
            raise ConfigurationError(f"Viscosity must be non-negative: {self.viscosity}")
        if self.density <= 0:
            raise ConfigurationError(f"Fluid density must be positive: {self.density}")
        if self.penalty_factor <= 0:
            raise ConfigurationError(f"Penalty factor must be positive: {self.penalty_factor}")


@dataclass
class NewmarkConfig:
    """Newmark-β integration parameters."""

    beta: float = 0.25
    gamma: float = 0.5

    def __post_init__(self):
        if self.beta <= 0 or self.gamma <= 0:
            raise ConfigurationError(f"Newmark beta and gamma must be positive: {self}")


@dataclass
class SolidConfig:
    """Solid material, integration and mesh parameters."""

    E: float
    nu: float
    rho: float
    mesh: MeshConfig
    newmark: NewmarkConfig = field(default_factory=NewmarkConfig)
    dirichlet_boundary_ids: List[int] = field(default_factory=list)

    def __post_init__(self):
        if self.E <= 0:
            raise ConfigurationError(f"Young's modulus must be positive: {self.E}")
        if not -1 < self.nu < 0.5:
            raise ConfigurationError(f"Poisson's ratio must be in (-1, 0.5): {self.nu}")
        if self.rho <= 0:
            raise ConfigurationError(f"Density must be positive: {self.rho}")


def _require(data: Dict[str, Any], key: str, section: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigurationError(f"Missing '{key}' in '{section}'")
    return data[key]


@dataclass
class Parameters:
    """Complete coupled simulation configuration."""

    simulation: SimulationConfig
    fluid: FluidConfig
    solid: SolidConfig

    # -------------------------------------------------------------------------
    # Flat accessors
    # -------------------------------------------------------------------------

    @property
    def dimension(self) -> int:
        return self.simulation.dimension

    @property
    def end_time(self) -> float:
        return self.simulation.end_time

    @property
    def time_step(self) -> float:
        return self.simulation.time_step

    @property
    def output_interval(self) -> float:
        return self.simulation.output_interval

    @property
    def refinement_interval(self) -> float:
        return self.simulation.refinement_interval

    @property
    def global_refinement(self) -> int:
        return self.simulation.global_refinement

    @property
    def viscosity(self) -> float:
        return self.fluid.viscosity

    @property
    def solid_dirichlet_bcs(self) -> List[int]:
        return list(self.solid.dirichlet_boundary_ids)

    @property
    def output_folder(self) -> Optional[str]:
        return self.simulation.output_folder

    @property
    def interpolation_fallback(self) -> str:
        return self.simulation.interpolation_fallback

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Parameters":
        """Load parameters from a ``.yaml``/``.yml`` or ``.prm`` file.

        Raises
        ------
        ConfigurationError
            If the file is missing, unreadable or holds invalid values.
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Parameter file not found: {path}")
        if path.suffix.lower() in (".yaml", ".yml"):
            return cls.from_yaml(path)
        if path.suffix.lower() == ".prm":
            return cls.from_prm(path)
        raise ConfigurationError(f"Unsupported parameter file type '{path.suffix}': {path}")

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "Parameters":
        yaml_path = Path(yaml_path)
        try:
            with open(yaml_path, "r") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Cannot read {yaml_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{yaml_path} does not contain a mapping")
        return cls.from_dict(data, base_path=yaml_path.parent)

    @classmethod
    def from_prm(cls, prm_path: Union[str, Path]) -> "Parameters":
        prm_path = Path(prm_path)
        try:
            text = prm_path.read_text()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read {prm_path}: {exc}") from exc
        return cls.from_dict(prm_to_dict(parse_prm(text)), base_path=prm_path.parent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_path: Optional[Path] = None) -> "Parameters":
        """Create configuration from dictionary.

        Raises
        ------
        ConfigurationError
            If a required value is missing or malformed.
        """
        try:
            sim_data = dict(data.get("simulation") or {})
            fluid_data = dict(data.get("fluid") or {})
            solid_data = dict(data.get("solid") or {})

            simulation = SimulationConfig(
                dimension=int(_require(sim_data, "dimension", "simulation")),
                end_time=float(_require(sim_data, "end_time", "simulation")),
                time_step=float(_require(sim_data, "time_step", "simulation")),
                global_refinement=int(sim_data.get("global_refinement", 0)),
                output_interval=float(sim_data.get("output_interval", 0.0)),
                refinement_interval=float(sim_data.get("refinement_interval", 0.0)),
                output_folder=sim_data.get("output_folder") or None,
                interpolation_fallback=str(
                    sim_data.get("interpolation_fallback", InterpolationFallback.ZERO.value)
                ).lower(),
            )

            fluid = FluidConfig(
                viscosity=float(_require(fluid_data, "viscosity", "fluid")),
                density=float(_require(fluid_data, "density", "fluid")),
                penalty_factor=float(fluid_data.get("penalty_factor", 1.0e4)),
                mesh=MeshConfig.from_dict(_require(fluid_data, "mesh", "fluid"), base_path),
                velocity_bcs=[
                    VelocityBCConfig(
                        boundary_id=int(bc["boundary_id"]),
                        value=[None if v is None else float(v) for v in _as_list(bc["value"])],
                    )
                    for bc in fluid_data.get("velocity_bcs") or []
                ],
            )

            newmark_data = solid_data.get("newmark") or {}
            solid = SolidConfig(
                E=float(_require(solid_data, "E", "solid")),
                nu=float(_require(solid_data, "nu", "solid")),
                rho=float(_require(solid_data, "rho", "solid")),
                mesh=MeshConfig.from_dict(_require(solid_data, "mesh", "solid"), base_path),
                newmark=NewmarkConfig(
                    beta=float(solid_data.get("beta", newmark_data.get("beta", 0.25))),
                    gamma=float(solid_data.get("gamma", newmark_data.get("gamma", 0.5))),
                ),
                dirichlet_boundary_ids=[
                    int(i) for i in _as_list(solid_data.get("dirichlet_boundary_ids"))
                ],
            )
        except (KeyError, TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid parameters: {exc}") from exc

        params = cls(simulation=simulation, fluid=fluid, solid=solid)
        for warning in params.validate():
            logger.warning(warning)
        return params

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        sim = self.simulation
        return {
            "simulation": {
                "dimension": sim.dimension,
                "global_refinement": sim.global_refinement,
                "end_time": sim.end_time,
                "time_step": sim.time_step,
                "output_interval": sim.output_interval,
                "refinement_interval": sim.refinement_interval,
                "output_folder": sim.output_folder,
                "interpolation_fallback": sim.interpolation_fallback,
            },
            "fluid": {
                "viscosity": self.fluid.viscosity,
                "density": self.fluid.density,
                "penalty_factor": self.fluid.penalty_factor,
                "mesh": self.fluid.mesh.to_dict(),
                "velocity_bcs": [
                    {"boundary_id": bc.boundary_id, "value": list(bc.value)}
                    for bc in self.fluid.velocity_bcs
                ],
            },
            "solid": {
                "E": self.solid.E,
                "nu": self.solid.nu,
                "rho": self.solid.rho,
                "newmark": {"beta": self.solid.newmark.beta, "gamma": self.solid.newmark.gamma},
                "dirichlet_boundary_ids": list(self.solid.dirichlet_boundary_ids),
                "mesh": self.solid.mesh.to_dict(),
            },
        }

    def save_yaml(self, yaml_path: Union[str, Path]) -> None:
        with open(yaml_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def template() -> Dict[str, Any]:
        """A complete example configuration: a disk immersed in a driven cavity."""
        return {
            "simulation": {
                "dimension": 2,
                "global_refinement": 0,
                "end_time": 0.05,
                "time_step": 0.01,
                "output_interval": 0.01,
                "refinement_interval": 0.0,
                "output_folder": "results",
                "interpolation_fallback": InterpolationFallback.ZERO.value,
            },
            "fluid": {
                "viscosity": 1.0,
                "density": 1.0,
                "penalty_factor": 1.0e4,
                "mesh": {
                    "generator": MeshGeneratorType.SQUARE.value,
                    "width": 1.0,
                    "height": 1.0,
                    "nx": 8,
                    "ny": 8,
                },
                "velocity_bcs": [
                    {"boundary_id": 0, "value": [0.0, 0.0]},
                    {"boundary_id": 1, "value": [0.0, 0.0]},
                    {"boundary_id": 2, "value": [0.0, 0.0]},
                    {"boundary_id": 3, "value": [1.0, 0.0]},
                ],
            },
            "solid": {
                "E": 1.0e4,
                "nu": 0.3,
                "rho": 1.0,
                "newmark": {"beta": 0.25, "gamma": 0.5},
                "dirichlet_boundary_ids": [],
                "mesh": {
                    "generator": MeshGeneratorType.DISK.value,
                    "center": [0.5, 0.5],
                    "radius": 0.2,
                    "divisions": 2,
                },
            },
        }

    def validate(self) -> List[str]:
        """Consistency checks that do not prevent a run.

        Returns
        -------
        list of str
            List of validation warnings (empty if all OK).
        """
        warnings = []
        dim = self.simulation.dimension
        for bc in self.fluid.velocity_bcs:
            if len(bc.value) != dim:
                raise ConfigurationError(
                    f"Velocity on boundary {bc.boundary_id} has {len(bc.value)} "
                    f"components, expected {dim}"
                )
        if self.simulation.refinement_interval > 0:
            warnings.append("refinement_interval is set but adaptive refinement is not performed")
        if self.simulation.output_interval > 0 and not self.simulation.output_folder:
            warnings.append("output_interval is set but no output_folder is configured")
        steps = self.simulation.end_time / self.simulation.time_step
        if abs(steps - round(steps)) > 1e-9 * max(steps, 1.0):
            warnings.append(
                f"end_time {self.simulation.end_time} is not a multiple of time_step "
                f"{self.simulation.time_step}: the clock stops at end_time but the "
                "solvers always advance by a full time_step"
            )
        return warnings

    def __str__(self) -> str:
        """Human-readable string representation."""
        sim = self.simulation
        lines = [
            "FSI Simulation Parameters",
            "=" * 40,
            f"Dimension: {sim.dimension}, global refinement: {sim.global_refinement}",
            f"  Time: 0 → {sim.end_time}s (dt={sim.time_step}s)",
            f"Fluid: mu={self.fluid.viscosity}, rho={self.fluid.density}, "
            f"penalty={self.fluid.penalty_factor}",
            f"  Mesh: {self.fluid.mesh.generator or self.fluid.mesh.file}",
            f"  Velocity BCs on boundaries {[bc.boundary_id for bc in self.fluid.velocity_bcs]}",
            f"Solid: E={self.solid.E}, nu={self.solid.nu}, rho={self.solid.rho}",
            f"  Mesh: {self.solid.mesh.generator or self.solid.mesh.file}",
            f"  Dirichlet boundaries {self.solid.dirichlet_boundary_ids}",
            f"Interpolation fallback: {sim.interpolation_fallback}",
        ]
        if sim.output_folder:
            lines.append(f"Output: {sim.output_folder} every {sim.output_interval}s")
        return "\n".join(lines)
