"""Configuration dataclasses for the physarum trail engine."""

import math
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Literal

import flax.struct
import yaml

from physarum.errors import InitError

Neighborhood = Literal["moore", "von_neumann"]
BoundaryPolicy = Literal["clamp", "wrap", "reflect"]

NEIGHBORHOODS: tuple[str, ...] = ("moore", "von_neumann")
BOUNDARY_POLICIES: tuple[str, ...] = ("clamp", "wrap", "reflect")


@flax.struct.dataclass
class SimulationParameters:
    """Per-run tunables, read-only once a run has started.

    A frozen flax struct so it can be handed to jitted passes as a pytree.
    ``num_agents`` is static: changing it changes the shapes being traced.
    """
    evaporate_speed: float = 0.01
    """Amount subtracted from every cell per tick after diffusion."""
    diffuse_speed: float = 0.5
    """Fractional mixing rate toward the neighbourhood mean, in [0, 1]."""
    num_agents: int = flax.struct.field(pytree_node=False, default=20_000)
    wobbling: float = 0.2
    """Width of the uniform heading jitter, in radians."""
    pheromone_deposit: float = 0.1
    max_pheromone: float = 1.0
    twisting_angle: float = 0.0
    """Constant heading bias added to every steering decision, in radians."""

    # Flat export order shared with compute backends.
    FLAT_ORDER = (
        "evaporate_speed",
        "diffuse_speed",
        "num_agents",
        "wobbling",
        "pheromone_deposit",
        "max_pheromone",
        "twisting_angle",
    )

    def as_list(self) -> list[float]:
        """Return the parameters as the flat ordered list backends expect."""
        return [float(getattr(self, name)) for name in self.FLAT_ORDER]

    @classmethod
    def from_list(cls, values: list[float]) -> "SimulationParameters":
        """Build parameters from the flat ordered list."""
        if len(values) != len(cls.FLAT_ORDER):
            raise ValueError(
                f"Expected {len(cls.FLAT_ORDER)} values, got {len(values)}"
            )
        kwargs = dict(zip(cls.FLAT_ORDER, values))
        kwargs["num_agents"] = int(kwargs["num_agents"])
        return cls(**kwargs)


@dataclass
class FieldConfig:
    """Field lattice configuration."""
    width: int = 256
    height: int = 256
    neighborhood: Neighborhood = "moore"
    """Diffusion neighbourhood: "moore" (3x3) or "von_neumann" (5-point cross)."""


@dataclass
class AgentConfig:
    """Sensor and motion geometry shared by every spawned agent."""
    speed: float = 1.0
    sensor_length: float = 9.0
    sensor_size: float = 1.0
    """Chebyshev radius (in cells) of the box each sensor averages over."""
    turn_angle: float = 0.4
    sensor_angle: float = math.pi / 4
    spawn_radius_fraction: float = 1.0 / 3.0
    """Spawn disk radius as a fraction of min(width, height)."""
    max_sensor_radius: int = 2
    """Static upper bound on sensor_size; fixes the sensing kernel shape."""


@dataclass
class EngineConfig:
    """Execution configuration."""
    boundary: BoundaryPolicy = "clamp"
    backend: str | None = None
    """JAX platform to require ("cpu", "gpu", ...). None accepts the default."""
    seed: int = 0


@dataclass
class RunConfig:
    """Command-line run configuration."""
    num_ticks: int = 1000
    log_interval: int = 100


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    wandb: bool = False
    project: str = "physarum"


@dataclass
class Config:
    """Master configuration combining all sub-configs."""
    field: FieldConfig = dataclass_field(default_factory=FieldConfig)
    agent: AgentConfig = dataclass_field(default_factory=AgentConfig)
    params: SimulationParameters = dataclass_field(default_factory=SimulationParameters)
    engine: EngineConfig = dataclass_field(default_factory=EngineConfig)
    run: RunConfig = dataclass_field(default_factory=RunConfig)
    log: LogConfig = dataclass_field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """Load config from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        params_data = data.get("params", {})
        if "num_agents" in params_data:
            params_data["num_agents"] = int(params_data["num_agents"])

        return cls(
            field=FieldConfig(**data.get("field", {})),
            agent=AgentConfig(**data.get("agent", {})),
            params=SimulationParameters(**params_data),
            engine=EngineConfig(**data.get("engine", {})),
            run=RunConfig(**data.get("run", {})),
            log=LogConfig(**data.get("log", {})),
        )

    def to_yaml(self, path: str) -> None:
        """Save config to YAML file."""
        import dataclasses

        def to_dict(obj: object) -> object:
            if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
                return {k: to_dict(v) for k, v in dataclasses.asdict(obj).items()}
            return obj

        with open(path, 'w') as f:
            yaml.dump(to_dict(self), f, default_flow_style=False)

    def validate(self) -> None:
        """Reject out-of-range settings before a run starts.

        Raises:
            InitError: If any section holds an unusable value.
        """
        if self.field.width <= 0 or self.field.height <= 0:
            raise InitError(
                f"Field resolution must be positive, got "
                f"({self.field.width}, {self.field.height})"
            )
        if self.field.neighborhood not in NEIGHBORHOODS:
            raise InitError(f"Unknown neighborhood: {self.field.neighborhood!r}")
        if self.engine.boundary not in BOUNDARY_POLICIES:
            raise InitError(f"Unknown boundary policy: {self.engine.boundary!r}")
        validate_parameters(self.params)

        agent = self.agent
        for name in ("speed", "sensor_length", "sensor_size", "turn_angle",
                     "sensor_angle", "spawn_radius_fraction"):
            value = getattr(agent, name)
            if not math.isfinite(value):
                raise InitError(f"agent.{name} must be finite, got {value}")
        if agent.speed < 0:
            raise InitError(f"agent.speed must be >= 0, got {agent.speed}")
        if agent.sensor_size < 0:
            raise InitError(f"agent.sensor_size must be >= 0, got {agent.sensor_size}")
        if agent.max_sensor_radius < 0:
            raise InitError(
                f"agent.max_sensor_radius must be >= 0, got {agent.max_sensor_radius}"
            )
        if agent.sensor_size > agent.max_sensor_radius:
            raise InitError(
                f"agent.sensor_size {agent.sensor_size} exceeds "
                f"agent.max_sensor_radius {agent.max_sensor_radius}"
            )
        if not 0.0 <= agent.spawn_radius_fraction <= 0.5:
            raise InitError(
                f"agent.spawn_radius_fraction must lie in [0, 0.5], "
                f"got {agent.spawn_radius_fraction}"
            )


def validate_parameters(params: SimulationParameters) -> None:
    """Check SimulationParameters ranges.

    Raises:
        InitError: On a negative agent count, non-finite value, or a rate
            outside its allowed range.
    """
    for name in SimulationParameters.FLAT_ORDER:
        value = float(getattr(params, name))
        if not math.isfinite(value):
            raise InitError(f"params.{name} must be finite, got {value}")
    if params.num_agents < 0:
        raise InitError(f"params.num_agents must be >= 0, got {params.num_agents}")
    if not 0.0 <= params.diffuse_speed <= 1.0:
        raise InitError(
            f"params.diffuse_speed must lie in [0, 1], got {params.diffuse_speed}"
        )
    if params.evaporate_speed < 0:
        raise InitError(
            f"params.evaporate_speed must be >= 0, got {params.evaporate_speed}"
        )
    if params.pheromone_deposit < 0:
        raise InitError(
            f"params.pheromone_deposit must be >= 0, got {params.pheromone_deposit}"
        )
    if params.wobbling < 0:
        raise InitError(f"params.wobbling must be >= 0, got {params.wobbling}")
    if params.max_pheromone <= 0:
        raise InitError(
            f"params.max_pheromone must be > 0, got {params.max_pheromone}"
        )


if __name__ == "__main__":
    config = Config()
    print(config)
