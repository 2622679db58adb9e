"""Host-facing engine API: initialize, tick, agent_snapshot.

The presentation layer only ever sees read-only numpy views; the buffer
role mapping stays inside the scheduler.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

import jax
import numpy as np

from physarum.agents import layout
from physarum.configs import Config, FieldConfig, SimulationParameters
from physarum.engine.scheduler import FrameScheduler
from physarum.errors import InitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldView:
    """Read-only view of the authoritative field after a tick.

    Attributes:
        values: (H, W) float32 concentration, not writeable.
        step: Number of completed ticks.
        elapsed_ms: Accumulated tick time.
        buffer_id: Physical buffer the values came from.
    """
    values: np.ndarray
    step: int
    elapsed_ms: float
    buffer_id: int


@dataclass(frozen=True)
class AgentSnapshot:
    """Read-only copy of the agent table."""
    records: np.ndarray  # (N, 16) float32, not writeable

    @property
    def num_agents(self) -> int:
        return self.records.shape[0]

    @property
    def positions(self) -> np.ndarray:
        return self.records[:, layout.POSITION]

    @property
    def headings(self) -> np.ndarray:
        return self.records[:, layout.HEADING]

    def to_bytes(self) -> bytes:
        """Records packed with the 64-byte stride compute backends use."""
        return self.records.astype(layout.RECORD_DTYPE).tobytes()


@dataclass
class EngineHandle:
    """Opaque handle returned by initialize()."""
    scheduler: FrameScheduler

    @property
    def config(self) -> Config:
        return self.scheduler.config


def _read_only(array: object) -> np.ndarray:
    view = np.array(array, dtype=np.float32)
    view.setflags(write=False)
    return view


def _check_backend(backend: str | None) -> None:
    """Raise InitError if the requested JAX platform has no devices."""
    try:
        devices = jax.devices(backend)
    except (RuntimeError, ValueError) as exc:
        raise InitError(f"Compute backend {backend or 'default'!r} unavailable: {exc}") from exc
    if not devices:
        raise InitError(f"Compute backend {backend or 'default'!r} has no devices")
    logger.info("Using compute devices: %s", devices)


def initialize(
    field_resolution: tuple[int, int],
    num_agents: int,
    params: SimulationParameters,
    config: Config | None = None,
    seed: int | None = None,
) -> EngineHandle:
    """Allocate the field and agents and return a ready engine.

    Args:
        field_resolution: (W, H) of the lattice.
        num_agents: Population size; must equal params.num_agents.
        params: Simulation parameters for the whole run.
        config: Optional base config for agent geometry and policies. Its
            field resolution and params are overridden by the arguments.
        seed: Optional PRNG seed overriding config.engine.seed.

    Returns:
        EngineHandle in the READY state.

    Raises:
        InitError: On out-of-range configuration or missing backend.
    """
    if num_agents != params.num_agents:
        raise InitError(
            f"num_agents={num_agents} disagrees with params.num_agents={params.num_agents}"
        )
    try:
        width, height = (int(v) for v in field_resolution)
    except (TypeError, ValueError) as exc:
        raise InitError(f"Invalid field resolution: {field_resolution!r}") from exc

    base = config if config is not None else Config()
    engine_config = base.engine
    if seed is not None:
        engine_config = dataclasses.replace(engine_config, seed=seed)
    config = dataclasses.replace(
        base,
        field=FieldConfig(width=width, height=height, neighborhood=base.field.neighborhood),
        params=params,
        engine=engine_config,
    )
    config.validate()
    _check_backend(config.engine.backend)

    if num_agents == 0:
        logger.warning("Starting with no agents; only relaxation will run")

    scheduler = FrameScheduler(config)
    scheduler.initialize()
    return EngineHandle(scheduler=scheduler)


def tick(handle: EngineHandle, elapsed_millis: float | None = None) -> FieldView:
    """Run one simulation step and return the now-current field."""
    scheduler = handle.scheduler
    front = scheduler.tick(elapsed_millis)
    return FieldView(
        values=_read_only(front),
        step=scheduler.step,
        elapsed_ms=scheduler.elapsed_ms,
        buffer_id=scheduler.front_buffer_id,
    )


def agent_snapshot(handle: EngineHandle) -> AgentSnapshot:
    """Return a read-only copy of the agent table."""
    return AgentSnapshot(records=_read_only(handle.scheduler.agents.records))


def stop(handle: EngineHandle) -> None:
    """Stop a run() loop between ticks."""
    handle.scheduler.stop()
