"""Frame scheduler: buffer-role alternation and per-tick orchestration."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, cast

import jax
import jax.numpy as jnp

from physarum.agents.spawn import spawn_agents
from physarum.agents.table import AgentTable
from physarum.agents.update import update_agents
from physarum.configs import Config
from physarum.errors import DispatchError, SchedulerError
from physarum.field.grid import FieldGrid, create_field_grid
from physarum.field.relaxation import relax

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Lifecycle of a FrameScheduler.

    - UNINITIALIZED: no field or agents allocated yet.
    - READY: allocated, no tick run.
    - RUNNING: at least one tick completed.
    - HALTED: a pass failed; the run is over.
    """
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RUNNING = "running"
    HALTED = "halted"


def buffer_roles(step: int) -> tuple[int, int]:
    """Return (src, dst) buffer ids for a step: src = step % 2."""
    src = step % 2
    return src, 1 - src


class FrameScheduler:
    """Owns the simulation context and advances it one tick at a time.

    Holds the field grid, the agent table, the PRNG key, the step counter
    and the elapsed-time accumulator. Each tick relaxes the source buffer
    into the destination, runs the agent pass against the destination, waits
    for both to finish, and only then commits the new state.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.params = config.params
        self._state = SchedulerState.UNINITIALIZED
        self._grid: FieldGrid | None = None
        self._agents: AgentTable | None = None
        self._key: jax.Array | None = None
        self._step = 0
        self._elapsed_ms = 0.0
        self._stop_requested = False

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def step(self) -> int:
        """Number of completed ticks."""
        return self._step

    @property
    def elapsed_ms(self) -> float:
        """Accumulated tick time in milliseconds."""
        return self._elapsed_ms

    @property
    def grid(self) -> FieldGrid:
        self._require_initialized()
        return cast(FieldGrid, self._grid)

    @property
    def agents(self) -> AgentTable:
        self._require_initialized()
        return cast(AgentTable, self._agents)

    @property
    def front_buffer_id(self) -> int:
        """Buffer holding the authoritative field (next tick's source)."""
        return buffer_roles(self._step)[0]

    @property
    def front(self) -> jnp.ndarray:
        """The authoritative (H, W) field."""
        return self.grid.buffers[self.front_buffer_id]

    def initialize(
        self,
        grid: FieldGrid | None = None,
        agents: AgentTable | None = None,
    ) -> None:
        """Allocate the field and spawn the population.

        A prepared grid or agent table may be supplied instead; a supplied
        grid's buffer A is taken as the initial field.

        Args:
            grid: Optional initial field grid.
            agents: Optional initial agent table.
        """
        if self._state is not SchedulerState.UNINITIALIZED:
            raise SchedulerError(f"Cannot initialize a scheduler in state {self._state.value}")

        width, height = self.config.field.width, self.config.field.height
        key = jax.random.PRNGKey(self.config.engine.seed)
        spawn_key, self._key = jax.random.split(key)

        if grid is None:
            grid = create_field_grid(width, height)
        elif grid.resolution != (width, height):
            raise SchedulerError(
                f"Grid resolution {grid.resolution} does not match config ({width}, {height})"
            )

        if agents is None:
            agents = spawn_agents(
                spawn_key, width, height, self.params.num_agents, self.config.agent
            )
        elif agents.num_agents != self.params.num_agents:
            raise SchedulerError(
                f"Agent table holds {agents.num_agents} agents, "
                f"params.num_agents is {self.params.num_agents}"
            )

        self._grid = grid
        self._agents = agents
        self._step = 0
        self._elapsed_ms = 0.0
        self._state = SchedulerState.READY
        logger.info(
            "Initialized %dx%d field with %d agents (neighborhood=%s, boundary=%s)",
            width, height, agents.num_agents,
            self.config.field.neighborhood, self.config.engine.boundary,
        )

    def tick(self, elapsed_millis: float | None = None) -> jnp.ndarray:
        """Run one simulation step.

        Order: pick src/dst by step parity, relax src into dst, update agents
        against dst, wait for completion, increment the step counter, advance
        the time accumulator, then hand back dst as the new front buffer.

        Args:
            elapsed_millis: Host-measured frame time to accumulate. When None,
                the wall-clock duration of the tick is used.

        Returns:
            The new front buffer with shape (H, W).

        Raises:
            SchedulerError: If the scheduler is uninitialized or halted.
            DispatchError: If either pass fails. The scheduler halts and the
                previous state is kept.
        """
        self._require_initialized()
        if self._state is SchedulerState.HALTED:
            raise SchedulerError("Scheduler halted after a failed tick")

        src, dst = buffer_roles(self._step)
        key, tick_key = jax.random.split(self._key)
        start = time.perf_counter()
        try:
            grid = relax(self._grid, src, dst, self.params, self.config.field.neighborhood)
            grid, agents = update_agents(
                grid,
                self._agents,
                dst,
                self.params,
                tick_key,
                self.config.engine.boundary,
                self.config.agent.max_sensor_radius,
            )
            grid, agents = jax.block_until_ready((grid, agents))
        except Exception as exc:
            self._state = SchedulerState.HALTED
            logger.error("Tick %d failed, halting: %s", self._step, exc)
            raise DispatchError(f"Tick {self._step} failed: {exc}") from exc
        duration_ms = (time.perf_counter() - start) * 1000.0

        self._grid = grid
        self._agents = agents
        self._key = key
        self._step += 1
        self._elapsed_ms += duration_ms if elapsed_millis is None else float(elapsed_millis)
        self._state = SchedulerState.RUNNING
        logger.debug("Tick %d done in %.2f ms (src=%d, dst=%d)", self._step, duration_ms, src, dst)
        return grid.buffers[dst]

    def run(
        self,
        num_ticks: int | None = None,
        on_frame: Callable[[int, jnp.ndarray], None] | None = None,
    ) -> int:
        """Tick until num_ticks are done or stop() is called.

        Args:
            num_ticks: Tick budget, or None to run until stopped.
            on_frame: Called with (step, front buffer) after every tick.

        Returns:
            Number of ticks run by this call. A stop() issued before the
            call makes it return 0 without ticking.
        """
        ticks = 0
        try:
            while not self._stop_requested and (num_ticks is None or ticks < num_ticks):
                front = self.tick()
                ticks += 1
                if on_frame is not None:
                    on_frame(self._step, front)
        finally:
            self._stop_requested = False
        return ticks

    def stop(self) -> None:
        """Ask run() to return after the tick in progress."""
        self._stop_requested = True

    def _require_initialized(self) -> None:
        if self._state is SchedulerState.UNINITIALIZED:
            raise SchedulerError("Scheduler is not initialized")
