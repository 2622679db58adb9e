"""Agent update stage: sense, steer, move, deposit."""

from functools import partial

import jax
import jax.numpy as jnp

from physarum.agents.boundary import apply_boundary
from physarum.agents.steering import nearest_cell, sense, steer, wobble_jitter
from physarum.agents.table import AgentTable
from physarum.configs import SimulationParameters
from physarum.field.grid import FieldGrid


def deposit(
    values: jnp.ndarray,
    positions: jnp.ndarray,
    amount: float,
    max_value: float,
    wrap: bool = False,
) -> jnp.ndarray:
    """Add amount at the cell nearest each position.

    Uses a scatter-add, so agents landing on the same cell all count.
    The result is clamped to [0, max_value]. On a wrapped field the
    nearest cell is taken modulo the field size, so x = W - 0.3 lands in
    column 0.

    Args:
        values: Field values with shape (H, W).
        positions: (N, 2) positions as (x, y).
        amount: Trail added per agent.
        max_value: Field cap.
        wrap: Treat the field as a torus.

    Returns:
        Updated (H, W) field values.
    """
    h, w = values.shape
    cells = nearest_cell(positions)
    if wrap:
        cols = jnp.mod(cells[:, 0], w)
        rows = jnp.mod(cells[:, 1], h)
    else:
        cols = jnp.clip(cells[:, 0], 0, w - 1)
        rows = jnp.clip(cells[:, 1], 0, h - 1)
    values = values.at[rows, cols].add(amount)
    return jnp.clip(values, 0.0, max_value)


@partial(jax.jit, static_argnames=("dst", "boundary", "max_sensor_radius"))
def update_agents(
    grid: FieldGrid,
    agents: AgentTable,
    dst: int,
    params: SimulationParameters,
    key: jax.Array,
    boundary: str = "clamp",
    max_sensor_radius: int = 2,
) -> tuple[FieldGrid, AgentTable]:
    """Advance every agent one step against the freshly relaxed buffer.

    Each agent reads buffer dst (already relaxed this tick), picks the
    strongest of its three sensors, turns, moves, and deposits into dst.
    Agents only write their own record.

    Args:
        grid: Field grid whose dst buffer holds the relaxed field.
        agents: Current agent table.
        dst: Buffer id to sense from and deposit into.
        params: Simulation parameters.
        key: PRNG key for the wobble jitter.
        boundary: Boundary policy name.
        max_sensor_radius: Static sensing kernel half-width.

    Returns:
        Tuple of (grid, agents) after the pass.
    """
    if agents.num_agents == 0:
        return grid, agents

    values = grid.buffers[dst]

    readings = sense(
        values,
        agents.positions,
        agents.headings,
        agents.sensor_lengths,
        agents.sensor_sizes,
        agents.sensor_angles,
        max_sensor_radius,
        wrap=boundary == "wrap",
    )
    jitter = wobble_jitter(key, agents.num_agents, params.wobbling)
    headings = steer(
        agents.headings, readings, agents.turn_angles, params.twisting_angle, jitter
    )

    step = agents.speeds[:, None] * jnp.stack(
        [jnp.cos(headings), jnp.sin(headings)], axis=-1
    )
    positions = agents.positions + step
    positions, headings = apply_boundary(
        positions, headings, grid.width, grid.height, boundary
    )

    values = deposit(
        values,
        positions,
        params.pheromone_deposit,
        params.max_pheromone,
        wrap=boundary == "wrap",
    )

    grid = grid.replace(buffers=grid.buffers.at[dst].set(values))
    return grid, agents.with_motion(positions, headings)
