"""Initial placement of the agent population."""

import jax
import jax.numpy as jnp

from physarum.agents.table import AgentTable, create_agent_table
from physarum.configs import AgentConfig


def spawn_agents(
    key: jax.Array,
    width: int,
    height: int,
    num_agents: int,
    agent_config: AgentConfig,
) -> AgentTable:
    """Create the fixed agent population.

    Agents are placed uniformly inside a disk centred on the field, of radius
    min(width, height) * spawn_radius_fraction, with uniformly random
    headings in [0, 2*pi). Every agent shares the sensor geometry of
    agent_config: sensors at (-sensor_angle, 0, +sensor_angle) paired with
    turns of (-turn_angle, 0, +turn_angle).

    Args:
        key: JAX PRNG key.
        width: Field width (W).
        height: Field height (H).
        num_agents: Population size, may be 0.
        agent_config: Shared agent geometry.

    Returns:
        A freshly initialized AgentTable.
    """
    k_radius, k_angle, k_heading = jax.random.split(key, 3)

    center = jnp.array([width / 2.0, height / 2.0], dtype=jnp.float32)
    max_radius = min(width, height) * agent_config.spawn_radius_fraction

    # sqrt keeps the density uniform over the disk area
    radius = max_radius * jnp.sqrt(jax.random.uniform(k_radius, (num_agents,)))
    theta = jax.random.uniform(k_angle, (num_agents,), maxval=2.0 * jnp.pi)
    offsets = jnp.stack([radius * jnp.cos(theta), radius * jnp.sin(theta)], axis=-1)
    positions = center[None, :] + offsets

    # Tiny fields can put the disk edge on the border
    upper = jnp.array([width, height], dtype=jnp.float32)
    positions = jnp.clip(positions, 0.0, jnp.nextafter(upper, 0.0))

    headings = jax.random.uniform(k_heading, (num_agents,), maxval=2.0 * jnp.pi)

    turn = agent_config.turn_angle
    sensor = agent_config.sensor_angle
    return create_agent_table(
        positions=positions,
        headings=headings,
        speeds=agent_config.speed,
        sensor_lengths=agent_config.sensor_length,
        sensor_sizes=agent_config.sensor_size,
        turn_angles=jnp.array([-turn, 0.0, turn], dtype=jnp.float32),
        sensor_angles=jnp.array([-sensor, 0.0, sensor], dtype=jnp.float32),
    )
