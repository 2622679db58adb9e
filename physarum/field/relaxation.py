"""Field relaxation: diffusion and evaporation between the two buffers."""

from functools import partial

import jax
import jax.numpy as jnp

from physarum.configs import SimulationParameters
from physarum.field.grid import FieldGrid

# (dy, dx) offsets for each neighbourhood policy, centre included.
_OFFSETS: dict[str, tuple[tuple[int, int], ...]] = {
    "moore": tuple((dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1)),
    "von_neumann": ((0, 0), (-1, 0), (1, 0), (0, -1), (0, 1)),
}


def neighbor_mean(values: jnp.ndarray, neighborhood: str = "moore") -> jnp.ndarray:
    """Mean of each cell's neighbourhood, counting only in-range cells.

    Edge cells treat out-of-range neighbours as absent: a corner cell of a
    Moore neighbourhood averages 4 cells, an edge cell 6.

    Args:
        values: Field values with shape (H, W).
        neighborhood: "moore" (3x3) or "von_neumann" (5-point cross).

    Returns:
        Array of shape (H, W) with the neighbourhood means.
    """
    if neighborhood not in _OFFSETS:
        raise ValueError(f"Unknown neighborhood: {neighborhood!r}")
    h, w = values.shape

    # Zero padding for values, matching padding of a validity mask
    padded = jnp.pad(values, 1, mode='constant')
    valid = jnp.pad(jnp.ones_like(values), 1, mode='constant')

    total = jnp.zeros_like(values)
    count = jnp.zeros_like(values)
    for dy, dx in _OFFSETS[neighborhood]:
        total = total + padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
        count = count + valid[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
    return total / count


def relax_values(
    values: jnp.ndarray,
    params: SimulationParameters,
    neighborhood: str = "moore",
) -> jnp.ndarray:
    """Apply one diffusion + evaporation step to an (H, W) array.

    new = v + diffuse_speed * (mean - v) - evaporate_speed, clamped to
    [0, max_pheromone].
    """
    mean = neighbor_mean(values, neighborhood)
    relaxed = values + params.diffuse_speed * (mean - values)
    relaxed = relaxed - params.evaporate_speed
    return jnp.clip(relaxed, 0.0, params.max_pheromone)


@partial(jax.jit, static_argnames=("src", "dst", "neighborhood"))
def relax(
    grid: FieldGrid,
    src: int,
    dst: int,
    params: SimulationParameters,
    neighborhood: str = "moore",
) -> FieldGrid:
    """Relax buffer src into buffer dst.

    Every destination cell depends only on the source buffer, so the pass
    is order independent. The source buffer is left untouched.

    Args:
        grid: Current field grid.
        src: Buffer id to read.
        dst: Buffer id to write. Must differ from src.
        params: Simulation parameters.
        neighborhood: Diffusion neighbourhood policy.

    Returns:
        New FieldGrid with dst holding the relaxed field.
    """
    if src == dst:
        raise ValueError("relax() needs distinct source and destination buffers")
    relaxed = relax_values(grid.buffers[src], params, neighborhood)
    return grid.replace(buffers=grid.buffers.at[dst].set(relaxed))
