"""Boundary policies for agents that step off the field."""

import jax.numpy as jnp


def _upper_bound(width: int, height: int) -> jnp.ndarray:
    """Largest float32 coordinates strictly inside [0, W) x [0, H)."""
    upper = jnp.array([width, height], dtype=jnp.float32)
    return jnp.nextafter(upper, 0.0)


def clamp_positions(positions: jnp.ndarray, width: int, height: int) -> jnp.ndarray:
    """Hold positions at the field edge."""
    return jnp.clip(positions, 0.0, _upper_bound(width, height))


def apply_boundary(
    positions: jnp.ndarray,
    headings: jnp.ndarray,
    width: int,
    height: int,
    policy: str = "clamp",
) -> tuple[jnp.ndarray, jnp.ndarray]:
    """Bring positions back into [0, W) x [0, H).

    Policies:
        clamp: hold the agent at the edge, heading unchanged.
        wrap: periodic field, re-enter from the opposite edge.
        reflect: mirror the position about the crossed edge and mirror the
            heading so the agent bounces back in.

    Args:
        positions: (N, 2) positions as (x, y).
        headings: (N,) headings in radians.
        width: Field width.
        height: Field height.
        policy: One of "clamp", "wrap", "reflect".

    Returns:
        Tuple of (positions, headings) with every position in bounds.
    """
    if policy == "clamp":
        return clamp_positions(positions, width, height), headings

    upper = jnp.array([width, height], dtype=jnp.float32)

    if policy == "wrap":
        wrapped = jnp.mod(positions, upper)
        # mod of a tiny negative value can round up to the bound itself
        wrapped = jnp.where(wrapped >= upper, 0.0, wrapped)
        return wrapped, headings

    if policy == "reflect":
        below = positions < 0.0
        above = positions >= upper
        reflected = jnp.where(below, -positions, positions)
        reflected = jnp.where(above, 2.0 * upper - positions, reflected)

        crossed_x = below[:, 0] | above[:, 0]
        crossed_y = below[:, 1] | above[:, 1]
        new_headings = jnp.where(crossed_x, jnp.pi - headings, headings)
        new_headings = jnp.where(crossed_y, -new_headings, new_headings)

        # A step longer than the field can still overshoot after mirroring
        return clamp_positions(reflected, width, height), new_headings

    raise ValueError(f"Unknown boundary policy: {policy!r}")
