"""Sensing and steering for trail-following agents."""

import jax
import jax.numpy as jnp


def nearest_cell(coords: jnp.ndarray) -> jnp.ndarray:
    """Index of the nearest lattice cell, rounding halves up."""
    return jnp.floor(coords + 0.5).astype(jnp.int32)


def sensor_points(
    positions: jnp.ndarray,
    headings: jnp.ndarray,
    sensor_lengths: jnp.ndarray,
    sensor_angles: jnp.ndarray,
) -> jnp.ndarray:
    """Sample points of every sensor.

    Args:
        positions: (N, 2) positions as (x, y).
        headings: (N,) headings.
        sensor_lengths: (N,) distance from the agent to each sample point.
        sensor_angles: (N, 3) offsets from the heading.

    Returns:
        (N, 3, 2) sample points as (x, y).
    """
    angles = headings[:, None] + sensor_angles  # (N, 3)
    reach = sensor_lengths[:, None]
    sx = positions[:, 0:1] + reach * jnp.cos(angles)
    sy = positions[:, 1:2] + reach * jnp.sin(angles)
    return jnp.stack([sx, sy], axis=-1)


def sense(
    values: jnp.ndarray,
    positions: jnp.ndarray,
    headings: jnp.ndarray,
    sensor_lengths: jnp.ndarray,
    sensor_sizes: jnp.ndarray,
    sensor_angles: jnp.ndarray,
    max_sensor_radius: int = 2,
    wrap: bool = False,
) -> jnp.ndarray:
    """Read the field at each agent's three sensors.

    A sensor averages the field over the square of cells whose Chebyshev
    distance from the sample cell is at most the agent's sensor_size.
    Cells outside the field are absent from the average; a sensor with no
    cell inside the field reads 0. On a wrapped field every cell index is
    taken modulo the field size instead, so no cell is ever absent.

    Args:
        values: Field values with shape (H, W).
        positions: (N, 2) positions as (x, y).
        headings: (N,) headings.
        sensor_lengths: (N,) sensor distances.
        sensor_sizes: (N,) sensor box radii, at most max_sensor_radius.
        sensor_angles: (N, 3) sensor offsets.
        max_sensor_radius: Static kernel half-width.
        wrap: Treat the field as a torus.

    Returns:
        Readings of shape (N, 3).
    """
    h, w = values.shape
    points = sensor_points(positions, headings, sensor_lengths, sensor_angles)
    cells = nearest_cell(points)  # (N, 3, 2)

    offsets = jnp.arange(-max_sensor_radius, max_sensor_radius + 1)
    dy, dx = jnp.meshgrid(offsets, offsets, indexing='ij')
    dy = dy.ravel()  # (P,)
    dx = dx.ravel()  # (P,)
    ring = jnp.maximum(jnp.abs(dx), jnp.abs(dy))  # (P,)

    cols = cells[..., 0:1] + dx  # (N, 3, P)
    rows = cells[..., 1:2] + dy  # (N, 3, P)

    mask = ring[None, None, :] <= sensor_sizes[:, None, None]
    if wrap:
        rows, cols = jnp.mod(rows, h), jnp.mod(cols, w)
    else:
        mask = mask & (cols >= 0) & (cols < w) & (rows >= 0) & (rows < h)
        rows, cols = jnp.clip(rows, 0, h - 1), jnp.clip(cols, 0, w - 1)

    samples = values[rows, cols]
    total = jnp.sum(jnp.where(mask, samples, 0.0), axis=-1)
    count = jnp.sum(mask, axis=-1)
    return jnp.where(count > 0, total / jnp.maximum(count, 1), 0.0)


def choose_turn(readings: jnp.ndarray, turn_angles: jnp.ndarray) -> jnp.ndarray:
    """Pick the sensor with the strongest reading.

    Ties go to the smallest |turn angle| so a symmetric reading keeps the
    agent straight; equal magnitudes fall back to the lowest index.

    Args:
        readings: (N, 3) sensor readings.
        turn_angles: (N, 3) turn paired with each sensor.

    Returns:
        (N,) int32 index of the chosen turn.
    """
    best = jnp.max(readings, axis=-1, keepdims=True)
    magnitude = jnp.where(readings == best, jnp.abs(turn_angles), jnp.inf)
    return jnp.argmin(magnitude, axis=-1).astype(jnp.int32)


def steer(
    headings: jnp.ndarray,
    readings: jnp.ndarray,
    turn_angles: jnp.ndarray,
    twisting_angle: float,
    jitter: jnp.ndarray,
) -> jnp.ndarray:
    """New headings: heading + chosen turn + twisting angle + jitter."""
    choice = choose_turn(readings, turn_angles)
    turn = jnp.take_along_axis(turn_angles, choice[:, None], axis=-1)[:, 0]
    return headings + turn + twisting_angle + jitter


def wobble_jitter(key: jax.Array, num_agents: int, wobbling: float) -> jnp.ndarray:
    """Uniform heading noise in [-wobbling / 2, wobbling / 2)."""
    u = jax.random.uniform(key, (num_agents,), dtype=jnp.float32)
    return (u - 0.5) * wobbling
