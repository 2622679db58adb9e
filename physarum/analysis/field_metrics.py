"""Trail field metrics for monitoring pattern formation."""

import jax.numpy as jnp


def field_stats(values: jnp.ndarray, threshold: float = 0.01) -> dict[str, float]:
    """Summary statistics of an (H, W) trail field.

    Args:
        values: Field values with shape (H, W).
        threshold: Minimum concentration for a cell to count as covered.

    Returns:
        Dict with mass, mean, max and coverage_pct.
    """
    return {
        "mass": float(jnp.sum(values)),
        "mean": float(jnp.mean(values)),
        "max": float(jnp.max(values)),
        "coverage_pct": float(jnp.mean(values > threshold)) * 100.0,
    }


def field_entropy(values: jnp.ndarray) -> jnp.ndarray:
    """Compute spatial entropy of the field.

    Treats the field as a probability distribution over cells. Higher
    entropy means trail spread evenly; lower means it is concentrated in a
    few veins. An empty field returns 0.

    Args:
        values: Field values with shape (H, W).

    Returns:
        Scalar entropy value.
    """
    values = jnp.abs(values)
    total = jnp.sum(values)
    total = jnp.where(total == 0, 1.0, total)
    probs = values / total
    log_probs = jnp.where(probs > 0, jnp.log(probs + 1e-10), 0.0)
    return -jnp.sum(probs * log_probs)


def field_structure(values: jnp.ndarray) -> jnp.ndarray:
    """Measure spatial autocorrelation of the field.

    Correlation between each cell and the mean of its four cardinal
    neighbours. Smooth trail networks score high, speckle scores low.

    Args:
        values: Field values with shape (H, W).

    Returns:
        Scalar autocorrelation value in [0, 1].
    """
    up = jnp.roll(values, -1, axis=0)
    down = jnp.roll(values, 1, axis=0)
    left = jnp.roll(values, -1, axis=1)
    right = jnp.roll(values, 1, axis=1)
    neighbor_mean = (up + down + left + right) / 4.0

    v = values.ravel() - jnp.mean(values)
    n = neighbor_mean.ravel() - jnp.mean(neighbor_mean)
    numerator = jnp.sum(v * n)
    denominator = jnp.sqrt(jnp.sum(v ** 2) * jnp.sum(n ** 2) + 1e-10)
    return jnp.clip(numerator / denominator, 0.0, 1.0)
