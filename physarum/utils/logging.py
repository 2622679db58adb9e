"""Console logging setup and optional Weights & Biases tracking for runs."""

import dataclasses
import logging
from typing import Any

import numpy as np

from physarum.configs import Config


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line runs."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _flatten_config(config: Config) -> dict[str, Any]:
    """Flatten Config into "section.key" entries for the W&B run config."""
    flat: dict[str, Any] = {}
    for section in dataclasses.fields(config):
        values = dataclasses.asdict(getattr(config, section.name))
        flat.update({f"{section.name}.{key}": value for key, value in values.items()})
    return flat


def init_wandb(config: Config) -> None:
    """Start a W&B run named after the field size and population.

    Args:
        config: Master configuration; the run goes to config.log.project.
    """
    import wandb

    name = (
        f"{config.field.width}x{config.field.height}"
        f"-n{config.params.num_agents}-seed{config.engine.seed}"
    )
    wandb.init(project=config.log.project, name=name, config=_flatten_config(config))


def log_metrics(metrics: dict[str, Any], step: int) -> None:
    """Send scalar field metrics to W&B, keyed by simulation tick."""
    import wandb

    wandb.log({key: float(value) for key, value in metrics.items()}, step=step)


def log_field_image(values: np.ndarray, max_value: float, step: int) -> None:
    """Log the trail field as a grayscale W&B image.

    Args:
        values: (H, W) field values.
        max_value: Field cap, mapped to white.
        step: Simulation tick.
    """
    import wandb

    scaled = np.clip(np.asarray(values) / max_value, 0.0, 1.0)
    pixels = (scaled * 255).astype(np.uint8)
    wandb.log({"field/image": wandb.Image(pixels)}, step=step)


def finish_wandb() -> None:
    """Close the current W&B run."""
    import wandb

    wandb.finish()
