"""Command-line simulation loop."""

import argparse
import logging
import sys

from tqdm import tqdm

from physarum.analysis.field_metrics import field_entropy, field_stats, field_structure
from physarum.bridge.streaming import FrameBridge, create_frame
from physarum.configs import Config
from physarum.engine.api import EngineHandle, initialize, tick
from physarum.utils.logging import (
    finish_wandb,
    init_wandb,
    log_field_image,
    log_metrics,
    setup_logging,
)

logger = logging.getLogger(__name__)


def collect_metrics(handle: EngineHandle) -> dict[str, float]:
    """Field statistics for the current front buffer."""
    front = handle.scheduler.front
    metrics = {f"field/{k}": v for k, v in field_stats(front).items()}
    metrics["field/entropy"] = float(field_entropy(front))
    metrics["field/structure"] = float(field_structure(front))
    metrics["time/elapsed_ms"] = handle.scheduler.elapsed_ms
    return metrics


def run(config: Config, bridge: FrameBridge | None = None) -> EngineHandle:
    """Run config.run.num_ticks ticks, logging field metrics as it goes.

    Args:
        config: Master configuration.
        bridge: Optional frame bridge to publish every tick to.

    Returns:
        The engine handle after the last tick.
    """
    handle = initialize(
        (config.field.width, config.field.height),
        config.params.num_agents,
        config.params,
        config=config,
    )

    if config.log.wandb:
        init_wandb(config)

    metrics: dict[str, float] = {}
    pbar = tqdm(range(config.run.num_ticks), desc="Simulating", unit="tick")
    for _ in pbar:
        view = tick(handle)

        if bridge is not None:
            bridge.publish_frame(create_frame(handle, view))

        if config.run.log_interval > 0 and view.step % config.run.log_interval == 0:
            metrics = collect_metrics(handle)
            pbar.set_postfix(
                mass=f"{metrics['field/mass']:.1f}",
                coverage=f"{metrics['field/coverage_pct']:.1f}%",
            )
            if config.log.wandb:
                log_metrics(metrics, step=view.step)
                log_field_image(view.values, config.params.max_pheromone, step=view.step)

    pbar.close()

    if not metrics:
        metrics = collect_metrics(handle)

    print()
    print("=" * 60)
    print("Simulation complete!")
    print(f"Ticks: {handle.scheduler.step}")
    print(f"Agents: {handle.scheduler.agents.num_agents}")
    print(f"Elapsed: {handle.scheduler.elapsed_ms / 1000.0:.2f}s")
    print("Final metrics:")
    for k, v in sorted(metrics.items()):
        print(f"  {k}: {float(v):.6f}")
    print("=" * 60)

    if config.log.wandb:
        finish_wandb()

    return handle


def main() -> None:
    """CLI entry point using tyro for argument parsing.

    An optional --config YAML file supplies the defaults that the remaining
    tyro flags override.
    """
    import tyro

    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", type=str, default=None)
    known, remaining = parser.parse_known_args(sys.argv[1:])

    default = Config.from_yaml(known.config) if known.config else Config()
    config = tyro.cli(Config, default=default, args=remaining)

    setup_logging(config.log.level)
    run(config)


if __name__ == "__main__":
    main()
