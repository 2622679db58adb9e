"""Tests for the frame scheduler and the per-tick invariants."""

import threading

import pytest
import jax
import jax.numpy as jnp
import numpy as np

from physarum.agents.table import create_agent_table
from physarum.configs import Config, SimulationParameters
from physarum.engine.scheduler import FrameScheduler, SchedulerState, buffer_roles
from physarum.errors import DispatchError, SchedulerError
from physarum.field.grid import BUFFER_A, create_field_grid, set_buffer


def _make_config(width: int = 16, height: int = 16, **params) -> Config:
    """Create a small test config; keyword arguments override params."""
    config = Config()
    config.field.width = width
    config.field.height = height
    config.engine.seed = 0
    base = dict(
        evaporate_speed=0.0,
        diffuse_speed=0.0,
        num_agents=0,
        wobbling=0.0,
        pheromone_deposit=0.0,
        max_pheromone=1.0,
        twisting_angle=0.0,
    )
    base.update(params)
    config.params = SimulationParameters(**base)
    return config


def _single_agent(x: float, y: float, heading: float = 0.0):
    return create_agent_table(
        positions=jnp.array([[x, y]]),
        headings=heading,
        speeds=1.0,
        sensor_lengths=1.0,
        sensor_sizes=0.0,
        turn_angles=jnp.array([-0.4, 0.0, 0.4]),
        sensor_angles=jnp.array([-0.8, 0.0, 0.8]),
    )


class TestBufferRoles:
    """Tests for step-parity buffer alternation."""

    def test_roles_alternate(self):
        assert buffer_roles(0) == (0, 1)
        assert buffer_roles(1) == (1, 0)

    def test_period_two(self):
        for step in range(10):
            assert buffer_roles(step) == buffer_roles(step + 2)
            src, dst = buffer_roles(step)
            assert src != dst

    def test_front_buffer_returns_after_two_ticks(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        start = scheduler.front_buffer_id

        scheduler.tick()
        assert scheduler.front_buffer_id != start
        scheduler.tick()
        assert scheduler.front_buffer_id == start


class TestLifecycle:
    """Tests for the scheduler state machine."""

    def test_uninitialized(self):
        scheduler = FrameScheduler(_make_config())
        assert scheduler.state is SchedulerState.UNINITIALIZED
        with pytest.raises(SchedulerError):
            scheduler.tick()
        with pytest.raises(SchedulerError):
            _ = scheduler.grid
        with pytest.raises(SchedulerError):
            _ = scheduler.agents

    def test_initialize_then_tick(self):
        scheduler = FrameScheduler(_make_config(num_agents=10))
        scheduler.initialize()

        assert scheduler.state is SchedulerState.READY
        assert scheduler.step == 0
        assert scheduler.front_buffer_id == BUFFER_A
        assert scheduler.agents.num_agents == 10

        front = scheduler.tick()
        assert scheduler.state is SchedulerState.RUNNING
        assert scheduler.step == 1
        assert front.shape == (16, 16)
        assert jnp.array_equal(front, scheduler.front)

    def test_double_initialize_rejected(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        with pytest.raises(SchedulerError):
            scheduler.initialize()

    def test_mismatched_inputs_rejected(self):
        scheduler = FrameScheduler(_make_config(num_agents=2))
        with pytest.raises(SchedulerError):
            scheduler.initialize(agents=_single_agent(1.0, 1.0))

        scheduler = FrameScheduler(_make_config())
        with pytest.raises(SchedulerError):
            scheduler.initialize(grid=create_field_grid(3, 3))

    def test_elapsed_time_from_host(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        scheduler.tick(16.0)
        scheduler.tick(16.5)
        assert scheduler.elapsed_ms == 32.5

    def test_elapsed_time_from_wall_clock(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        scheduler.tick()
        assert scheduler.elapsed_ms > 0.0

    def test_dispatch_failure_halts(self, monkeypatch):
        import physarum.engine.scheduler as scheduler_module

        scheduler = FrameScheduler(_make_config(evaporate_speed=0.1))
        scheduler.initialize()
        scheduler.tick()
        before = scheduler.grid

        def failing_relax(*args, **kwargs):
            raise RuntimeError("device lost")

        monkeypatch.setattr(scheduler_module, "relax", failing_relax)

        with pytest.raises(DispatchError):
            scheduler.tick()
        assert scheduler.state is SchedulerState.HALTED
        assert scheduler.step == 1
        assert scheduler.grid is before

        monkeypatch.undo()
        with pytest.raises(SchedulerError):
            scheduler.tick()


class TestRun:
    """Tests for the run loop."""

    def test_run_budget(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        assert scheduler.run(num_ticks=3) == 3
        assert scheduler.step == 3

    def test_stop_between_ticks(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        seen = []

        def on_frame(step, front):
            seen.append(step)
            if step == 2:
                scheduler.stop()

        assert scheduler.run(on_frame=on_frame) == 2
        assert seen == [1, 2]
        # Still usable after a stop
        scheduler.tick()
        assert scheduler.step == 3

    def test_stop_before_run_is_kept(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()

        scheduler.stop()
        assert scheduler.run(num_ticks=5) == 0
        assert scheduler.step == 0
        # The request is consumed by the run it ended
        assert scheduler.run(num_ticks=2) == 2

    def test_stop_from_another_thread(self):
        scheduler = FrameScheduler(_make_config())
        scheduler.initialize()
        started = threading.Event()

        def on_frame(step, front):
            started.set()

        def stopper():
            started.wait(timeout=30)
            scheduler.stop()

        thread = threading.Thread(target=stopper)
        thread.start()
        ticks = scheduler.run(on_frame=on_frame)
        thread.join()

        assert ticks >= 1
        assert scheduler.step == ticks


class TestInvariants:
    """Per-tick invariants of the full simulation step."""

    def test_zero_rates_leave_field_bit_exact(self):
        config = _make_config(num_agents=20)
        source = jax.random.uniform(jax.random.PRNGKey(3), (16, 16))
        grid = set_buffer(create_field_grid(16, 16), BUFFER_A, source)

        scheduler = FrameScheduler(config)
        scheduler.initialize(grid=grid)
        for _ in range(5):
            front = scheduler.tick()
            np.testing.assert_array_equal(np.asarray(front), np.asarray(source))

    def test_uniform_decay(self):
        config = _make_config(evaporate_speed=0.25)
        grid = create_field_grid(16, 16)
        grid = grid.replace(buffers=jnp.ones_like(grid.buffers))

        scheduler = FrameScheduler(config)
        scheduler.initialize(grid=grid)
        expected = [0.75, 0.5, 0.25, 0.0, 0.0, 0.0]
        for value in expected:
            front = scheduler.tick()
            assert jnp.all(front == value)

    def test_clamp_population_and_bounds(self):
        config = _make_config(
            width=24, height=20, num_agents=300, evaporate_speed=0.005,
            diffuse_speed=0.3, wobbling=0.5, pheromone_deposit=0.4,
            max_pheromone=1.0, twisting_angle=0.05,
        )
        config.agent.sensor_length = 4.0
        config.agent.speed = 1.5
        scheduler = FrameScheduler(config)
        scheduler.initialize()

        def check(step, front):
            assert jnp.all(front >= 0.0)
            assert jnp.all(front <= 1.0)
            agents = scheduler.agents
            assert agents.num_agents == 300
            assert jnp.all(agents.positions >= 0.0)
            assert jnp.all(agents.positions[:, 0] < 24.0)
            assert jnp.all(agents.positions[:, 1] < 20.0)

        scheduler.run(num_ticks=30, on_frame=check)

    def test_single_agent_deposit_scenario(self):
        config = _make_config(
            width=4, height=4, num_agents=1, evaporate_speed=0.1,
            pheromone_deposit=1.0, max_pheromone=3.0,
        )
        scheduler = FrameScheduler(config)
        scheduler.initialize(agents=_single_agent(2.0, 2.0))

        front = scheduler.tick()

        x, y = (int(np.floor(v + 0.5)) for v in np.asarray(scheduler.agents.positions[0]))
        assert (x, y) == (3, 2)
        assert front[y, x] == 1.0
        assert float(front.sum()) == 1.0

    def test_no_agents_field_still_relaxes(self):
        config = _make_config(num_agents=0, evaporate_speed=0.01, diffuse_speed=0.5)
        grid = create_field_grid(16, 16)
        grid = grid.replace(buffers=grid.buffers.at[BUFFER_A, 8, 8].set(1.0))

        scheduler = FrameScheduler(config)
        scheduler.initialize(grid=grid)
        front = scheduler.tick()

        assert scheduler.agents.num_agents == 0
        # Spike mixes halfway toward its 3x3 mean; neighbours get half of 1/9
        assert float(front[8, 8]) == pytest.approx(0.5 + 0.5 / 9 - 0.01, abs=1e-6)
        assert float(front[8, 9]) == pytest.approx(0.5 / 9 - 0.01, abs=1e-6)
        assert float(front[0, 0]) == 0.0

    def test_no_agents_strong_evaporation_clamps_neighbours(self):
        config = _make_config(num_agents=0, evaporate_speed=0.1, diffuse_speed=0.5)
        grid = create_field_grid(16, 16)
        grid = grid.replace(buffers=grid.buffers.at[BUFFER_A, 8, 8].set(1.0))

        scheduler = FrameScheduler(config)
        scheduler.initialize(grid=grid)
        front = scheduler.tick()

        assert float(front[8, 8]) == pytest.approx(0.5 + 0.5 / 9 - 0.1, abs=1e-6)
        assert float(front[8, 9]) == 0.0

    def test_same_seed_same_run(self):
        def final_front(seed):
            config = _make_config(num_agents=100, wobbling=0.8, pheromone_deposit=0.2,
                                  diffuse_speed=0.2, evaporate_speed=0.01)
            config.engine.seed = seed
            scheduler = FrameScheduler(config)
            scheduler.initialize()
            scheduler.run(num_ticks=5)
            return np.asarray(scheduler.front), np.asarray(scheduler.agents.records)

        a_front, a_agents = final_front(11)
        b_front, b_agents = final_front(11)
        c_front, c_agents = final_front(12)

        np.testing.assert_array_equal(a_front, b_front)
        np.testing.assert_array_equal(a_agents, b_agents)
        assert not np.array_equal(a_agents, c_agents)
