"""AgentTable dataclass: the fixed population of trail walkers."""

import flax.struct
import jax.numpy as jnp
import numpy as np

from physarum.agents import layout


@flax.struct.dataclass
class AgentTable:
    """Flat array of fixed-stride agent records.

    Only the position and heading columns change during a run; speed,
    sensor geometry and the angle sets are fixed at spawn time.

    Attributes:
        records: Agent records with shape (N, 16), see agents.layout.
    """
    records: jnp.ndarray  # (N, 16) float32

    @property
    def num_agents(self) -> int:
        return self.records.shape[0]

    @property
    def positions(self) -> jnp.ndarray:
        """(N, 2) positions as (x, y) in grid coordinates."""
        return self.records[:, layout.POSITION]

    @property
    def headings(self) -> jnp.ndarray:
        return self.records[:, layout.HEADING]

    @property
    def speeds(self) -> jnp.ndarray:
        return self.records[:, layout.SPEED]

    @property
    def sensor_lengths(self) -> jnp.ndarray:
        return self.records[:, layout.SENSOR_LENGTH]

    @property
    def sensor_sizes(self) -> jnp.ndarray:
        return self.records[:, layout.SENSOR_SIZE]

    @property
    def turn_angles(self) -> jnp.ndarray:
        """(N, 3) candidate heading deltas."""
        return self.records[:, layout.TURN_ANGLES]

    @property
    def sensor_angles(self) -> jnp.ndarray:
        """(N, 3) sensor offsets, paired positionally with turn_angles."""
        return self.records[:, layout.SENSOR_ANGLES]

    def with_motion(self, positions: jnp.ndarray, headings: jnp.ndarray) -> "AgentTable":
        """Return a table with new positions (N, 2) and headings (N,)."""
        records = self.records.at[:, layout.POSITION].set(positions)
        records = records.at[:, layout.HEADING].set(headings)
        return self.replace(records=records)

    def to_bytes(self) -> bytes:
        """Serialize to little-endian float32 records, 64 bytes per agent."""
        return np.asarray(self.records, dtype=layout.RECORD_DTYPE).tobytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> "AgentTable":
        """Rebuild a table from bytes produced by to_bytes()."""
        if len(data) % layout.RECORD_STRIDE != 0:
            raise ValueError(
                f"Buffer length {len(data)} is not a multiple of the "
                f"{layout.RECORD_STRIDE}-byte record stride"
            )
        flat = np.frombuffer(data, dtype=layout.RECORD_DTYPE)
        records = flat.reshape(-1, layout.RECORD_FIELDS).astype(np.float32)
        return cls(records=jnp.asarray(records))


def create_agent_table(
    positions: jnp.ndarray,
    headings: jnp.ndarray,
    speeds: jnp.ndarray,
    sensor_lengths: jnp.ndarray,
    sensor_sizes: jnp.ndarray,
    turn_angles: jnp.ndarray,
    sensor_angles: jnp.ndarray,
) -> AgentTable:
    """Pack per-agent attributes into an AgentTable.

    Scalar attributes broadcast across the population.

    Args:
        positions: (N, 2) positions as (x, y).
        headings: (N,) headings in radians.
        speeds: (N,) or scalar speed.
        sensor_lengths: (N,) or scalar sensor distance.
        sensor_sizes: (N,) or scalar sensor box radius.
        turn_angles: (N, 3) or (3,) candidate heading deltas.
        sensor_angles: (N, 3) or (3,) sensor offsets.

    Returns:
        AgentTable with padding columns zeroed.
    """
    positions = jnp.asarray(positions, dtype=jnp.float32).reshape(-1, 2)
    n = positions.shape[0]

    records = jnp.zeros((n, layout.RECORD_FIELDS), dtype=jnp.float32)
    records = records.at[:, layout.POSITION].set(positions)
    records = records.at[:, layout.HEADING].set(jnp.broadcast_to(headings, (n,)))
    records = records.at[:, layout.SPEED].set(jnp.broadcast_to(speeds, (n,)))
    records = records.at[:, layout.SENSOR_LENGTH].set(
        jnp.broadcast_to(sensor_lengths, (n,))
    )
    records = records.at[:, layout.SENSOR_SIZE].set(jnp.broadcast_to(sensor_sizes, (n,)))
    records = records.at[:, layout.TURN_ANGLES].set(jnp.broadcast_to(turn_angles, (n, 3)))
    records = records.at[:, layout.SENSOR_ANGLES].set(
        jnp.broadcast_to(sensor_angles, (n, 3))
    )
    return AgentTable(records=records)
