"""FieldGrid dataclass: the double-buffered trail field."""

import flax.struct
import jax.numpy as jnp

BUFFER_A = 0
BUFFER_B = 1
NUM_BUFFERS = 2


@flax.struct.dataclass
class FieldGrid:
    """Two equally shaped scalar grids over a fixed lattice.

    At any tick one buffer is the source (read by relaxation and by
    presentation) and the other is the destination being written. Which is
    which is decided by the scheduler, never by this class.

    Attributes:
        buffers: Trail concentration with shape (2, H, W), indexed as
            buffers[buffer_id, y, x].
    """
    buffers: jnp.ndarray  # (2, H, W)

    @property
    def height(self) -> int:
        return self.buffers.shape[1]

    @property
    def width(self) -> int:
        return self.buffers.shape[2]

    @property
    def resolution(self) -> tuple[int, int]:
        """Field resolution as (W, H)."""
        return self.width, self.height


def create_field_grid(width: int, height: int) -> FieldGrid:
    """Create a new FieldGrid with both buffers zeroed.

    Args:
        width: Number of columns (W).
        height: Number of rows (H).

    Returns:
        FieldGrid with buffers of shape (2, height, width).
    """
    buffers = jnp.zeros((NUM_BUFFERS, height, width), dtype=jnp.float32)
    return FieldGrid(buffers=buffers)


def _check_buffer_id(buffer_id: int) -> None:
    if buffer_id not in (BUFFER_A, BUFFER_B):
        raise ValueError(f"buffer_id must be {BUFFER_A} or {BUFFER_B}, got {buffer_id}")


def _check_cell(grid: FieldGrid, x: int, y: int) -> None:
    if not (0 <= x < grid.width and 0 <= y < grid.height):
        raise IndexError(
            f"Cell ({x}, {y}) outside field of size {grid.width}x{grid.height}"
        )


def read(grid: FieldGrid, buffer_id: int, x: int, y: int) -> float:
    """Read the concentration of one cell."""
    _check_buffer_id(buffer_id)
    _check_cell(grid, x, y)
    return float(grid.buffers[buffer_id, y, x])


def write(grid: FieldGrid, buffer_id: int, x: int, y: int, value: float) -> FieldGrid:
    """Return a new grid with one cell of one buffer set to value."""
    _check_buffer_id(buffer_id)
    _check_cell(grid, x, y)
    return grid.replace(buffers=grid.buffers.at[buffer_id, y, x].set(value))


def buffer(grid: FieldGrid, buffer_id: int) -> jnp.ndarray:
    """Return one buffer as an (H, W) array."""
    _check_buffer_id(buffer_id)
    return grid.buffers[buffer_id]


def set_buffer(grid: FieldGrid, buffer_id: int, values: jnp.ndarray) -> FieldGrid:
    """Return a new grid with one buffer replaced by values of shape (H, W)."""
    _check_buffer_id(buffer_id)
    values = jnp.asarray(values, dtype=jnp.float32)
    if values.shape != (grid.height, grid.width):
        raise ValueError(
            f"Expected buffer shape {(grid.height, grid.width)}, got {values.shape}"
        )
    return grid.replace(buffers=grid.buffers.at[buffer_id].set(values))


def fill(grid: FieldGrid, value: float) -> FieldGrid:
    """Return a new grid with every cell of both buffers set to value."""
    return grid.replace(buffers=jnp.full_like(grid.buffers, value))
