"""Hand-off of simulation frames to a presentation layer.

The tick loop produces a frame per step; a presenter (window, video writer,
remote viewer) only ever wants the newest one. FrameBridge is that one-slot
mailbox. Frames can also be encoded as MessagePack for a presenter running
in another process.

Thread-safety: the slot and its counters sit behind a threading.Lock, so the
tick thread and the presenter thread may touch the bridge concurrently.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

import msgpack
import numpy as np

from physarum.engine.api import EngineHandle, FieldView, agent_snapshot

# Frame attributes carried as typed arrays on the wire; None entries are omitted.
_ARRAY_KEYS = {"field": "field_values", "positions": "positions", "headings": "headings"}


@dataclass
class Frame:
    """Host-side copy of one tick, detached from device memory.

    Attributes:
        step: Completed tick count.
        elapsed_ms: Accumulated simulation time.
        buffer_id: Physical buffer the field was read from.
        field_values: (H, W) float32 trail field.
        positions: (N, 2) agent positions, or None when agents are omitted.
        headings: (N,) agent headings, or None.
        metrics: Scalar metrics attached by the caller.
        timestamp: Wall-clock creation time; filled in when left at 0.
    """

    step: int
    elapsed_ms: float
    buffer_id: int
    field_values: np.ndarray
    positions: np.ndarray | None
    headings: np.ndarray | None
    metrics: dict[str, float] = field(default_factory=dict)
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if self.timestamp == 0.0:
            self.timestamp = time.time()


def _pack_array(arr: np.ndarray) -> dict[str, Any]:
    """Encode an array as {shape, dtype, data} with raw little-endian bytes."""
    return {
        "shape": list(arr.shape),
        "dtype": arr.dtype.str,
        "data": arr.tobytes(),
    }


def _unpack_array(packed: dict[str, Any]) -> np.ndarray:
    flat = np.frombuffer(packed["data"], dtype=np.dtype(packed["dtype"]))
    return flat.reshape(packed["shape"])


def pack_frame(frame: Frame) -> bytes:
    """Encode a Frame as MessagePack.

    Scalars go in as-is; arrays are cast to float32 and stored with their
    shape and dtype so any client can rebuild them.
    """
    payload: dict[str, Any] = {
        "step": frame.step,
        "elapsed_ms": frame.elapsed_ms,
        "buffer_id": frame.buffer_id,
        "timestamp": frame.timestamp,
        "metrics": frame.metrics,
    }
    for wire_key, attr in _ARRAY_KEYS.items():
        arr = getattr(frame, attr)
        if arr is not None:
            payload[wire_key] = _pack_array(np.asarray(arr, dtype=np.float32))
    encoded: bytes = msgpack.packb(payload, use_bin_type=True)
    return encoded


def unpack_frame(payload: bytes) -> Frame:
    """Decode pack_frame() output back into a Frame."""
    data = msgpack.unpackb(payload, raw=False)
    arrays = {
        attr: _unpack_array(data[wire_key]) if wire_key in data else None
        for wire_key, attr in _ARRAY_KEYS.items()
    }
    return Frame(
        step=data["step"],
        elapsed_ms=data["elapsed_ms"],
        buffer_id=data["buffer_id"],
        metrics=dict(data.get("metrics", {})),
        timestamp=data["timestamp"],
        **arrays,
    )


def create_frame(
    handle: EngineHandle,
    view: FieldView,
    metrics: dict[str, Any] | None = None,
    include_agents: bool = True,
) -> Frame:
    """Build a Frame from the FieldView a tick returned.

    Args:
        handle: Engine that produced the view.
        view: Result of tick().
        metrics: Optional scalars; entries that cannot become floats are dropped.
        include_agents: Attach positions and headings from an agent snapshot.
    """
    positions = headings = None
    if include_agents:
        snapshot = agent_snapshot(handle)
        positions = np.array(snapshot.positions)
        headings = np.array(snapshot.headings)

    scalars: dict[str, float] = {}
    for name, value in (metrics or {}).items():
        try:
            scalars[name] = float(value)
        except (TypeError, ValueError):
            continue

    return Frame(
        step=view.step,
        elapsed_ms=view.elapsed_ms,
        buffer_id=view.buffer_id,
        field_values=np.array(view.values),
        positions=positions,
        headings=headings,
        metrics=scalars,
    )


class FrameBridge:
    """One-slot mailbox holding the newest published frame.

    publish_frame() drops frames that arrive faster than target_fps so the
    presenter is not flooded; a target_fps of 0 accepts every frame.
    """

    def __init__(self, target_fps: float = 30.0) -> None:
        self._lock = threading.Lock()
        self._slot: Frame | None = None
        self._accepted = 0
        self._target_fps = target_fps
        self._min_interval = 1.0 / target_fps if target_fps > 0 else 0.0
        self._last_accept = 0.0

    @property
    def frame_count(self) -> int:
        """Number of frames accepted so far."""
        return self._accepted

    @property
    def target_fps(self) -> float:
        return self._target_fps

    def publish_frame(self, frame: Frame) -> bool:
        """Offer a frame from the tick loop.

        Returns:
            True if the frame replaced the slot, False if it was rate-limited.
        """
        now = time.time()
        with self._lock:
            if now - self._last_accept < self._min_interval:
                return False
            self._slot = frame
            self._accepted += 1
            self._last_accept = now
        return True

    def get_latest_frame(self) -> Frame | None:
        """Newest accepted frame, or None before the first publish."""
        with self._lock:
            return self._slot

    def get_latest_packed(self) -> bytes | None:
        """Newest accepted frame encoded with pack_frame()."""
        frame = self.get_latest_frame()
        return None if frame is None else pack_frame(frame)
