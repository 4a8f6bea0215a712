"""Scoped accounting for numeric buffers (tensors and arrays).

Every block that allocates tensors during training or inference wraps
them in a :class:`BufferScope`.  Leaving the scope, normally or through
an exception, drops the scope's references and updates the process-wide
counters reported by :func:`memory`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np
import torch

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

T = TypeVar("T")

_lock = threading.Lock()
_live_buffers = 0
_live_bytes = 0


@dataclass(frozen=True)
class MemoryInfo:
    """Snapshot of buffers currently held by open scopes."""

    num_buffers: int
    num_bytes: int


def memory() -> MemoryInfo:
    """Return the number of tracked buffers not yet released."""
    with _lock:
        return MemoryInfo(num_buffers=_live_buffers, num_bytes=_live_bytes)


def _nbytes(buffer: Any) -> int:
    if isinstance(buffer, torch.Tensor):
        return buffer.element_size() * buffer.nelement()
    if isinstance(buffer, np.ndarray):
        return int(buffer.nbytes)
    return 0


def _adjust(count: int, size: int) -> None:
    global _live_buffers, _live_bytes
    with _lock:
        _live_buffers += count
        _live_bytes += size


class BufferScope:
    """Track buffers allocated in a block and release them on exit.

    Example::

        with BufferScope("predict") as scope:
            x = scope.track(torch.tensor(vector))
            y = scope.track(model(x))
            value = float(y.item())
        # x and y are released here, even if model() raised
    """

    def __init__(self, name: str = "scope") -> None:
        self._name = name
        self._buffers: list[Any] = []
        self._bytes = 0
        self._closed = False

    @property
    def live(self) -> int:
        return len(self._buffers)

    def track(self, buffer: T) -> T:
        """Register *buffer* with the scope and return it unchanged."""
        if self._closed:
            raise RuntimeError(f"BufferScope {self._name!r} is already released")
        size = _nbytes(buffer)
        self._buffers.append(buffer)
        self._bytes += size
        _adjust(1, size)
        return buffer

    def release(self) -> None:
        """Drop every tracked buffer. Idempotent."""
        if self._closed:
            return
        count, size = len(self._buffers), self._bytes
        for buffer in self._buffers:
            if isinstance(buffer, torch.Tensor) and buffer.requires_grad:
                buffer.grad = None
        self._buffers.clear()
        self._bytes = 0
        self._closed = True
        _adjust(-count, -size)
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.debug("Released %d buffer(s) from scope %s", count, self._name)

    def __enter__(self) -> BufferScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
