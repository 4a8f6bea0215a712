"""Tests for cpb_ai.resources: scoped buffer accounting."""

from __future__ import annotations

import numpy as np
import pytest
import torch

from cpb_ai.resources import BufferScope, memory


class TestBufferScope:
    def test_track_and_release(self) -> None:
        before = memory()
        scope = BufferScope("test")
        scope.track(torch.zeros(4, dtype=torch.float32))
        scope.track(np.zeros(2, dtype=np.float64))
        assert scope.live == 2
        assert memory().num_buffers == before.num_buffers + 2
        assert memory().num_bytes == before.num_bytes + 16 + 16

        scope.release()
        assert scope.live == 0
        assert memory() == before

    def test_release_idempotent(self) -> None:
        before = memory()
        scope = BufferScope()
        scope.track(torch.ones(3))
        scope.release()
        scope.release()
        assert memory() == before

    def test_released_on_exception(self) -> None:
        before = memory()
        with pytest.raises(RuntimeError), BufferScope("boom") as scope:
            scope.track(torch.ones(10))
            raise RuntimeError("model exploded")
        assert memory() == before

    def test_track_returns_buffer(self) -> None:
        tensor = torch.ones(2)
        with BufferScope() as scope:
            assert scope.track(tensor) is tensor

    def test_track_after_release(self) -> None:
        scope = BufferScope("closed")
        scope.release()
        with pytest.raises(RuntimeError, match="already released"):
            scope.track(torch.ones(1))

    def test_clears_gradients(self) -> None:
        param = torch.nn.Parameter(torch.ones(2))
        param.sum().backward()
        with BufferScope() as scope:
            scope.track(param)
        assert param.grad is None
