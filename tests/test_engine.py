"""Tests for cpb_ai.engine: component wiring and status."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cpb_ai.engine import open_engine
from cpb_ai.normalization import NORMALIZATION_FILE

if TYPE_CHECKING:
    from cpb_ai.engine import Engine
    from cpb_ai.settings import EngineSettings


class TestEngine:
    async def test_status_before_training(self, engine: Engine) -> None:
        status = engine.status()
        assert set(status["domains"]) == {"transfusion", "perfusion", "blood-gas", "fluid-balance"}
        assert not any(d["usable"] for d in status["domains"].values())
        assert not any(d["training"] for d in status["domains"].values())

    async def test_status_after_bootstrap(self, engine: Engine) -> None:
        await engine.training.bootstrap_baseline()
        transfusion = engine.status()["domains"]["transfusion"]
        assert transfusion == {
            "artifact": True,
            "normalization": True,
            "usable": True,
            "training": False,
        }

    async def test_model_without_normalization_not_usable(self, engine: Engine) -> None:
        await engine.training.bootstrap_baseline()
        (engine.storage.domain_dir("transfusion") / NORMALIZATION_FILE).unlink()
        transfusion = engine.status()["domains"]["transfusion"]
        assert transfusion["artifact"] is True
        assert transfusion["usable"] is False

    async def test_open_engine(self, settings: EngineSettings) -> None:
        async with open_engine(settings) as engine:
            assert engine.settings is settings
            assert engine.storage.base_dir == settings.artifact_dir
            assert await engine.history.count() == 0
