"""Tests for cpb_ai.api: REST endpoints, error mapping and middleware."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from cpb_ai.api.errors import error_code, status_for
from cpb_ai.exceptions import (
    ArtifactCorruptedError,
    DatasetFormatError,
    InsufficientDataError,
    ModelNotFoundError,
    ModelTrainingError,
    NormalizationMetadataNotFoundError,
    TrainingInProgressError,
    UnknownDomainError,
)

if TYPE_CHECKING:
    from httpx import AsyncClient


# ======================================================================
# Error mapping
# ======================================================================


class TestErrorMapping:
    def test_error_code(self) -> None:
        assert error_code(DatasetFormatError) == "DATASET_FORMAT"
        assert error_code(TrainingInProgressError) == "TRAINING_IN_PROGRESS"

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (DatasetFormatError("x"), 422),
            (InsufficientDataError("x"), 422),
            (UnknownDomainError("x"), 404),
            (TrainingInProgressError("x"), 409),
            (ModelNotFoundError("x"), 503),
            (NormalizationMetadataNotFoundError("x"), 503),
            (ModelTrainingError("x"), 500),
            (ArtifactCorruptedError("x"), 500),
        ],
    )
    def test_status_for(self, exc: Exception, status: int) -> None:
        assert status_for(exc) == status  # type: ignore[arg-type]


# ======================================================================
# GET /api/v1/health
# ======================================================================


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert set(data["domains"]) == {"transfusion", "perfusion", "blood-gas", "fluid-balance"}
        assert data["domains"]["transfusion"]["usable"] is False

    async def test_unknown_route(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/nowhere")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/health", headers={"x-request-id": "req-123"})
        assert resp.headers["x-request-id"] == "req-123"

    async def test_request_id_generated(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/health")
        assert resp.headers["x-request-id"]


# ======================================================================
# POST /api/v1/predict/*
# ======================================================================


class TestPredict:
    async def test_heuristic_prediction(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/predict/transfusion", json={"hemoglobine": 7})
        assert resp.status_code == 200
        data = resp.json()
        assert data["provenance"] == "heuristic"
        assert data["status"] == "Élevé"
        assert data["severity"] == "destructive"

    async def test_perfusion(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/predict/perfusion", json={"bsa": 2, "target_ci": 2.5})
        assert resp.json()["value"] == 5.0

    async def test_unknown_domain(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/predict/cardiology",
            json={},
            headers={"x-request-id": "abc"},
        )
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "UNKNOWN_DOMAIN"
        assert error["request_id"] == "abc"

    async def test_complications(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/predict/complications",
            json={"age": 70, "euroscore": 10, "duree_cec": 120},
        )
        assert resp.status_code == 200
        assert resp.json()["score"] == 33.0

    async def test_body_must_be_object(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/predict/transfusion", json=[1, 2])
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_model_prediction_after_bootstrap(self, client: AsyncClient) -> None:
        await client.post("/api/v1/training/bootstrap")
        resp = await client.post("/api/v1/predict/transfusion", json={"hematocrite": 20})
        assert resp.json()["provenance"] == "model"


# ======================================================================
# /api/v1/training/*
# ======================================================================


class TestTraining:
    async def test_bootstrap_and_history(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/training/bootstrap")
        assert resp.status_code == 200
        assert resp.json()["record_count"] == 7

        history = (await client.get("/api/v1/training/history")).json()
        assert len(history) == 1
        assert history[0]["domain"] == "transfusion"

        health = (await client.get("/api/v1/health")).json()
        assert health["domains"]["transfusion"]["usable"] is True

    async def test_train_routes_dataset(
        self, client: AsyncClient, baseline: list[dict[str, Any]]
    ) -> None:
        resp = await client.post("/api/v1/training", json={"records": baseline})
        assert resp.status_code == 200
        assert resp.json()["domain"] == "transfusion"

    async def test_unknown_format(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/training", json={"foo": 1})
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "DATASET_FORMAT"
        assert error["details"]["keys"] == ["foo"]

    async def test_insufficient_data(
        self, client: AsyncClient, baseline: list[dict[str, Any]]
    ) -> None:
        resp = await client.post("/api/v1/training/transfusion", json=baseline[:3])
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "INSUFFICIENT_DATA"
        assert error["details"]["required"] == 5
        assert error["details"]["received"] == 3
        assert error["details"]["domain"] == "transfusion"

    async def test_train_explicit_domain(
        self, client: AsyncClient, perfusion_records: list[dict[str, Any]]
    ) -> None:
        resp = await client.post("/api/v1/training/perfusion", json=perfusion_records)
        assert resp.status_code == 200
        assert resp.json()["mean_absolute_error"] is not None

    async def test_train_unknown_domain(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/training/cardiology", json=[{"x": 1}])
        assert resp.status_code == 404

    async def test_reports(self, client: AsyncClient) -> None:
        reports = [
            {"poids": 70 + i, "taille": 170, "age": 60 + i, "hb": 9 + i * 0.3, "hte": 25 + i}
            for i in range(6)
        ]
        resp = await client.post("/api/v1/training/reports", json={"reports": reports})
        assert resp.status_code == 200
        assert resp.json()["record_count"] == 6

    async def test_history_filters(self, client: AsyncClient) -> None:
        await client.post("/api/v1/training/bootstrap")
        await client.post("/api/v1/training/bootstrap")
        resp = await client.get("/api/v1/training/history", params={"limit": 1})
        assert len(resp.json()) == 1
        resp = await client.get("/api/v1/training/history", params={"domain": "perfusion"})
        assert resp.json() == []
        resp = await client.get("/api/v1/training/history", params={"domain": "cardiology"})
        assert resp.status_code == 404

    async def test_trend_and_clear(self, client: AsyncClient) -> None:
        await client.post("/api/v1/training/bootstrap")
        await client.post("/api/v1/training/bootstrap")
        trend = (await client.get("/api/v1/training/trend")).json()
        assert trend["run_count"] == 2
        assert trend["loss_delta"] is not None

        resp = await client.delete("/api/v1/training/history")
        assert resp.json() == {"removed": 2}
        assert (await client.get("/api/v1/training/history")).json() == []
