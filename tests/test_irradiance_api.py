"""
tests/test_irradiance_api.py

HTTP surface of the irradiance routers against the in-memory store.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from app.api.routers import (
    irradiance_datasets_router,
    irradiance_imports_router,
    irradiance_versions_router,
)
from app.services.batch_ingestion_service import BatchIngestionService
from app.services.csv_merge_service import IrradianceCSVParser
from app.services.import_orchestrator_service import ImportOrchestratorService, get_import_orchestrator_service
from app.services.version_lifecycle_service import VersionLifecycleService
from db.repositories.dataset_repository import DatasetRepository
from db.session import get_db
from factories import csv_line, make_grid, month_header

MONTHLY = [5.1, 5.3, 5.0, 4.6, 4.1, 3.8, 4.0, 4.7, 5.0, 5.4, 5.6, 5.5]
DATASET = "INPE_2017_SUNDATA"


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Iterator[TestClient]:
    app = FastAPI()
    app.include_router(irradiance_versions_router)
    app.include_router(irradiance_imports_router)
    app.include_router(irradiance_datasets_router)

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    orchestrator = ImportOrchestratorService(
        session_factory=session_factory,
        parser=IrradianceCSVParser(max_row_issues=50, log_row_issues=False),
        lifecycle=VersionLifecycleService(),
        ingestion=BatchIngestionService(batch_size=2),
    )
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_import_orchestrator_service] = lambda: orchestrator

    with TestClient(app) as test_client:
        yield test_client


def _init(client: TestClient, tag: str = "v1", dataset_code: str = DATASET):
    return client.post(
        "/irradiance/versions/init",
        json={"dataset_code": dataset_code, "version_tag": tag, "source_note": "manual"},
    )


def _batch_rows(count: int) -> list[dict]:
    return [
        {"lat": row["lat"], "lon": row["lon"], **{key: value for key, value in row.items() if key.startswith("m")}}
        for row in make_grid(count)
    ]


class TestVersionProtocol:
    def test_full_protocol(self, client: TestClient) -> None:
        created = _init(client)
        assert created.status_code == 201
        version_id = created.json()["version_id"]
        dataset_id = created.json()["dataset_id"]

        batch = client.post(f"/irradiance/versions/{version_id}/batch", json={"rows": _batch_rows(3)})
        assert batch.status_code == 200
        assert batch.json() == {"accepted_count": 3}

        finalized = client.post(
            f"/irradiance/versions/{version_id}/finalize",
            json={"dataset_id": dataset_id, "row_count": 3, "checksum": "f" * 64},
        )
        assert finalized.status_code == 200
        assert finalized.json() == {"ok": True, "superseded": []}

        version = client.get(f"/irradiance/versions/{version_id}").json()
        assert version["status"] == "active"
        assert version["row_count"] == 3
        assert version["metadata"]["has_dhi"] is False

    def test_duplicate_init_returns_conflict_body(self, client: TestClient) -> None:
        _init(client, dataset_code="NASA_POWER_GLOBAL")

        response = _init(client, dataset_code="NASA_POWER_GLOBAL")

        assert response.status_code == 409
        assert response.json()["error"] == "VERSION_PROCESSING"
        assert "already being processed" in response.json()["message"]

    def test_init_unknown_dataset(self, client: TestClient) -> None:
        assert _init(client, dataset_code="NOPE").status_code == 404

    def test_batch_after_finalize_is_conflict(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]
        client.post(f"/irradiance/versions/{version_id}/finalize", json={"row_count": 0})

        response = client.post(f"/irradiance/versions/{version_id}/batch", json={"rows": _batch_rows(1)})

        assert response.status_code == 409

    def test_batch_rejects_unknown_columns(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]

        response = client.post(
            f"/irradiance/versions/{version_id}/batch",
            json={"rows": [{"lat": -20.0, "lon": -45.0, "bogus": 1.0}]},
        )

        assert response.status_code == 422

    def test_finalize_with_wrong_dataset(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]

        response = client.post(
            f"/irradiance/versions/{version_id}/finalize",
            json={"dataset_id": str(uuid.uuid4()), "row_count": 0},
        )

        assert response.status_code == 400

    def test_abort_is_idempotent(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]

        first = client.post(f"/irradiance/versions/{version_id}/abort", json={"error": "client gave up"})
        second = client.post(f"/irradiance/versions/{version_id}/abort", json={"error": "again"})

        assert first.status_code == 200
        assert second.status_code == 200
        version = client.get(f"/irradiance/versions/{version_id}").json()
        assert version["status"] == "failed"
        assert version["metadata"]["error"] == "client gave up"

    def test_unknown_version(self, client: TestClient) -> None:
        assert client.get(f"/irradiance/versions/{uuid.uuid4()}").status_code == 404
        assert client.get(f"/irradiance/versions/{uuid.uuid4()}/integrity").status_code == 404

    def test_integrity_report(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]
        client.post(f"/irradiance/versions/{version_id}/batch", json={"rows": _batch_rows(4)})

        report = client.get(f"/irradiance/versions/{version_id}/integrity").json()

        labels = [check["label"] for check in report["checks"]]
        assert labels[:2] == ["Status", "Pontos"]
        assert report["stats"]["actual_points"] == 4
        assert report["summary"] == "all clear"


class TestImports:
    def test_import_is_accepted_and_runs(self, client: TestClient) -> None:
        content = "\n".join([month_header(";"), csv_line(-20.0, -45.0, MONTHLY), csv_line(-20.1, -45.0, MONTHLY)])

        response = client.post(
            "/irradiance/imports",
            data={"dataset_code": DATASET, "version_tag": "api-import"},
            files=[("files", ("ghi.csv", content.encode("utf-8"), "text/csv"))],
        )

        assert response.status_code == 202
        job_id = response.json()["job_id"]

        job = client.get(f"/irradiance/jobs/{job_id}").json()
        assert job["status"] == "success"
        assert job["row_count"] == 2

        logs = client.get(f"/irradiance/jobs/{job_id}/logs").json()["logs"]
        assert logs[0]["message"].startswith("Import queued")
        assert logs[-1]["message"].startswith("Import finished")

        listed = client.get("/irradiance/jobs", params={"dataset_key": DATASET}).json()["jobs"]
        assert [item["job_id"] for item in listed] == [job_id]

    def test_malformed_header_is_rejected_synchronously(self, client: TestClient) -> None:
        response = client.post(
            "/irradiance/imports",
            data={"dataset_code": DATASET},
            files=[("files", ("ghi.csv", b"lat;lon;jan\n-20;-45;5\n", "text/csv"))],
        )

        assert response.status_code == 400
        assert client.get("/irradiance/jobs").json()["jobs"] == []

    def test_non_csv_upload_is_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/irradiance/imports",
            data={"dataset_code": DATASET},
            files=[("files", ("atlas.xlsx", b"binary", "application/octet-stream"))],
        )

        assert response.status_code == 400

    def test_unknown_job(self, client: TestClient) -> None:
        assert client.get(f"/irradiance/jobs/{uuid.uuid4()}").status_code == 404
        assert client.get(f"/irradiance/jobs/{uuid.uuid4()}/logs").status_code == 404


class TestDatasets:
    def test_catalog_lists_registry_with_active_version(self, client: TestClient) -> None:
        version_id = _init(client).json()["version_id"]
        client.post(f"/irradiance/versions/{version_id}/finalize", json={"row_count": 0})

        datasets = {item["code"]: item for item in client.get("/irradiance/datasets").json()["datasets"]}

        assert set(datasets) >= {"INPE_2017_SUNDATA", "INPE_2009_10KM", "NASA_POWER_GLOBAL"}
        assert datasets[DATASET]["registered"] is True
        assert datasets[DATASET]["active_version_id"] == version_id
        assert datasets["NASA_POWER_GLOBAL"]["active_version_id"] is None

    def test_purge_and_lookup(self, client: TestClient, session_factory: sessionmaker[Session]) -> None:
        version_id = _init(client).json()["version_id"]
        client.post(f"/irradiance/versions/{version_id}/batch", json={"rows": _batch_rows(3)})
        client.post(f"/irradiance/versions/{version_id}/finalize", json={"row_count": 3})

        lookup = client.get("/irradiance/lookup", params={"lat": -20.01, "lon": -45.0, "dataset_code": DATASET})
        assert lookup.status_code == 200
        assert lookup.json()["point_lat"] == -20.0
        assert lookup.json()["cache_hit"] is False

        with session_factory() as db:
            dataset_id = DatasetRepository(db).get_by_code(DATASET).id

        purged = client.delete(f"/irradiance/datasets/{dataset_id}")
        assert purged.status_code == 200
        body = purged.json()
        assert body["ok"] is True
        assert body["points_deleted"] == 3
        assert body["cache_deleted"] == 1
        assert body["versions_deleted"] == 1

        missing = client.get("/irradiance/lookup", params={"lat": -20.0, "lon": -45.0, "dataset_code": DATASET})
        assert missing.status_code == 404

    def test_purge_unknown_dataset(self, client: TestClient) -> None:
        assert client.delete(f"/irradiance/datasets/{uuid.uuid4()}").status_code == 404
