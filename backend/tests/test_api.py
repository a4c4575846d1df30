"""HTTP surface: dispatch, job polling, catalog reads and error envelopes."""
import io

import pytest
from fastapi.testclient import TestClient

from catalog_ingest.core.config import get_settings
from catalog_ingest.main import app
from catalog_ingest.services import import_orchestrator
from catalog_ingest.workers.tasks.import_products import import_products_task
from conftest import make_row, write_csv

client = TestClient(app)


def _csv_bytes(tmp_path, rows):
    path = write_csv(tmp_path / "upload.csv", rows)
    return path.read_bytes()


def _upload(url, content, filename="products.csv", content_type="text/csv"):
    return client.post(url, files={"file": (filename, io.BytesIO(content), content_type)})


@pytest.fixture
def queued(monkeypatch):
    calls = []

    def fake_apply_async(args=None, queue=None, **kwargs):
        calls.append(args)

    monkeypatch.setattr(
        import_orchestrator.import_products_task, "apply_async", fake_apply_async
    )
    return calls


class TestImports:
    def test_small_file_is_imported_synchronously(self, tmp_path, queued):
        content = _csv_bytes(tmp_path, [make_row(sku="A"), make_row(sku="B", msrp="x")])

        resp = _upload("/api/imports/", content)

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["totalRows"] == 2
        assert body["successCount"] == 1
        assert body["failCount"] == 1
        assert body["createdCount"] == 1
        assert body["errors"][0].startswith("Row 3:")
        assert queued == []

    def test_forced_background_returns_job_id(self, tmp_path, queued):
        content = _csv_bytes(tmp_path, [make_row()])

        resp = _upload("/api/imports/background", content)

        assert resp.status_code == 202
        body = resp.json()
        assert body["success"] is True
        job_id = body["jobId"]
        assert queued[0][0] == job_id

        status_resp = client.get("/api/imports/background", params={"jobId": job_id})
        assert status_resp.status_code == 200
        assert status_resp.json()["status"] == "pending"

    def test_background_job_status_after_worker_run(self, tmp_path, queued):
        content = _csv_bytes(tmp_path, [make_row(sku="A"), make_row(sku="B")])
        job_id = _upload("/api/imports/background", content).json()["jobId"]

        import_products_task(*queued[0])

        body = client.get(f"/api/jobs/{job_id}").json()
        assert body["status"] == "completed"
        assert body["progress"] == 100
        assert body["processedRows"] == 2
        assert body["successCount"] == 2
        assert body["inStockCount"] == 2
        assert body["endTime"] is not None

    def test_non_csv_rejected(self):
        resp = _upload(
            "/api/imports/", b"not,a,csv", filename="data.xlsx", content_type="application/octet-stream"
        )

        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Invalid file type. Only CSV files are allowed.",
        }

    def test_over_ceiling_rejected_without_job(self, tmp_path, monkeypatch, queued):
        monkeypatch.setattr(get_settings(), "import_max_file_mb", 0)
        content = _csv_bytes(tmp_path, [make_row()])

        resp = _upload("/api/imports/background", content)

        assert resp.status_code == 413
        assert resp.json()["success"] is False
        assert queued == []
        assert client.get("/api/jobs/").json() == []

    def test_bad_header_rejected(self):
        resp = _upload("/api/imports/sync", b"sku,name\nA,B\n")

        assert resp.status_code == 400
        assert "header" in resp.json()["error"]


class TestJobs:
    def test_unknown_job_is_not_found(self):
        resp = client.get("/api/imports/background", params={"jobId": "nope"})

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Job not found"}

    def test_unknown_job_in_jobs_api(self):
        assert client.get("/api/jobs/nope").status_code == 404

    def test_list_filters_by_status(self, tmp_path, queued):
        content = _csv_bytes(tmp_path, [make_row()])
        _upload("/api/imports/background", content)

        assert len(client.get("/api/jobs/", params={"status": "pending"}).json()) == 1
        assert client.get("/api/jobs/", params={"status": "completed"}).json() == []


class TestCatalog:
    def test_products_and_category_tree(self, tmp_path):
        content = _csv_bytes(
            tmp_path,
            [make_row(sku="A", msrp="100", sale_price="75"), make_row(sku="B", category="Garden")],
        )
        _upload("/api/imports/sync", content)

        product = client.get("/api/products/a").json()
        assert product["sku"] == "A"
        assert float(product["salePrice"]) == 75.0
        assert float(product["discountAmount"]) == 25.0

        listing = client.get("/api/products/", params={"category": "audio"}).json()
        assert listing["total"] == 1
        assert listing["items"][0]["sku"] == "A"

        tree = client.get("/api/categories/").json()
        electronics = next(node for node in tree if node["slug"] == "electronics")
        headphones = electronics["children"][0]["children"][0]
        assert headphones["path"] == "/electronics/audio/headphones"
        assert headphones["totalProduct"] == 1

    def test_unknown_status_filter_rejected(self):
        resp = client.get("/api/products/", params={"status": "deleted"})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "active, draft, archived" in resp.json()["error"]

    def test_status_filter(self, tmp_path):
        _upload("/api/imports/sync", _csv_bytes(tmp_path, [make_row()]))

        assert client.get("/api/products/", params={"status": "active"}).json()["total"] == 1
        assert client.get("/api/products/", params={"status": "draft"}).json()["total"] == 0

    def test_error_envelope_documented(self):
        schema = client.get("/openapi.json").json()
        responses = schema["paths"]["/api/jobs/{job_id}"]["get"]["responses"]

        assert responses["404"]["content"]["application/json"]["schema"]["$ref"].endswith(
            "/ErrorResponse"
        )

    def test_missing_product(self):
        assert client.get("/api/products/none").status_code == 404

    def test_recount(self, tmp_path):
        _upload("/api/imports/sync", _csv_bytes(tmp_path, [make_row()]))

        resp = client.post("/api/categories/recount")

        assert resp.status_code == 200
        assert resp.json()["levels"] == {"1": 1, "2": 1, "3": 1, "4": 0}


def test_liveness():
    assert client.get("/health/live").json()["status"] == "ok"
