"""File-level checks and sync/background dispatch."""
import pytest
from sqlalchemy import func, select

from catalog_ingest.core.config import get_settings
from catalog_ingest.core.errors import FileRejected
from catalog_ingest.db.models.import_job import ImportJob
from catalog_ingest.services import import_orchestrator, progress_tracker
from catalog_ingest.services.import_orchestrator import (
    MODE_BACKGROUND,
    MODE_SYNC,
    check_file_type,
    choose_mode,
    run_sync_import,
    start_background_import,
)
from conftest import make_row, write_csv

MB = 1024 * 1024
GB = 1024 * MB


class TestChooseMode:
    def test_large_file_goes_to_background(self):
        assert choose_mode(150 * MB) == MODE_BACKGROUND

    def test_small_file_is_synchronous(self):
        assert choose_mode(10 * MB) == MODE_SYNC

    def test_threshold_itself_is_synchronous(self):
        assert choose_mode(100 * MB) == MODE_SYNC

    def test_caller_can_force_background(self):
        assert choose_mode(1024, background=True) == MODE_BACKGROUND

    def test_file_over_ceiling_rejected(self, db_session):
        with pytest.raises(FileRejected) as exc_info:
            choose_mode(int(3.5 * GB))

        assert exc_info.value.status_code == 413
        assert db_session.scalar(select(func.count(ImportJob.id))) == 0

    def test_ceiling_applies_even_when_forced(self):
        with pytest.raises(FileRejected):
            choose_mode(4 * GB, background=False)


class TestFileType:
    def test_csv_extension_accepted(self):
        check_file_type("Products.CSV", None)

    def test_csv_content_type_accepted(self):
        check_file_type("export", "text/csv")

    def test_other_files_rejected(self):
        with pytest.raises(FileRejected, match="Only CSV"):
            check_file_type("products.xlsx", "application/vnd.ms-excel")

    def test_missing_filename_rejected(self):
        with pytest.raises(FileRejected):
            check_file_type(None, "text/csv")


class TestRunSyncImport:
    def test_report_and_staged_file_removed(self, db_session, uploads_dir):
        path = write_csv(uploads_dir / "sync.csv", [make_row(sku="A")])

        tally = run_sync_import(path, db_session, get_settings())

        assert tally.success_count == 1
        assert not path.exists()

    def test_bad_header_becomes_file_rejection(self, db_session, uploads_dir):
        path = write_csv(uploads_dir / "bad.csv", [], header=["only", "two"])

        with pytest.raises(FileRejected, match="header"):
            run_sync_import(path, db_session, get_settings())
        assert not path.exists()


class TestStartBackgroundImport:
    def test_job_created_and_task_enqueued(self, db_session, uploads_dir, monkeypatch, fake_redis):
        calls = []

        def fake_apply_async(args=None, queue=None, **kwargs):
            calls.append((args, queue))

        monkeypatch.setattr(
            import_orchestrator.import_products_task, "apply_async", fake_apply_async
        )
        path = write_csv(uploads_dir / "bg.csv", [make_row()])

        job = start_background_import(db_session, path, "bg.csv", 123)

        assert job.status == "pending"
        assert calls == [((job.id, str(path)), "imports")]
        assert progress_tracker.fetch_progress(job.id)["status"] == "pending"
        assert path.exists()

    def test_enqueue_failure_fails_the_job(self, db_session, uploads_dir, monkeypatch):
        def broken_apply_async(*args, **kwargs):
            raise ConnectionError("broker down")

        monkeypatch.setattr(
            import_orchestrator.import_products_task, "apply_async", broken_apply_async
        )
        path = write_csv(uploads_dir / "bg-fail.csv", [make_row()])

        with pytest.raises(ConnectionError):
            start_background_import(db_session, path, "bg-fail.csv", 123)

        job = db_session.scalar(select(ImportJob))
        db_session.refresh(job)
        assert job.status == "failed"
        assert job.errors[-1].startswith("Job failed:")
        assert not path.exists()
