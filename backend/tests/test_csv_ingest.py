"""End-to-end row ingestion over real CSV files (no HTTP, no Celery)."""
import pytest
from sqlalchemy import func, select

from catalog_ingest.db.models.category import CategoryLevel1, CategoryLevel3
from catalog_ingest.db.models.product import Product
from catalog_ingest.services.csv_ingest import ImportAborted, ImportTally, run_import
from catalog_ingest.utils.csv_validator import HeaderError
from conftest import make_row, write_csv


def _assert_counters_consistent(tally):
    assert tally.processed_rows == tally.success_count + tally.fail_count
    assert tally.success_count == tally.created_count + tally.updated_count
    assert tally.success_count == tally.in_stock_count + tally.out_of_stock_count
    assert tally.processed_rows == tally.total_rows


class TestRunImport:
    def test_invalid_msrp_row_does_not_stop_the_file(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "mixed.csv",
            [
                make_row(sku="A"),
                make_row(sku="B", msrp="abc"),
                make_row(sku="C", inventory="0"),
            ],
        )

        tally = run_import(path, db_session)

        assert tally.total_rows == 3
        assert tally.success_count == 2
        assert tally.fail_count == 1
        assert tally.in_stock_count == 1
        assert tally.out_of_stock_count == 1
        assert len(tally.errors) == 1
        assert tally.errors[0].startswith("Row 3:")
        _assert_counters_consistent(tally)
        assert db_session.scalar(select(func.count(Product.id))) == 2

    def test_reimport_counts_updates(self, db_session, tmp_path):
        path = write_csv(tmp_path / "same.csv", [make_row(sku="A"), make_row(sku="B")])

        run_import(path, db_session)
        tally = run_import(path, db_session)

        assert tally.created_count == 0
        assert tally.updated_count == 2
        assert db_session.scalar(select(func.count(Product.id))) == 2

    def test_duplicate_sku_within_one_file_updates_first_row(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "dupes.csv",
            [make_row(sku="A", name="First"), make_row(sku="a", name="Second")],
        )

        tally = run_import(path, db_session)

        assert tally.created_count == 1
        assert tally.updated_count == 1
        product = db_session.scalar(select(Product))
        assert product.name == "Second"

    def test_category_totals_recomputed(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "cats.csv",
            [
                make_row(sku="A"),
                make_row(sku="B"),
                make_row(sku="C", category="Garden"),
            ],
        )

        run_import(path, db_session)

        totals = dict(
            db_session.execute(select(CategoryLevel1.slug, CategoryLevel1.total_product))
        )
        assert totals == {"electronics": 2, "garden": 1}
        headphones = db_session.scalar(select(CategoryLevel3))
        assert headphones.total_product == 2

    def test_malformed_category_path_is_a_row_error(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "bad-cat.csv",
            [make_row(sku="A", category="A>>>>C"), make_row(sku="B")],
        )

        tally = run_import(path, db_session)

        assert tally.fail_count == 1
        assert "empty level" in tally.errors[0]
        _assert_counters_consistent(tally)

    def test_error_list_keeps_most_recent(self, db_session, tmp_path):
        rows = [make_row(sku=f"S{i}", msrp="bad") for i in range(5)]
        path = write_csv(tmp_path / "errors.csv", rows)

        tally = run_import(path, db_session, error_limit=2)

        assert tally.fail_count == 5
        assert [e.split(":")[0] for e in tally.errors] == ["Row 5", "Row 6"]

    def test_short_header_rejects_file(self, db_session, tmp_path):
        path = write_csv(tmp_path / "short.csv", [make_row()], header=["SKU", "Name"])

        with pytest.raises(HeaderError):
            run_import(path, db_session)

    def test_progress_callbacks(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "progress.csv", [make_row(sku=f"P{i}") for i in range(5)]
        )
        seen = []

        tally = run_import(
            path,
            db_session,
            progress_interval=2,
            on_start=lambda t: seen.append(("start", t.total_rows)),
            on_progress=lambda t: seen.append(("progress", t.processed_rows)) or True,
        )

        assert seen == [("start", 5), ("progress", 2), ("progress", 4)]
        assert tally.progress == 100

    def test_progress_callback_can_abort(self, db_session, tmp_path):
        path = write_csv(
            tmp_path / "abort.csv", [make_row(sku=f"P{i}") for i in range(4)]
        )

        with pytest.raises(ImportAborted):
            run_import(path, db_session, progress_interval=2, on_progress=lambda t: False)


class TestImportTally:
    def test_progress_is_whole_percent(self):
        tally = ImportTally(total_rows=3, processed_rows=1)
        assert tally.progress == 33

    def test_progress_without_rows(self):
        assert ImportTally().progress == 0
