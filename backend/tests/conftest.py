"""Shared fixtures: a throwaway SQLite database, an in-memory Redis and CSV builders."""

import csv
import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="catalog-ingest-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["UPLOADS_DIR"] = str(_TMP / "uploads")
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest  # noqa: E402

from catalog_ingest.db import models  # noqa: E402,F401
from catalog_ingest.db.base import Base  # noqa: E402
from catalog_ingest.db.session import SessionLocal, engine  # noqa: E402
from catalog_ingest.services import progress_tracker  # noqa: E402
from catalog_ingest.utils.csv_validator import CSV_COLUMNS  # noqa: E402


class FakeRedis:
    """Just enough of redis.Redis for progress snapshots."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(progress_tracker, "redis_client", client)
    return client


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def uploads_dir():
    path = _TMP / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


def make_row(**overrides):
    """Build a 42-cell row; keyword names map to the column positions below."""
    positions = {
        "spu": 0,
        "item_no": 1,
        "url": 2,
        "category": 3,
        "name": 4,
        "supplier": 5,
        "brand": 6,
        "sku": 11,
        "msrp": 12,
        "dropshipping": 13,
        "inventory": 14,
        "sale_price": 25,
        "promotion_type": 26,
        "promotion_value": 27,
        "promotion_end": 28,
        "main_image": 29,
        "image_2": 30,
        "description": 35,
        "upc": 36,
        "asin": 37,
    }
    row = [""] * len(CSV_COLUMNS)
    defaults = {
        "spu": "SPU-1",
        "url": "https://shop.example.com/p/wireless-headphones.html",
        "category": "Electronics>>Audio>>Headphones",
        "name": "Wireless Headphones",
        "brand": "Acme",
        "sku": "SKU-1",
        "msrp": "100.00",
        "inventory": "5",
    }
    defaults.update(overrides)
    for key, value in defaults.items():
        row[positions[key]] = value
    return row


def write_csv(path, rows, header=None):
    """Write ``rows`` below a full header and return ``path``."""
    path = Path(path)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(list(header) if header is not None else list(CSV_COLUMNS))
        for row in rows:
            writer.writerow(row)
    return path
