import sqlite3
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from timelapse_maker.catalog import SqliteCatalog  # noqa: E402
from timelapse_maker.errors import CatalogError  # noqa: E402
from timelapse_maker.models import ArtifactRecord  # noqa: E402


def test_insert_artifact_returns_generated_ids(tmp_path):
    db_path = tmp_path / "db" / "catalog.sqlite3"
    catalog = SqliteCatalog(db_path)
    video = tmp_path / "videos" / "days_of_year" / "15-03-2024" / "timelapse.mp4"

    first = catalog.insert_artifact(ArtifactRecord("15-03-2024", "DAY", video))
    second = catalog.insert_artifact(ArtifactRecord("2024-W11", "WEEK", video, uploaded=True))
    catalog.close()

    assert second == first + 1
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute("SELECT name, type, file_path, uploaded FROM videos ORDER BY id").fetchall()
    assert rows == [
        ("15-03-2024", "DAY", str(video), 0),
        ("2024-W11", "WEEK", str(video), 1),
    ]


def test_existing_database_is_reused(tmp_path):
    db_path = tmp_path / "catalog.sqlite3"
    SqliteCatalog(db_path).insert_artifact(ArtifactRecord("a", "DAY", tmp_path / "a.mp4"))

    reopened = SqliteCatalog(db_path)
    assert reopened.insert_artifact(ArtifactRecord("b", "DAY", tmp_path / "b.mp4")) == 2


def test_unopenable_database_raises_catalog_error(tmp_path):
    with pytest.raises(CatalogError):
        SqliteCatalog(tmp_path)


def test_insert_after_close_raises_catalog_error(tmp_path):
    catalog = SqliteCatalog(tmp_path / "catalog.sqlite3")
    catalog.close()

    with pytest.raises(CatalogError):
        catalog.insert_artifact(ArtifactRecord("a", "DAY", tmp_path / "a.mp4"))


class BrokenConnection:
    def execute(self, *args):
        raise sqlite3.OperationalError("disk I/O error")

    def rollback(self):
        raise sqlite3.ProgrammingError("Cannot operate on a closed database.")


def test_failed_rollback_still_raises_catalog_error(tmp_path):
    catalog = SqliteCatalog(tmp_path / "catalog.sqlite3")
    catalog._conn.close()
    catalog._conn = BrokenConnection()

    with pytest.raises(CatalogError, match="rollback failed"):
        catalog.insert_artifact(ArtifactRecord("a", "DAY", tmp_path / "a.mp4"))
