from pathlib import Path

import pytest

from assetstore.adapters.local_storage import LocalFileStorage
from assetstore.adapters.sqlite.migrator import SQLiteMigrator
from assetstore.adapters.sqlite.repos import SQLiteAssetRecordRepo
from assetstore.rules.loader import load_rules
from assetstore.rules.models import Rules
from tests.helpers import FixedClock, make_png

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def rules() -> Rules:
    """Real rules from the project root."""
    return load_rules(PROJECT_ROOT / "rules.yaml")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "assets.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def record_repo(db_path) -> SQLiteAssetRecordRepo:
    return SQLiteAssetRecordRepo(db_path)


@pytest.fixture
def local_storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()
