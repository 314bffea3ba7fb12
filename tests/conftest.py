import pytest

import config
import db


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def tmp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db("not-a-real-hash")
    return tmp_path / "test.db"
