import pytest

from navsync import create_app
from navsync.config import TestConfig


@pytest.fixture
def store_dir(tmp_path):
    path = tmp_path / "site"
    path.mkdir()
    return path


@pytest.fixture
def app(store_dir):
    class _Config(TestConfig):
        STORE_LOCAL_DIR = str(store_dir)

    app = create_app(_Config)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
