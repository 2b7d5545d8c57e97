import pytest
from fastapi.testclient import TestClient

from main import app
from services.config_manager import CONFIG_DIR_ENV, DATA_DIR_ENV, ConfigManager
from services.prompt_store import PromptStore


@pytest.fixture
def store(tmp_path):
    store = PromptStore(tmp_path / "prompts", tmp_path / "recycle_bin")
    store.ensure_dirs()
    return store


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "config"))
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "data"))
    ConfigManager.reset_instance()
    yield tmp_path
    ConfigManager.reset_instance()


@pytest.fixture
def client(config_env):
    with TestClient(app) as test_client:
        yield test_client
