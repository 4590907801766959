import os
from pathlib import Path
from typing import Optional
from unittest.mock import patch

import pytest

from jobtalk.core.config import (
    Config,
    ConfigError,
    detect_project_root,
    get_client,
    get_project_env_path,
    load_project_env,
)


class DummyAsyncOpenAI:
    """
    Minimal dummy stand-in for AsyncOpenAI to avoid real network/API calls.

    Captures initialization parameters so tests can assert which settings were used.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[int] = None, max_retries: Optional[int] = None, **_: object):
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries


def write_file(path: Path, content: str) -> None:
    """Helper to write a text file with UTF-8 encoding."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """
    Keep variables loaded from .env files out of other tests and reset the cached client.
    """
    saved = dict(os.environ)
    for var in ("OPENAI_API_KEY", "JT_ENV_FILE", "JOBTALK_ENV_FILE", "JT_PROJECT_ROOT", "JOBTALK_PROJECT_ROOT"):
        monkeypatch.delenv(var, raising=False)
    get_client.cache_clear()
    yield
    get_client.cache_clear()
    os.environ.clear()
    os.environ.update(saved)


class TestConfig:
    """Test configuration defaults and overrides."""

    def test_default_models(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "test-key"}, clear=True):
            config = Config()
            assert config.llm_model == "gpt-4o-mini"
            assert config.asr_model == "whisper-1"
            assert config.openai_timeout == 60
            assert config.max_retries == 0
            assert config.is_reasoning_model is False
            assert config.default_down_payment == 50
            assert config.default_terms == "Standard contractor terms apply."

    def test_overrides(self):
        env = {"LLM_MODEL": "gpt-4o", "IS_REASONING_MODEL": "yes", "OPENAI_TIMEOUT": "15", "JT_DEFAULT_DOWN_PAYMENT": "40"}
        with patch.dict(os.environ, env, clear=True):
            config = Config()
            assert config.llm_model == "gpt-4o"
            assert config.is_reasoning_model is True
            assert config.openai_timeout == 15
            assert config.default_down_payment == 40

    @pytest.mark.parametrize("value", ["150", "-1", "half"])
    def test_invalid_default_down_payment(self, value):
        with patch.dict(os.environ, {"JT_DEFAULT_DOWN_PAYMENT": value}, clear=True):
            assert Config().default_down_payment == 50

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                _ = Config().openai_api_key


def test_load_project_env_prefers_project_scoped_over_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Verify that load_project_env loads the project-scoped env file, not the CWD .env,
    and that get_client builds its client from it.
    """
    project_root = tmp_path / "proj"
    other_cwd = tmp_path / "cwd"
    project_root.mkdir()
    other_cwd.mkdir()

    write_file(other_cwd / ".env", "OPENAI_API_KEY=cwd-key\n")
    write_file(project_root / ".jobtalk" / ".env", "OPENAI_API_KEY=project-key\nMAX_RETRIES=2\n")

    monkeypatch.chdir(other_cwd)

    loaded = load_project_env(project_root=str(project_root))
    assert loaded == str(get_project_env_path(str(project_root)))
    assert os.getenv("OPENAI_API_KEY") == "project-key"

    import jobtalk.core.config as config_mod

    monkeypatch.setattr(config_mod, "AsyncOpenAI", DummyAsyncOpenAI, raising=True)

    client = get_client()
    assert isinstance(client, DummyAsyncOpenAI)
    assert client.api_key == "project-key"
    assert client.max_retries == 2
    assert get_client() is client


def test_explicit_env_file_wins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    explicit = tmp_path / "custom.env"
    write_file(explicit, "OPENAI_API_KEY=explicit-key\n")
    write_file(tmp_path / "proj" / ".jobtalk" / ".env", "OPENAI_API_KEY=project-key\n")
    monkeypatch.setenv("JT_ENV_FILE", str(explicit))

    assert load_project_env(project_root=str(tmp_path / "proj")) == str(explicit)
    assert os.getenv("OPENAI_API_KEY") == "explicit-key"


def test_get_client_without_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigError, match="OPENAI_API_KEY not found"):
        get_client()


def test_detect_project_root(tmp_path: Path):
    nested = tmp_path / "site" / "photos"
    nested.mkdir(parents=True)
    (tmp_path / "site" / ".jobtalk").mkdir()

    assert detect_project_root(str(nested)) == tmp_path / "site"
