"""Fixtures for CLI tests."""
from unittest.mock import patch

import pytest
from typer.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove Brandforge env vars so config files decide."""
    monkeypatch.delenv("BRANDFORGE_URL", raising=False)
    monkeypatch.delenv("BRANDFORGE_TOKEN", raising=False)


@pytest.fixture
def temp_config(tmp_path, monkeypatch, clean_env):
    """Point the CLI at a config directory under tmp_path."""
    config_dir = tmp_path / ".brandforge"
    config_file = config_dir / "config.yaml"
    monkeypatch.setattr("brandforge_cli.api.CONFIG_DIR", config_dir)
    monkeypatch.setattr("brandforge_cli.api.CONFIG_FILE", config_file)
    monkeypatch.setattr("brandforge_cli.cli.CONFIG_FILE", config_file)
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def env_url(monkeypatch):
    monkeypatch.setenv("BRANDFORGE_URL", "http://brandforge.test")


@pytest.fixture
def env_token(monkeypatch):
    monkeypatch.setenv("BRANDFORGE_TOKEN", "eyJ.test.token")


@pytest.fixture
def mock_api():
    """Patch the API client used by every command."""
    with patch("brandforge_cli.cli._api_request") as mock:
        yield mock


@pytest.fixture
def mock_stream():
    with patch("brandforge_cli.cli._stream_events") as mock:
        yield mock


@pytest.fixture
def mock_health_response():
    return {
        "status": "healthy",
        "service": "brandforge",
        "version": "0.1.0",
        "providers": ["openai", "wavespeed"],
        "blobStorage": True,
        "checks": {"encryption": {"status": "ok"}},
    }
