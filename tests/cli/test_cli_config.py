"""Tests for config commands."""
from brandforge_cli.cli import app


class TestConfigInit:
    """Tests for 'brandforge config init' command."""

    def test_init_creates_config(self, cli_runner, temp_config):
        """Test config init creates the config file with the default URL."""
        result = cli_runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert "Created" in result.stdout

        config_file = temp_config / "config.yaml"
        assert config_file.exists()
        assert "url: http://127.0.0.1:8767" in config_file.read_text()

    def test_init_when_exists(self, cli_runner, temp_config):
        """Test config init leaves an existing config alone."""
        config_file = temp_config / "config.yaml"
        config_file.write_text("url: http://test.com\n")

        result = cli_runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert "already exists" in result.stdout
        assert config_file.read_text() == "url: http://test.com\n"


class TestConfigSet:
    """Tests for 'brandforge config set' command."""

    def test_set_token_is_masked(self, cli_runner, temp_config):
        result = cli_runner.invoke(app, ["config", "set", "token", "eyJhbGciOiJIUzI1NiJ9.payload"])

        assert result.exit_code == 0
        assert "Set token" in result.stdout
        assert "eyJhbGciOiJIUzI1NiJ9.payload" not in result.stdout
        assert "eyJhbGciOiJI..." in result.stdout

        content = (temp_config / "config.yaml").read_text()
        assert "token: eyJhbGciOiJIUzI1NiJ9.payload" in content

    def test_set_url(self, cli_runner, temp_config):
        """URLs are not secrets."""
        result = cli_runner.invoke(app, ["config", "set", "url", "http://localhost:8767"])

        assert result.exit_code == 0
        assert "http://localhost:8767" in result.stdout


class TestConfigGet:
    """Tests for 'brandforge config get' command."""

    def test_get_existing_key(self, cli_runner, temp_config):
        (temp_config / "config.yaml").write_text("url: http://test.com\n")

        result = cli_runner.invoke(app, ["config", "get", "url"])

        assert result.exit_code == 0
        assert "http://test.com" in result.stdout

    def test_get_missing_key(self, cli_runner, temp_config):
        (temp_config / "config.yaml").write_text("")

        result = cli_runner.invoke(app, ["config", "get", "nonexistent"])

        assert result.exit_code == 1
        assert "Key not found" in result.output

    def test_get_raw_output(self, cli_runner, temp_config):
        """Raw output prints the full secret."""
        (temp_config / "config.yaml").write_text("token: short-token\n")

        result = cli_runner.invoke(app, ["config", "get", "token", "--raw"])

        assert result.exit_code == 0
        assert "short-token" in result.stdout


class TestConfigShow:
    """Tests for 'brandforge config show' command."""

    def test_show_config(self, cli_runner, temp_config):
        (temp_config / "config.yaml").write_text("url: http://test.com\ntoken: tok_xyz\n")

        result = cli_runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "http://test.com" in result.stdout
        assert "tok_xyz" not in result.stdout
        assert "***" in result.stdout

    def test_show_empty_config(self, cli_runner, temp_config):
        result = cli_runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "No config" in result.stdout

