"""Unit tests for the smoker-config command line."""

import json

import pytest
import yaml

from smoker.cli import auto_detect_config, main, parse_arguments, validate_clients
from smoker.core.config import Configuration


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "smoker.yaml"
    path.write_text(yaml.dump({
        "aws": {"region": "us-east-1"},
        "clients": {
            "rest": {"baseUrl": "https://api.example.com"},
            "mqtt:devices": {"url": "mqtt://broker", "password": "hunter2"},
        },
    }))
    return path


class TestArguments:
    """Test cases for argument parsing."""

    def test_defaults(self):
        """Test default argument values."""
        args = parse_arguments([])

        assert args.sources == []
        assert args.format == "yaml"
        assert not args.no_resolve
        assert not args.validate_only

    def test_multiple_sources(self):
        """Test that several sources are accepted in order."""
        args = parse_arguments(["a.yaml", "s3://b/c.json", "--no-resolve", "--format", "json"])

        assert args.sources == ["a.yaml", "s3://b/c.json"]
        assert args.no_resolve
        assert args.format == "json"

    def test_auto_detect(self, tmp_path, monkeypatch):
        """Test auto-detection of the configuration file."""
        monkeypatch.chdir(tmp_path)
        assert auto_detect_config() is None

        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "smoker.yaml").write_text("{}")
        assert auto_detect_config() == "config/smoker.yaml"


class TestMain:
    """Test cases for the main entry point."""

    def test_prints_redacted_configuration(self, config_file, capsys):
        """Test printing the configuration as JSON with secrets masked."""
        exit_code = main([str(config_file), "--no-resolve", "--format", "json"])

        output = capsys.readouterr().out
        assert exit_code == 0
        document = output.split("Registered clients:")[0]
        data = json.loads(document)
        assert data["clients"]["mqtt:devices"]["password"] == "********"
        assert "hunter2" not in output
        assert "• rest" in output
        assert "• mqtt:devices" in output

    def test_region_override(self, config_file, capsys, monkeypatch):
        """Test that --region overrides the configured region."""
        monkeypatch.setenv("AWS_REGION", "us-east-1")

        exit_code = main([str(config_file), "--no-resolve", "--region", "eu-west-1"])

        assert exit_code == 0
        assert "region: eu-west-1" in capsys.readouterr().out

    def test_validate_only(self, config_file, capsys):
        """Test validation of configured client types."""
        assert main([str(config_file), "--no-resolve", "--validate-only"]) == 0
        assert "2 client configuration(s) valid" in capsys.readouterr().out

    def test_validate_unknown_type(self, tmp_path, capsys):
        """Test that unknown client types fail validation."""
        path = tmp_path / "smoker.yaml"
        path.write_text(yaml.dump({"clients": {"ftp": {"host": "x"}}}))

        assert main([str(path), "--no-resolve", "--validate-only"]) == 1
        assert "unknown client type 'ftp'" in capsys.readouterr().out

    def test_no_configuration(self, tmp_path, monkeypatch, capsys):
        """Test the error when no configuration file exists."""
        monkeypatch.chdir(tmp_path)

        assert main([]) == 1
        assert "No configuration file found" in capsys.readouterr().out

    def test_invalid_configuration(self, tmp_path, capsys):
        """Test that configuration errors exit with 1."""
        path = tmp_path / "smoker.yaml"
        path.write_text(yaml.dump({"clients": ["rest"]}))

        assert main([str(path), "--no-resolve"]) == 1
        assert "Configuration error" in capsys.readouterr().out

    def test_validate_clients(self):
        """Test the client validation helper."""
        configuration = Configuration({"clients": {"s3": {}, "kafka:events": {}, "smtp": {}}})

        assert validate_clients(configuration) == ["smtp: unknown client type 'smtp'"]
