"""Tests for the pagelens command-line interface."""

from __future__ import annotations

import json

import pytest
import structlog
import yaml
from click.testing import CliRunner

from pagelens import cli as cli_module
from pagelens.cli import cli, load_artifacts
from pagelens.protocols import GatherMode


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep log lines out of the CLI output and global logging untouched."""
    monkeypatch.setattr(cli_module, "configure_logging", lambda config: None)
    monkeypatch.setattr(cli_module, "start_metrics_server", lambda config: None)
    structlog.configure(processors=[], logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


@pytest.fixture
def artifacts_file(tmp_path, raw_artifacts):
    path = tmp_path / "artifacts.json"
    path.write_text(
        json.dumps({"gatherMode": "navigation", "fetchTime": "2024-01-01T00:00:00Z", "artifacts": raw_artifacts})
    )
    return path


class TestLoadArtifacts:
    def test_gather_context_is_read_from_the_file(self, artifacts_file):
        artifacts, context = load_artifacts(artifacts_file)

        assert context.gather_mode is GatherMode.NAVIGATION
        assert context.requested_url == "https://example.com/"
        assert context.fetch_time == "2024-01-01T00:00:00Z"
        assert artifacts["Title"] == "Example Domain"

    def test_error_markers_become_exceptions(self, tmp_path):
        path = tmp_path / "artifacts.json"
        path.write_text(json.dumps({"artifacts": {"Title": {"__error__": "timed out"}}}))

        artifacts, context = load_artifacts(path)

        assert isinstance(artifacts["Title"], RuntimeError)
        assert str(artifacts["Title"]) == "timed out"
        assert context.gather_mode is GatherMode.NAVIGATION


class TestAuditCommand:
    def test_writes_the_report(self, tmp_path, artifacts_file):
        output = tmp_path / "out" / "report.json"

        result = CliRunner().invoke(cli, ["audit", str(artifacts_file), "--output", str(output), "--no-summary"])

        assert result.exit_code == 0, result.output
        report = json.loads(output.read_text())
        assert report["requestedUrl"] == "https://example.com/"
        assert set(report["categories"]) == {"performance", "best-practices", "seo"}
        assert 0.9 < report["score"] <= 1

    def test_prints_json_to_stdout(self, artifacts_file):
        result = CliRunner().invoke(cli, ["audit", str(artifacts_file), "--no-summary"])

        assert result.exit_code == 0
        assert json.loads(result.output)["gatherMode"] == "navigation"

    def test_uses_the_given_config(self, tmp_path, artifacts_file):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "audits": [{"id": "document-title"}],
                    "categories": {"seo": {"title": "SEO", "audit_refs": [{"id": "document-title", "weight": 1}]}},
                }
            )
        )
        output = tmp_path / "report.json"

        result = CliRunner().invoke(
            cli, ["--config", str(config_path), "audit", str(artifacts_file), "-o", str(output), "--no-summary"]
        )

        assert result.exit_code == 0
        assert list(json.loads(output.read_text())["audits"]) == ["document-title"]

    def test_bad_gather_mode_exits_with_one(self, tmp_path):
        path = tmp_path / "artifacts.json"
        path.write_text(json.dumps({"gatherMode": "crawl", "artifacts": {}}))

        result = CliRunner().invoke(cli, ["audit", str(path), "--no-summary"])

        assert result.exit_code == 1

    def test_settings_mismatch_exits_with_one(self, tmp_path, raw_artifacts):
        path = tmp_path / "artifacts.json"
        path.write_text(json.dumps({"settings": {"form_factor": "desktop"}, "artifacts": raw_artifacts}))
        output = tmp_path / "report.json"

        result = CliRunner().invoke(cli, ["audit", str(path), "-o", str(output), "--no-summary"])

        assert result.exit_code == 1
        assert not output.exists()

    def test_invalid_config_exits_with_two(self, tmp_path, artifacts_file):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text(yaml.safe_dump({"audits": [{"id": "a"}, {"id": "a"}]}))

        result = CliRunner().invoke(cli, ["--config", str(config_path), "audit", str(artifacts_file)])

        assert result.exit_code == 2

    def test_malformed_yaml_exits_with_two(self, tmp_path, artifacts_file):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text("categories: [unclosed\n")

        result = CliRunner().invoke(cli, ["--config", str(config_path), "audit", str(artifacts_file)])

        assert result.exit_code == 2
        assert not isinstance(result.exception, yaml.YAMLError)
        assert "Invalid configuration" in result.output


class TestLogLevel:
    @pytest.fixture
    def configured(self, monkeypatch):
        seen = []
        monkeypatch.setattr(cli_module, "configure_logging", seen.append)
        return seen

    def test_config_file_level_is_used_by_default(self, tmp_path, artifacts_file, configured):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text(yaml.safe_dump({"monitoring": {"log_level": "DEBUG"}}))

        result = CliRunner().invoke(cli, ["--config", str(config_path), "audit", str(artifacts_file), "--no-summary"])

        assert result.exit_code == 0
        assert [monitoring.log_level for monitoring in configured] == ["DEBUG"]

    def test_option_overrides_the_config_file(self, tmp_path, artifacts_file, configured):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text(yaml.safe_dump({"monitoring": {"log_level": "DEBUG"}}))

        result = CliRunner().invoke(
            cli, ["--config", str(config_path), "--log-level", "ERROR", "audit", str(artifacts_file), "--no-summary"]
        )

        assert result.exit_code == 0
        assert [monitoring.log_level for monitoring in configured] == ["ERROR"]


class TestValidateConfig:
    def test_default_config_is_valid(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["validate-config"])
        assert result.exit_code == 0

    def test_unregistered_audits_exit_with_two(self, tmp_path):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text(
            yaml.safe_dump(
                {
                    "audits": [{"id": "ghost"}],
                    "categories": {"x": {"title": "X", "audit_refs": [{"id": "ghost", "weight": 1}]}},
                }
            )
        )

        result = CliRunner().invoke(cli, ["--config", str(config_path), "validate-config"])

        assert result.exit_code == 2
        assert "ghost" in result.output

    def test_malformed_yaml_exits_with_two(self, tmp_path):
        config_path = tmp_path / "pagelens.yaml"
        config_path.write_text("categories: [unclosed\n")

        result = CliRunner().invoke(cli, ["--config", str(config_path), "validate-config"])

        assert result.exit_code == 2
        assert "Configuration validation failed" in result.output
