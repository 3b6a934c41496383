"""
Test suite for CLI interface

Tests CLI commands, argument parsing, and integration with core functionality.
"""

import json
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from archrisk.cli import cli
from archrisk.config import ArchriskConfig, set_config


class TestCLICommands:
    """Test CLI command functionality"""

    def setup_method(self):
        """Setup test fixtures"""
        self.runner = CliRunner()

    def test_cli_group_help(self):
        """Test CLI group help command"""
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "archrisk - AI-assisted architecture failure-risk analysis" in result.output
        for command in ["analyze", "fallback", "score", "serve", "config"]:
            assert command in result.output

    def test_cli_version(self):
        """Test CLI version display"""
        result = self.runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestAnalyzeCommand:
    """Test analyze CLI command"""

    def setup_method(self):
        self.runner = CliRunner()

    def test_offline_summary(self, temp_input_file):
        result = self.runner.invoke(
            cli, ["analyze", "--input-file", str(temp_input_file), "--offline"]
        )

        assert result.exit_code == 0
        assert "🔍 Risk Analysis for ShopFront" in result.output
        assert "Confidence: Low (Fallback)" in result.output
        assert "Scale API services horizontally" in result.output

    def test_offline_json(self, temp_input_file):
        result = self.runner.invoke(
            cli,
            [
                "analyze",
                "--input-file",
                str(temp_input_file),
                "--offline",
                "--format",
                "json",
            ],
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["metadata"]["generatedBy"] == "Seeded Fallback Engine"
        assert len(data["historicalIncidents"]) == 5

    @patch("archrisk.cli.analyze_func", new_callable=AsyncMock)
    def test_online_uses_analyze(self, mock_analyze, temp_input_file, sample_input_data):
        mock_analyze.return_value = {
            "metadata": {
                "systemName": "ShopFront",
                "confidenceLevel": "High",
                "generatedBy": "LLM (gemini-2.5-flash)",
                "analysisId": "RAS-1",
            },
            "riskScore": 7.9,
            "scenarios": [
                {
                    "rank": 1,
                    "title": "Payment gateway timeout cascade",
                    "severity": "Critical",
                    "probability": "~81%",
                    "mttr": "40-75",
                }
            ],
        }

        result = self.runner.invoke(cli, ["analyze", "--input-file", str(temp_input_file)])

        assert result.exit_code == 0
        mock_analyze.assert_called_once_with(sample_input_data)
        assert "Risk Score: 7.9" in result.output
        assert "Payment gateway timeout cascade" in result.output
        assert "MTTR 40-75 min" in result.output

    def test_missing_required_fields(self, temp_dir):
        input_file = temp_dir / "partial.json"
        input_file.write_text(json.dumps({"systemName": "Shop"}))

        result = self.runner.invoke(
            cli, ["analyze", "--input-file", str(input_file), "--offline"]
        )

        assert result.exit_code == 1
        assert "❌ Analysis failed" in result.output
        assert "Missing required fields" in result.output

    def test_invalid_json_file(self, temp_dir):
        input_file = temp_dir / "broken.json"
        input_file.write_text("{not json")

        result = self.runner.invoke(
            cli, ["analyze", "--input-file", str(input_file), "--offline"]
        )
        assert result.exit_code == 1

    def test_input_file_must_exist(self, temp_dir):
        result = self.runner.invoke(
            cli, ["analyze", "--input-file", str(temp_dir / "nope.json")]
        )
        assert result.exit_code != 0


class TestFallbackCommand:
    def setup_method(self):
        self.runner = CliRunner()

    def test_prints_deterministic_report(self, temp_input_file):
        first = self.runner.invoke(cli, ["fallback", "--input-file", str(temp_input_file)])
        second = self.runner.invoke(cli, ["fallback", "--input-file", str(temp_input_file)])

        assert first.exit_code == 0
        first_data = json.loads(first.output)
        second_data = json.loads(second.output)
        assert first_data["metadata"]["confidenceLevel"] == "Low (Fallback)"
        first_data.pop("metadata")
        second_data.pop("metadata")
        assert first_data == second_data


class TestScoreCommand:
    def setup_method(self):
        self.runner = CliRunner()

    def test_heuristic_score(self, temp_input_file):
        result = self.runner.invoke(cli, ["score", "--input-file", str(temp_input_file)])

        assert result.exit_code == 0
        assert "Heuristic Risk Score: 8.5" in result.output

    def test_missing_fields(self, temp_dir):
        input_file = temp_dir / "empty.json"
        input_file.write_text("{}")

        result = self.runner.invoke(cli, ["score", "--input-file", str(input_file)])

        assert result.exit_code == 1
        assert "❌ Scoring failed" in result.output


class TestServeCommand:
    def setup_method(self):
        self.runner = CliRunner()

    @patch("archrisk.cli.uvicorn.run")
    def test_serve_uses_app_factory(self, mock_run):
        set_config(ArchriskConfig())

        result = self.runner.invoke(cli, ["serve", "--port", "8088"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(
            "archrisk.server:create_app", factory=True, host="0.0.0.0", port=8088
        )


class TestConfigCommand:
    """Test config CLI command"""

    def setup_method(self):
        self.runner = CliRunner()

    def test_config_without_show(self):
        result = self.runner.invoke(cli, ["config"])

        assert result.exit_code == 0
        assert "Use --show to display current configuration" in result.output

    def test_config_show_yaml(self):
        set_config(ArchriskConfig())

        result = self.runner.invoke(cli, ["config", "--show"])

        assert result.exit_code == 0
        assert "🔧 Current archrisk Configuration" in result.output
        assert "gemini-2.5-flash" in result.output

    def test_config_show_json(self):
        set_config(ArchriskConfig())

        result = self.runner.invoke(cli, ["config", "--show", "--format", "json"])

        assert result.exit_code == 0
        body = result.output.split("=" * 40, 1)[1]
        assert json.loads(body)["server"]["port"] == 5000
