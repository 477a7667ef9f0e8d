"""Tests for CLI argument parsing and command wiring."""

from __future__ import annotations

import json
import sys

import pytest

from datelens import cli
from datelens.cli import _EtaProgressPrinter, _format_duration, build_parser
from datelens.mock_data import generate_mock_dataset, write_mock_messages


class _FakeJsonClient:
    def complete_json(self, *, system_prompt: str, user_prompt: str, **kwargs) -> dict:
        if kwargs.get("schema_name") == "SafetyFindings":
            return {"riskLevel": "yellow", "summary": "Mostly fine."}
        return {}


def _run_main(monkeypatch, tmp_path, *argv: str) -> None:
    config = tmp_path / "missing-config.yaml"
    monkeypatch.setattr(sys, "argv", ["datelens", "--config", str(config), *argv])
    cli.main()


def test_analyze_parser_accepts_dataset_flags():
    parser = build_parser()
    args = parser.parse_args(
        [
            "--log-level",
            "INFO",
            "analyze",
            "--input",
            "data/in.jsonl",
            "--user-id",
            "me",
            "--platform",
            "hinge",
            "--output-json",
            "out/analysis.json",
            "--output-markdown",
            "out/report.md",
        ]
    )
    assert args.command == "analyze"
    assert args.log_level == "INFO"
    assert args.input == "data/in.jsonl"
    assert args.user_id == "me"
    assert args.platform == "hinge"
    assert args.output_markdown == "out/report.md"
    assert args.mock is False


def test_significance_parser_accepts_mock_and_seed():
    args = build_parser().parse_args(["significance", "--mock", "--seed", "11"])
    assert args.mock is True
    assert args.seed == 11
    assert args.output_json is None


def test_doctor_parser_accepts_network_check_flag():
    args = build_parser().parse_args(["doctor", "--network-check"])
    assert args.network_check is True


def test_format_duration():
    assert _format_duration(65) == "01:05"
    assert _format_duration(3725) == "01:02:05"
    assert _format_duration(float("inf")) == "--:--"


def test_eta_progress_printer_prints_progress(capsys):
    printer = _EtaProgressPrinter("Batches")
    printer(1, 4)
    assert "Batches: 1/4 (25%)" in capsys.readouterr().out


def test_validate_input_reports_errors(monkeypatch, tmp_path, capsys):
    path = tmp_path / "bad.jsonl"
    path.write_text('{"id": "m1"}\nnot json\n', encoding="utf-8")
    report_path = tmp_path / "report.json"

    with pytest.raises(SystemExit) as exc_info:
        _run_main(
            monkeypatch,
            tmp_path,
            "validate-input",
            "--input",
            str(path),
            "--report-json",
            str(report_path),
        )

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Validation failed" in out
    assert "[invalid_json]" in out
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["invalid_line_count"] == 2


def test_validate_input_passes_for_mock_file(monkeypatch, tmp_path, capsys):
    path = write_mock_messages(tmp_path / "messages.jsonl", generate_mock_dataset())
    _run_main(monkeypatch, tmp_path, "validate-input", "--input", str(path))
    assert "Validation passed" in capsys.readouterr().out


def test_metadata_command_writes_json(monkeypatch, tmp_path, capsys):
    output = tmp_path / "metadata.json"
    _run_main(monkeypatch, tmp_path, "metadata", "--mock", "--output-json", str(output))

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["platform"] == "mock"
    assert payload["volume"]["totalMatches"] == 6
    assert payload["volume"]["totalMessages"] == 102
    assert "You were active on mock" in capsys.readouterr().out


def test_analyze_command_writes_json_and_markdown(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(cli, "_build_client", lambda settings: _FakeJsonClient())
    json_path = tmp_path / "analysis.json"
    markdown_path = tmp_path / "report.md"

    _run_main(
        monkeypatch,
        tmp_path,
        "analyze",
        "--mock",
        "--output-json",
        str(json_path),
        "--output-markdown",
        str(markdown_path),
    )

    result = json.loads(json_path.read_text(encoding="utf-8"))
    assert result["safety"]["riskLevel"] == "yellow"
    assert result["processing"]["escalated"] is True
    assert "YELLOW risk level" in result["processing"]["escalationReason"]
    assert result["completedStage"] == "stage2"
    markdown = markdown_path.read_text(encoding="utf-8")
    assert markdown.startswith("# Your conversations are mostly healthy")
    assert "# Comprehensive Analysis" in markdown
    assert "Risk level:       YELLOW" in capsys.readouterr().out


def test_analyze_exits_when_input_missing(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(cli, "_build_client", lambda settings: _FakeJsonClient())
    with pytest.raises(SystemExit) as exc_info:
        _run_main(monkeypatch, tmp_path, "analyze", "--input", str(tmp_path / "nope.jsonl"))
    assert exc_info.value.code == 1
    assert "Dataset load failed" in capsys.readouterr().out
