from __future__ import annotations

from pathlib import Path

import yaml

import cli
from tdrs.config import DEFAULT_DEFINITIONS


def test_validate_reports_counts(capsys):
    assert cli.main(["validate", "--definitions", str(DEFAULT_DEFINITIONS)]) == 0
    assert capsys.readouterr().out.startswith("OK: ")


def test_validate_fails_on_bad_document(tmp_path: Path, capsys):
    bad = tmp_path / "bad.yaml"
    bad.write_text(yaml.safe_dump([{"id": "odd", "effects": ["Teleport self"]}]), encoding="utf-8")
    assert cli.main(["validate", "--definitions", str(bad)]) == 1
    assert "Teleport" in capsys.readouterr().err


def test_validate_fails_on_missing_file(tmp_path: Path, capsys):
    assert cli.main(["validate", "--definitions", str(tmp_path / "missing.yaml")]) == 1
    assert "missing.yaml" in capsys.readouterr().err


def test_run_scenario_with_tick_override(tmp_path: Path, capsys, monkeypatch):
    monkeypatch.delenv("TDRS_CONFIG_FILE", raising=False)
    monkeypatch.delenv("TDRS_DEFINITIONS", raising=False)
    scenario = tmp_path / "scenario.yaml"
    scenario.write_text(
        yaml.safe_dump(
            {
                "name": "tiny",
                "ticks": 10,
                "steps": [
                    {"tick": 0, "action": "add_trait", "entity": "alice", "trait": "kind"},
                    {"tick": 1, "action": "relationship", "owner": "alice", "target": "bob"},
                ],
            }
        ),
        encoding="utf-8",
    )
    code = cli.main(
        ["run", "--definitions", str(DEFAULT_DEFINITIONS), "--scenario", str(scenario), "--ticks", "2"]
    )
    assert code == 0
    output = capsys.readouterr().out
    assert "=== Tick 1 ===" in output
    assert "=== Tick 2 ===" not in output
    assert "alice->bob: Affection=10" in output


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out
