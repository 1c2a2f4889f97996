"""
Tests for the admin CLI.
"""

import json
import sys

import pytest

from ..cli import main


@pytest.fixture
def files(tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps({
        "themes": [{"id": "lab", "title": "The Lab", "available_roles": ["B"]}],
        "puzzles": [
            {"theme_id": "lab", "sequence": 2, "kind": "trigger", "code": "P2",
             "solution": "1234", "role": "main", "effect": {"video": "V"}},
            {"theme_id": "lab", "sequence": 5, "kind": "trigger", "code": "P5",
             "solution": "OPEN", "role": "main", "effect": {},
             "triggers": [{"target_role": "B", "effect": {"image": "I"}}]},
        ],
    }), encoding="utf-8")
    return ["--store", str(tmp_path / "sessions.json"), "--catalog", str(catalog)]


def run_cli(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["roomsync", *args])
    main()


def session_id_from(output: str) -> str:
    for line in output.splitlines():
        if line.startswith("Session: "):
            return line.split(": ", 1)[1]
    raise AssertionError(f"No session id in output: {output}")


class TestCLI:
    """Tests for CLI commands against the file store."""

    def test_create_start_jump(self, files, monkeypatch, capsys):
        run_cli(monkeypatch, *files, "create", "lab", "--code", "K7Q2")
        session_id = session_id_from(capsys.readouterr().out)

        run_cli(monkeypatch, *files, "start", session_id)
        assert "Status:  running" in capsys.readouterr().out

        run_cli(monkeypatch, *files, "jump", session_id, "5")
        output = capsys.readouterr().out
        assert "Puzzle:  5" in output
        assert "[main] disconnected  video=V" in output

        run_cli(monkeypatch, *files, "list")
        assert "K7Q2" in capsys.readouterr().out

    def test_missing_session_exits(self, files, monkeypatch, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, *files, "status", "missing")
        assert excinfo.value.code == 1
        assert "Session missing not found" in capsys.readouterr().out

    def test_validate(self, files, monkeypatch, capsys):
        run_cli(monkeypatch, *files, "validate")
        assert "lab: ok (2 puzzles, 2 triggers)" in capsys.readouterr().out

    def test_no_command(self, monkeypatch):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch)
