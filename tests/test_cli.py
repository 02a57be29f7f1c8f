from __future__ import annotations

import json
from pathlib import Path

import pytest

from auto_continue.cli import build_parser, main


def _write_config(root: Path, data: dict) -> None:
    p = root / "config" / "auto_continue.json"
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data), encoding="utf-8")


def test_match_hit(tmp_path: Path, capsys) -> None:
    assert main(["--root", str(tmp_path), "match", "Shall", "I", "continue?"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["match"] is True


def test_match_miss(tmp_path: Path, capsys) -> None:
    assert main(["--root", str(tmp_path), "match", "How can I help you today?"]) == 1
    assert json.loads(capsys.readouterr().out)["match"] is False


def test_match_uses_configured_patterns(tmp_path: Path) -> None:
    _write_config(tmp_path, {"prompt_patterns": ["agent paused"]})
    assert main(["--root", str(tmp_path), "match", "Agent paused."]) == 0


def test_validate_config(tmp_path: Path, capsys) -> None:
    assert main(["--root", str(tmp_path), "validate-config"]) == 1
    assert "text_source is empty" in capsys.readouterr().out

    (tmp_path / "t.txt").write_text("", encoding="utf-8")
    _write_config(tmp_path, {"text_source": "t.txt"})
    assert main(["--root", str(tmp_path), "validate-config"]) == 0


def test_simulate_inactive_window_reaches_fallback(tmp_path: Path, capsys) -> None:
    _write_config(tmp_path, {"activity_log": ""})
    rc = main(["--root", str(tmp_path), "simulate", "--inactive", "Would you like to continue?"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "fallback" in out
    assert "workbench.action.chat.submit" in out


def test_click_defaults_to_dry_run(capsys) -> None:
    assert main(["click", "10", "20"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["would_click"] is True
    assert (out["x"], out["y"]) == (10, 20)


def test_subcommand_required() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
