from __future__ import annotations

import json
from pathlib import Path

from auto_continue.config import AutoContinueOptions, validate_options


def _write_config(root: Path, data) -> Path:
    p = root / "config" / "auto_continue.json"
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(data if isinstance(data, str) else json.dumps(data, indent=2), encoding="utf-8")
    return p


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    opts = AutoContinueOptions.load(tmp_path)
    assert opts.root == tmp_path
    assert opts.dry_run is True
    assert opts.poll_interval_s == 2.0
    assert opts.settle_delay_s == 1.0
    assert opts.escalation.max_failures == 3
    assert opts.user_activity.enabled is False


def test_values_are_read(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "poll_interval_s": 0.5,
            "text_source": "t.txt",
            "prompt_patterns": ["agent paused"],
            "command_keys": {"a.b": ["ctrl", "enter"], "bad": "enter"},
            "escalation": {"suppression_s": 60},
            "user_activity": {"enabled": True, "window_s": 4},
        },
    )
    opts = AutoContinueOptions.load(tmp_path)
    assert opts.poll_interval_s == 0.5
    assert opts.prompt_patterns == ["agent paused"]
    assert opts.command_keys == {"a.b": ["ctrl", "enter"]}
    assert opts.escalation.suppression_s == 60.0
    assert opts.escalation.min_interval_s == 5.0
    assert opts.user_activity.enabled is True
    assert opts.user_activity.window_s == 4.0


def test_explicit_path_wins(tmp_path: Path) -> None:
    other = tmp_path / "elsewhere.json"
    other.write_text(json.dumps({"window_title_contains": "Code"}), encoding="utf-8")
    assert AutoContinueOptions.load(tmp_path, path=other).window_title_contains == "Code"


def test_invalid_json_falls_back(tmp_path: Path) -> None:
    _write_config(tmp_path, "{not json")
    assert AutoContinueOptions.load(tmp_path).poll_interval_s == 2.0


def test_wrong_types_fall_back(tmp_path: Path) -> None:
    _write_config(tmp_path, {"poll_interval_s": "fast"})
    opts = AutoContinueOptions.load(tmp_path)
    assert opts.poll_interval_s == 2.0
    assert opts.root == tmp_path


def test_non_object_config_falls_back(tmp_path: Path) -> None:
    _write_config(tmp_path, [1, 2, 3])
    assert AutoContinueOptions.load(tmp_path).enabled is True


def test_paths_resolve_under_root(tmp_path: Path) -> None:
    opts = AutoContinueOptions.load(tmp_path)
    assert opts.activity_log_path() == tmp_path / "logs" / "actions" / "auto_continue.jsonl"
    opts.activity_log = ""
    assert opts.activity_log_path() is None


def test_pipeline_config_sections() -> None:
    opts = AutoContinueOptions(ocr={"upscale": 3.0, "use_pyautogui": False}, prompt_patterns=["agent paused"])
    cfg = opts.pipeline_config()
    assert set(cfg) == {"capture_screen", "locate_target", "act_click"}
    assert cfg["locate_target"]["upscale"] == 3.0
    assert cfg["locate_target"]["extra_prompt_patterns"] == ["agent paused"]
    assert cfg["act_click"] == {"enabled": True, "use_pyautogui": False}


def test_validate_flags_problems(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        {
            "poll_interval_s": 0,
            "text_source": "missing.txt",
            "escalation": {"min_interval_s": -1},
            "ocr": {"region_percent": {"left": 120, "top": "x"}},
            "command_keys": {"x": []},
        },
    )
    issues = validate_options(AutoContinueOptions.load(tmp_path))
    joined = "\n".join(issues)
    assert "poll_interval_s" in joined
    assert "text_source does not exist" in joined
    assert "escalation.min_interval_s" in joined
    assert "region_percent.left" in joined
    assert "region_percent.top is not numeric" in joined
    assert "command_keys.x is empty" in joined


def test_validate_clean_config(tmp_path: Path) -> None:
    (tmp_path / "t.txt").write_text("", encoding="utf-8")
    _write_config(tmp_path, {"text_source": "t.txt"})
    assert validate_options(AutoContinueOptions.load(tmp_path)) == []


def test_shipped_sample_config_loads() -> None:
    root = Path(__file__).resolve().parents[1]
    opts = AutoContinueOptions.load(root)
    assert opts.command_keys["editor.action.inlineSuggest.commit"] == ["tab"]
    assert opts.ocr["region_percent"]["left"] == 55
