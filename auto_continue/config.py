from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .escalation import EscalationLimits


logger = logging.getLogger("auto_continue.config")

CONFIG_FILENAME = "auto_continue.json"

DEFAULT_PROBE_COMMANDS: List[str] = [
    "workbench.action.acceptSelectedSuggestion",
    "editor.action.inlineSuggest.commit",
]

DEFAULT_FALLBACK_COMMANDS: List[str] = [
    "workbench.action.chat.submit",
]


@dataclass
class UserActivityOptions:
    enabled: bool = False
    window_s: float = 10.0
    self_input_grace_s: float = 1.0


@dataclass
class AutoContinueOptions:
    enabled: bool = True
    show_notifications: bool = True
    dry_run: bool = True
    poll_interval_s: float = 2.0
    settle_delay_s: float = 1.0
    prompt_retry_s: float = 60.0
    window_title_contains: str = "cursor"
    text_source: str = ""
    text_tail_chars: int = 20000
    prompt_patterns: List[str] = field(default_factory=list)
    probe_commands: List[str] = field(default_factory=lambda: list(DEFAULT_PROBE_COMMANDS))
    fallback_commands: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_COMMANDS))
    command_keys: Dict[str, List[str]] = field(default_factory=dict)
    palette_delay_ms: int = 300
    escalation: EscalationLimits = field(default_factory=EscalationLimits)
    ocr: Dict[str, Any] = field(default_factory=dict)
    user_activity: UserActivityOptions = field(default_factory=UserActivityOptions)
    activity_log: str = "logs/actions/auto_continue.jsonl"
    root: Path = field(default_factory=lambda: Path("."))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root: Optional[Path] = None) -> "AutoContinueOptions":
        base = cls()
        ua_raw = data.get("user_activity") or {}
        ua = UserActivityOptions(
            enabled=bool(ua_raw.get("enabled", False)),
            window_s=float(ua_raw.get("window_s", 10.0)),
            self_input_grace_s=float(ua_raw.get("self_input_grace_s", 1.0)),
        )
        keys_raw = data.get("command_keys") or {}
        command_keys = {str(k): [str(x) for x in v] for k, v in keys_raw.items() if isinstance(v, list)}
        return cls(
            enabled=bool(data.get("enabled", True)),
            show_notifications=bool(data.get("show_notifications", True)),
            dry_run=bool(data.get("dry_run", True)),
            poll_interval_s=float(data.get("poll_interval_s", base.poll_interval_s)),
            settle_delay_s=float(data.get("settle_delay_s", base.settle_delay_s)),
            prompt_retry_s=float(data.get("prompt_retry_s", base.prompt_retry_s)),
            window_title_contains=str(data.get("window_title_contains", base.window_title_contains) or ""),
            text_source=str(data.get("text_source") or ""),
            text_tail_chars=int(data.get("text_tail_chars", base.text_tail_chars)),
            prompt_patterns=[str(p) for p in (data.get("prompt_patterns") or [])],
            probe_commands=[str(c) for c in data.get("probe_commands", base.probe_commands) or []],
            fallback_commands=[str(c) for c in data.get("fallback_commands", base.fallback_commands) or []],
            command_keys=command_keys,
            palette_delay_ms=int(data.get("palette_delay_ms", base.palette_delay_ms)),
            escalation=EscalationLimits.from_dict(data.get("escalation")),
            ocr=dict(data.get("ocr") or {}),
            user_activity=ua,
            activity_log=str(data.get("activity_log", base.activity_log) or ""),
            root=Path(root) if root is not None else Path("."),
        )

    @classmethod
    def load(cls, root: Optional[Path] = None, path: Optional[Path] = None) -> "AutoContinueOptions":
        """Load config/auto_continue.json under `root`; defaults when missing or invalid."""
        base = Path(root) if root is not None else Path(".")
        cfg_path = Path(path) if path is not None else base / "config" / CONFIG_FILENAME
        data: Dict[str, Any] = {}
        try:
            if cfg_path.is_file():
                loaded = json.loads(cfg_path.read_text(encoding="utf-8"))
                data = loaded if isinstance(loaded, dict) else {}
        except (OSError, ValueError) as exc:
            logger.warning("invalid config, using defaults", extra={"path": str(cfg_path), "error": str(exc)})
            data = {}
        try:
            return cls.from_dict(data, root=base)
        except (TypeError, ValueError) as exc:
            logger.warning("config has wrong value types, using defaults", extra={"path": str(cfg_path), "error": str(exc)})
            return cls(root=base)

    def pipeline_config(self) -> Dict[str, Any]:
        """Step-keyed config for the visual pipeline's RunContext."""
        ocr = dict(self.ocr)
        return {
            "capture_screen": {**ocr, "enabled": True},
            "locate_target": {**ocr, "enabled": True, "extra_prompt_patterns": list(self.prompt_patterns)},
            "act_click": {"enabled": True, "use_pyautogui": bool(ocr.get("use_pyautogui", True))},
        }

    def activity_log_path(self) -> Optional[Path]:
        if not self.activity_log:
            return None
        p = Path(self.activity_log)
        return p if p.is_absolute() else self.root / p


def validate_options(opts: AutoContinueOptions) -> List[str]:
    issues: List[str] = []
    if opts.poll_interval_s <= 0:
        issues.append(f"poll_interval_s should be > 0, got {opts.poll_interval_s!r}")
    if opts.settle_delay_s < 0:
        issues.append(f"settle_delay_s should be >= 0, got {opts.settle_delay_s!r}")
    if opts.prompt_retry_s < 0:
        issues.append(f"prompt_retry_s should be >= 0, got {opts.prompt_retry_s!r}")
    lim = opts.escalation
    for name in ("min_interval_s", "success_cooldown_s", "suppression_s", "long_gap_s"):
        if getattr(lim, name) < 0:
            issues.append(f"escalation.{name} should be >= 0, got {getattr(lim, name)!r}")
    if opts.text_source:
        src = Path(opts.text_source)
        src = src if src.is_absolute() else opts.root / src
        if not src.exists():
            issues.append(f"text_source does not exist: {src}")
    else:
        issues.append("text_source is empty (only manual triggers will work)")
    region = opts.ocr.get("region_percent")
    if isinstance(region, dict):
        for key in ("left", "top", "width", "height"):
            val = region.get(key)
            if val is None:
                continue
            try:
                v = float(val)
            except (TypeError, ValueError):
                issues.append(f"ocr.region_percent.{key} is not numeric: {val!r}")
                continue
            if not (0.0 <= v <= 100.0):
                issues.append(f"ocr.region_percent.{key} should be within 0-100, got {val!r}")
    elif region is not None:
        issues.append("ocr.region_percent should be an object with left/top/width/height")
    tcmd = str(opts.ocr.get("tesseract_cmd") or "").strip()
    if tcmd and not Path(tcmd).exists():
        issues.append(f"ocr.tesseract_cmd not found on disk: {tcmd}")
    for name, keys in opts.command_keys.items():
        if not keys:
            issues.append(f"command_keys.{name} is empty")
    return issues
