from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple

from ...clicker import NativeClicker
from ..errors import CLICK_FAILED
from ..interfaces import Module, RunContext, error_result, ok_result, skip_result


def _get_target_center(data: MutableMapping[str, Any]) -> Optional[Tuple[int, int]]:
    target = data.get("target")
    if not isinstance(target, dict) or not target.get("found"):
        return None
    try:
        return int(target.get("x")), int(target.get("y"))
    except (TypeError, ValueError):
        return None


@dataclass
class ClickTargetModule(Module):
    """Clicks the located target centre with NativeClicker.

    Safety:
    - Does nothing in dry_run mode (reports would_click).
    - ``before_click`` (if set) is called right before a live click so the
      caller can mask the synthetic input from user-activity detection.

    Config section: ctx.config["act_click"]
      - enabled: bool (default True)
      - use_pyautogui: bool (default True)
    """

    name: str = "act_click"
    clicker: Optional[NativeClicker] = None
    before_click: Optional[Callable[[], None]] = None

    def init(self, ctx: RunContext) -> None:
        if self.clicker is None:
            cfg = ctx.section(self.name)
            self.clicker = NativeClicker(use_pyautogui=bool(cfg.get("use_pyautogui", True)))

    def run_once(self, data: MutableMapping[str, Any], ctx: RunContext) -> Dict[str, Any]:
        if not ctx.enabled(self.name):
            return skip_result("disabled")

        center = _get_target_center(data)
        if center is None:
            return skip_result("no_target")

        x, y = center
        if ctx.dry_run:
            return ok_result({"click": {"would_click": True, "x": x, "y": y}}, dry_run=True)

        if self.before_click is not None:
            self.before_click()

        assert self.clicker is not None
        res = self.clicker.click_at(x, y)
        payload = {"click": {"ok": res.succeeded, "method": res.method, "error": res.error, "x": x, "y": y}}
        if not res.succeeded:
            return error_result(CLICK_FAILED, res.error or "", payload)
        return ok_result(payload)

    def shutdown(self, ctx: RunContext) -> None:
        return None
