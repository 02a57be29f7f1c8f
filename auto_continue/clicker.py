from __future__ import annotations

import logging
import re
import subprocess
import sys
from typing import Any, Callable, List, Optional, Sequence, Tuple

try:
    import pyautogui  # type: ignore
    pyautogui.FAILSAFE = True
except Exception:
    pyautogui = None

from .results import ClickResult


logger = logging.getLogger("auto_continue.clicker")

Runner = Callable[..., Any]
Strategy = Tuple[str, Callable[[int, int], None]]

_QUARTZ_SCRIPT = """
import time
import Quartz

def _post(kind, x, y):
    ev = Quartz.CGEventCreateMouseEvent(None, kind, (x, y), Quartz.kCGMouseButtonLeft)
    Quartz.CGEventPost(Quartz.kCGHIDEventTap, ev)

_post(Quartz.kCGEventLeftMouseDown, {x}, {y})
time.sleep(0.01)
_post(Quartz.kCGEventLeftMouseUp, {x}, {y})
"""

_POWERSHELL_SCRIPT = """
Add-Type -TypeDefinition @"
using System;
using System.Runtime.InteropServices;
public class AcMouse {{
    [DllImport("user32.dll")] public static extern bool SetCursorPos(int x, int y);
    [DllImport("user32.dll")] public static extern void mouse_event(int f, int dx, int dy, int b, int e);
}}
"@
[AcMouse]::SetCursorPos({x}, {y}) | Out-Null
Start-Sleep -Milliseconds 10
[AcMouse]::mouse_event(0x02, 0, 0, 0, 0)
Start-Sleep -Milliseconds 10
[AcMouse]::mouse_event(0x04, 0, 0, 0, 0)
"""


def _platform_key(platform: str) -> str:
    if platform.startswith("linux"):
        return "linux"
    if platform in ("win32", "cygwin"):
        return "win32"
    return platform


class NativeClicker:
    """OS-level pointer clicks through an ordered list of mechanisms.

    Each mechanism is tried in order; the first that does not raise wins.
    A failing mechanism is logged and the next one is tried, so a missing
    tool (e.g. no xdotool) degrades to the next option instead of aborting.
    """

    def __init__(
        self,
        runner: Optional[Runner] = None,
        platform: Optional[str] = None,
        use_pyautogui: bool = True,
        timeout_s: float = 5.0,
    ):
        self._run = runner or subprocess.run
        self.platform = _platform_key(platform or sys.platform)
        self.use_pyautogui = bool(use_pyautogui)
        self.timeout_s = float(timeout_s)

    def _exec(self, args: Sequence[str]) -> Any:
        return self._run(list(args), check=True, capture_output=True, text=True, timeout=self.timeout_s)

    # --- Mechanisms -----------------------------------------------------
    def _click_pyautogui(self, x: int, y: int) -> None:
        if pyautogui is None:
            raise RuntimeError("pyautogui not available")
        pyautogui.click(x=x, y=y, button="left")

    def _click_applescript(self, x: int, y: int) -> None:
        self._exec(["osascript", "-e", f'tell application "System Events" to click at {{{x}, {y}}}'])

    def _click_quartz(self, x: int, y: int) -> None:
        self._exec(["python3", "-c", _QUARTZ_SCRIPT.format(x=x, y=y)])

    def _click_powershell(self, x: int, y: int) -> None:
        self._exec(["powershell", "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_SCRIPT.format(x=x, y=y)])

    def _click_xdotool(self, x: int, y: int) -> None:
        self._exec(["xdotool", "mousemove", str(x), str(y), "click", "1"])

    def _click_xte(self, x: int, y: int) -> None:
        self._exec(["xte", f"mousemove {x} {y}", "mouseclick 1"])

    def strategies(self) -> List[Strategy]:
        out: List[Strategy] = []
        if self.use_pyautogui and pyautogui is not None:
            out.append(("pyautogui", self._click_pyautogui))
        if self.platform == "darwin":
            out += [("applescript", self._click_applescript), ("quartz", self._click_quartz)]
        elif self.platform == "win32":
            out += [("powershell", self._click_powershell)]
        elif self.platform == "linux":
            out += [("xdotool", self._click_xdotool), ("xte", self._click_xte)]
        return out

    # --- Public API -----------------------------------------------------
    def is_supported(self) -> bool:
        return self.platform in ("darwin", "win32", "linux")

    def requirements(self) -> List[str]:
        if self.platform == "darwin":
            return ["AppleScript (osascript)", "python3 with Quartz (optional)"]
        if self.platform == "win32":
            return ["PowerShell"]
        if self.platform == "linux":
            return ["xdotool or xte"]
        return ["Not supported"]

    def click_at(self, x: int, y: int) -> ClickResult:
        x, y = int(x), int(y)
        strategies = self.strategies()
        if not strategies:
            return ClickResult(False, "unsupported", error=f"Platform {self.platform} not supported", x=x, y=y)

        last_error: Optional[str] = None
        last_method = "none"
        for method, fn in strategies:
            try:
                fn(x, y)
            except Exception as exc:
                last_method = method
                last_error = f"{method} click failed: {_describe(exc)}"
                logger.debug("click mechanism failed", extra={"method": method, "error": last_error})
                continue
            return ClickResult(True, method, x=x, y=y)
        return ClickResult(False, f"{last_method}-failed", error=last_error, x=x, y=y)

    def current_position(self) -> Optional[Tuple[int, int]]:
        """Best-effort pointer position; None when it cannot be determined."""
        try:
            if pyautogui is not None and self.use_pyautogui:
                pos = pyautogui.position()
                return int(pos[0]), int(pos[1])
            if self.platform == "linux":
                out = self._exec(["xdotool", "getmouselocation"]).stdout or ""
                m = re.search(r"x:(\d+) y:(\d+)", out)
                if m:
                    return int(m.group(1)), int(m.group(2))
        except Exception:
            return None
        return None


def _describe(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        detail = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
        return f"exit {exc.returncode}" + (f": {detail}" if detail else "")
    return str(exc) or exc.__class__.__name__
