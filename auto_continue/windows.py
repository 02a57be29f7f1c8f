from __future__ import annotations

import subprocess
import sys
from typing import Any, Callable, Optional

Runner = Callable[..., Any]


def _win32_foreground_title() -> str:
    import ctypes

    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    hwnd = user32.GetForegroundWindow()
    if not hwnd:
        return ""
    length = user32.GetWindowTextLengthW(hwnd)
    buf = ctypes.create_unicode_buffer(length + 1)
    user32.GetWindowTextW(hwnd, buf, length + 1)
    return buf.value or ""


def foreground_window_title(runner: Optional[Runner] = None, platform: Optional[str] = None) -> str:
    """Title of the focused top-level window, or "" when it cannot be read."""
    plat = platform or sys.platform
    run = runner or subprocess.run
    try:
        if plat in ("win32", "cygwin"):
            return _win32_foreground_title()
        if plat.startswith("linux"):
            res = run(["xdotool", "getactivewindow", "getwindowname"], capture_output=True, text=True, timeout=2, check=True)
            return (res.stdout or "").strip()
        if plat == "darwin":
            script = 'tell application "System Events" to get name of first application process whose frontmost is true'
            res = run(["osascript", "-e", script], capture_output=True, text=True, timeout=2, check=True)
            return (res.stdout or "").strip()
    except Exception:
        return ""
    return ""


def is_window_active(title_contains: str, runner: Optional[Runner] = None, platform: Optional[str] = None) -> bool:
    """True when the focused window title contains `title_contains` (case-insensitive).

    An empty needle means "any focused window counts".
    """
    title = foreground_window_title(runner=runner, platform=platform)
    needle = (title_contains or "").strip().lower()
    if not needle:
        return bool(title)
    return needle in title.lower()
