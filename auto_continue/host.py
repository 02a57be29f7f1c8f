from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console

from .config import AutoContinueOptions
from .control import InputController
from .windows import is_window_active


logger = logging.getLogger("auto_continue.host")


class HostEnvironment(ABC):
    """What the approver needs from the editor it is driving."""

    @abstractmethod
    def visible_text(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def execute_command(self, command: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None:
        raise NotImplementedError

    @abstractmethod
    def window_active(self) -> bool:
        raise NotImplementedError


_LEVEL_STYLE = {"info": "cyan", "warning": "yellow", "error": "bold red"}


class DesktopHost(HostEnvironment):
    """Drives a desktop editor through the keyboard.

    - Visible text: the tail of ``text_source`` (a transcript/log the agent UI
      writes).
    - Commands: a chord from ``command_keys`` when configured, otherwise the
      command palette (ctrl+shift+p, type, enter).
    - Focus: foreground window title contains ``window_title_contains``.
    - In dry-run, commands are logged and reported as sent.
    """

    def __init__(
        self,
        options: AutoContinueOptions,
        ctrl: Optional[InputController] = None,
        console: Optional[Console] = None,
        window_check: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.options = options
        self.ctrl = ctrl or InputController()
        self.console = console or Console()
        self._window_check = window_check or (lambda: is_window_active(options.window_title_contains))
        self._sleep = sleep
        self.delay = max(0, int(options.palette_delay_ms)) / 1000.0
        self.ctrl.set_window_gate(self.window_active)

    def _source_path(self) -> Optional[Path]:
        if not self.options.text_source:
            return None
        p = Path(self.options.text_source)
        return p if p.is_absolute() else self.options.root / p

    def visible_text(self) -> str:
        path = self._source_path()
        if path is None:
            return ""
        tail = max(0, int(self.options.text_tail_chars))
        try:
            with open(path, "rb") as f:
                if tail:
                    f.seek(0, 2)
                    size = f.tell()
                    f.seek(max(0, size - tail))
                raw = f.read()
        except OSError:
            return ""
        return raw.decode("utf-8", errors="replace")

    def window_active(self) -> bool:
        try:
            return bool(self._window_check())
        except Exception:
            logger.debug("window check failed", exc_info=True)
            return False

    def notify(self, message: str, level: str = "info") -> None:
        if not self.options.show_notifications:
            return
        style = _LEVEL_STYLE.get(level, "white")
        self.console.log(f"[{style}]{message}[/]")

    def execute_command(self, command: str) -> bool:
        cmd = str(command or "").strip()
        if not cmd:
            return False
        keys: Optional[List[str]] = self.options.command_keys.get(cmd)
        if self.options.dry_run:
            logger.info("DRY-RUN host command", extra={"command": cmd, "keys": keys})
            return True
        if keys:
            return self.ctrl.press_keys(list(keys))
        return self._command_palette(cmd)

    def _command_palette(self, cmd: str) -> bool:
        if not self.ctrl.press_keys(["ctrl", "shift", "p"]):
            return False
        self._sleep(self.delay)
        if not self.ctrl.type_text(cmd):
            logger.warning("palette typing failed", extra={"command": cmd})
            self.ctrl.press_keys(["esc"])
            return False
        self._sleep(self.delay / 2)
        return self.ctrl.press_keys(["enter"])


class StaticHost(HostEnvironment):
    """In-memory host: fixed text, recorded commands. Backs ``simulate`` and the tests."""

    def __init__(self, text: str = "", active: bool = True, command_results: Optional[Dict[str, bool]] = None):
        self.text = text
        self.active = active
        self.command_results = dict(command_results or {})
        self.commands: List[str] = []
        self.notifications: List[tuple] = []

    def visible_text(self) -> str:
        return self.text

    def execute_command(self, command: str) -> bool:
        self.commands.append(command)
        return self.command_results.get(command, True)

    def notify(self, message: str, level: str = "info") -> None:
        self.notifications.append((level, message))

    def window_active(self) -> bool:
        return self.active
