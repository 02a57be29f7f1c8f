from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

try:
    import pyautogui  # type: ignore
    pyautogui.FAILSAFE = True
except Exception:
    pyautogui = None

logger = logging.getLogger("auto_continue.control")

_MINUTE = 60.0


@dataclass
class InputLimits:
    max_keys_per_min: int = 120
    max_actions_per_min: int = 60
    gate_grace_s: float = 1.5


class InputController:
    """Rate-limited keyboard input for host command dispatch.

    Every chord or string counts against a sliding one-minute window, and an
    optional window gate must pass (or have passed within the grace period)
    before anything is sent.
    """

    def __init__(self, limits: Optional[InputLimits] = None, type_interval: float = 0.01,
                 clock: Callable[[], float] = time.time):
        self.limits = limits or InputLimits()
        self.type_interval = type_interval
        self._clock = clock
        self._sent: Deque[float] = deque()
        self._keystrokes: Deque[float] = deque()
        self._gate: Optional[Callable[[], bool]] = None
        self._gate_passed_at = 0.0
        self._paused = False

    def available(self) -> bool:
        return pyautogui is not None

    def set_window_gate(self, fn: Optional[Callable[[], bool]]) -> None:
        self._gate = fn

    def set_paused(self, paused: bool) -> None:
        self._paused = bool(paused)

    def _expire(self) -> None:
        horizon = self._clock() - _MINUTE
        for stamps in (self._sent, self._keystrokes):
            while stamps and stamps[0] < horizon:
                stamps.popleft()

    def _within_budget(self, keys: int) -> bool:
        self._expire()
        if len(self._sent) >= self.limits.max_actions_per_min:
            return False
        return len(self._keystrokes) + keys <= self.limits.max_keys_per_min

    def input_allowed(self) -> bool:
        if self._paused:
            return False
        if self._gate is None:
            return True
        now = self._clock()
        try:
            passed = bool(self._gate())
        except Exception:
            logger.debug("window gate raised; treating as closed", exc_info=True)
            passed = False
        if passed:
            self._gate_passed_at = now
            return True
        return now - self._gate_passed_at <= self.limits.gate_grace_s

    def _send(self, what: str, keys: int, action: Callable[[], None]) -> bool:
        if pyautogui is None:
            return False
        if not self._within_budget(keys):
            logger.info("input rate limit reached", extra={"input": what})
            return False
        if not self.input_allowed():
            logger.info("input blocked by pause or window gate", extra={"input": what})
            return False
        try:
            action()
        except Exception:
            logger.warning("pyautogui call failed", extra={"input": what}, exc_info=True)
            return False
        now = self._clock()
        self._sent.append(now)
        self._keystrokes.extend([now] * keys)
        return True

    def press_keys(self, keys: List[str]) -> bool:
        if not keys:
            return False
        if len(keys) == 1:
            return self._send(keys[0], 1, lambda: pyautogui.press(keys[0]))
        return self._send("+".join(keys), len(keys), lambda: pyautogui.hotkey(*keys))

    def type_text(self, text: str) -> bool:
        # write() handles Unicode; typewrite is ASCII-only.
        return self._send("text", len(text), lambda: pyautogui.write(text, interval=self.type_interval))

    def actions_in_window(self) -> int:
        self._expire()
        return len(self._sent)
