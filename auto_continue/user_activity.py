from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional


logger = logging.getLogger("auto_continue.user_activity")


class UserActivityMonitor:
    """Tracks when a human last touched the keyboard or mouse.

    Listeners come from pynput and are only started by ``start()``. Input we
    generate ourselves (native clicks, host key presses) is masked with
    ``ignore_for()`` or ``masked()`` so it does not look like the user
    taking over.
    """

    def __init__(self, window_s: float = 10.0, clock: Callable[[], float] = time.time):
        self.window_s = float(window_s)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_input_ts: Optional[float] = None
        self._ignore_until = 0.0
        self._masking = 0
        self._listeners: List[Any] = []

    def note_input(self, *_args: Any) -> None:
        now = self._clock()
        with self._lock:
            if self._masking or now < self._ignore_until:
                return
            self._last_input_ts = now

    def ignore_for(self, seconds: float) -> None:
        with self._lock:
            self._ignore_until = max(self._ignore_until, self._clock() + max(0.0, float(seconds)))

    @contextmanager
    def masked(self, grace_s: float = 0.0) -> Iterator[None]:
        """Ignore input while the block runs and for `grace_s` after it."""
        with self._lock:
            self._masking += 1
        try:
            yield
        finally:
            with self._lock:
                self._masking -= 1
            self.ignore_for(grace_s)

    def recent(self) -> bool:
        with self._lock:
            last = self._last_input_ts
        if last is None:
            return False
        return (self._clock() - last) < self.window_s

    def seconds_since_input(self) -> Optional[float]:
        with self._lock:
            last = self._last_input_ts
        return None if last is None else max(0.0, self._clock() - last)

    def start(self) -> bool:
        """Start pynput listeners; False when no input backend is available."""
        if self._listeners:
            return True
        try:
            from pynput import keyboard, mouse  # type: ignore
        except Exception as exc:
            logger.warning("user activity monitoring unavailable", extra={"error": str(exc)})
            return False
        try:
            kb = keyboard.Listener(on_press=self.note_input)
            ms = mouse.Listener(on_click=self.note_input, on_scroll=self.note_input)
            kb.start()
            ms.start()
        except Exception as exc:
            logger.warning("could not start input listeners", extra={"error": str(exc)})
            return False
        self._listeners = [kb, ms]
        return True

    def stop(self) -> None:
        for listener in self._listeners:
            try:
                listener.stop()
            except Exception:
                logger.debug("listener stop failed", exc_info=True)
        self._listeners = []
