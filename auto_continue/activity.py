from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger("auto_continue.activity")


def _now_iso(ts: float) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(ts)) + f".{int((ts % 1) * 1000):03d}"


class ActivityLog:
    """Activity trail: JSON lines on disk plus the most recent entries in memory.

    Failure-like events (name contains "fail"/"error", or ``ok=False``) are
    also counted over a trailing window so status views can show how often
    each tier has been failing lately.
    """

    def __init__(self, file_path: Optional[Path] = None, keep: int = 20, failure_window_s: float = 300.0,
                 clock: Callable[[], float] = time.time):
        self.file_path = Path(file_path) if file_path else None
        if self.file_path is not None:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=max(1, int(keep)))
        self._failure_window_s = failure_window_s
        self._failures: Dict[str, Deque[float]] = {}
        self._clock = clock

    def log(self, event: str, **data: Any) -> Dict[str, Any]:
        ts = self._clock()
        rec: Dict[str, Any] = {"ts": _now_iso(ts), "event": event, **data}
        with self._lock:
            self._recent.appendleft(rec)
        if self.file_path is not None:
            line = json.dumps(rec, ensure_ascii=False, separators=(",", ":"), default=str)
            try:
                with self._lock, self.file_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            except OSError:
                logger.warning("activity log write failed", extra={"path": str(self.file_path)})

        low = event.lower()
        if "error" in low or "fail" in low or data.get("ok") is False:
            self._count_failure(event, ts)
        return rec

    def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest first."""
        with self._lock:
            items = list(self._recent)
        return items[:limit] if limit else items

    def _count_failure(self, event: str, ts: float) -> None:
        with self._lock:
            self._failures.setdefault(event, deque()).append(ts)
            self._live(event)

    def _live(self, event: str) -> int:
        stamps = self._failures.get(event)
        if not stamps:
            return 0
        horizon = self._clock() - self._failure_window_s
        while stamps and stamps[0] < horizon:
            stamps.popleft()
        return len(stamps)

    def failure_count(self, event: str) -> int:
        """Failures of ``event`` inside the trailing window."""
        with self._lock:
            return self._live(event)

    def failure_counts(self) -> Dict[str, int]:
        with self._lock:
            counts = {event: self._live(event) for event in list(self._failures)}
        return {event: n for event, n in counts.items() if n}

    def format_lines(self, limit: Optional[int] = None) -> List[str]:
        lines = []
        for i, rec in enumerate(self.recent(limit), start=1):
            details = {k: v for k, v in rec.items() if k not in ("ts", "event")}
            lines.append(f"{i}. [{rec['ts']}] {rec['event']}: {json.dumps(details, default=str)}")
        return lines
