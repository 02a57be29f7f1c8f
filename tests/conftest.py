from __future__ import annotations

from typing import Any, List, Optional

import pytest

from auto_continue.bbox import BBox
from auto_continue.escalation import TriggerConditions
from auto_continue.results import CaptureResult, ClickResult, TargetLocation


class FakeClock:
    def __init__(self, t: float = 1_000_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def favorable(**overrides) -> TriggerConditions:
    base = dict(
        prompt_text_detected=True,
        cheap_probe_failed=True,
        host_window_active=True,
        recent_human_input=False,
    )
    base.update(overrides)
    return TriggerConditions(**base)


class FakeCapture:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok

    def capture(self, bbox: Optional[BBox] = None) -> CaptureResult:
        if not self.ok:
            return CaptureResult(ok=False, error="no display")
        return CaptureResult(ok=True, image=object(), bbox=BBox(100, 50, 800, 600))


class FakeLocator:
    def __init__(self, location: Optional[TargetLocation] = None, exc: Optional[Exception] = None) -> None:
        self.location = location
        self.exc = exc
        self.origins: List[Optional[BBox]] = []

    def locate_target(self, image: Any, origin: Optional[BBox] = None) -> Optional[TargetLocation]:
        self.origins.append(origin)
        if self.exc is not None:
            raise self.exc
        return self.location


class FakeClicker:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.clicks: List[tuple] = []

    def click_at(self, x: int, y: int) -> ClickResult:
        self.clicks.append((x, y))
        if self.ok:
            return ClickResult(True, "xdotool", x=x, y=y)
        return ClickResult(False, "xte-failed", error="xte click failed: exit 1", x=x, y=y)
