from __future__ import annotations

import math
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional


@dataclass
class EscalationLimits:
    min_interval_s: float = 5.0
    success_cooldown_s: float = 15.0
    max_failures: int = 3
    suppression_s: float = 30.0
    long_gap_s: float = 30.0
    streak_threshold: int = 2
    probe_failure_capacity: int = 5

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "EscalationLimits":
        raw = raw or {}
        base = cls()
        return cls(
            min_interval_s=float(raw.get("min_interval_s", base.min_interval_s)),
            success_cooldown_s=float(raw.get("success_cooldown_s", base.success_cooldown_s)),
            max_failures=max(1, int(raw.get("max_failures", base.max_failures))),
            suppression_s=float(raw.get("suppression_s", base.suppression_s)),
            long_gap_s=float(raw.get("long_gap_s", base.long_gap_s)),
            streak_threshold=max(1, int(raw.get("streak_threshold", base.streak_threshold))),
            probe_failure_capacity=max(1, int(raw.get("probe_failure_capacity", base.probe_failure_capacity))),
        )


@dataclass
class TriggerConditions:
    """Signals gathered by the caller for a single decision."""

    prompt_text_detected: bool = False
    cheap_probe_failed: bool = False
    elapsed_since_last_attempt: float = 0.0
    host_window_active: bool = False
    recent_failure_streak: bool = False
    recent_human_input: bool = False


@dataclass
class Decision:
    trigger: bool
    reason: str
    skip_reason: Optional[str] = None

    @classmethod
    def skip(cls, why: str) -> "Decision":
        return cls(trigger=False, reason="skip", skip_reason=why)

    def describe(self) -> str:
        return self.reason if self.trigger else (self.skip_reason or self.reason)


@dataclass
class ControllerState:
    last_attempt_at: Optional[float] = None
    last_success_at: Optional[float] = None
    consecutive_failures: int = 0
    recent_probe_failures: Deque[str] = field(default_factory=lambda: deque(maxlen=5))
    attempt_in_progress: bool = False
    suppressed_until: Optional[float] = None


def _fmt_ts(ts: Optional[float]) -> str:
    if ts is None:
        return "never"
    return time.strftime("%H:%M:%S", time.localtime(ts))


def _ceil_s(seconds: float) -> int:
    return max(0, int(math.ceil(seconds)))


class EscalationController:
    """Decides when the expensive visual-detection tier may run.

    Visual detection (screen capture + OCR + native click) is slow and
    unreliable, so it is only authorized after a text prompt was seen and the
    cheap probe failed, never concurrently, never faster than
    ``min_interval_s``, and never during a suppression window armed by
    repeated failures. ``should_trigger`` evaluates rules in a fixed order and
    the first rule that fires decides.

    All state lives in ``self.state`` and is only mutated through the methods
    below. None of the methods raise.
    """

    def __init__(self, limits: Optional[EscalationLimits] = None, clock: Callable[[], float] = time.time):
        self.limits = limits or EscalationLimits()
        self._clock = clock
        self.state = self._fresh_state()

    def _fresh_state(self) -> ControllerState:
        return ControllerState(recent_probe_failures=deque(maxlen=self.limits.probe_failure_capacity))

    def _now(self) -> float:
        return float(self._clock())

    def should_trigger(self, conditions: TriggerConditions) -> Decision:
        st = self.state
        lim = self.limits
        now = self._now()

        if st.attempt_in_progress:
            return Decision.skip("Visual detection already in progress")

        if st.suppressed_until is not None and now < st.suppressed_until:
            remaining = _ceil_s(st.suppressed_until - now)
            return Decision.skip(f"Suppressed for {remaining} more seconds after consecutive failures")

        if st.last_attempt_at is not None:
            since = now - st.last_attempt_at
            if since < lim.min_interval_s:
                return Decision.skip(f"Too soon - wait {_ceil_s(lim.min_interval_s - since)} more seconds")

        if st.last_success_at is not None:
            since_ok = now - st.last_success_at
            if since_ok < lim.success_cooldown_s:
                wait = _ceil_s(lim.success_cooldown_s - since_ok)
                return Decision.skip(f"Recent success cooldown - wait {wait} more seconds")

        if conditions.recent_human_input:
            return Decision.skip("Recent user interaction detected")

        if not conditions.prompt_text_detected:
            return Decision.skip("No text prompt detected")

        if not conditions.cheap_probe_failed:
            return Decision.skip("Cheap method not attempted or succeeded")

        if not conditions.host_window_active:
            return Decision.skip("Target window not active")

        if st.consecutive_failures >= lim.max_failures:
            st.suppressed_until = now + lim.suppression_s
            return Decision.skip("Too many consecutive failures - entering suppression period")

        if conditions.recent_failure_streak:
            return Decision(True, "UI detection failing repeatedly - visual detection needed")
        if conditions.elapsed_since_last_attempt > lim.long_gap_s:
            return Decision(True, "Long time since last attempt")
        return Decision(True, "Standard trigger: text prompt detected, cheap probe failed")

    # --- State transitions ----------------------------------------------
    def on_attempt_start(self) -> None:
        self.state.attempt_in_progress = True
        self.state.last_attempt_at = self._now()

    def on_attempt_complete(self, succeeded: bool, target_found: bool) -> None:
        self.state.attempt_in_progress = False
        if succeeded and target_found:
            self.state.last_success_at = self._now()
            self.state.consecutive_failures = 0
        else:
            self.state.consecutive_failures += 1

    @contextmanager
    def attempt(self) -> Iterator["AttemptRecord"]:
        """Bracket one visual-detection attempt.

        The caller fills in the yielded record; completion is reported exactly
        once even when the block raises (counted as a failure with no target).
        """
        record = AttemptRecord()
        self.on_attempt_start()
        try:
            yield record
        except BaseException:
            self.on_attempt_complete(False, False)
            raise
        self.on_attempt_complete(record.succeeded, record.found)

    # --- Probe failures -------------------------------------------------
    def record_probe_failure(self, label: str) -> None:
        self.state.recent_probe_failures.append(str(label or "unknown"))

    def has_recent_failure_streak(self) -> bool:
        return len(self.state.recent_probe_failures) >= self.limits.streak_threshold

    def seconds_since_last_attempt(self) -> float:
        if self.state.last_attempt_at is None:
            return 0.0
        return max(0.0, self._now() - self.state.last_attempt_at)

    # --- Maintenance ----------------------------------------------------
    def reset(self) -> None:
        self.state = self._fresh_state()

    def force_enable(self) -> None:
        """Operator escape hatch: bypasses suppression, the failure ceiling and the in-progress lock."""
        self.state.suppressed_until = None
        self.state.consecutive_failures = 0
        self.state.attempt_in_progress = False

    def is_suppressed(self) -> bool:
        until = self.state.suppressed_until
        return until is not None and self._now() < until

    def status(self) -> Dict[str, Any]:
        st = self.state
        failures: List[str] = list(st.recent_probe_failures)
        return {
            "last_attempt_at": _fmt_ts(st.last_attempt_at),
            "last_success_at": _fmt_ts(st.last_success_at),
            "consecutive_failures": st.consecutive_failures,
            "attempt_in_progress": st.attempt_in_progress,
            "suppressed_until": _fmt_ts(st.suppressed_until),
            "recent_probe_failures": failures,
        }


@dataclass
class AttemptRecord:
    succeeded: bool = False
    found: bool = False
