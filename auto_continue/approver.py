from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from .activity import ActivityLog
from .config import AutoContinueOptions
from .escalation import EscalationController, TriggerConditions
from .host import HostEnvironment
from .prompts import PromptHit, PromptMatcher
from .results import AttemptOutcome
from .user_activity import UserActivityMonitor
from .visual import VisualDetector


logger = logging.getLogger("auto_continue.approver")

TIER_PROBE = "probe"
TIER_VISUAL = "visual"
TIER_FALLBACK = "fallback"

FALLBACK_NOTICE = "Auto-approve: attempting to continue (fallback method, low confidence)"

# Text kept before a prompt when fingerprinting it; stable while output is
# appended after the prompt.
_OCCURRENCE_CONTEXT = 200


class AutoApprover:
    """Advances "please continue" prompts with a three-tier escalation.

    Tier 1 runs the configured host commands and re-reads the visible text.
    Tier 2 (screen capture + OCR + native click) runs only when the
    escalation controller authorizes it. Tier 3 issues fallback commands and
    is the only tier that shows a notification.

    Inbound calls (``on_text_observed``, ``on_poll_tick``, operator controls)
    are expected from a single logical thread.
    """

    def __init__(
        self,
        options: AutoContinueOptions,
        host: HostEnvironment,
        controller: Optional[EscalationController] = None,
        detector: Optional[VisualDetector] = None,
        activity: Optional[ActivityLog] = None,
        matcher: Optional[PromptMatcher] = None,
        user_activity: Optional[UserActivityMonitor] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.options = options
        self.host = host
        self.controller = controller or EscalationController(options.escalation, clock=clock)
        self.user_activity = user_activity
        if detector is None:
            detector = VisualDetector(config=options.pipeline_config(), before_click=self._mask_own_click)
        self.detector = detector
        self.activity = activity or ActivityLog(options.activity_log_path(), clock=clock)
        self.matcher = matcher or PromptMatcher(extra=options.prompt_patterns)
        self.enabled = bool(options.enabled)
        self.total_triggers = 0
        self.last_triggered: Optional[float] = None
        self._ticks = 0
        self._handled_key: Optional[str] = None
        self._handled_at = 0.0
        self._sleep = sleep
        self._clock = clock

    # --- Inbound signals ------------------------------------------------
    def on_text_observed(self, text: Any) -> Optional[str]:
        """Handle a text change / active-view change. Returns the tier used, if any.

        A prompt occurrence that a tier already handled is left alone until
        ``prompt_retry_s`` has passed; polling a transcript keeps showing it.
        """
        if not self.enabled:
            return None
        hit = self.matcher.last_match(text)
        if hit is None:
            self._handled_key = None
            return None
        key = _occurrence_key(text, hit)
        if key == self._handled_key and self._clock() - self._handled_at < self.options.prompt_retry_s:
            logger.debug("prompt already handled", extra={"pattern": hit.pattern})
            return None
        self.activity.log("prompt_detected", pattern=hit.pattern)
        if self.options.settle_delay_s > 0:
            # Give the UI a moment to finish rendering the prompt and its controls.
            self._sleep(self.options.settle_delay_s)
        tier = self.approve(prompt_detected=True)
        self._handled_key = key
        self._handled_at = self._clock()
        return tier

    def on_poll_tick(self) -> Optional[str]:
        if not self.enabled:
            return None
        self._ticks += 1
        return self.on_text_observed(self._read_text())

    def trigger_manual(self) -> str:
        """Operator one-shot. Runs every tier; the visual tier still obeys the controller."""
        self.activity.log("manual_trigger")
        return self.approve(prompt_detected=self.matcher.matches(self._read_text()))

    # --- Escalation -----------------------------------------------------
    def approve(self, prompt_detected: bool = True) -> str:
        self.total_triggers += 1
        self.last_triggered = self._clock()

        if self._cheap_probe(prompt_detected):
            return TIER_PROBE

        outcome = self._visual_tier(prompt_detected)
        if outcome is not None and outcome.succeeded and outcome.found:
            return TIER_VISUAL

        self._fallback()
        return TIER_FALLBACK

    def _read_text(self) -> str:
        try:
            return self.host.visible_text() or ""
        except Exception:
            logger.warning("host text read failed", exc_info=True)
            return ""

    def _cheap_probe(self, prompt_detected: bool) -> bool:
        commands = list(self.options.probe_commands)
        if not commands:
            self.controller.record_probe_failure("no_probe_commands")
            return False

        failed_cmds = []
        for cmd in commands:
            try:
                ok = self._execute(cmd)
            except Exception as exc:
                logger.warning("probe command raised", extra={"command": cmd, "error": str(exc)})
                ok = False
            if not ok:
                failed_cmds.append(cmd)
                continue
            # Without a visible prompt there is nothing to verify against.
            if prompt_detected and not self.matcher.matches(self._read_text()):
                self.activity.log("probe_resolved", command=cmd, ok=True)
                return True

        label = f"command_failed:{failed_cmds[0]}" if failed_cmds else "prompt_persists"
        self.controller.record_probe_failure(label)
        self.activity.log("probe_failed", label=label, ok=False)
        return False

    def _recent_human_input(self) -> bool:
        if self.user_activity is None:
            return False
        try:
            return self.user_activity.recent()
        except Exception:
            return False

    def _window_active(self) -> bool:
        try:
            return bool(self.host.window_active())
        except Exception:
            logger.debug("window check raised", exc_info=True)
            return False

    def _mask_own_click(self) -> None:
        if self.user_activity is not None:
            self.user_activity.ignore_for(self.options.user_activity.self_input_grace_s)

    @contextmanager
    def _own_input(self) -> Iterator[None]:
        if self.user_activity is None:
            yield
            return
        with self.user_activity.masked(self.options.user_activity.self_input_grace_s):
            yield

    def _execute(self, cmd: str) -> bool:
        # Our key presses reach the same listeners as the user's.
        with self._own_input():
            return bool(self.host.execute_command(cmd))

    def _visual_tier(self, prompt_detected: bool) -> Optional[AttemptOutcome]:
        conditions = TriggerConditions(
            prompt_text_detected=prompt_detected,
            cheap_probe_failed=True,
            elapsed_since_last_attempt=self.controller.seconds_since_last_attempt(),
            host_window_active=self._window_active(),
            recent_failure_streak=self.controller.has_recent_failure_streak(),
            recent_human_input=self._recent_human_input(),
        )
        decision = self.controller.should_trigger(conditions)
        self.activity.log("visual_decision", trigger=decision.trigger, reason=decision.describe())
        if not decision.trigger:
            logger.debug("visual detection skipped", extra={"reason": decision.describe()})
            return None

        with self.controller.attempt() as record:
            outcome = self._run_detector()
            record.succeeded = outcome.succeeded
            record.found = outcome.found

        self.activity.log(
            "visual_attempt",
            ok=outcome.succeeded and outcome.found,
            kind=outcome.kind,
            error=outcome.error,
            location=outcome.location.as_dict() if outcome.location else None,
            method=outcome.click.method if outcome.click else None,
        )
        return outcome

    def _run_detector(self) -> AttemptOutcome:
        try:
            return self.detector.detect_and_click(dry_run=self.options.dry_run, tick=self._ticks)
        except Exception as exc:
            logger.exception("visual detector raised")
            return AttemptOutcome(False, False, error=str(exc), kind="pipeline_exception")

    def _fallback(self) -> None:
        sent = []
        for cmd in self.options.fallback_commands:
            try:
                if self._execute(cmd):
                    sent.append(cmd)
            except Exception as exc:
                logger.warning("fallback command raised", extra={"command": cmd, "error": str(exc)})
        self.activity.log("fallback", commands=sent, ok=bool(sent))
        try:
            self.host.notify(FALLBACK_NOTICE, level="warning")
        except Exception:
            logger.debug("notify failed", exc_info=True)

    # --- Operator controls ----------------------------------------------
    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)
        self.activity.log("enabled" if self.enabled else "disabled")

    def toggle(self) -> bool:
        self.set_enabled(not self.enabled)
        return self.enabled

    def reset(self) -> None:
        self.controller.reset()
        self.activity.log("controller_reset")

    def force_enable(self) -> None:
        self.controller.force_enable()
        self.activity.log("force_enable")

    def status(self) -> Dict[str, Any]:
        last = "never"
        if self.last_triggered is not None:
            last = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.last_triggered))
        return {
            "enabled": self.enabled,
            "dry_run": self.options.dry_run,
            "total_triggers": self.total_triggers,
            "last_triggered": last,
            "controller": self.controller.status(),
            "recent_activity": self.activity.recent(5),
            "failure_counts": self.activity.failure_counts(),
        }


def poll_loop(
    approver: AutoApprover,
    *,
    interval_s: float,
    max_ticks: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Optional[str]]:
    """Yield the tier handled on each poll tick (None when nothing happened)."""
    i = 0
    while max_ticks is None or i < max_ticks:
        yield approver.on_poll_tick()
        i += 1
        if interval_s > 0 and (max_ticks is None or i < max_ticks):
            sleep(interval_s)


def _occurrence_key(text: str, hit: PromptHit) -> str:
    window = text[max(0, hit.start - _OCCURRENCE_CONTEXT):hit.end]
    return hashlib.sha1(window.encode("utf-8", errors="replace")).hexdigest()
