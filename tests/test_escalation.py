from __future__ import annotations

import pytest

from auto_continue.escalation import EscalationController, EscalationLimits, TriggerConditions

from conftest import favorable


def _fail(ctl: EscalationController, clock, times: int, gap_s: float = 6.0) -> None:
    for _ in range(times):
        ctl.on_attempt_start()
        ctl.on_attempt_complete(False, False)
        clock.advance(gap_s)


def test_fresh_controller_triggers_standard(clock) -> None:
    ctl = EscalationController(clock=clock)
    d = ctl.should_trigger(favorable())
    assert d.trigger is True
    assert "standard trigger" in d.reason.lower()
    assert d.skip_reason is None


@pytest.mark.parametrize(
    "conds",
    [
        favorable(),
        favorable(recent_failure_streak=True, elapsed_since_last_attempt=999.0),
        TriggerConditions(),
        favorable(recent_human_input=True),
        favorable(host_window_active=False),
    ],
)
def test_in_progress_always_skips(clock, conds) -> None:
    ctl = EscalationController(clock=clock)
    ctl.on_attempt_start()
    clock.advance(3600)
    d = ctl.should_trigger(conds)
    assert d.trigger is False
    assert "already in progress" in d.skip_reason.lower()


def test_two_decisions_without_attempt_are_independent(clock) -> None:
    ctl = EscalationController(clock=clock)
    assert ctl.should_trigger(favorable()).trigger is True
    clock.advance(1)
    assert ctl.should_trigger(favorable()).trigger is True


def test_too_soon_after_attempt(clock) -> None:
    ctl = EscalationController(clock=clock)
    ctl.on_attempt_start()
    ctl.on_attempt_complete(False, False)
    clock.advance(2)
    d = ctl.should_trigger(favorable())
    assert d.trigger is False
    assert "too soon" in d.skip_reason.lower()
    assert "3 more seconds" in d.skip_reason


def test_suppression_after_max_failures(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 3)
    assert ctl.state.consecutive_failures == 3

    d = ctl.should_trigger(favorable())
    assert d.trigger is False
    assert "entering suppression" in d.skip_reason.lower()
    assert ctl.state.suppressed_until == pytest.approx(clock.t + 30.0)

    clock.advance(10)
    d = ctl.should_trigger(favorable())
    assert d.trigger is False
    assert "20 more seconds" in d.skip_reason


def test_suppression_beats_every_other_condition(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 3)
    ctl.should_trigger(favorable())
    clock.advance(1)
    d = ctl.should_trigger(TriggerConditions())
    assert d.trigger is False
    assert d.skip_reason.lower().startswith("suppressed")


def test_failure_ceiling_rearms_until_operator_intervenes(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 3)
    ctl.should_trigger(favorable())
    clock.advance(31)

    d = ctl.should_trigger(favorable())
    assert d.trigger is False
    assert "entering suppression" in d.skip_reason.lower()

    ctl.force_enable()
    assert ctl.should_trigger(favorable()).trigger is True


def test_trigger_possible_once_window_elapses_after_force_enable(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 3)
    ctl.should_trigger(favorable())
    ctl.force_enable()
    assert ctl.state.suppressed_until is None
    assert ctl.state.consecutive_failures == 0
    assert ctl.state.attempt_in_progress is False
    assert ctl.should_trigger(favorable()).trigger is True


def test_success_resets_failures_and_starts_cooldown(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 2)
    ctl.on_attempt_start()
    ctl.on_attempt_complete(True, True)
    assert ctl.state.consecutive_failures == 0

    clock.advance(6)
    d = ctl.should_trigger(favorable(recent_failure_streak=True))
    assert d.trigger is False
    assert "recent success cooldown" in d.skip_reason.lower()

    clock.advance(10)
    assert ctl.should_trigger(favorable()).trigger is True


def test_success_without_target_counts_as_failure(clock) -> None:
    ctl = EscalationController(clock=clock)
    ctl.on_attempt_start()
    ctl.on_attempt_complete(True, False)
    assert ctl.state.consecutive_failures == 1
    assert ctl.state.last_success_at is None
    assert ctl.state.attempt_in_progress is False


def test_reset_restores_triggering(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 4)
    ctl.should_trigger(favorable())
    ctl.record_probe_failure("x")
    ctl.reset()

    assert ctl.state.last_attempt_at is None
    assert ctl.state.suppressed_until is None
    assert list(ctl.state.recent_probe_failures) == []
    assert ctl.should_trigger(favorable()).trigger is True


@pytest.mark.parametrize(
    "conds, expected",
    [
        (favorable(recent_human_input=True, prompt_text_detected=False), "recent user interaction"),
        (favorable(prompt_text_detected=False, cheap_probe_failed=False), "no text prompt"),
        (favorable(cheap_probe_failed=False, host_window_active=False), "cheap method not attempted or succeeded"),
        (favorable(host_window_active=False), "target window not active"),
    ],
)
def test_rule_precedence(clock, conds, expected) -> None:
    ctl = EscalationController(clock=clock)
    d = ctl.should_trigger(conds)
    assert d.trigger is False
    assert d.reason == "skip"
    assert expected in d.skip_reason.lower()


def test_failure_ceiling_checked_after_signal_rules(clock) -> None:
    ctl = EscalationController(clock=clock)
    _fail(ctl, clock, 3)
    d = ctl.should_trigger(favorable(host_window_active=False))
    assert "target window not active" in d.skip_reason.lower()
    assert ctl.state.suppressed_until is None


def test_probe_failures_make_streak_visible(clock) -> None:
    ctl = EscalationController(clock=clock)
    ctl.record_probe_failure("prompt_persists")
    assert ctl.has_recent_failure_streak() is False
    ctl.record_probe_failure("command_failed:x")
    assert ctl.has_recent_failure_streak() is True

    d = ctl.should_trigger(favorable(recent_failure_streak=ctl.has_recent_failure_streak()))
    assert d.trigger is True
    assert "failing repeatedly" in d.reason.lower()


def test_probe_failures_are_bounded(clock) -> None:
    ctl = EscalationController(clock=clock)
    for i in range(7):
        ctl.record_probe_failure(f"f{i}")
    assert list(ctl.state.recent_probe_failures) == ["f2", "f3", "f4", "f5", "f6"]


def test_long_gap_reason(clock) -> None:
    ctl = EscalationController(clock=clock)
    ctl.on_attempt_start()
    ctl.on_attempt_complete(False, False)
    clock.advance(45)
    d = ctl.should_trigger(favorable(elapsed_since_last_attempt=ctl.seconds_since_last_attempt()))
    assert d.trigger is True
    assert "long time" in d.reason.lower()


def test_seconds_since_last_attempt_zero_when_never(clock) -> None:
    assert EscalationController(clock=clock).seconds_since_last_attempt() == 0.0


def test_attempt_context_reports_once_on_exception(clock) -> None:
    ctl = EscalationController(clock=clock)
    with pytest.raises(RuntimeError):
        with ctl.attempt():
            assert ctl.state.attempt_in_progress is True
            raise RuntimeError("ocr exploded")
    assert ctl.state.attempt_in_progress is False
    assert ctl.state.consecutive_failures == 1


def test_attempt_context_records_success(clock) -> None:
    ctl = EscalationController(clock=clock)
    with ctl.attempt() as rec:
        rec.succeeded = True
        rec.found = True
    assert ctl.state.last_success_at == clock.t
    assert ctl.state.consecutive_failures == 0


def test_custom_limits(clock) -> None:
    ctl = EscalationController(EscalationLimits(max_failures=1, suppression_s=5.0), clock=clock)
    _fail(ctl, clock, 1)
    assert "entering suppression" in ctl.should_trigger(favorable()).skip_reason.lower()
    assert ctl.is_suppressed() is True
    clock.advance(5)
    assert ctl.is_suppressed() is False


def test_status_snapshot(clock) -> None:
    ctl = EscalationController(clock=clock)
    st = ctl.status()
    assert st["last_attempt_at"] == "never"
    assert st["suppressed_until"] == "never"
    ctl.on_attempt_start()
    ctl.record_probe_failure("a")
    st = ctl.status()
    assert st["attempt_in_progress"] is True
    assert st["last_attempt_at"] != "never"
    assert st["recent_probe_failures"] == ["a"]
    st["recent_probe_failures"].append("mutated")
    assert list(ctl.state.recent_probe_failures) == ["a"]


def test_limits_from_dict_defaults_and_overrides() -> None:
    lim = EscalationLimits.from_dict({"min_interval_s": 1, "max_failures": 0})
    assert lim.min_interval_s == 1.0
    assert lim.max_failures == 1
    assert lim.success_cooldown_s == 15.0
    assert EscalationLimits.from_dict(None) == EscalationLimits()
