from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from .capture import ScreenCapture
from .clicker import NativeClicker
from .ocr import TargetLocator
from .orchestrator import Module, RunContext, init_all, run_once, shutdown_all
from .orchestrator.default_registry import build_default_registry
from .orchestrator.registry import DEFAULT_PIPELINE
from .results import AttemptOutcome, CaptureResult, ClickResult, TargetLocation


logger = logging.getLogger("auto_continue.visual")


class VisualDetector:
    """Capture -> locate -> click, reported as one AttemptOutcome.

    The three primitives are exposed individually for tooling; the attempt
    itself runs as an orchestrator pipeline so each step is timed and logged
    the same way.
    """

    def __init__(
        self,
        capture: Optional[ScreenCapture] = None,
        locator: Optional[TargetLocator] = None,
        clicker: Optional[NativeClicker] = None,
        config: Optional[Dict[str, Any]] = None,
        before_click: Optional[Callable[[], None]] = None,
        modules: Optional[List[Module]] = None,
    ):
        cfg = config or {}
        self.capture_impl = capture or ScreenCapture(cfg.get("capture_screen"))
        self.locator = locator or TargetLocator(cfg.get("locate_target"))
        self.clicker = clicker or NativeClicker(use_pyautogui=bool((cfg.get("act_click") or {}).get("use_pyautogui", True)))
        self.config = cfg
        if modules is None:
            reg = build_default_registry(self.capture_impl, self.locator, self.clicker, before_click=before_click)
            modules = reg.create_many(DEFAULT_PIPELINE)
        self.modules = modules
        self._initialized = False

    # --- Primitives -----------------------------------------------------
    def capture(self) -> CaptureResult:
        return self.capture_impl.capture()

    def locate_target(self, image: Any) -> Optional[TargetLocation]:
        return self.locator.locate_target(image)

    def click_at(self, x: int, y: int) -> ClickResult:
        return self.clicker.click_at(x, y)

    # --- Pipeline -------------------------------------------------------
    def _ensure_init(self, ctx: RunContext) -> None:
        if not self._initialized:
            init_all(self.modules, ctx)
            self._initialized = True

    def shutdown(self, dry_run: bool = True) -> None:
        if self._initialized:
            shutdown_all(self.modules, RunContext(dry_run=dry_run, config=self.config))
            self._initialized = False

    def detect_and_click(self, dry_run: bool = True, tick: int = 0) -> AttemptOutcome:
        """Run one attempt. Never raises; every failure maps to an outcome kind."""
        ctx = RunContext(dry_run=dry_run, tick=tick, config=self.config)
        try:
            self._ensure_init(ctx)
            result = run_once(self.modules, ctx)
        except Exception as exc:
            logger.exception("visual pipeline crashed")
            return AttemptOutcome(False, False, error=str(exc), kind="pipeline_exception")

        target = result.data.get("target") if isinstance(result.data.get("target"), dict) else None
        location = None
        if target and target.get("found"):
            location = TargetLocation(
                x=int(target["x"]),
                y=int(target["y"]),
                width=int(target.get("width") or 0),
                height=int(target.get("height") or 0),
                confidence=float(target.get("confidence") or 0.0),
                text=str(target.get("text") or ""),
            )

        if not result.ok:
            err = result.error() or {}
            message = f"{err.get('code', 'error')}: {err.get('message', '')}".strip(": ")
            if result.stopped_at == "act_click" and location is not None:
                click = _click_from((result.result_of("act_click") or {}).get("payload", {}).get("click"))
                return AttemptOutcome(False, True, location=location, click=click, error=message, kind="actuation_failure")
            return AttemptOutcome(False, False, error=message, kind="pipeline_exception")

        if location is None:
            return AttemptOutcome(True, False, kind="recognition_miss")

        click = _click_from(result.data.get("click"))
        if click is None:
            # Click step disabled or skipped: nothing was actuated.
            return AttemptOutcome(False, True, location=location, error="click_skipped", kind="actuation_failure")
        return AttemptOutcome(True, True, location=location, click=click)


def _click_from(raw: Any) -> Optional[ClickResult]:
    if not isinstance(raw, dict):
        return None
    if raw.get("would_click"):
        return ClickResult(True, "dry_run", x=raw.get("x"), y=raw.get("y"))
    return ClickResult(
        bool(raw.get("ok")),
        str(raw.get("method") or "unknown"),
        error=raw.get("error"),
        x=raw.get("x"),
        y=raw.get("y"),
    )
