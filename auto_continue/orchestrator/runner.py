from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional, Sequence

from .errors import STEP_CRASHED, ModuleError
from .interfaces import ERROR, OK, Module, RunContext, StepResult, ensure_result_shape


logger = logging.getLogger("auto_continue.orchestrator")


@dataclass
class PipelineRun:
    """What one pass over the steps produced.

    ``data`` holds the merged payloads of every ``ok`` step; ``steps`` holds
    each step's result in order, with ``meta.step`` and ``meta.elapsed_ms``
    filled in.
    """

    ok: bool
    data: Dict[str, Any]
    steps: List[StepResult] = field(default_factory=list)
    stopped_at: Optional[str] = None

    def result_of(self, step: str) -> Optional[StepResult]:
        for res in self.steps:
            if res["meta"].get("step") == step:
                return res
        return None

    def error(self) -> Optional[Dict[str, Any]]:
        if self.stopped_at is None:
            return None
        res = self.result_of(self.stopped_at) or {}
        return dict((res.get("meta") or {}).get("error") or {"code": "error", "message": ""})


def init_all(steps: Sequence[Module], ctx: RunContext) -> None:
    for step in steps:
        step.init(ctx)


def shutdown_all(steps: Sequence[Module], ctx: RunContext) -> None:
    # Reverse order; one failing shutdown must not keep the rest alive.
    for step in reversed(steps):
        try:
            step.shutdown(ctx)
        except Exception:
            logger.exception("step shutdown failed", extra={"step": getattr(step, "name", "?")})


def _stamp(res: StepResult, step: str, started: float) -> StepResult:
    res["meta"] = {**res["meta"], "step": step, "elapsed_ms": int((time.perf_counter() - started) * 1000)}
    return res


def run_once(
    steps: Sequence[Module],
    ctx: RunContext,
    input_data: Optional[MutableMapping[str, Any]] = None,
) -> PipelineRun:
    """Run the steps in order.

    A skip is recorded and the next step still runs. The first error, whether
    returned, raised as ``ModuleError`` or raised as anything else, ends the
    run. A result with the wrong shape raises ``ValueError``.
    """
    run = PipelineRun(ok=True, data=dict(input_data or {}))

    for step in steps:
        name = getattr(step, "name", "?")
        started = time.perf_counter()
        try:
            raw = step.run_once(run.data, ctx)
        except ModuleError as exc:
            logger.warning("step failed", extra={"step": name, "code": exc.code, "details": exc.details})
            res = {"status": ERROR, "payload": {}, "meta": {"error": exc.as_dict()}}
        except Exception as exc:
            logger.exception("step crashed", extra={"step": name})
            res = {"status": ERROR, "payload": {}, "meta": {"error": {"code": STEP_CRASHED, "message": str(exc)}}}
        else:
            res = ensure_result_shape(raw, name)

        run.steps.append(_stamp(res, name, started))
        if res["status"] == OK:
            run.data.update(res["payload"])
        elif res["status"] == ERROR:
            logger.debug("run stopped", extra={"step": name, "meta": res["meta"]})
            run.ok = False
            run.stopped_at = name
            break
        else:
            logger.debug("step skipped", extra={"step": name, "reason": res["meta"].get("reason")})

    return run
