from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, MutableMapping, Optional


StepResult = Dict[str, Any]

OK, SKIP, ERROR = "ok", "skip", "error"


@dataclass
class RunContext:
    """Per-attempt settings handed to every step.

    ``config`` is keyed by step name (``capture_screen``, ``locate_target``,
    ``act_click``). With ``dry_run`` set, no step may click.
    """

    dry_run: bool = True
    tick: int = 0
    config: Mapping[str, Any] = field(default_factory=dict)

    def section(self, name: str) -> Dict[str, Any]:
        return dict(self.config.get(name) or {})

    def enabled(self, name: str) -> bool:
        return bool(self.section(name).get("enabled", True))


class Module(ABC):
    """One step of the capture -> locate -> click attempt.

    ``init`` runs before the first attempt and ``shutdown`` when the detector
    is torn down. ``run_once`` reads what earlier steps produced from ``data``
    and returns a step result built with ``ok_result`` / ``skip_result`` /
    ``error_result``.
    """

    name: str

    @abstractmethod
    def init(self, ctx: RunContext) -> None:
        raise NotImplementedError

    @abstractmethod
    def run_once(self, data: MutableMapping[str, Any], ctx: RunContext) -> StepResult:
        raise NotImplementedError

    @abstractmethod
    def shutdown(self, ctx: RunContext) -> None:
        raise NotImplementedError


def ok_result(payload: Optional[Dict[str, Any]] = None, **meta: Any) -> StepResult:
    return {"status": OK, "payload": payload or {}, "meta": meta}


def skip_result(reason: str, payload: Optional[Dict[str, Any]] = None) -> StepResult:
    return {"status": SKIP, "payload": payload or {}, "meta": {"reason": reason}}


def error_result(code: str, message: str, payload: Optional[Dict[str, Any]] = None) -> StepResult:
    return {"status": ERROR, "payload": payload or {}, "meta": {"error": {"code": code, "message": message}}}


def ensure_result_shape(result: Any, step: str) -> StepResult:
    """Validate a step's return value; a malformed result is a programming error."""
    if not isinstance(result, Mapping):
        raise ValueError(f"{step}: result must be a mapping, got {type(result).__name__}")
    status = result.get("status")
    if status not in (OK, SKIP, ERROR):
        raise ValueError(f"{step}: invalid status {status!r}")
    shaped: StepResult = {"status": status}
    for key in ("payload", "meta"):
        value = result.get(key) or {}
        if not isinstance(value, dict):
            raise ValueError(f"{step}: {key} must be a dict")
        shaped[key] = value
    return shaped
