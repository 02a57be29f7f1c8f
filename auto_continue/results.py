from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .bbox import BBox


@dataclass
class CaptureResult:
    ok: bool
    image: Any = None  # PIL.Image.Image when ok
    bbox: Optional[BBox] = None
    image_path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class TargetLocation:
    """Centre of a recognized continuation control, in absolute screen pixels."""

    x: int
    y: int
    width: int = 0
    height: int = 0
    confidence: float = 0.0
    text: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClickResult:
    succeeded: bool
    method: str
    error: Optional[str] = None
    x: Optional[int] = None
    y: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AttemptOutcome:
    """One visual-detection attempt, normalised for the escalation controller."""

    succeeded: bool
    found: bool
    location: Optional[TargetLocation] = None
    click: Optional[ClickResult] = None
    error: Optional[str] = None
    kind: str = "ok"  # ok | recognition_miss | actuation_failure | pipeline_exception

    def as_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "found": self.found,
            "kind": self.kind,
            "error": self.error,
            "location": self.location.as_dict() if self.location else None,
            "click": self.click.as_dict() if self.click else None,
        }
