from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

CAPTURE_FAILED = "capture_failed"
OCR_FAILED = "ocr_failed"
CLICK_FAILED = "click_failed"
STEP_CRASHED = "exception"


@dataclass
class ModuleError(Exception):
    """A pipeline step could not finish its part of a visual attempt.

    ``code`` is one of the constants above (or a step-specific string) and
    ends up in the attempt's error text and the activity log.
    """

    step: str
    code: str = CAPTURE_FAILED
    message: str = ""
    details: Optional[Mapping[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details) if self.details else None}

    def __str__(self) -> str:
        text = f"{self.step}/{self.code}"
        return f"{text}: {self.message}" if self.message else text
