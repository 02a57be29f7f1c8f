from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

from ...bbox import BBox
from ...ocr import TargetLocator
from ..errors import OCR_FAILED, ModuleError
from ..interfaces import Module, RunContext, ok_result, skip_result


@dataclass
class LocateTargetModule(Module):
    """Runs OCR over data["frame"] and looks for a continuation control.

    A miss is not an error: the step returns ``skip`` with
    ``target.found = False`` so the click step is skipped and the attempt is
    booked as a recognition miss.

    Output payload keys:
      - target: {found, x, y, width, height, confidence, text}
    """

    name: str = "locate_target"
    locator: Optional[TargetLocator] = None

    def init(self, ctx: RunContext) -> None:
        if self.locator is None:
            self.locator = TargetLocator(ctx.section(self.name))

    def run_once(self, data: MutableMapping[str, Any], ctx: RunContext) -> Dict[str, Any]:
        if not ctx.enabled(self.name):
            return skip_result("disabled")

        shot = data.get("screenshot")
        frame = data.get("frame")
        if not isinstance(shot, dict) or not shot.get("ok") or frame is None:
            return skip_result("no_screenshot", {"target": {"found": False}})

        assert self.locator is not None
        origin = BBox.from_mapping(shot.get("bbox"))
        try:
            loc = self.locator.locate_target(frame, origin=origin)
        except Exception as exc:
            raise ModuleError(self.name, code=OCR_FAILED, message=str(exc)) from exc

        if loc is None:
            return skip_result("not_found", {"target": {"found": False}})

        return ok_result({"target": {"found": True, **loc.as_dict()}})

    def shutdown(self, ctx: RunContext) -> None:
        return None
