from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional

from ...capture import ScreenCapture
from ..errors import CAPTURE_FAILED, ModuleError
from ..interfaces import Module, RunContext, ok_result, skip_result


@dataclass
class CaptureScreenModule(Module):
    """Captures the configured screen region for recognition.

    Capture runs in dry-run too; it has no side effects beyond optional
    debug images.

    Config section: ctx.config["capture_screen"]
      - enabled: bool (default True)
      - monitor_index, region_percent, save_debug_images, debug_dir

    Output payload keys:
      - screenshot: {ok, bbox, image_path}
      - frame: the captured Pillow image
    """

    name: str = "capture_screen"
    capture: Optional[ScreenCapture] = None

    def init(self, ctx: RunContext) -> None:
        if self.capture is None:
            self.capture = ScreenCapture(ctx.section(self.name))

    def run_once(self, data: MutableMapping[str, Any], ctx: RunContext) -> Dict[str, Any]:
        if not ctx.enabled(self.name):
            return skip_result("disabled")

        assert self.capture is not None
        res = self.capture.capture()
        if not res.ok:
            raise ModuleError(self.name, code=CAPTURE_FAILED, message=str(res.error or "capture failed"))

        payload = {
            "screenshot": {
                "ok": True,
                "bbox": res.bbox.as_dict() if res.bbox else None,
                "image_path": res.image_path,
            },
            "frame": res.image,
        }
        return ok_result(payload)

    def shutdown(self, ctx: RunContext) -> None:
        return None
