from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import numpy as np  # type: ignore
    from mss import mss  # type: ignore
except Exception:
    np = None
    mss = None

try:
    from PIL import Image  # type: ignore
except Exception:
    Image = None  # type: ignore

from .bbox import BBox, roi_from_percent
from .results import CaptureResult


logger = logging.getLogger("auto_continue.capture")


def _stamp() -> int:
    try:
        return int(time.time_ns())
    except Exception:
        return int(time.time() * 1000)


class ScreenCapture:
    """Grabs the configured monitor region as an RGB Pillow image.

    Config keys (the ``ocr`` section of auto_continue.json):
      - monitor_index: int (default 1, the primary monitor in mss numbering)
      - region_percent: {left, top, width, height} in 0-100 units (optional)
      - save_debug_images: bool (default False)
      - debug_dir: directory for debug PNGs (default logs/captures)
    """

    def __init__(self, cfg: Optional[Dict[str, Any]] = None, root: Optional[Path] = None):
        self.cfg = cfg or {}
        self.monitor_index = int(self.cfg.get("monitor_index", 1))
        self.region_percent = self.cfg.get("region_percent")
        self.save_debug = bool(self.cfg.get("save_debug_images", False))
        base = Path(root) if root is not None else Path(".")
        self.debug_dir = base / str(self.cfg.get("debug_dir") or "logs/captures")

    def available(self) -> bool:
        return np is not None and mss is not None and Image is not None

    def _save_image(self, img: Any) -> Optional[str]:
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            p = self.debug_dir / f"capture_{_stamp()}.png"
            img.save(p)
            return str(p)
        except Exception:
            logger.debug("debug image save failed", exc_info=True)
            return None

    def capture(self, bbox: Optional[BBox] = None) -> CaptureResult:
        if not self.available():
            return CaptureResult(ok=False, error="missing_deps: numpy, mss, pillow")
        try:
            with mss() as sct:
                if bbox is None:
                    monitors = sct.monitors
                    mon = monitors[self.monitor_index] if self.monitor_index < len(monitors) else monitors[0]
                    bbox = roi_from_percent(mon, self.region_percent)
                shot = sct.grab(bbox.as_dict())
        except Exception as exc:
            return CaptureResult(ok=False, bbox=bbox, error=f"capture failed: {exc}")

        arr = np.array(shot)[:, :, :3]
        # mss gives BGRA; flip to RGB for Pillow.
        img = Image.fromarray(arr[:, :, ::-1])
        image_path = self._save_image(img) if self.save_debug else None
        return CaptureResult(ok=True, image=img, bbox=bbox, image_path=image_path)
