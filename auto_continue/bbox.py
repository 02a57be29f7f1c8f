from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class BBox:
    left: int
    top: int
    width: int
    height: int

    def as_dict(self) -> dict:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}

    @property
    def center(self) -> Tuple[int, int]:
        return self.left + self.width // 2, self.top + self.height // 2

    def clamp_to(self, screen: "BBox") -> "BBox":
        """Intersect with `screen`; an empty screen leaves the box as is. Never shrinks below 1x1."""
        if screen.width <= 0 or screen.height <= 0:
            return self
        left = max(screen.left, self.left)
        top = max(screen.top, self.top)
        right = min(screen.left + screen.width, self.left + self.width)
        bottom = min(screen.top + screen.height, self.top + self.height)
        return BBox(left, top, max(1, right - left), max(1, bottom - top))

    @classmethod
    def from_mapping(cls, m: Optional[Mapping[str, int]]) -> Optional["BBox"]:
        if not m:
            return None
        try:
            return cls(
                left=int(m.get("left", 0)),
                top=int(m.get("top", 0)),
                width=max(1, int(m.get("width", 1))),
                height=max(1, int(m.get("height", 1))),
            )
        except (TypeError, ValueError):
            return None


def _screen(monitor: Mapping[str, int]) -> BBox:
    return BBox(
        int(monitor.get("left", 0)),
        int(monitor.get("top", 0)),
        int(monitor.get("width", 0)),
        int(monitor.get("height", 0)),
    )


def roi_from_percent(monitor: Mapping[str, int], region_percent: Optional[Mapping[str, float]]) -> BBox:
    """Turn a percentage ROI (0-100 units) into an absolute-screen bbox on `monitor`.

    `monitor` is the mss monitor dict with keys left/top/width/height. A
    missing ROI selects the whole monitor.
    """

    screen = _screen(monitor)
    pct = {"left": 0.0, "top": 0.0, "width": 100.0, "height": 100.0}
    pct.update({k: float(v) for k, v in (region_percent or {}).items() if k in pct})

    roi = BBox(
        left=screen.left + int(screen.width * pct["left"] / 100.0),
        top=screen.top + int(screen.height * pct["top"] / 100.0),
        width=max(1, int(screen.width * pct["width"] / 100.0)),
        height=max(1, int(screen.height * pct["height"] / 100.0)),
    )
    return roi.clamp_to(screen)


def image_box_to_screen(
    box_xywh: Tuple[int, int, int, int],
    origin: Optional[BBox] = None,
    scale: float = 1.0,
) -> BBox:
    """Map a box found in a (possibly upscaled) capture back to absolute screen pixels.

    `box_xywh` is (x, y, w, h) in image pixels; `scale` is the factor the
    image was resized by before recognition; `origin` is where the capture
    sat on screen.
    """

    x, y, w, h = box_xywh
    if w <= 0 or h <= 0:
        raise ValueError(f"Invalid box size: {box_xywh}")
    s = float(scale) if scale and scale > 0 else 1.0
    left0 = origin.left if origin else 0
    top0 = origin.top if origin else 0
    return BBox(
        left=left0 + int(round(x / s)),
        top=top0 + int(round(y / s)),
        width=max(1, int(round(w / s))),
        height=max(1, int(round(h / s))),
    )
