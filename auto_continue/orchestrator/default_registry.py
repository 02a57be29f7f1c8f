from __future__ import annotations

from typing import Callable, Optional

from ..capture import ScreenCapture
from ..clicker import NativeClicker
from ..ocr import TargetLocator
from .modules import CaptureScreenModule, ClickTargetModule, LocateTargetModule
from .registry import Registry


def build_default_registry(
    capture: Optional[ScreenCapture] = None,
    locator: Optional[TargetLocator] = None,
    clicker: Optional[NativeClicker] = None,
    before_click: Optional[Callable[[], None]] = None,
) -> Registry:
    """Registry of the capture -> locate -> click steps.

    Passing primitives shares them across ticks; otherwise each step builds
    its own from the RunContext config on init().
    """

    reg = Registry()
    reg.register("capture_screen", lambda: CaptureScreenModule(capture=capture))
    reg.register("locate_target", lambda: LocateTargetModule(locator=locator))
    reg.register("act_click", lambda: ClickTargetModule(clicker=clicker, before_click=before_click))
    return reg
