from .act_click import ClickTargetModule
from .capture_screen import CaptureScreenModule
from .locate_target import LocateTargetModule

__all__ = [
	"CaptureScreenModule",
	"ClickTargetModule",
	"LocateTargetModule",
]
