from .approver import AutoApprover
from .escalation import ControllerState, Decision, EscalationController, EscalationLimits, TriggerConditions
from .prompts import PromptMatcher
from .results import AttemptOutcome, CaptureResult, ClickResult, TargetLocation

__all__ = [
    "AttemptOutcome",
    "AutoApprover",
    "CaptureResult",
    "ClickResult",
    "ControllerState",
    "Decision",
    "EscalationController",
    "EscalationLimits",
    "PromptMatcher",
    "TargetLocation",
    "TriggerConditions",
]

__version__ = "0.1.0"
