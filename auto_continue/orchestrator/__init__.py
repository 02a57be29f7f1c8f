from .errors import ModuleError
from .interfaces import Module, RunContext, error_result, ok_result, skip_result
from .registry import DEFAULT_PIPELINE, Registry, build_from_config
from .runner import PipelineRun, init_all, run_once, shutdown_all

__all__ = [
    "DEFAULT_PIPELINE",
    "Module",
    "ModuleError",
    "PipelineRun",
    "Registry",
    "RunContext",
    "build_from_config",
    "error_result",
    "init_all",
    "ok_result",
    "run_once",
    "shutdown_all",
    "skip_result",
]
