from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .interfaces import Module


StepFactory = Callable[[], Module]

DEFAULT_PIPELINE: Sequence[str] = ("capture_screen", "locate_target", "act_click")


class Registry:
    """Step name -> factory.

    Production steps and test doubles register under the same names, so a
    pipeline definition never changes between the two.
    """

    def __init__(self, factories: Optional[Mapping[str, StepFactory]] = None) -> None:
        self._factories: Dict[str, StepFactory] = {}
        for name, factory in (factories or {}).items():
            self.register(name, factory)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def register(self, name: str, factory: StepFactory) -> None:
        if not name:
            raise ValueError("step name must be non-empty")
        if name in self._factories:
            raise ValueError(f"step already registered: {name}")
        self._factories[name] = factory

    def names(self) -> List[str]:
        return sorted(self._factories)

    def create(self, name: str) -> Module:
        if name not in self._factories:
            raise KeyError(f"unknown step {name!r}; known: {', '.join(self.names()) or '(none)'}")
        step = self._factories[name]()
        actual = getattr(step, "name", None)
        if actual != name:
            raise ValueError(f"factory for {name!r} built a step named {actual!r}")
        return step

    def create_many(self, names: Iterable[str]) -> List[Module]:
        return [self.create(n) for n in names]


def build_from_config(cfg: Mapping[str, Any], registry: Registry) -> List[Module]:
    """Instantiate ``cfg["pipeline"]`` (a list of step names), or the default attempt."""
    pipeline = cfg.get("pipeline", list(DEFAULT_PIPELINE))
    if not isinstance(pipeline, (list, tuple)) or not all(isinstance(x, str) for x in pipeline):
        raise ValueError("'pipeline' must be a list of step names")
    return registry.create_many(pipeline)
