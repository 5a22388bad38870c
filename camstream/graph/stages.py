"""
Stage declarations and the element wrappers built from them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import StageConfigurationError, StageCreationError

LOG = logging.getLogger(__name__)


class StageRole(str, Enum):
    SOURCE = "source"
    TRANSFORM = "transform"
    OVERLAY = "overlay"
    ENCODER = "encoder"
    PARSER = "parser"
    MUXER = "muxer"
    SINK = "sink"


@dataclass
class StageSpec:
    """
    Declarative description of one pipeline stage.

    ``properties`` must be accepted by the element; ``tuning`` entries are
    applied only when the element exposes them.
    """

    name: str
    factory: str
    role: StageRole
    properties: Dict[str, object] = field(default_factory=dict)
    tuning: Dict[str, object] = field(default_factory=dict)


class Stage:
    """A created element together with the spec it was made from."""

    def __init__(self, spec: StageSpec, element: Any, engine: Any) -> None:
        self.spec = spec
        self.element = element
        self._engine = engine

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def role(self) -> StageRole:
        return self.spec.role

    def __repr__(self) -> str:
        return f"Stage({self.spec.name!r}, factory={self.spec.factory!r})"

    def set_property(self, key: str, value: object) -> None:
        self._engine.set_property(self.element, key, value)

    def get_property(self, key: str) -> object:
        return self._engine.get_property(self.element, key)

    def configure(self) -> List[str]:
        """
        Apply the spec's properties and return the tuning keys that were skipped.
        """

        for key, value in self.spec.properties.items():
            if not self._engine.has_property(self.element, key):
                raise StageConfigurationError(self.name, key)
            try:
                self.set_property(key, value)
            except (TypeError, ValueError) as exc:
                raise StageConfigurationError(self.name, key, str(exc)) from exc

        skipped: List[str] = []
        for key, value in self.spec.tuning.items():
            if value is None:
                continue
            if not self._engine.has_property(self.element, key):
                skipped.append(key)
                continue
            try:
                self.set_property(key, value)
            except (TypeError, ValueError):
                LOG.warning(
                    "Stage '%s' rejected tuning %s=%r; keeping element default.",
                    self.name,
                    key,
                    value,
                    exc_info=True,
                )
                skipped.append(key)
        if skipped:
            LOG.warning(
                "Stage '%s' (%s) does not support %s; skipped.",
                self.name,
                self.spec.factory,
                ", ".join(skipped),
            )
        return skipped


class StageSet:
    """
    Outcome of instantiating a list of specs: either every stage or the
    complete list of factories that failed.
    """

    def __init__(self, stages: Sequence[Stage], missing: Sequence[Tuple[str, str]]) -> None:
        self._stages: Dict[str, Stage] = {stage.name: stage for stage in stages}
        self.missing: List[Tuple[str, str]] = list(missing)

    @property
    def ok(self) -> bool:
        return not self.missing

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages.values())

    def __len__(self) -> int:
        return len(self._stages)

    def __getitem__(self, name: str) -> Stage:
        return self._stages[name]

    def get(self, name: str) -> Optional[Stage]:
        return self._stages.get(name)

    def as_dict(self) -> Dict[str, Stage]:
        return dict(self._stages)

    def raise_for_missing(self) -> None:
        if self.missing:
            raise StageCreationError(self.missing)


def create_stages(engine: Any, specs: Sequence[StageSpec]) -> StageSet:
    """
    Instantiate every spec before deciding whether the set is usable.
    """

    names = [spec.name for spec in specs]
    if len(set(names)) != len(names):
        raise ValueError("Stage names must be unique within a pipeline.")

    stages: List[Stage] = []
    missing: List[Tuple[str, str]] = []
    for spec in specs:
        element = engine.make_element(spec.factory, spec.name)
        if element is None:
            LOG.error("GStreamer element factory '%s' is not available (stage '%s').", spec.factory, spec.name)
            missing.append((spec.name, spec.factory))
            continue
        stages.append(Stage(spec, element, engine))

    if missing:
        return StageSet([], missing)
    return StageSet(stages, [])
