"""
Static and request-pad linking between stages.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence, Tuple

from ..errors import BuildError, LinkError, PadAcquisitionError
from .stages import Stage

LOG = logging.getLogger(__name__)


class PadLinker:
    """
    Links stages and keeps track of every request pad it acquired.

    Request pads are owned by the linker until :meth:`release_all` hands them
    back to their element, either on a failed build or during teardown.
    """

    def __init__(self, engine: Any) -> None:
        self._engine = engine
        self._acquired: List[Tuple[Stage, Any]] = []

    @property
    def request_pads(self) -> List[Tuple[Stage, Any]]:
        return list(self._acquired)

    def link(self, upstream: Stage, downstream: Stage) -> None:
        if not self._engine.link(upstream.element, downstream.element):
            raise LinkError(upstream.name, downstream.name)
        LOG.debug("Linked %s -> %s", upstream.name, downstream.name)

    def link_chain(self, stages: Sequence[Stage]) -> None:
        for upstream, downstream in zip(stages, stages[1:]):
            self.link(upstream, downstream)

    def link_to_request_pads(self, target: Stage, routes: Sequence[Tuple[Stage, str]]) -> None:
        """
        Link each ``(upstream, template)`` route into a request pad on ``target``.

        Either every route is linked or every pad acquired here is released.
        """

        try:
            for upstream, template in routes:
                self._link_request(upstream, target, template)
        except BuildError:
            self.release_all()
            raise

    def _link_request(self, upstream: Stage, target: Stage, template: str) -> None:
        src_pad = self._engine.static_pad(upstream.element, "src")
        if src_pad is None:
            raise LinkError(f"{upstream.name}:src", f"{target.name}:{template}")

        sink_pad = self._engine.request_pad(target.element, template)
        if sink_pad is None:
            raise PadAcquisitionError(target.name, template)
        self._acquired.append((target, sink_pad))

        if not self._engine.link_pads(src_pad, sink_pad):
            raise LinkError(f"{upstream.name}:src", f"{target.name}:{template}")
        LOG.debug("Linked %s:src -> %s:%s", upstream.name, target.name, template)

    def release_all(self) -> None:
        while self._acquired:
            stage, pad = self._acquired.pop()
            try:
                self._engine.release_request_pad(stage.element, pad)
            except Exception:  # pragma: no cover
                LOG.exception("Failed to release request pad on '%s'", stage.name)
