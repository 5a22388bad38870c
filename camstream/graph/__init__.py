"""
Graph assembly helpers.

:mod:`.stages` turns declarative stage specs into element wrappers and
:mod:`.linker` connects them, including request pads on the muxer.
"""

from __future__ import annotations

__all__ = [
    "PadLinker",
    "Stage",
    "StageRole",
    "StageSet",
    "StageSpec",
    "create_stages",
]

from .linker import PadLinker
from .stages import Stage, StageRole, StageSet, StageSpec, create_stages
