"""
Exception hierarchy shared by the pipeline builder and the lifecycle controller.
"""

from __future__ import annotations

from typing import Sequence, Tuple


class StreamerError(RuntimeError):
    """Base class for camstream failures."""


class BuildError(StreamerError):
    """Raised when the streaming pipeline cannot be assembled."""


class EngineUnavailableError(BuildError):
    """Raised when PyGObject/GStreamer cannot be loaded."""


class StageCreationError(BuildError):
    """Raised when one or more element factories are not available."""

    def __init__(self, missing: Sequence[Tuple[str, str]]) -> None:
        self.missing = list(missing)
        details = ", ".join(f"{name} ({factory})" for name, factory in self.missing)
        super().__init__(f"Failed to create GStreamer elements: {details}")


class StageConfigurationError(BuildError):
    """Raised when a required property cannot be applied to a stage."""

    def __init__(self, stage: str, key: str, reason: str = "property not supported") -> None:
        self.stage = stage
        self.key = key
        super().__init__(f"Failed to set '{key}' on stage '{stage}': {reason}")


class RegistrationError(BuildError):
    """Raised when a stage cannot be added to the pipeline container."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Failed to add stage '{stage}' to the pipeline.")


class LinkError(BuildError):
    """Raised when two stages (or pads) refuse to link."""

    def __init__(self, upstream: str, downstream: str) -> None:
        self.upstream = upstream
        self.downstream = downstream
        super().__init__(f"Failed to link {upstream} -> {downstream}")


class PadAcquisitionError(BuildError):
    """Raised when a request pad cannot be obtained from a stage."""

    def __init__(self, stage: str, template: str) -> None:
        self.stage = stage
        self.template = template
        super().__init__(f"Failed to request '{template}' pad from stage '{stage}'.")


class StartupError(StreamerError):
    """Raised when the pipeline refuses to enter the PLAYING state."""
