"""
Streaming pipeline construction.

The builder declares one capture → overlay → encode → mux → RTMP graph::

    video-source → video-convert → video-scale → video-caps → timestamp-overlay
        → video-encoder → h264-parser ─┐
                                       ├→ flv-mux → rtmp-sink
    audio-source → audio-convert → audio-resample
        → audio-encoder → aac-parser ──┘

Nothing is added to the pipeline until every element exists, and a failed
build never leaves a muxer request pad behind.  No network connection is made
here; rtmpsink connects when the pipeline goes to PLAYING.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .config import StreamConfig
from .errors import BuildError, RegistrationError
from .graph import PadLinker, Stage, StageRole, StageSpec, create_stages

LOG = logging.getLogger(__name__)

PIPELINE_NAME = "camstream-pipeline"

VIDEO_CHAIN = (
    "video-source",
    "video-convert",
    "video-scale",
    "video-caps",
    "timestamp-overlay",
    "video-encoder",
    "h264-parser",
)
AUDIO_CHAIN = (
    "audio-source",
    "audio-convert",
    "audio-resample",
    "audio-encoder",
    "aac-parser",
)
MUXER = "flv-mux"
SINK = "rtmp-sink"
OVERLAY = "timestamp-overlay"

MUXER_VIDEO_TEMPLATE = "video"
MUXER_AUDIO_TEMPLATE = "audio"


@dataclass
class StreamPipeline:
    """
    Result of a successful build.

    ``stages`` keeps declaration order.  ``request_pads`` are the muxer pads
    acquired during the build; :meth:`release` hands them back.
    """

    pipeline: Any
    stages: Dict[str, Stage]
    overlay: Stage
    request_pads: List[Tuple[Stage, Any]] = field(default_factory=list)

    def stage(self, name: str) -> Stage:
        return self.stages[name]

    def release(self, engine: Any) -> None:
        while self.request_pads:
            stage, pad = self.request_pads.pop()
            try:
                engine.release_request_pad(stage.element, pad)
            except Exception:  # pragma: no cover
                LOG.exception("Failed to release request pad on '%s'", stage.name)


class PipelineBuilder:
    def __init__(self, engine: Any, config: StreamConfig) -> None:
        self._engine = engine
        self._config = config

    def declare(self) -> List[StageSpec]:
        """
        Return the full, ordered list of stage specs for the configuration.
        """

        config = self._config
        caps = self._engine.make_caps(config.caps_description())
        capture_tuning = config.capture.tuning()

        return [
            StageSpec("video-source", config.capture.video_factory, StageRole.SOURCE, tuning=capture_tuning),
            StageSpec("video-convert", "videoconvert", StageRole.TRANSFORM),
            StageSpec("video-scale", "videoscale", StageRole.TRANSFORM),
            StageSpec("video-caps", "capsfilter", StageRole.TRANSFORM, properties={"caps": caps}),
            StageSpec(
                OVERLAY,
                "textoverlay",
                StageRole.OVERLAY,
                properties=config.overlay.properties(),
                tuning=config.overlay.tuning(),
            ),
            StageSpec(
                "video-encoder",
                "x264enc",
                StageRole.ENCODER,
                properties={"bitrate": config.video_bitrate},
                tuning=config.encoder.tuning(),
            ),
            StageSpec("h264-parser", "h264parse", StageRole.PARSER),
            StageSpec("audio-source", config.capture.audio_factory, StageRole.SOURCE, tuning=capture_tuning),
            StageSpec("audio-convert", "audioconvert", StageRole.TRANSFORM),
            StageSpec("audio-resample", "audioresample", StageRole.TRANSFORM),
            StageSpec(
                "audio-encoder",
                "avenc_aac",
                StageRole.ENCODER,
                properties={"bitrate": config.audio_bitrate_bps},
            ),
            StageSpec("aac-parser", "aacparse", StageRole.PARSER),
            StageSpec(MUXER, "flvmux", StageRole.MUXER, tuning=config.muxer.tuning()),
            StageSpec(
                SINK,
                "rtmpsink",
                StageRole.SINK,
                properties={"location": config.url},
                tuning=config.sink.tuning(),
            ),
        ]

    def build(self) -> StreamPipeline:
        engine = self._engine
        pipeline = engine.new_pipeline(PIPELINE_NAME)

        stage_set = create_stages(engine, self.declare())
        stage_set.raise_for_missing()
        stages = stage_set.as_dict()

        for stage in stages.values():
            stage.configure()
        self._log_overlay_placement(stages[OVERLAY])

        self._register(pipeline, list(stages.values()))

        linker = PadLinker(engine)
        try:
            linker.link_chain([stages[name] for name in VIDEO_CHAIN])
            linker.link_chain([stages[name] for name in AUDIO_CHAIN])
            linker.link_to_request_pads(
                stages[MUXER],
                [
                    (stages[VIDEO_CHAIN[-1]], MUXER_VIDEO_TEMPLATE),
                    (stages[AUDIO_CHAIN[-1]], MUXER_AUDIO_TEMPLATE),
                ],
            )
            linker.link(stages[MUXER], stages[SINK])
        except BuildError:
            linker.release_all()
            raise

        LOG.info("Streaming pipeline assembled with %d stages.", len(stages))
        return StreamPipeline(
            pipeline=pipeline,
            stages=stages,
            overlay=stages[OVERLAY],
            request_pads=linker.request_pads,
        )

    def _register(self, pipeline: Any, stages: Sequence[Stage]) -> None:
        added: List[Stage] = []
        for stage in stages:
            if not self._engine.add(pipeline, stage.element):
                for previous in reversed(added):
                    try:
                        self._engine.remove(pipeline, previous.element)
                    except Exception:  # pragma: no cover
                        LOG.debug("Failed to remove '%s' during rollback", previous.name, exc_info=True)
                raise RegistrationError(stage.name)
            added.append(stage)

    @staticmethod
    def _log_overlay_placement(overlay: Stage) -> None:
        LOG.debug(
            "Timestamp overlay padding: xpad=%s ypad=%s",
            overlay.get_property("xpad"),
            overlay.get_property("ypad"),
        )
