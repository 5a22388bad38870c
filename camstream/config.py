"""
Validated configuration records for the streaming pipeline.

Every value that ends up as a GStreamer element property is declared here so
it is checked before it reaches the engine.  Tuning sections map onto the
property names of the default element set (x264enc, flvmux, rtmpsink, ...);
see :mod:`camstream.pipeline` for where they are applied.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOG = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CAMSTREAM_CONFIG"
DEFAULT_URL = "rtmp://127.0.0.1:1935/live/livestream"
RTMP_SCHEMES = ("rtmp", "rtmps")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised when the configuration file is unreadable or invalid."""


class HorizontalAlignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlignment(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"
    BASELINE = "baseline"


class X264Tune(str, Enum):
    ZEROLATENCY = "zerolatency"
    FASTDECODE = "fastdecode"
    STILLIMAGE = "stillimage"


class X264SpeedPreset(str, Enum):
    ULTRAFAST = "ultrafast"
    SUPERFAST = "superfast"
    VERYFAST = "veryfast"
    FASTER = "faster"
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"
    SLOWER = "slower"
    VERYSLOW = "veryslow"
    PLACEBO = "placebo"


class CaptureSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video_factory: str = "autovideosrc"
    audio_factory: str = "autoaudiosrc"
    do_timestamp: bool = True
    latency_ms: Optional[int] = Field(default=None, ge=0)

    def tuning(self) -> Dict[str, object]:
        props: Dict[str, object] = {"do-timestamp": self.do_timestamp}
        if self.latency_ms is not None:
            props["latency"] = int(self.latency_ms)
        return props


class OverlayStyle(BaseModel):
    model_config = ConfigDict(extra="forbid")

    halignment: HorizontalAlignment = HorizontalAlignment.RIGHT
    valignment: VerticalAlignment = VerticalAlignment.BOTTOM
    xpad: int = Field(default=15, ge=0)
    ypad: int = Field(default=10, ge=0)
    font_desc: str = "Sans Bold 20"
    color: int = Field(default=0xFFFFFFFF, ge=0, le=0xFFFFFFFF)
    shaded_background: bool = True
    draw_shadow: bool = True
    initial_text: str = "Initializing..."

    @field_validator("font_desc")
    @classmethod
    def _require_font(cls, value: str) -> str:
        result = value.strip()
        if not result:
            raise ValueError("font_desc must not be empty")
        return result

    def properties(self) -> Dict[str, object]:
        return {
            "halignment": self.halignment.value,
            "valignment": self.valignment.value,
            "xpad": self.xpad,
            "ypad": self.ypad,
            "font-desc": self.font_desc,
            "color": self.color,
            "text": self.initial_text,
        }

    def tuning(self) -> Dict[str, object]:
        return {
            "shaded-background": self.shaded_background,
            "draw-shadow": self.draw_shadow,
        }


class VideoEncoderTuning(BaseModel):
    """Low-latency x264 settings.  ``quantizer`` is only set when provided."""

    model_config = ConfigDict(extra="forbid")

    tune: X264Tune = X264Tune.ZEROLATENCY
    speed_preset: X264SpeedPreset = X264SpeedPreset.ULTRAFAST
    key_int_max: int = Field(default=30, gt=0)
    bframes: int = Field(default=0, ge=0)
    byte_stream: bool = True
    threads: int = Field(default=4, ge=0)
    quantizer: Optional[int] = Field(default=None, ge=0, le=50)

    def tuning(self) -> Dict[str, object]:
        props: Dict[str, object] = {
            "tune": self.tune.value,
            "speed-preset": self.speed_preset.value,
            "key-int-max": self.key_int_max,
            "bframes": self.bframes,
            "byte-stream": self.byte_stream,
            "threads": self.threads,
        }
        if self.quantizer is not None:
            props["quantizer"] = self.quantizer
        return props


class MuxerTuning(BaseModel):
    model_config = ConfigDict(extra="forbid")

    streamable: bool = True
    latency_ms: Optional[int] = Field(default=None, ge=0)

    def tuning(self) -> Dict[str, object]:
        props: Dict[str, object] = {"streamable": self.streamable}
        if self.latency_ms is not None:
            props["latency"] = int(self.latency_ms) * 1_000_000
        return props


class SinkTuning(BaseModel):
    sync: bool = False
    async_: bool = Field(default=False, alias="async")
    max_lateness: int = Field(default=0, ge=-1)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def tuning(self) -> Dict[str, object]:
        return {
            "sync": self.sync,
            "async": self.async_,
            "max-lateness": self.max_lateness,
        }


class StreamConfig(BaseModel):
    """
    Top level configuration record.

    Bitrates are expressed in kbit/s; the builder converts them to the unit
    each encoder expects.
    """

    url: str = DEFAULT_URL
    width: int = Field(default=640, gt=0)
    height: int = Field(default=480, gt=0)
    framerate: int = Field(default=30, gt=0)
    pixel_format: str = "I420"
    video_bitrate: int = Field(default=1000, gt=0)
    audio_bitrate: int = Field(default=128, gt=0)
    log_level: str = "INFO"

    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    overlay: OverlayStyle = Field(default_factory=OverlayStyle)
    encoder: VideoEncoderTuning = Field(default_factory=VideoEncoderTuning)
    muxer: MuxerTuning = Field(default_factory=MuxerTuning)
    sink: SinkTuning = Field(default_factory=SinkTuning)

    model_config = ConfigDict(extra="forbid")

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        result = str(value or "").strip()
        if not result:
            raise ValueError("url is required")
        parsed = urlparse(result)
        if parsed.scheme.lower() not in RTMP_SCHEMES:
            raise ValueError(f"url must use one of the schemes {', '.join(RTMP_SCHEMES)}")
        if not parsed.netloc:
            raise ValueError("url must include a host")
        return result

    @field_validator("pixel_format")
    @classmethod
    def _validate_pixel_format(cls, value: str) -> str:
        result = value.strip()
        if not result or not result.isalnum():
            raise ValueError("pixel_format must be a raw video format name such as I420")
        return result

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        result = str(value).strip().upper()
        if result not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return result

    def caps_description(self) -> str:
        return (
            f"video/x-raw,width={self.width},height={self.height},"
            f"framerate={self.framerate}/1,format={self.pixel_format}"
        )

    @property
    def audio_bitrate_bps(self) -> int:
        return self.audio_bitrate * 1000


def load_config(path: Optional[Union[str, Path]] = None) -> StreamConfig:
    """
    Load a :class:`StreamConfig` from a YAML file.

    ``None`` returns the defaults.  An empty file is treated as an empty
    mapping.
    """

    if path is None:
        return StreamConfig()

    config_path = Path(path).expanduser()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration file '{config_path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file '{config_path}' is not valid YAML: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file '{config_path}' must contain a mapping.")

    try:
        config = StreamConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}': {exc}") from exc
    LOG.debug("Loaded configuration from %s", config_path)
    return config
