"""Shared data types used across ClipFade."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ClipMetadata:
    """Metadata extracted from a media file via ffprobe.

    ``width`` and ``height`` are 0 when the clip has no dimensioned stream.
    """

    duration: float
    width: int = 0
    height: int = 0

    @property
    def has_video(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class GraphStage:
    """One crossfade step of a transition chain.

    Fuses the running merged stream (``prev_video``/``prev_audio``) with raw
    input ``input_index`` and names the result ``out_video``/``out_audio``.
    """

    index: int
    input_index: int
    prev_video: str
    prev_audio: str
    out_video: str
    out_audio: str
    offset: float
    fade_duration: float
    transition: str = "fade"


@dataclass(frozen=True)
class TransitionPlan:
    """Ordered crossfade stages plus the labels mapped to the output file."""

    stages: tuple[GraphStage, ...]
    output_video: str
    output_audio: str
    input_count: int

    @property
    def offsets(self) -> list[float]:
        return [s.offset for s in self.stages]
