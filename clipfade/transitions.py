"""Crossfade chain builder. Turns clip durations into an ffmpeg filter graph.

The chain is linear: stage 0 fuses raw inputs 0 and 1, and every later stage
fuses the running merged stream with the next raw input.  Each crossfade
shortens the combined timeline by the fade duration, so the offset of stage
*i* is measured on the merged stream, not on clip *i* alone::

    offset[0] = d[0] - f
    offset[i] = offset[i-1] + d[i] - f
"""

import logging
from itertools import accumulate
from typing import Sequence

from clipfade.models import GraphStage, TransitionPlan

logger = logging.getLogger(__name__)


class InsufficientClipsError(ValueError):
    """Raised when fewer than two clips are given to a transition merge."""
    pass


class FadeDurationError(ValueError):
    """Raised when strict validation finds a fade longer than an adjacent clip."""
    pass


def input_label(index: int, kind: str) -> str:
    """Label of a raw input stream, e.g. ``2:v``."""
    return f"{index}:{kind}"


def video_label(index: int) -> str:
    """Video label of the merged stream after fusing inputs 0..index.

    Index 0 is the raw first input.
    """
    return input_label(0, "v") if index == 0 else f"v{index}"


def audio_label(index: int) -> str:
    """Audio counterpart of :func:`video_label`."""
    return input_label(0, "a") if index == 0 else f"a{index}"


def crossfade_offsets(durations: Sequence[float], fade_duration: float) -> list[float]:
    """Return the start offset of every crossfade on the merged timeline."""
    if len(durations) < 2:
        raise InsufficientClipsError(
            f"A transition merge needs at least 2 clips, got {len(durations)}"
        )
    first = durations[0] - fade_duration
    return list(
        accumulate(durations[1:-1], lambda acc, d: acc + d - fade_duration, initial=first)
    )


def fade_violations(durations: Sequence[float], fade_duration: float) -> list[int]:
    """Return indices of adjacent pairs (i, i+1) that cannot hold the fade."""
    return [
        i
        for i in range(len(durations) - 1)
        if fade_duration >= min(durations[i], durations[i + 1])
    ]


def build_plan(
    durations: Sequence[float],
    fade_duration: float,
    transition: str = "fade",
) -> TransitionPlan:
    """Build the crossfade chain for clips of the given durations.

    Over-long fades are not clamped; they are logged and the resulting
    offsets are kept as computed.
    """
    if len(durations) < 2:
        raise InsufficientClipsError(
            f"A transition merge needs at least 2 clips, got {len(durations)}"
        )
    if not fade_duration > 0:
        raise ValueError(f"fade_duration must be positive, got {fade_duration}")

    for i in fade_violations(durations, fade_duration):
        logger.warning(
            "Fade of %ss does not fit between clip %d (%ss) and clip %d (%ss)",
            fade_duration, i, durations[i], i + 1, durations[i + 1],
        )

    stages = tuple(
        GraphStage(
            index=i,
            input_index=i + 1,
            prev_video=video_label(i),
            prev_audio=audio_label(i),
            out_video=video_label(i + 1),
            out_audio=audio_label(i + 1),
            offset=offset,
            fade_duration=fade_duration,
            transition=transition,
        )
        for i, offset in enumerate(crossfade_offsets(durations, fade_duration))
    )

    last = len(durations) - 1
    return TransitionPlan(
        stages=stages,
        output_video=video_label(last),
        output_audio=audio_label(last),
        input_count=len(durations),
    )


def _num(value: float) -> str:
    # 9.0 -> "9", 8.50 -> "8.5"
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def render_stage(stage: GraphStage) -> tuple[str, str]:
    """Render one stage as its (xfade, acrossfade) filter strings."""
    video = (
        f"[{stage.prev_video}][{input_label(stage.input_index, 'v')}]"
        f"xfade=transition={stage.transition}"
        f":duration={_num(stage.fade_duration)}:offset={_num(stage.offset)}"
        f"[{stage.out_video}]"
    )
    audio = (
        f"[{stage.prev_audio}][{input_label(stage.input_index, 'a')}]"
        f"acrossfade=d={_num(stage.fade_duration)}"
        f"[{stage.out_audio}]"
    )
    return video, audio


def render_filter_graph(plan: TransitionPlan) -> str:
    """Translate a plan into an ffmpeg ``-filter_complex`` argument."""
    parts: list[str] = []
    for stage in plan.stages:
        parts.extend(render_stage(stage))
    return ";".join(parts)


def output_maps(plan: TransitionPlan) -> list[str]:
    """``-map`` arguments routing the plan's final labels to the output file."""
    return ["-map", f"[{plan.output_video}]", "-map", f"[{plan.output_audio}]"]
