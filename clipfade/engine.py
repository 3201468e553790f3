"""Orchestrator: runs the transition merge defined by a MergeManifest."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from clipfade import ffutil
from clipfade.manifest import EngineConfig, MergeManifest, TransitionConfig
from clipfade.models import ClipMetadata, TransitionPlan
from clipfade.transitions import (
    FadeDurationError,
    InsufficientClipsError,
    build_plan,
    fade_violations,
)

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    output_path: Path
    clips: list[ClipMetadata] = field(default_factory=list)
    plan: TransitionPlan | None = None
    duration_estimate: float = 0.0


def probe_all(paths: Sequence[Path], engine: EngineConfig | None = None) -> list[ClipMetadata]:
    """Probe every clip concurrently, keeping the caller's order.

    All probes run to completion.  If any failed, the lowest-index failure
    is re-raised with that clip's ``index`` and ``path`` attached (as a
    ProbeError for unreadable clips, or the original engine error type for
    timeouts and a missing ffprobe).
    """
    engine = engine or EngineConfig()
    workers = max(1, min(len(paths), engine.probe_workers))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(ffutil.probe, Path(p), engine) for p in paths]

    metas: list[ClipMetadata] = []
    for index, (path, future) in enumerate(zip(paths, futures)):
        try:
            metas.append(future.result())
        except ffutil.ProbeError as e:
            raise ffutil.ProbeError(
                Path(path), e.detail, index=index, returncode=e.returncode, stderr=e.stderr
            ) from e
        except ffutil.EngineError as e:
            raise type(e)(
                f"clip {index} ({path}): {e}",
                returncode=e.returncode,
                stderr=e.stderr,
                path=Path(path),
                index=index,
            ) from e
    return metas


def _partial_path(output: Path) -> Path:
    # Keep the suffix so ffmpeg can still infer the container.
    return output.with_name(f".{output.stem}.partial{output.suffix}")


def merge_clips(
    manifest: MergeManifest,
    on_progress: Callable[[str, float], None] | None = None,
) -> MergeResult:
    """Merge the manifest's clips into one file with crossfades between them.

    Args:
        manifest: Validated merge manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    inputs = [Path(p) for p in manifest.inputs]
    if len(inputs) < 2:
        raise InsufficientClipsError(
            f"A transition merge needs at least 2 clips, got {len(inputs)}"
        )
    fade = manifest.transition.fade_duration

    _progress(f"Probing {len(inputs)} clips", 0.0)
    clips = probe_all(inputs, manifest.engine)
    durations = [c.duration for c in clips]

    _progress("Building transition graph", 0.1)
    if manifest.transition.strict:
        bad = fade_violations(durations, fade)
        if bad:
            pairs = ", ".join(f"{i}-{i + 1}" for i in bad)
            raise FadeDurationError(
                f"Fade of {fade}s is too long for adjacent clips {pairs}"
            )
    plan = build_plan(durations, fade, transition=manifest.transition.kind)

    _progress(f"Encoding: merging {len(inputs)} clips", 0.15)
    output = Path(manifest.output)
    partial = _partial_path(output)
    try:
        ffutil.merge_with_plan(inputs, plan, partial, manifest.engine)
    except ffutil.EngineError:
        partial.unlink(missing_ok=True)
        raise
    partial.replace(output)

    duration_estimate = sum(durations) - len(plan.stages) * fade
    logger.info(
        "Merged %d clips into %s (~%.2fs)", len(inputs), output, duration_estimate
    )
    _progress("Done", 1.0)
    return MergeResult(
        output_path=output,
        clips=clips,
        plan=plan,
        duration_estimate=duration_estimate,
    )


def merge_with_transitions(
    clip_paths: Sequence[str | Path],
    output_path: str | Path,
    fade_duration: float = 1.0,
    transition: str = "fade",
    timeout: int | None = None,
    strict_fade: bool = False,
) -> Path:
    """Merge clips in order with crossfades and return the output path."""
    engine = EngineConfig.from_env()
    if timeout is not None:
        engine.timeout_seconds = timeout
    manifest = MergeManifest(
        inputs=[Path(p) for p in clip_paths],
        output=Path(output_path),
        transition=TransitionConfig(
            fade_duration=fade_duration, kind=transition, strict=strict_fade
        ),
        engine=engine,
    )
    return merge_clips(manifest).output_path


def probe_metadata(path: str | Path) -> ClipMetadata:
    """Probe one clip using the environment's engine configuration."""
    return ffutil.probe(Path(path), EngineConfig.from_env())
