"""FFmpeg/ffprobe subprocess helpers."""

import base64
import json
import logging
import shutil
import subprocess
from pathlib import Path

from clipfade.manifest import EngineConfig
from clipfade.models import ClipMetadata, TransitionPlan
from clipfade.transitions import output_maps, render_filter_graph

logger = logging.getLogger(__name__)

# Audio layout expected by speech recognizers (Whisper and friends).
SPEECH_SAMPLE_RATE = 16000
MP3_BITRATE = "128k"


class EngineError(RuntimeError):
    """An ffmpeg/ffprobe invocation failed.

    ``path`` and ``index`` name the clip involved, when there is one.
    """

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str | None = None,
        path: Path | None = None,
        index: int | None = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
        self.path = Path(path) if path is not None else None
        self.index = index


class FFmpegNotFoundError(EngineError):
    pass


class EngineTimeoutError(EngineError, TimeoutError):
    """Raised when an engine call exceeds ``EngineConfig.timeout_seconds``."""
    pass


class ProbeError(EngineError):
    """ffprobe could not read or parse a clip."""

    def __init__(
        self,
        path: Path,
        detail: str,
        index: int | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        where = f"clip {index} ({path})" if index is not None else str(path)
        super().__init__(
            f"Could not probe {where}: {detail}", returncode, stderr, path=path, index=index
        )
        self.detail = detail


class MergeError(EngineError):
    """ffmpeg failed while executing a transition merge graph."""
    pass


def _decode(stream: bytes | str | None) -> str:
    if stream is None:
        return ""
    return stream if isinstance(stream, str) else stream.decode(errors="replace")


def _tail(stderr: str, limit: int = 500) -> str:
    return stderr.strip()[-limit:]


def check_ffmpeg(engine: EngineConfig | None = None) -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    engine = engine or EngineConfig()
    for cmd in (engine.ffmpeg, engine.ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def run_engine(
    cmd: list[str],
    engine: EngineConfig | None = None,
    input_bytes: bytes | None = None,
) -> subprocess.CompletedProcess:
    """Run one engine command, returning the completed process.

    A non-zero return code is left for the caller to interpret; a missing
    binary or an exceeded timeout raise here.
    """
    engine = engine or EngineConfig()
    logger.debug("Running: %s", " ".join(cmd))
    try:
        return subprocess.run(
            cmd,
            input=input_bytes,
            capture_output=True,
            timeout=engine.timeout_seconds,
        )
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"{cmd[0]} not found on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise EngineTimeoutError(
            f"{cmd[0]} exceeded {engine.timeout_seconds}s",
            stderr=_decode(e.stderr),
        ) from e


def _check(result: subprocess.CompletedProcess, what: str) -> None:
    if result.returncode != 0:
        stderr = _decode(result.stderr)
        logger.error("%s failed (rc=%s): %s", what, result.returncode, _tail(stderr))
        raise EngineError(
            f"{what} failed (rc={result.returncode}): {_tail(stderr)}",
            returncode=result.returncode,
            stderr=stderr,
        )


def _source(audio: bytes | Path) -> tuple[str, bytes | None]:
    """Map an in-memory buffer to stdin, or a path to itself."""
    if isinstance(audio, (bytes, bytearray)):
        return "pipe:0", bytes(audio)
    return str(audio), None


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

def parse_probe(data: dict) -> ClipMetadata:
    """Reduce ffprobe JSON to duration and frame size.

    Duration is the container-level value (0.0 when absent).  Frame size is
    taken from the first stream that reports both width and height.
    """
    try:
        duration = float((data.get("format") or {}).get("duration", 0.0))
    except (TypeError, ValueError):
        duration = 0.0

    sized = next(
        (s for s in data.get("streams") or [] if s.get("width") and s.get("height")),
        None,
    )
    if sized is None:
        return ClipMetadata(duration=duration)
    return ClipMetadata(duration=duration, width=int(sized["width"]), height=int(sized["height"]))


def probe(input_path: Path, engine: EngineConfig | None = None) -> ClipMetadata:
    """Extract clip metadata via ffprobe."""
    engine = engine or EngineConfig()
    cmd = [
        engine.ffprobe,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = run_engine(cmd, engine)
    if result.returncode != 0:
        stderr = _decode(result.stderr)
        raise ProbeError(
            input_path,
            _tail(stderr) or f"ffprobe exited with {result.returncode}",
            returncode=result.returncode,
            stderr=stderr,
        )

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(input_path, f"unparseable ffprobe output: {e}") from e

    return parse_probe(data)


# ---------------------------------------------------------------------------
# Single-clip operations
# ---------------------------------------------------------------------------

def normalize_audio(
    audio: bytes | Path, output_path: Path, engine: EngineConfig | None = None
) -> Path:
    """Convert audio to 16 kHz mono PCM WAV for speech recognition."""
    engine = engine or EngineConfig()
    src, stdin = _source(audio)
    cmd = [
        engine.ffmpeg, "-y",
        "-i", src,
        "-acodec", "pcm_s16le",
        "-ac", "1",
        "-ar", str(SPEECH_SAMPLE_RATE),
        "-f", "wav",
        str(output_path),
    ]
    _check(run_engine(cmd, engine, input_bytes=stdin), "Audio normalization")
    logger.debug("Audio normalization complete: %s", output_path)
    return Path(output_path)


def _mp3_args(src: str) -> list[str]:
    return [
        "-i", src,
        "-acodec", "libmp3lame",
        "-b:a", MP3_BITRATE,
        "-ac", "2",
        "-f", "mp3",
    ]


def save_to_mp3(
    audio: bytes | Path, output_path: Path, engine: EngineConfig | None = None
) -> Path:
    """Encode audio to a 128 kbps stereo MP3 file."""
    engine = engine or EngineConfig()
    src, stdin = _source(audio)
    cmd = [engine.ffmpeg, "-y", *_mp3_args(src), str(output_path)]
    _check(run_engine(cmd, engine, input_bytes=stdin), "MP3 encoding")
    logger.debug("Audio conversion complete: %s", output_path)
    return Path(output_path)


def create_mp3_data_uri(audio: bytes | Path, engine: EngineConfig | None = None) -> str:
    """Encode audio to MP3 in memory and return it as a base64 data URI."""
    engine = engine or EngineConfig()
    src, stdin = _source(audio)
    cmd = [engine.ffmpeg, *_mp3_args(src), "pipe:1"]
    result = run_engine(cmd, engine, input_bytes=stdin)
    _check(result, "MP3 encoding")
    encoded = base64.b64encode(result.stdout).decode("ascii")
    return f"data:audio/mp3;base64,{encoded}"


def extract_audio(
    video_path: Path,
    wav_output: Path,
    mp3_output: Path,
    engine: EngineConfig | None = None,
) -> float:
    """Write the audio track as a speech-ready WAV and as an MP3.

    Returns the probed duration of the video in seconds.
    """
    engine = engine or EngineConfig()
    meta = probe(video_path, engine)

    wav_cmd = [
        engine.ffmpeg, "-y",
        "-i", str(video_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ac", "1",
        "-ar", str(SPEECH_SAMPLE_RATE),
        str(wav_output),
    ]
    _check(run_engine(wav_cmd, engine), "WAV extraction")

    mp3_cmd = [
        engine.ffmpeg, "-y",
        "-i", str(video_path),
        "-vn",
        "-acodec", "libmp3lame",
        str(mp3_output),
    ]
    _check(run_engine(mp3_cmd, engine), "MP3 extraction")

    logger.info("Extracted audio from %s (%.2fs)", video_path, meta.duration)
    return meta.duration


# ---------------------------------------------------------------------------
# Transition merge
# ---------------------------------------------------------------------------

def build_merge_command(
    inputs: list[Path],
    plan: TransitionPlan,
    output_path: Path,
    ffmpeg: str = "ffmpeg",
) -> list[str]:
    """Assemble the single ffmpeg call that runs the whole crossfade chain."""
    if len(inputs) != plan.input_count:
        raise ValueError(
            f"Plan expects {plan.input_count} inputs, got {len(inputs)}"
        )

    cmd = [ffmpeg, "-y"]
    for path in inputs:
        cmd.extend(["-i", str(path)])
    cmd.extend(["-filter_complex", render_filter_graph(plan)])
    cmd.extend(output_maps(plan))
    cmd.append(str(output_path))
    return cmd


def merge_with_plan(
    inputs: list[Path],
    plan: TransitionPlan,
    output_path: Path,
    engine: EngineConfig | None = None,
) -> Path:
    """Execute a transition plan with ffmpeg, writing ``output_path``."""
    engine = engine or EngineConfig()
    cmd = build_merge_command(inputs, plan, output_path, ffmpeg=engine.ffmpeg)
    result = run_engine(cmd, engine)
    if result.returncode != 0:
        stderr = _decode(result.stderr)
        logger.error("Merge of %d clips failed: %s", len(inputs), _tail(stderr))
        raise MergeError(
            f"ffmpeg merge failed (rc={result.returncode}): {_tail(stderr)}",
            returncode=result.returncode,
            stderr=stderr,
        )
    return Path(output_path)
