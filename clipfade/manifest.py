"""JSON manifest schema, the contract between CLI/API and engine."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from clipfade.transitions import InsufficientClipsError


@dataclass
class TransitionConfig:
    """Crossfade settings applied between every pair of adjacent clips."""

    fade_duration: float = 1.0
    kind: str = "fade"
    strict: bool = False


@dataclass
class EngineConfig:
    """Location of the ffmpeg/ffprobe binaries and per-call limits."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    timeout_seconds: int | None = None
    probe_workers: int = 4

    @classmethod
    def from_env(cls) -> "EngineConfig":
        timeout = os.getenv("CLIPFADE_TIMEOUT")
        return cls(
            ffmpeg=os.getenv("CLIPFADE_FFMPEG", "ffmpeg"),
            ffprobe=os.getenv("CLIPFADE_FFPROBE", "ffprobe"),
            timeout_seconds=int(timeout) if timeout else None,
        )


@dataclass
class MergeManifest:
    """Top-level merge manifest. ``inputs`` order is merge order."""

    inputs: list[Path]
    output: Path
    version: str = "1"
    transition: TransitionConfig = field(default_factory=TransitionConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)


def load_manifest(path: str | Path) -> MergeManifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "inputs" not in data or "output" not in data:
        raise ValueError("Manifest must contain 'inputs' and 'output' fields")
    if len(data["inputs"]) < 2:
        raise InsufficientClipsError(
            f"Manifest lists {len(data['inputs'])} input(s); at least 2 are required"
        )

    transition = TransitionConfig(**data["transition"]) if "transition" in data else TransitionConfig()
    engine = EngineConfig(**data["engine"]) if "engine" in data else EngineConfig.from_env()

    return MergeManifest(
        version=data.get("version", "1"),
        inputs=[Path(p) for p in data["inputs"]],
        output=Path(data["output"]),
        transition=transition,
        engine=engine,
    )
