#!/usr/bin/env python3
"""Generate synthetic clips for end-to-end ClipFade merge testing.

Produces three short clips, each a solid color with a distinct tone:
  clip0.mp4  10s  blue   440 Hz
  clip1.mp4   8s  red    660 Hz
  clip2.mp4  12s  green  880 Hz

Merging them with a 1s fade should yield a ~28s video.
"""

import subprocess
import sys
from pathlib import Path

CLIPS = [
    ("clip0.mp4", 10, "blue", 440),
    ("clip1.mp4", 8, "red", 660),
    ("clip2.mp4", 12, "green", 880),
]


def generate_clip(output: Path, duration: int, color: str, freq: int) -> None:
    filter_complex = (
        f"color=c={color}:s=320x240:d={duration}:r=30[vout];"
        f"sine=f={freq}:d={duration}[aout]"
    )
    cmd = [
        "ffmpeg", "-y",
        "-filter_complex", filter_complex,
        "-map", "[vout]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output}")


if __name__ == "__main__":
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/clips")
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, duration, color, freq in CLIPS:
        generate_clip(out_dir / name, duration, color, freq)
