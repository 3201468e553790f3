"""Thin CLI entry point: builds a MergeManifest and calls the engine."""

import argparse
import dataclasses
import json
import sys
from pathlib import Path

from clipfade import ffutil
from clipfade.engine import merge_clips
from clipfade.logging_utils import setup_logging
from clipfade.manifest import EngineConfig, MergeManifest, TransitionConfig, load_manifest


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipfade",
        description="ClipFade: merge clips with crossfades and transcode audio via ffmpeg.",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command")

    merge = sub.add_parser("merge", help="Merge clips with crossfade transitions")
    merge.add_argument("clips", nargs="*", type=Path, help="Input clips, in merge order")
    merge.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    merge.add_argument("--output", "-o", type=Path, help="Output file path")
    merge.add_argument("--fade", type=float, default=1.0, help="Crossfade duration (seconds)")
    merge.add_argument("--transition", type=str, default="fade", help="xfade transition kind")
    merge.add_argument("--timeout", type=int, default=None, help="Abort ffmpeg after this many seconds")
    merge.add_argument("--strict-fade", action="store_true", help="Fail if the fade is longer than a clip")

    probe = sub.add_parser("probe", help="Print clip duration and frame size as JSON")
    probe.add_argument("clip", type=Path)

    extract = sub.add_parser("extract-audio", help="Extract a video's audio as WAV and MP3")
    extract.add_argument("video", type=Path)
    extract.add_argument("--wav", type=Path, required=True, help="16 kHz mono WAV output")
    extract.add_argument("--mp3", type=Path, required=True, help="MP3 output")

    norm = sub.add_parser("normalize", help="Normalize audio to 16 kHz mono WAV")
    norm.add_argument("audio", type=Path)
    norm.add_argument("--output", "-o", type=Path, required=True)

    mp3 = sub.add_parser("mp3", help="Encode audio to 128 kbps stereo MP3")
    mp3.add_argument("audio", type=Path)
    mp3.add_argument("--output", "-o", type=Path, required=True)

    sub.add_parser("check", help="Verify ffmpeg and ffprobe are installed")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def _merge(args: argparse.Namespace) -> None:
    if args.manifest:
        m = load_manifest(args.manifest)
    elif len(args.clips) >= 2:
        engine = EngineConfig.from_env()
        if args.timeout is not None:
            engine.timeout_seconds = args.timeout
        output = args.output or args.clips[0].with_stem(args.clips[0].stem + "_merged")
        m = MergeManifest(
            inputs=args.clips,
            output=output,
            transition=TransitionConfig(
                fade_duration=args.fade,
                kind=args.transition,
                strict=args.strict_fade,
            ),
            engine=engine,
        )
    else:
        print("Error: provide at least two CLIP arguments or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    result = merge_clips(m, on_progress=on_progress)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Clips merged: {len(result.clips)}")
    print(f"  Estimated duration: {result.duration_estimate:.1f}s")


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from clipfade.web import create_app
        app = create_app()
        print(f"ClipFade web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    engine = EngineConfig.from_env()
    try:
        if args.command == "merge":
            _merge(args)
        elif args.command == "probe":
            meta = ffutil.probe(args.clip, engine)
            print(json.dumps(dataclasses.asdict(meta)))
        elif args.command == "extract-audio":
            duration = ffutil.extract_audio(args.video, args.wav, args.mp3, engine)
            print(f"Extracted {duration:.1f}s of audio -> {args.wav}, {args.mp3}")
        elif args.command == "normalize":
            print(ffutil.normalize_audio(args.audio, args.output, engine))
        elif args.command == "mp3":
            print(ffutil.save_to_mp3(args.audio, args.output, engine))
        elif args.command == "check":
            ffutil.check_ffmpeg(engine)
            print(f"OK: {engine.ffmpeg}, {engine.ffprobe}")
    except (ffutil.EngineError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
