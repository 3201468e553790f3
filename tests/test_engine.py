"""Tests for the merge orchestrator."""

from pathlib import Path
from unittest.mock import patch

import pytest

from clipfade.engine import MergeResult, merge_clips, merge_with_transitions, probe_all
from clipfade.ffutil import EngineTimeoutError, FFmpegNotFoundError, MergeError, ProbeError
from clipfade.manifest import EngineConfig, MergeManifest, TransitionConfig
from clipfade.models import ClipMetadata
from clipfade.transitions import FadeDurationError, InsufficientClipsError

DURATIONS = {"a.mp4": 10.0, "b.mp4": 8.0, "c.mp4": 12.0}


def _fake_probe(path, engine=None):
    return ClipMetadata(duration=DURATIONS[Path(path).name], width=1280, height=720)


def _fake_merge(inputs, plan, output_path, engine=None):
    Path(output_path).write_bytes(b"merged")
    return Path(output_path)


def _manifest(tmp_path, names=("a.mp4", "b.mp4", "c.mp4"), **transition) -> MergeManifest:
    return MergeManifest(
        inputs=[tmp_path / n for n in names],
        output=tmp_path / "out.mp4",
        transition=TransitionConfig(**transition),
        engine=EngineConfig(),
    )


class TestMergeResult:
    def test_defaults(self):
        r = MergeResult(output_path=Path("out.mp4"))
        assert r.clips == []
        assert r.plan is None
        assert r.duration_estimate == 0.0


class TestProbeAll:
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_keeps_order(self, mock_probe):
        metas = probe_all([Path("c.mp4"), Path("a.mp4"), Path("b.mp4")])
        assert [m.duration for m in metas] == [12.0, 10.0, 8.0]
        assert mock_probe.call_count == 3

    @patch("clipfade.engine.ffutil.probe")
    def test_failure_reports_index(self, mock_probe):
        def probe(path, engine=None):
            if path.name == "c.mp4":
                raise ProbeError(path, "moov atom not found")
            return _fake_probe(path)

        mock_probe.side_effect = probe
        with pytest.raises(ProbeError, match="clip 2") as exc:
            probe_all([Path("a.mp4"), Path("b.mp4"), Path("c.mp4")])
        assert exc.value.index == 2
        assert exc.value.path == Path("c.mp4")
        # Siblings still ran to completion.
        assert mock_probe.call_count == 3

    @patch("clipfade.engine.ffutil.probe")
    def test_lowest_index_failure_wins(self, mock_probe):
        def probe(path, engine=None):
            raise ProbeError(path, "bad")

        mock_probe.side_effect = probe
        with pytest.raises(ProbeError) as exc:
            probe_all([Path("a.mp4"), Path("b.mp4")])
        assert exc.value.index == 0

    @patch("clipfade.engine.ffutil.probe")
    def test_timeout_reports_clip(self, mock_probe, clip_paths):
        def probe(path, engine=None):
            if path.name == "c.mp4":
                raise EngineTimeoutError("ffprobe exceeded 5s")
            return _fake_probe(path)

        mock_probe.side_effect = probe
        with pytest.raises(EngineTimeoutError, match=r"clip 2 \(.*c\.mp4\)") as exc:
            probe_all(clip_paths)
        assert isinstance(exc.value, TimeoutError)
        assert exc.value.index == 2
        assert exc.value.path == clip_paths[2]

    @patch("clipfade.engine.ffutil.probe", side_effect=FFmpegNotFoundError("ffprobe not found on PATH"))
    def test_missing_ffprobe_reports_first_clip(self, mock_probe, clip_paths):
        with pytest.raises(FFmpegNotFoundError, match="clip 0") as exc:
            probe_all(clip_paths)
        assert exc.value.index == 0
        assert exc.value.path == clip_paths[0]


class TestMergeClips:
    @patch("clipfade.engine.ffutil.merge_with_plan", side_effect=_fake_merge)
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_success(self, mock_probe, mock_merge, tmp_path):
        stages = []
        result = merge_clips(_manifest(tmp_path), on_progress=lambda s, f: stages.append((s, f)))

        assert result.output_path == tmp_path / "out.mp4"
        assert result.output_path.read_bytes() == b"merged"
        assert result.plan.offsets == [9, 16]
        assert result.duration_estimate == pytest.approx(28.0)
        assert stages[-1] == ("Done", 1.0)

        mock_merge.assert_called_once()
        inputs, plan, written = mock_merge.call_args[0][:3]
        assert [p.name for p in inputs] == ["a.mp4", "b.mp4", "c.mp4"]
        assert written != result.output_path
        assert not written.exists()

    @patch("clipfade.engine.ffutil.merge_with_plan")
    @patch("clipfade.engine.ffutil.probe")
    def test_probe_failure_never_submits(self, mock_probe, mock_merge, tmp_path):
        def probe(path, engine=None):
            if path.name == "c.mp4":
                raise ProbeError(path, "No such file or directory")
            return _fake_probe(path)

        mock_probe.side_effect = probe
        with pytest.raises(ProbeError) as exc:
            merge_clips(_manifest(tmp_path))
        assert exc.value.index == 2
        mock_merge.assert_not_called()

    @patch("clipfade.engine.ffutil.merge_with_plan")
    @patch("clipfade.engine.ffutil.probe")
    def test_single_clip_rejected_before_probing(self, mock_probe, mock_merge, tmp_path):
        with pytest.raises(InsufficientClipsError):
            merge_clips(_manifest(tmp_path, names=("a.mp4",)))
        mock_probe.assert_not_called()
        mock_merge.assert_not_called()

    @patch("clipfade.engine.ffutil.merge_with_plan")
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_engine_failure_leaves_no_output(self, mock_probe, mock_merge, tmp_path):
        def fail(inputs, plan, output_path, engine=None):
            Path(output_path).write_bytes(b"half")
            raise MergeError("ffmpeg merge failed (rc=1): Conversion failed!", returncode=1)

        mock_merge.side_effect = fail
        with pytest.raises(MergeError, match="Conversion failed"):
            merge_clips(_manifest(tmp_path))
        assert not (tmp_path / "out.mp4").exists()
        assert list(tmp_path.iterdir()) == []

    @patch("clipfade.engine.ffutil.merge_with_plan")
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_merge_timeout_removes_partial(self, mock_probe, mock_merge, tmp_path):
        def slow(inputs, plan, output_path, engine=None):
            Path(output_path).write_bytes(b"half")
            raise EngineTimeoutError("ffmpeg exceeded 60s")

        mock_merge.side_effect = slow
        with pytest.raises(EngineTimeoutError):
            merge_clips(_manifest(tmp_path))
        written = mock_merge.call_args[0][2]
        assert written.name == ".out.partial.mp4"
        assert not written.exists()
        assert not (tmp_path / "out.mp4").exists()

    @patch("clipfade.engine.ffutil.merge_with_plan")
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_strict_fade(self, mock_probe, mock_merge, tmp_path):
        with pytest.raises(FadeDurationError, match="1-2"):
            merge_clips(_manifest(tmp_path, fade_duration=9.0, strict=True))
        mock_merge.assert_not_called()

    @patch("clipfade.engine.ffutil.merge_with_plan", side_effect=_fake_merge)
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_long_fade_not_strict_still_merges(self, mock_probe, mock_merge, tmp_path):
        result = merge_clips(_manifest(tmp_path, fade_duration=9.0))
        assert result.plan.offsets == [1.0, 0.0]

    @patch("clipfade.engine.ffutil.merge_with_plan", side_effect=_fake_merge)
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_repeat_merges_produce_same_plan(self, mock_probe, mock_merge, tmp_path):
        first = merge_clips(_manifest(tmp_path))
        (tmp_path / "again").mkdir()
        m = _manifest(tmp_path)
        m.output = tmp_path / "again" / "out.mp4"
        second = merge_clips(m)
        assert first.plan == second.plan


class TestMergeWithTransitions:
    @patch("clipfade.engine.ffutil.merge_with_plan", side_effect=_fake_merge)
    @patch("clipfade.engine.ffutil.probe", side_effect=_fake_probe)
    def test_returns_output_path(self, mock_probe, mock_merge, tmp_path, monkeypatch):
        monkeypatch.delenv("CLIPFADE_TIMEOUT", raising=False)
        out = merge_with_transitions(
            [tmp_path / "a.mp4", tmp_path / "b.mp4"], tmp_path / "out.mp4", timeout=90
        )
        assert out == tmp_path / "out.mp4"
        plan = mock_merge.call_args[0][1]
        assert plan.offsets == [9.0]
        engine = mock_merge.call_args[0][3]
        assert engine.timeout_seconds == 90
