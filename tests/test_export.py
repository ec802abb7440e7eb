"""Tests for the export driver and output sinks."""

import warnings
from pathlib import Path

import numpy as np
import pytest

from conftest import BLUE, FRAME_H, FRAME_W, RED, make_snapshot, solid_frame, still

import reelcompose.export
from reelcompose.errors import UnsupportedOutputFormat
from reelcompose.export import (
    CANCELLED,
    COMPLETED,
    FAILED,
    IDLE,
    RUNNING,
    ExportConfig,
    ExportProgress,
    ExportResult,
    Exporter,
    run_export,
)
from reelcompose.models import Crop, Mask, TextOverlay, TimelineSnapshot, Transition
from reelcompose.sinks import FfmpegSink, MemorySink, check_output_format
from reelcompose.sources import StillSource, hold_sources


CONFIG = ExportConfig(fps=10.0)


def _events(exporter, sink, config=CONFIG):
    return list(exporter.start(config, sink))


class TestCompletedExport:
    def test_frame_count_includes_final_instant(self):
        sink = MemorySink()
        result = run_export(Exporter(make_snapshot(still(RED, duration=1.0))), CONFIG, sink)
        assert result == ExportResult(COMPLETED, frames=11)
        assert len(sink.frames) == 11
        assert sink.finalized
        assert not sink.discarded

    def test_sink_opened_at_clip_a_resolution(self):
        sink = MemorySink()
        run_export(Exporter(make_snapshot(still(RED, duration=1.0))), CONFIG, sink)
        assert sink.size == (FRAME_W, FRAME_H)
        assert sink.fps == 10.0
        assert sink.frames[0].shape == (FRAME_H, FRAME_W, 3)

    def test_playback_speed_scales_frame_times(self):
        sink = MemorySink()
        snapshot = make_snapshot(still(RED, duration=1.0), playback_speed=2.0)
        events = _events(Exporter(snapshot), sink)
        times = [e.time for e in events if isinstance(e, ExportProgress)]
        assert times == pytest.approx([0.0, 0.2, 0.4, 0.6, 0.8, 1.0])

    def test_progress_reaches_one(self):
        events = _events(Exporter(make_snapshot(still(RED, duration=1.0))), MemorySink())
        progress = [e.progress for e in events if isinstance(e, ExportProgress)]
        assert progress == sorted(progress)
        assert progress[-1] == pytest.approx(1.0)
        assert isinstance(events[-1], ExportResult)

    def test_transition_frames_in_order(self):
        sink = MemorySink()
        snapshot = make_snapshot(
            still(RED, duration=1.0), still(BLUE, duration=1.0),
            transition=Transition("crossfade", 0.5),
        )
        result = run_export(Exporter(snapshot), CONFIG, sink)
        assert result.frames == 16
        assert np.all(sink.frames[0] == RED)
        assert np.all(sink.frames[-1] == BLUE)

    def test_crop_applied_to_frames(self):
        sink = MemorySink()
        snapshot = make_snapshot(still(RED, duration=1.0), crop=Crop(x=50, y=0, width=50, height=50))
        run_export(Exporter(snapshot), CONFIG, sink)
        assert sink.size == (FRAME_W // 2, FRAME_H // 2)
        assert sink.frames[0].shape == (FRAME_H // 2, FRAME_W // 2, 3)

    def test_empty_timeline_completes_without_frames(self):
        sink = MemorySink()
        result = run_export(Exporter(TimelineSnapshot()), CONFIG, sink)
        assert result == ExportResult(COMPLETED, frames=0)
        assert sink.frames == []

    def test_progress_callback(self):
        seen = []
        run_export(
            Exporter(make_snapshot(still(RED, duration=0.5))), CONFIG, MemorySink(),
            on_progress=seen.append,
        )
        assert [e.frame_index for e in seen] == list(range(6))

    def test_state_returns_to_idle(self):
        exporter = Exporter(make_snapshot(still(RED, duration=0.3)))
        run_export(exporter, CONFIG, MemorySink())
        assert exporter.state == IDLE
        assert exporter.result.ok


class TestCancel:
    def test_cancel_stops_before_next_frame(self):
        sink = MemorySink()
        exporter = Exporter(make_snapshot(still(RED, duration=1.0)))
        written = 0
        result = None
        for event in exporter.start(CONFIG, sink):
            if isinstance(event, ExportProgress):
                written += 1
                if written == 3:
                    exporter.cancel()
            else:
                result = event
        assert result == ExportResult(CANCELLED, frames=3)
        assert sink.discarded
        assert not sink.finalized
        assert sink.frames == []
        assert exporter.state == IDLE

    def test_abandoned_generator_discards_output(self):
        sink = MemorySink()
        exporter = Exporter(make_snapshot(still(RED, duration=1.0)))
        events = exporter.start(CONFIG, sink)
        next(events)
        assert exporter.state == RUNNING
        events.close()
        assert sink.discarded
        assert exporter.state == IDLE

    def test_second_start_while_running_rejected(self):
        exporter = Exporter(make_snapshot(still(RED, duration=1.0)))
        events = exporter.start(CONFIG, MemorySink())
        next(events)
        with pytest.raises(ValueError, match="already in progress"):
            exporter.start(CONFIG, MemorySink())
        events.close()


class TestFailures:
    def test_unsupported_format_raised_synchronously(self):
        exporter = Exporter(make_snapshot(still(RED)))
        with pytest.raises(UnsupportedOutputFormat, match="avi"):
            exporter.start(ExportConfig(fmt="avi"), MemorySink())
        assert exporter.state == IDLE

    def test_unsupported_quality(self):
        with pytest.raises(UnsupportedOutputFormat, match="quality"):
            check_output_format("mp4", "medium")

    def test_output_path_required_without_sink(self):
        with pytest.raises(ValueError, match="output_path"):
            Exporter(make_snapshot(still(RED))).start(ExportConfig())

    def test_bad_fps(self):
        with pytest.raises(ValueError, match="fps"):
            Exporter(make_snapshot(still(RED))).start(ExportConfig(fps=0), MemorySink())

    def test_seek_failure_fails_export(self):
        def frame_at(t):
            if t > 0.45:
                raise ValueError("corrupt packet")
            return solid_frame(RED)

        sink = MemorySink()
        snapshot = make_snapshot(StillSource(frame_at, 1.0, name="flaky"))
        result = run_export(Exporter(snapshot), CONFIG, sink)
        assert result.status == FAILED
        assert result.frames == 5
        assert "corrupt packet" in result.reason
        assert sink.discarded
        assert not sink.finalized

    def test_asset_failure_before_first_frame(self):
        overlay = TextOverlay(
            id="t", start_time=0, end_time=1, text="x",
            mask=Mask(shape="custom-vector", vector_data="<svg"),
        )
        sink = MemorySink()
        snapshot = make_snapshot(still(RED, duration=1.0), overlays=(overlay,))
        result = run_export(Exporter(snapshot), CONFIG, sink)
        assert result.status == FAILED
        assert result.frames == 0
        assert sink.size is None
        assert sink.frames == []

    def test_sources_in_use_fail_export(self):
        source = still(RED, duration=1.0)
        with hold_sources([source]):
            result = run_export(Exporter(make_snapshot(source)), CONFIG, MemorySink())
        assert result.status == FAILED
        assert "in use" in result.reason
        assert not source.lock.locked()

    def test_encoder_error_fails_export(self):
        class BrokenPipeSink(MemorySink):
            def write(self, frame):
                if len(self.frames) == 2:
                    raise BrokenPipeError("ffmpeg exited")
                super().write(frame)

        sink = BrokenPipeSink()
        exporter = Exporter(make_snapshot(still(RED, duration=1.0)))
        result = run_export(exporter, CONFIG, sink)
        assert result.status == FAILED
        assert result.frames == 2
        assert "ffmpeg exited" in result.reason
        assert sink.discarded
        assert exporter.state == IDLE

    def test_encoder_open_error_fails_export(self):
        class UnwritableSink(MemorySink):
            def open(self, size, fps):
                raise PermissionError("read-only output directory")

        sink = UnwritableSink()
        result = run_export(Exporter(make_snapshot(still(RED, duration=1.0))), CONFIG, sink)
        assert result.status == FAILED
        assert result.frames == 0
        assert "read-only" in result.reason


class TestFfmpegSink:
    def test_writes_final_file_on_finalize(self, tmp_path):
        out = tmp_path / "out.mp4"
        result = run_export(
            Exporter(make_snapshot(still(RED, duration=0.5))),
            ExportConfig(output_path=str(out), fps=10.0, quality="low"),
        )
        assert result.ok
        assert out.exists() and out.stat().st_size > 0
        assert not (tmp_path / "out.mp4.partial").exists()

    def test_webm_output(self, tmp_path):
        out = tmp_path / "out.webm"
        result = run_export(
            Exporter(make_snapshot(still(BLUE, duration=0.3))),
            ExportConfig(output_path=str(out), fmt="webm", fps=10.0),
        )
        assert result.ok
        assert out.exists()

    def test_discard_removes_partial(self, tmp_path):
        sink = FfmpegSink(tmp_path / "out.mp4")
        sink.open((FRAME_W, FRAME_H), 10.0)
        sink.write(solid_frame(RED))
        sink.discard()
        assert not (tmp_path / "out.mp4").exists()
        assert not (tmp_path / "out.mp4.partial").exists()

    def test_rejects_unknown_format(self, tmp_path):
        with pytest.raises(UnsupportedOutputFormat):
            FfmpegSink(tmp_path / "out.gif", fmt="gif")


class TestResultRelease:
    def _stop_at_result(self, exporter, sink):
        for event in exporter.start(CONFIG, sink):
            if isinstance(event, ExportResult):
                return event
        return None

    def test_completed_result_released_before_yield(self):
        source = still(RED, duration=0.3)
        exporter = Exporter(make_snapshot(source))
        result = self._stop_at_result(exporter, MemorySink())
        assert result == ExportResult(COMPLETED, frames=4)
        assert exporter.state == IDLE
        assert not source.lock.locked()

    def test_failed_result_released_before_yield(self):
        def frame_at(t):
            if t > 0.15:
                raise ValueError("corrupt packet")
            return solid_frame(RED)

        source = StillSource(frame_at, 1.0, name="flaky")
        exporter = Exporter(make_snapshot(source))
        result = self._stop_at_result(exporter, MemorySink())
        assert result.status == FAILED
        assert exporter.state == IDLE
        assert not source.lock.locked()

    def test_cancelled_result_released_before_yield(self):
        source = still(RED, duration=1.0)
        exporter = Exporter(make_snapshot(source))
        events = exporter.start(CONFIG, MemorySink())
        exporter.cancel()
        result = next(events)
        assert result == ExportResult(CANCELLED, frames=0)
        assert exporter.state == IDLE
        assert not source.lock.locked()

    def test_restart_after_stopping_at_result(self):
        source = still(RED, duration=0.3)
        exporter = Exporter(make_snapshot(source))
        self._stop_at_result(exporter, MemorySink())
        sink = MemorySink()
        assert run_export(exporter, CONFIG, sink).ok
        assert len(sink.frames) == 4


class TestModuleSource:
    def test_compiles_without_warnings(self):
        path = Path(reelcompose.export.__file__)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(), str(path), "exec")
