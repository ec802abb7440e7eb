"""Export driver — step through the timeline and feed frames to a sink.

State machine:

    idle -> preparing -> running -> finalizing -> idle
               |            |
               +------------+--> failed -> idle

``Exporter.start`` validates the output format synchronously, then returns
a generator. Iterating it drives the export: every rendered frame yields an
ExportProgress, and the final item is always one ExportResult with status
"completed", "failed" or "cancelled".

Preparing takes the source locks, decodes every overlay asset (a decode
failure ends the export before any frame) and opens the sink. Running
steps export time by playback_speed / fps from 0 while it is <= the total
duration; each step seeks, composites, crops and writes one frame.
``cancel()`` is checked before each step's seek; a cancelled or failed run
discards the sink's partial output. Decode, seek, lock and encoder I/O
errors all end in a failed result rather than an exception.

The ExportResult is yielded only after the source locks are released and
the state is back to idle, so a consumer may stop iterating as soon as it
sees one.
"""

import threading
from dataclasses import dataclass

from .assets import AssetCache, AssetLoader
from .compositor import FrameCompositor, crop_frame
from .errors import AssetDecodeFailure, SeekFailure, SourceBusy
from .models import TimelineSnapshot
from .sinks import FfmpegSink, FrameSink, check_output_format
from .sources import hold_sources
from .timemap import TimeMapper


IDLE = "idle"
PREPARING = "preparing"
RUNNING = "running"
FINALIZING = "finalizing"
FAILED = "failed"

COMPLETED = "completed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExportConfig:
    """Export settings.

    ``mask_parity`` renders feathered masks in export exactly like the
    preview; off by default, which exports them hard-edged.
    """

    output_path: str | None = None
    fmt: str = "mp4"
    quality: str = "high"
    fps: float = 30.0
    mask_parity: bool = False


@dataclass(frozen=True)
class ExportProgress:
    progress: float     # export_time / total_duration, 0.0-1.0
    time: float         # timeline time of the frame just written
    frame_index: int


@dataclass(frozen=True)
class ExportResult:
    status: str
    frames: int = 0
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED


class Exporter:
    """Drive one export of a frozen timeline snapshot at a time."""

    def __init__(self, snapshot: TimelineSnapshot, loader: AssetLoader | None = None):
        self.snapshot = snapshot
        self.loader = loader or AssetLoader()
        self.state = IDLE
        self.result: ExportResult | None = None
        self._cancel = threading.Event()

    def start(self, config: ExportConfig, sink: FrameSink | None = None):
        """Validate the config and return the export event generator.

        Args:
            config: Output settings.
            sink: Frame sink; defaults to an FfmpegSink at config.output_path.

        Raises:
            UnsupportedOutputFormat: Unknown format or quality.
            ValueError: Bad fps, missing output path, or an export is
                already running.
        """
        if self.state != IDLE:
            raise ValueError(f"Export already in progress (state: {self.state})")
        check_output_format(config.fmt, config.quality)
        if config.fps <= 0:
            raise ValueError(f"Export fps must be > 0, got {config.fps}")
        if sink is None:
            if not config.output_path:
                raise ValueError("Export needs an output_path or an explicit sink")
            sink = FfmpegSink(config.output_path, config.fmt, config.quality)
        self._cancel.clear()
        self.result = None
        return self._run(config, sink)

    def cancel(self) -> None:
        """Request a stop; honored before the next frame's seek."""
        self._cancel.set()

    def _finish(self, result: ExportResult) -> ExportResult:
        self.result = result
        return result

    def _run(self, config: ExportConfig, sink: FrameSink):
        snapshot = self.snapshot
        if snapshot.clip_a is None:
            yield self._finish(ExportResult(COMPLETED, frames=0))
            return

        total = TimeMapper(snapshot).total_duration
        assets = AssetCache(self.loader)
        compositor = FrameCompositor(assets, feather_masks=config.mask_parity)
        sources = [clip.source for clip in snapshot.clips]
        frames = 0
        sink_open = False
        result = None

        self.state = PREPARING
        try:
            with hold_sources(sources):
                assets.preload(snapshot.overlays)

                width, height = snapshot.clip_a.source.resolution
                x0, y0, x1, y1 = snapshot.crop.pixel_box(width, height)
                sink_open = True
                sink.open((x1 - x0, y1 - y0), config.fps)
                self.state = RUNNING

                while True:
                    # Multiply rather than accumulate so frame times are exact.
                    export_time = frames * snapshot.playback_speed / config.fps
                    if export_time > total:
                        break
                    if self._cancel.is_set():
                        result = ExportResult(CANCELLED, frames=frames)
                        break

                    frame = compositor.render_frame(snapshot, export_time)
                    sink.write(crop_frame(frame, snapshot.crop))
                    frames += 1
                    yield ExportProgress(
                        progress=min(1.0, export_time / total),
                        time=export_time,
                        frame_index=frames - 1,
                    )

                if result is None:
                    self.state = FINALIZING
                    sink.finalize()
                    sink_open = False
                    result = ExportResult(COMPLETED, frames=frames)

        except (AssetDecodeFailure, SeekFailure, SourceBusy, OSError) as exc:
            self.state = FAILED
            result = ExportResult(FAILED, frames=frames, reason=str(exc))

        finally:
            # Also reached when the consumer abandons the generator early.
            if sink_open:
                sink.discard()
            compositor.reset()
            assets.clear()
            self.state = IDLE

        # Locks and buffers are released before the result is seen.
        yield self._finish(result)


def run_export(exporter: Exporter, config: ExportConfig, sink: FrameSink | None = None,
               on_progress=None) -> ExportResult:
    """Drain an export, calling ``on_progress(ExportProgress)`` per frame."""
    result = None
    for event in exporter.start(config, sink):
        if isinstance(event, ExportResult):
            result = event
        elif on_progress is not None:
            on_progress(event)
    return result
