"""Output sinks for exported frames.

A sink receives frames strictly in time order. Container encoding and
audio muxing belong to the sink; the engine only hands over RGB frames.

FfmpegSink streams frames into ffmpeg (via imageio-ffmpeg) writing to
``<output>.partial``; ``finalize`` renames it into place and ``discard``
deletes it, so a cancelled or failed export never leaves a file that
looks complete.
"""

import os
from pathlib import Path

import imageio_ffmpeg
import numpy as np

from .errors import UnsupportedOutputFormat


CODECS = {"mp4": "libx264", "webm": "libvpx-vp9"}

BITRATES = {
    "low": 2_000_000,    # 2 Mbps
    "high": 10_000_000,  # 10 Mbps
}


def check_output_format(fmt: str, quality: str) -> None:
    """Raise UnsupportedOutputFormat for an unknown format or quality."""
    if fmt not in CODECS:
        raise UnsupportedOutputFormat(
            f"Unsupported output format '{fmt}'. Valid: {sorted(CODECS)}"
        )
    if quality not in BITRATES:
        raise UnsupportedOutputFormat(
            f"Unsupported export quality '{quality}'. Valid: {sorted(BITRATES)}"
        )


class FrameSink:
    """Interface: ``open`` once, ``write`` per frame, then exactly one of
    ``finalize`` or ``discard``."""

    def open(self, size: tuple[int, int], fps: float) -> None:
        raise NotImplementedError

    def write(self, frame: np.ndarray) -> None:
        raise NotImplementedError

    def finalize(self) -> None:
        raise NotImplementedError

    def discard(self) -> None:
        raise NotImplementedError


class MemorySink(FrameSink):
    """Keeps frames in a list. Used for stills and tests."""

    def __init__(self):
        self.frames: list[np.ndarray] = []
        self.size = None
        self.fps = None
        self.finalized = False
        self.discarded = False

    def open(self, size, fps):
        self.size = size
        self.fps = fps

    def write(self, frame):
        self.frames.append(frame)

    def finalize(self):
        self.finalized = True

    def discard(self):
        self.frames.clear()
        self.discarded = True


class FfmpegSink(FrameSink):
    """Encode frames to mp4 (libx264) or webm (VP9) with ffmpeg."""

    def __init__(self, output_path: str | Path, fmt: str = "mp4", quality: str = "high"):
        check_output_format(fmt, quality)
        self.output_path = Path(output_path)
        self.partial_path = self.output_path.with_name(self.output_path.name + ".partial")
        self.fmt = fmt
        self.quality = quality
        self._writer = None

    def open(self, size, fps):
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._writer = imageio_ffmpeg.write_frames(
            str(self.partial_path),
            size,
            pix_fmt_in="rgb24",
            pix_fmt_out="yuv420p",
            fps=fps,
            codec=CODECS[self.fmt],
            bitrate=str(BITRATES[self.quality]),
            quality=None,
            macro_block_size=2,
            ffmpeg_log_level="error",
            output_params=["-f", self.fmt],
        )
        self._writer.send(None)  # start the generator

    def write(self, frame):
        self._writer.send(np.ascontiguousarray(frame, dtype=np.uint8))

    def _close_writer(self):
        if self._writer is not None:
            self._writer.close()
            self._writer = None

    def finalize(self):
        self._close_writer()
        os.replace(self.partial_path, self.output_path)

    def discard(self):
        self._close_writer()
        self.partial_path.unlink(missing_ok=True)
