"""Shared test fixtures for reelcompose tests.

Clips are built from StillSource so the suite needs no media files; the
few tests that touch real video create it with the bundled ffmpeg.
"""

import subprocess

import imageio_ffmpeg
import numpy as np
import pytest

from reelcompose.models import Clip, TimelineSnapshot, Transition
from reelcompose.sources import StillSource

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

FRAME_W, FRAME_H = 32, 24

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def solid_frame(color, size=(FRAME_W, FRAME_H)) -> np.ndarray:
    w, h = size
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    frame[:, :] = color
    return frame


def still(color, duration=2.0, size=(FRAME_W, FRAME_H), name=None) -> StillSource:
    return StillSource(solid_frame(color, size), duration, name=name or str(color))


def make_clip(source, **settings) -> Clip:
    return Clip(source=source, duration=source.duration, **settings)


def make_snapshot(*sources, transition=None, **fields) -> TimelineSnapshot:
    return TimelineSnapshot(
        clips=tuple(make_clip(s) for s in sources),
        transition=transition or Transition(),
        **fields,
    )


@pytest.fixture
def red_source():
    return still(RED, name="red")


@pytest.fixture
def blue_source():
    return still(BLUE, name="blue")


@pytest.fixture
def source_video(tmp_path):
    """Create a 2-second test video (64x48, 10fps) using ffmpeg."""
    out = tmp_path / "source.mp4"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "color=c=blue:s=64x48:d=2:r=10",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out
