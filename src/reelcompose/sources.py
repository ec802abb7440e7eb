"""Source decode handles.

A source is seeked to a time (blocking until the frame is decoded) and
then read with ``current_frame()``. Seeking outside the source or failing
to decode raises SeekFailure; there is no substitute frame.

Every source carries a lock. The export loop and the preview renderer
take the locks of all sources they touch through ``hold_sources`` so the
two never drive the same handle at once.
"""

import threading
from contextlib import contextmanager

import numpy as np
from moviepy import VideoFileClip

from .errors import SeekFailure, SourceBusy


SEEK_TOLERANCE = 1e-6   # seconds of float slack at either end of a source


class FrameSource:
    """Base class: subclasses set ``duration``/``resolution`` and implement
    ``_read(t)``."""

    duration: float = 0.0
    resolution: tuple[int, int] = (0, 0)

    def __init__(self):
        self.lock = threading.Lock()
        self._frame = None
        self._time = None

    def seek(self, t: float) -> None:
        """Decode the frame at ``t``; returns once it is available."""
        if t < -SEEK_TOLERANCE or t > self.duration + SEEK_TOLERANCE:
            raise SeekFailure(
                f"Cannot seek {self!r} to {t:.3f}s (duration {self.duration:.3f}s)"
            )
        t = min(max(t, 0.0), self.duration)
        if t == self._time:
            return
        try:
            frame = self._read(t)
        except (OSError, ValueError, IndexError) as exc:
            raise SeekFailure(f"Failed to decode {self!r} at {t:.3f}s: {exc}") from exc
        self._frame = np.asarray(frame)
        self._time = t

    def current_frame(self) -> np.ndarray:
        if self._frame is None:
            raise SeekFailure(f"{self!r} has no decoded frame, seek first")
        return self._frame

    def _read(self, t: float) -> np.ndarray:
        raise NotImplementedError

    def close(self) -> None:
        self._frame = None
        self._time = None


class VideoFileSource(FrameSource):
    """A video file decoded with moviepy."""

    def __init__(self, path):
        super().__init__()
        self.path = str(path)
        try:
            self._clip = VideoFileClip(self.path, audio=False)
        except (OSError, KeyError) as exc:
            raise SeekFailure(f"Cannot open video '{self.path}': {exc}") from exc
        self.duration = float(self._clip.duration)
        self.resolution = tuple(self._clip.size)
        self.fps = self._clip.fps

    def _read(self, t: float) -> np.ndarray:
        # The last decodable frame starts one frame before the end.
        last = max(0.0, self.duration - 1.0 / self.fps)
        return self._clip.get_frame(min(t, last))

    def close(self) -> None:
        super().close()
        self._clip.close()

    def __repr__(self):
        return f"VideoFileSource('{self.path}')"


class StillSource(FrameSource):
    """A single frame held for ``duration`` seconds (or a frame function).

    ``frame`` is either an (h, w, 3|4) array or a callable ``t -> array``,
    which makes synthetic time-varying sources cheap to build.
    """

    def __init__(self, frame, duration: float, name: str = "still"):
        super().__init__()
        self._make_frame = frame if callable(frame) else (lambda t: frame)
        self.duration = float(duration)
        first = np.asarray(self._make_frame(0.0))
        self.resolution = (first.shape[1], first.shape[0])
        self.name = name

    def _read(self, t: float) -> np.ndarray:
        return self._make_frame(t)

    def __repr__(self):
        return f"StillSource('{self.name}')"


@contextmanager
def hold_sources(sources):
    """Take every distinct source's lock without blocking.

    Raises:
        SourceBusy: Another loop holds one of the sources.
    """
    acquired = []
    seen = set()
    try:
        for source in sources:
            if source is None or id(source) in seen:
                continue
            seen.add(id(source))
            if not source.lock.acquire(blocking=False):
                raise SourceBusy(f"{source!r} is in use by another render loop")
            acquired.append(source)
        yield
    finally:
        for source in reversed(acquired):
            source.lock.release()
