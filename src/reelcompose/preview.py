"""Interactive preview: a real-time playhead over the live timeline.

The player reads a fresh snapshot from the timeline for every frame so
edits show up immediately, and renders through the same compositor as the
exporter (with mask feathering on). Rendering takes the source locks, so
asking for a preview frame while an export runs raises SourceBusy.
"""

from .assets import AssetCache
from .compositor import FrameCompositor
from .sources import hold_sources


FRAME_STEP = 1 / 30  # seconds per arrow-key frame step


class PreviewPlayer:
    """Playhead state plus ``render_frame(t)`` for a Timeline.

    ``tick(now)`` is meant to be called from an animation callback with a
    monotonic timestamp in seconds.
    """

    def __init__(self, timeline, assets: AssetCache | None = None):
        self.timeline = timeline
        self.compositor = FrameCompositor(assets or AssetCache(), feather_masks=True)
        self.current_time = 0.0
        self.playing = False
        self._last_tick = None

    @property
    def total_duration(self) -> float:
        return self.timeline.total_duration

    def play(self) -> None:
        if self.total_duration <= 0:
            return
        if self.current_time >= self.total_duration:
            self.current_time = 0.0
        self.playing = True
        self._last_tick = None

    def pause(self) -> None:
        self.playing = False
        self._last_tick = None

    def toggle(self) -> None:
        if self.playing:
            self.pause()
        else:
            self.play()

    def seek(self, t: float) -> None:
        self.current_time = max(0.0, min(t, self.total_duration))

    def step(self, direction: int) -> None:
        """Pause and move one frame forward (+1) or backward (-1)."""
        self.pause()
        self.seek(self.current_time + direction * FRAME_STEP)

    def tick(self, now: float) -> float:
        """Advance the playhead by wall-clock time scaled by playback speed."""
        if self.playing:
            if self._last_tick is not None:
                elapsed = now - self._last_tick
                speed = self.timeline.playback_speed
                self.current_time = min(self.current_time + elapsed * speed, self.total_duration)
                if self.current_time >= self.total_duration:
                    self.pause()
                    return self.current_time
            self._last_tick = now
        return self.current_time

    def render_frame(self, t: float):
        """Composite the live timeline at ``t``; None when it has no clips."""
        snapshot = self.timeline.snapshot()
        with hold_sources(clip.source for clip in snapshot.clips):
            return self.compositor.render_frame(snapshot, t)

    def render(self):
        return self.render_frame(self.current_time)
