"""Editor state: the mutable timeline behind every snapshot.

All edits go through the methods here. Each replaces value objects rather
than mutating them, so snapshots already handed to an exporter stay
frozen. Removing or replacing a clip closes its source handle.
"""

import dataclasses
import itertools

from .models import (
    EFFECTS, FILTERS, MAX_CLIPS,
    Clip, Crop, ImageOverlay, Overlay, TextOverlay, TimelineSnapshot, Transition,
)
from .timemap import TimeMapper


DEFAULT_TEXT_SECONDS = 3.0
DEFAULT_IMAGE_SECONDS = 5.0


class Timeline:
    def __init__(self):
        self.clips: list[Clip] = []
        self.transition = Transition()
        self.overlays: list[Overlay] = []
        self.filter = FILTERS["None"]
        self.effect = EFFECTS["None"]
        self.crop = Crop()
        self.playback_speed = 1.0
        self._ids = itertools.count(1)

    # ── Snapshot ─────────────────────────────────────────────────

    def snapshot(self) -> TimelineSnapshot:
        return TimelineSnapshot(
            clips=tuple(self.clips),
            transition=self.transition,
            overlays=tuple(self.overlays),
            filter=self.filter,
            effect=self.effect,
            crop=self.crop,
            playback_speed=self.playback_speed,
        )

    @property
    def total_duration(self) -> float:
        return TimeMapper(self.snapshot()).total_duration

    # ── Clips ────────────────────────────────────────────────────

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.clips):
            raise ValueError(f"No clip at index {index} (timeline has {len(self.clips)})")

    def add_clip(self, source, index: int | None = None, **settings) -> Clip:
        """Put a source on the timeline, trimmed to its full duration.

        With ``index`` set to an occupied slot, the old clip is replaced and
        its source closed unless the other slot still uses it. Extra keyword
        arguments are Clip fields.
        """
        clip = Clip(source=source, duration=source.duration, **settings)
        if index is None or index == len(self.clips):
            if len(self.clips) >= MAX_CLIPS:
                raise ValueError(f"Timeline already holds {MAX_CLIPS} clips")
            self.clips.append(clip)
        else:
            self._check_index(index)
            old = self.clips[index]
            self.clips[index] = clip
            self._release(old.source)
        self._clamp_transition()
        return clip

    def _release(self, source) -> None:
        # Both slots may hold the same source.
        if all(c.source is not source for c in self.clips):
            source.close()

    def remove_clip(self, index: int) -> None:
        self._check_index(index)
        clip = self.clips.pop(index)
        self._release(clip.source)

    def swap_clips(self) -> None:
        if len(self.clips) == 2:
            self.clips.reverse()

    def update_clip(self, index: int, **changes) -> Clip:
        self._check_index(index)
        clip = dataclasses.replace(self.clips[index], **changes)
        self.clips[index] = clip
        self._clamp_transition()
        return clip

    def trim_clip(self, index: int, trim_start: float, trim_end: float) -> Clip:
        return self.update_clip(index, trim_start=trim_start, trim_end=trim_end)

    def toggle_reverse(self, index: int) -> Clip:
        self._check_index(index)
        return self.update_clip(index, is_reversed=not self.clips[index].is_reversed)

    # ── Transition ───────────────────────────────────────────────

    def _clamp_transition(self) -> None:
        limit = min((c.trimmed_duration for c in self.clips), default=None)
        if limit is not None and self.transition.duration > limit:
            self.transition = dataclasses.replace(self.transition, duration=limit)

    def set_transition(self, type: str, duration: float | None = None) -> Transition:
        """Set the transition, clamping its duration to both clips."""
        if duration is None:
            duration = self.transition.duration
        self.transition = Transition(type=type, duration=duration)
        self._clamp_transition()
        return self.transition

    # ── Overlays ─────────────────────────────────────────────────

    def _next_z(self) -> int:
        return max((o.z_index for o in self.overlays), default=0) + 1

    def _default_end(self, start: float, seconds: float) -> float:
        total = self.total_duration
        end = start + seconds
        return min(end, total) if total > start else end

    def add_text_overlay(self, text: str, start_time: float = 0.0,
                         end_time: float | None = None, **fields) -> TextOverlay:
        """Add a text overlay on top of every existing overlay."""
        if end_time is None:
            end_time = self._default_end(start_time, DEFAULT_TEXT_SECONDS)
        fields.setdefault("z_index", self._next_z())
        overlay = TextOverlay(
            id=f"text-{next(self._ids)}", start_time=start_time, end_time=end_time,
            text=text, **fields,
        )
        self.overlays.append(overlay)
        return overlay

    def add_image_overlay(self, image=None, src: str | None = None, start_time: float = 0.0,
                          end_time: float | None = None, **fields) -> ImageOverlay:
        """Add an image overlay (decoded ``image`` or a ``src`` path) on top."""
        if end_time is None:
            end_time = self._default_end(start_time, DEFAULT_IMAGE_SECONDS)
        fields.setdefault("z_index", self._next_z())
        overlay = ImageOverlay(
            id=f"image-{next(self._ids)}", start_time=start_time, end_time=end_time,
            image=image, src=src, **fields,
        )
        self.overlays.append(overlay)
        return overlay

    def _overlay_index(self, overlay_id: str) -> int:
        for i, overlay in enumerate(self.overlays):
            if overlay.id == overlay_id:
                return i
        raise ValueError(f"Unknown overlay id '{overlay_id}'")

    def get_overlay(self, overlay_id: str) -> Overlay:
        return self.overlays[self._overlay_index(overlay_id)]

    def update_overlay(self, overlay_id: str, **changes) -> Overlay:
        i = self._overlay_index(overlay_id)
        if "id" in changes:
            raise ValueError("Overlay id cannot be changed")
        self.overlays[i] = dataclasses.replace(self.overlays[i], **changes)
        return self.overlays[i]

    def remove_overlay(self, overlay_id: str) -> None:
        del self.overlays[self._overlay_index(overlay_id)]

    # ── Frame-level settings ─────────────────────────────────────

    def set_filter(self, name: str) -> None:
        if name not in FILTERS:
            raise ValueError(f"Unknown filter '{name}'. Valid: {sorted(FILTERS)}")
        self.filter = FILTERS[name]

    def set_effect(self, name: str) -> None:
        if name not in EFFECTS:
            raise ValueError(f"Unknown effect '{name}'. Valid: {sorted(EFFECTS)}")
        self.effect = EFFECTS[name]

    def set_crop(self, crop: Crop) -> None:
        self.crop = crop

    def set_playback_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError(f"Playback speed must be > 0, got {speed}")
        self.playback_speed = speed

    def close(self) -> None:
        """Release every source handle."""
        seen = set()
        for clip in self.clips:
            if id(clip.source) not in seen:
                seen.add(id(clip.source))
                clip.source.close()
        self.clips.clear()
