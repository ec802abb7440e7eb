"""Global timeline time to per-clip local time.

Two clips sit back to back; when a transition is active the start of clip B
overlaps the last ``transition_duration`` seconds of clip A:

    A: |================|
    B:            |==========|
                  ^ dA - td  ^ dA

Inside the overlap both clips are rendered and ``progress`` runs 0 -> 1.
"""

from dataclasses import dataclass

from .common import clamp
from .models import Clip, TimelineSnapshot, Transition


A_ONLY = "a-only"
TRANSITION = "transition"
B_ONLY = "b-only"
EMPTY = "empty"


@dataclass(frozen=True)
class TimelinePosition:
    """Where global time ``t`` lands on the two-clip timeline.

    ``local_a``/``local_b`` are None when that clip is not active.
    """

    state: str
    local_a: float | None = None
    local_b: float | None = None
    progress: float = 0.0


def transition_duration(clip_a: Clip | None, clip_b: Clip | None, transition: Transition) -> float:
    """Effective overlap: zero unless both clips exist and the type is not none.

    The stored duration is clamped to both trimmed durations so a later trim
    can never make the overlap longer than a clip.
    """
    if clip_a is None or clip_b is None or transition.type == "none":
        return 0.0
    return min(transition.duration, clip_a.trimmed_duration, clip_b.trimmed_duration)


class TimeMapper:
    """Resolve global time against one snapshot's clips and transition."""

    def __init__(self, snapshot: TimelineSnapshot):
        self.clip_a = snapshot.clip_a
        self.clip_b = snapshot.clip_b
        self.duration_a = self.clip_a.trimmed_duration if self.clip_a else 0.0
        self.duration_b = self.clip_b.trimmed_duration if self.clip_b else 0.0
        self.transition_duration = transition_duration(
            self.clip_a, self.clip_b, snapshot.transition,
        )

    @property
    def transition_start(self) -> float:
        return self.duration_a - self.transition_duration

    @property
    def total_duration(self) -> float:
        return max(0.0, self.duration_a + self.duration_b - self.transition_duration)

    def map(self, t: float) -> TimelinePosition:
        if self.clip_a is None:
            return TimelinePosition(EMPTY)
        if self.clip_b is None or t < self.transition_start:
            return TimelinePosition(A_ONLY, local_a=t)

        local_b = t - self.transition_start
        if t < self.duration_a:
            progress = clamp(local_b / self.transition_duration) if self.transition_duration > 0 else 1.0
            return TimelinePosition(TRANSITION, local_a=t, local_b=local_b, progress=progress)
        return TimelinePosition(B_ONLY, local_b=local_b)
