"""Overlay in/out animation state for a given timeline time.

Each overlay animates over a fixed ANIMATION_DURATION at both ends:

  fade          opacity 0 -> 1 (in) / 1 -> 0 (out)
  slide-left    enters from / leaves to the left (translate x -100% <-> 0)
  slide-right   enters from / leaves to the right (translate x 100% <-> 0)
  slide-top     enters from / leaves to the top (translate y -100% <-> 0)
  slide-bottom  enters from / leaves to the bottom (translate y 100% <-> 0)
  slide-center  opacity and scale 0 <-> 1 about the overlay center

When the in and out windows overlap (overlays shorter than twice the
animation duration) opacities multiply, while translate/scale come from
the out animation once inside its window.
"""

from dataclasses import dataclass

from .common import lerp
from .models import Overlay


ANIMATION_DURATION = 0.5  # seconds

_SLIDE_OFFSETS = {
    "slide-left": (-100.0, 0.0),
    "slide-right": (100.0, 0.0),
    "slide-top": (0.0, -100.0),
    "slide-bottom": (0.0, 100.0),
}


@dataclass(frozen=True)
class OverlayState:
    visible: bool
    opacity: float = 1.0
    translate_x: float = 0.0    # percent of frame width
    translate_y: float = 0.0    # percent of frame height
    scale: float = 1.0


HIDDEN = OverlayState(visible=False, opacity=0.0)


def _animate(kind: str, presence: float) -> tuple[float, tuple[float, float, float] | None]:
    """Opacity and (translate_x, translate_y, scale) at ``presence`` 0 -> 1,
    where 1 means fully on screen. The transform is None for kinds that
    leave geometry alone."""
    if kind == "fade":
        return presence, None
    if kind == "slide-center":
        return presence, (0.0, 0.0, lerp(0.0, 1.0, presence))
    if kind in _SLIDE_OFFSETS:
        off_x, off_y = _SLIDE_OFFSETS[kind]
        return 1.0, (lerp(off_x, 0.0, presence), lerp(off_y, 0.0, presence), 1.0)
    return 1.0, None


def overlay_state(overlay: Overlay, t: float) -> OverlayState:
    """Visibility, opacity and transform of ``overlay`` at timeline time ``t``."""
    if not overlay.is_visible(t):
        return HIDDEN

    opacity = 1.0
    translate_x = translate_y = 0.0
    scale = 1.0

    time_in = t - overlay.start_time
    if overlay.animation_in != "none" and time_in < ANIMATION_DURATION:
        progress = time_in / ANIMATION_DURATION
        opacity, geometry = _animate(overlay.animation_in, progress)
        if geometry is not None:
            translate_x, translate_y, scale = geometry

    time_to_end = overlay.end_time - t
    if overlay.animation_out != "none" and time_to_end < ANIMATION_DURATION:
        progress = 1.0 - time_to_end / ANIMATION_DURATION
        out_opacity, geometry = _animate(overlay.animation_out, 1.0 - progress)
        opacity *= out_opacity
        if geometry is not None:
            translate_x, translate_y, scale = geometry

    return OverlayState(
        visible=True,
        opacity=opacity,
        translate_x=translate_x,
        translate_y=translate_y,
        scale=scale,
    )
