"""Transition compositing between the outgoing (A) and incoming (B) clip.

Both layers are already filtered and sized to the frame. Drawing follows
2D-canvas semantics:

  crossfade   B drawn opaque, then A over it at alpha (1 - progress).
  wipe-left   A drawn, B clipped to x in [0, w * progress).
  wipe-right  A drawn, B clipped to x in [w * (1 - progress), w).
  wipe-down   A drawn, B clipped to y in [0, h * progress).
  wipe-up     A drawn, B clipped to y in [h * (1 - progress), h).
  other       A only.
"""

import numpy as np

from .common import clamp, composite_layer


def wipe_rect(kind: str, progress: float, width: int, height: int) -> tuple[int, int, int, int] | None:
    """Pixel rect (x0, y0, x1, y1) revealing clip B, or None if not a wipe."""
    if kind == "wipe-left":
        return 0, 0, int(round(width * progress)), height
    if kind == "wipe-right":
        return int(round(width * (1 - progress))), 0, width, height
    if kind == "wipe-down":
        return 0, 0, width, int(round(height * progress))
    if kind == "wipe-up":
        return 0, int(round(height * (1 - progress))), width, height
    return None


def draw_transition(
    canvas: np.ndarray,
    layer_a: np.ndarray,
    layer_b: np.ndarray,
    kind: str,
    progress: float,
) -> None:
    """Draw the A -> B transition at ``progress`` onto ``canvas`` in place."""
    progress = clamp(progress)
    height, width = canvas.shape[:2]

    if kind == "crossfade":
        composite_layer(canvas, layer_b)
        composite_layer(canvas, layer_a, opacity=1.0 - progress)
        return

    composite_layer(canvas, layer_a)
    rect = wipe_rect(kind, progress, width, height)
    if rect is not None:
        composite_layer(canvas, layer_b, clip_rect=rect)
