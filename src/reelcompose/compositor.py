"""Frame compositor — one complete output frame for a timeline time.

Per frame:
  1. Map global time to the active clip(s) (timemap.py).
  2. Seek each active source, read its frame and run it through the clip
     filter pipeline (filters.py).
  3. Draw the single active clip full-frame, or blend A and B with the
     transition (transitions.py), over a black canvas.
  4. Collect overlays visible at t, sort by z_index (stable, so equal
     z_index keeps insertion order), and for each: render content into a
     scratch buffer, apply its mask (masks.py), then its animation state
     (animation.py) as opacity, scale about the overlay center and
     translation, and composite it centered at (left%, top%).

Output frames are uint8 RGB at clip A's source resolution. The same code
path serves preview and export; the only difference is ``feather_masks``,
off for export unless mask parity is requested.
"""

import math

import numpy as np
from PIL import Image, ImageDraw

from .animation import overlay_state
from .assets import AssetCache
from .common import composite_layer, load_font, to_rgba_float, to_uint8
from .filters import apply_chroma_key, render_clip_layer
from .masks import apply_mask
from .models import Clip, Crop, ImageOverlay, Overlay, TextOverlay, TimelineSnapshot
from .timemap import A_ONLY, B_ONLY, TRANSITION, TimeMapper
from .transitions import draw_transition


# ── Scratch buffers ──────────────────────────────────────────────


class BufferArena:
    """Reusable float32 RGBA scratch buffers, one per size class.

    A size class rounds each dimension up to a power of two (min 16), so
    an overlay whose box changes slightly between frames keeps reusing the
    same allocation. A buffer is valid until the next ``acquire`` of the
    same class; compositing is sequential so that is enough.
    """

    MIN_CLASS = 16

    def __init__(self):
        self._pool: dict[tuple[int, int], np.ndarray] = {}

    @classmethod
    def size_class(cls, n: int) -> int:
        return max(cls.MIN_CLASS, 1 << (max(1, n) - 1).bit_length())

    def acquire(self, width: int, height: int) -> np.ndarray:
        key = (self.size_class(width), self.size_class(height))
        buf = self._pool.get(key)
        if buf is None:
            buf = np.zeros((key[1], key[0], 4), dtype=np.float32)
            self._pool[key] = buf
        view = buf[:height, :width]
        view.fill(0.0)
        return view

    def clear(self) -> None:
        self._pool.clear()

    def __len__(self):
        return len(self._pool)


# ── Overlay content ──────────────────────────────────────────────


def _pil_from_layer(layer: np.ndarray) -> Image.Image:
    return Image.fromarray(to_uint8(layer))


def render_text_image(overlay: TextOverlay) -> Image.Image:
    """Rasterize the overlay text centered in a box one font-size tall."""
    font = load_font(overlay.font_size)
    measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    left, top, right, bottom = measure.textbbox((0, 0), overlay.text, font=font)
    width = max(1, math.ceil(right - left))
    height = max(1, overlay.font_size, math.ceil(bottom - top))

    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.text(
        (width / 2, height / 2), overlay.text,
        fill=(*overlay.color, 255), font=font, anchor="mm",
    )
    return img


class FrameCompositor:
    """Composite timeline snapshots into frames.

    Args:
        assets: Decoded overlay masks/bitmaps. Lazily filled when not
            preloaded.
        feather_masks: Render mask feathering. Preview uses True; export
            passes its mask-parity setting.
    """

    def __init__(self, assets: AssetCache | None = None, feather_masks: bool = True):
        self.assets = assets or AssetCache()
        self.feather_masks = feather_masks
        self.arena = BufferArena()
        self._bitmaps: dict[str, tuple] = {}

    # ── Clips ────────────────────────────────────────────────────

    def _clip_layer(self, clip: Clip, local_time: float, frame_size, adjustments) -> np.ndarray:
        clip.source.seek(clip.source_time(local_time))
        frame = clip.source.current_frame()
        return render_clip_layer(frame, clip, local_time, frame_size, adjustments)

    def draw_clips(self, canvas: np.ndarray, snapshot: TimelineSnapshot, t: float) -> None:
        height, width = canvas.shape[:2]
        frame_size = (width, height)
        adjustments = snapshot.global_adjustments
        position = TimeMapper(snapshot).map(t)

        if position.state == A_ONLY:
            layer = self._clip_layer(snapshot.clip_a, position.local_a, frame_size, adjustments)
            composite_layer(canvas, layer)
        elif position.state == TRANSITION:
            layer_a = self._clip_layer(snapshot.clip_a, position.local_a, frame_size, adjustments)
            layer_b = self._clip_layer(snapshot.clip_b, position.local_b, frame_size, adjustments)
            draw_transition(canvas, layer_a, layer_b, snapshot.transition.type, position.progress)
        elif position.state == B_ONLY:
            layer = self._clip_layer(snapshot.clip_b, position.local_b, frame_size, adjustments)
            composite_layer(canvas, layer)

    # ── Overlays ─────────────────────────────────────────────────

    def _image_bitmap(self, overlay: ImageOverlay, width: int, height: int) -> Image.Image:
        """Chroma-keyed bitmap resized to the overlay box.

        One bitmap is kept per overlay id and rebuilt when the overlay's
        image, key or box size changes.
        """
        source = self.assets.image(overlay)
        state = (overlay.chroma_key, width, height)
        cached = self._bitmaps.get(overlay.id)
        if cached is not None and cached[0] is source and cached[1] == state:
            return cached[2]

        img = source.convert("RGBA")
        if overlay.chroma_key.enabled:
            keyed = apply_chroma_key(to_rgba_float(np.asarray(img)), overlay.chroma_key)
            img = _pil_from_layer(keyed)
        bitmap = img.resize((width, height), Image.Resampling.BILINEAR)
        self._bitmaps[overlay.id] = (source, state, bitmap)
        return bitmap

    def overlay_content(self, overlay: Overlay, frame_w: int) -> np.ndarray:
        """Render overlay content into an arena buffer sized to its box."""
        if isinstance(overlay, TextOverlay):
            img = render_text_image(overlay)
        elif isinstance(overlay, ImageOverlay):
            source = self.assets.image(overlay)
            box_w = overlay.width / 100 * frame_w
            box_h = box_w / source.width * source.height
            img = self._image_bitmap(
                overlay, max(1, int(round(box_w))), max(1, int(round(box_h))),
            )
        else:
            raise TypeError(f"Unsupported overlay type: {type(overlay).__name__}")

        layer = self.arena.acquire(img.width, img.height)
        layer[...] = np.asarray(img, dtype=np.float32)
        return layer

    def draw_overlay(self, canvas: np.ndarray, overlay: Overlay, t: float) -> None:
        state = overlay_state(overlay, t)
        if not state.visible or state.opacity <= 0 or state.scale <= 0:
            return
        height, width = canvas.shape[:2]

        layer = self.overlay_content(overlay, width)
        apply_mask(
            layer, overlay.mask,
            vector_mask=self.assets.vector_mask(overlay.mask),
            feathered=self.feather_masks,
        )

        if state.scale != 1.0:
            scaled_w = int(round(layer.shape[1] * state.scale))
            scaled_h = int(round(layer.shape[0] * state.scale))
            if scaled_w < 1 or scaled_h < 1:
                return
            img = _pil_from_layer(layer).resize((scaled_w, scaled_h), Image.Resampling.BILINEAR)
            layer = np.asarray(img, dtype=np.float32)

        center_x = (overlay.left + state.translate_x) / 100 * width
        center_y = (overlay.top + state.translate_y) / 100 * height
        x = int(round(center_x - layer.shape[1] / 2))
        y = int(round(center_y - layer.shape[0] / 2))
        composite_layer(canvas, layer, x, y, opacity=state.opacity)

    def draw_overlays(self, canvas: np.ndarray, snapshot: TimelineSnapshot, t: float) -> None:
        for stale in self._bitmaps.keys() - {o.id for o in snapshot.overlays}:
            del self._bitmaps[stale]
        visible = [o for o in snapshot.overlays if o.is_visible(t)]
        for overlay in sorted(visible, key=lambda o: o.z_index):
            self.draw_overlay(canvas, overlay, t)

    # ── Frames ───────────────────────────────────────────────────

    def render_frame(self, snapshot: TimelineSnapshot, t: float) -> np.ndarray | None:
        """Composite the frame at timeline time ``t``.

        Returns:
            (h, w, 3) uint8 frame at clip A's source resolution, or None for
            an empty timeline.

        Raises:
            SeekFailure: An active source could not produce its frame.
        """
        if snapshot.clip_a is None:
            return None
        width, height = snapshot.clip_a.source.resolution
        canvas = np.zeros((height, width, 3), dtype=np.float32)
        self.draw_clips(canvas, snapshot, t)
        self.draw_overlays(canvas, snapshot, t)
        return to_uint8(canvas)

    def reset(self) -> None:
        """Release per-run caches and scratch buffers."""
        self.arena.clear()
        self._bitmaps.clear()


def crop_frame(frame: np.ndarray, crop: Crop) -> np.ndarray:
    """Cut the crop rectangle (percent of frame) out of a frame."""
    height, width = frame.shape[:2]
    x0, y0, x1, y1 = crop.pixel_box(width, height)
    return np.ascontiguousarray(frame[y0:y1, x0:x1])
