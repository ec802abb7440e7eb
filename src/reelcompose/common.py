"""reelcompose.common — shared utilities for frame compositing.

Contains: color parsing, path variable resolution, font loading,
interpolation helpers, and alpha compositing of float layers onto a canvas.
"""

import re
from pathlib import Path

import numpy as np
from PIL import ImageFont


# ── Font paths ─────────────────────────────────────────────────────
# Arial-like sans for text overlays, DejaVu Sans as fallback.

FONT_PATHS = [
    Path.home() / ".local/share/fonts/Inter.ttc",
    Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
]


# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' string to (R, G, B) tuple."""
    value = hex_str.lstrip("#")
    if len(value) != 6 or not all(c in "0123456789abcdefABCDEF" for c in value):
        raise ValueError(f"Invalid hex color: '{hex_str}'")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def to_rgb(value) -> tuple[int, int, int]:
    """Accept a hex string or an (R, G, B) sequence and return an RGB tuple."""
    if isinstance(value, str):
        return parse_hex_color(value)
    rgb = tuple(int(c) for c in value)
    if len(rgb) != 3 or any(c < 0 or c > 255 for c in rgb):
        raise ValueError(f"Invalid RGB color: {value!r}")
    return rgb


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return paths[key]
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Font loading ───────────────────────────────────────────────────

def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the first available sans font at the given pixel size."""
    for font_path in FONT_PATHS:
        if font_path.exists():
            try:
                return ImageFont.truetype(str(font_path), size=size, index=0)
            except (OSError, IndexError):
                continue
    # Last resort: Pillow's default font, scalable on Pillow >= 10.1.
    return ImageFont.load_default(size=size)


# ── Interpolation ──────────────────────────────────────────────────

def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(value: float, min_value: float = 0.0, max_value: float = 1.0) -> float:
    return max(min_value, min(max_value, value))


# ── Compositing ────────────────────────────────────────────────────

def composite_layer(
    canvas: np.ndarray,
    layer: np.ndarray,
    x: int = 0,
    y: int = 0,
    opacity: float = 1.0,
    clip_rect: tuple[int, int, int, int] | None = None,
) -> None:
    """Alpha-blend an RGBA float layer onto an RGB float canvas in place.

    The layer may extend beyond the canvas; only the intersecting region
    is drawn. ``clip_rect`` (x0, y0, x1, y1) further restricts drawing to a
    canvas-space rectangle, like a 2D-context clip path.

    Args:
        canvas: (H, W, 3) float32 canvas, values 0-255.
        layer: (h, w, 4) float32 layer, straight alpha 0-255.
        x: Canvas x of the layer's left edge.
        y: Canvas y of the layer's top edge.
        opacity: Global alpha multiplier for the layer.
        clip_rect: Optional canvas-space clip rectangle.
    """
    H, W = canvas.shape[:2]
    h, w = layer.shape[:2]

    x0, y0, x1, y1 = 0, 0, W, H
    if clip_rect is not None:
        x0 = max(x0, clip_rect[0])
        y0 = max(y0, clip_rect[1])
        x1 = min(x1, clip_rect[2])
        y1 = min(y1, clip_rect[3])

    dst_x0 = max(x0, x)
    dst_y0 = max(y0, y)
    dst_x1 = min(x1, x + w)
    dst_y1 = min(y1, y + h)
    if dst_x1 <= dst_x0 or dst_y1 <= dst_y0 or opacity <= 0:
        return

    src = layer[dst_y0 - y:dst_y1 - y, dst_x0 - x:dst_x1 - x]
    alpha = src[:, :, 3:4] * (opacity / 255.0)
    dest = canvas[dst_y0:dst_y1, dst_x0:dst_x1]
    dest *= 1.0 - alpha
    dest += src[:, :, :3] * alpha


def to_uint8(canvas: np.ndarray) -> np.ndarray:
    """Round a float 0-255 canvas to a uint8 frame."""
    return np.clip(np.rint(canvas), 0, 255).astype(np.uint8)


def to_rgba_float(frame: np.ndarray) -> np.ndarray:
    """Convert an (h, w, 3|4) uint8 or float frame to float32 RGBA."""
    arr = np.asarray(frame, dtype=np.float32)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (h, w, 3|4) frame, got shape {arr.shape}")
    if arr.shape[2] == 4:
        return arr.copy()
    alpha = np.full(arr.shape[:2] + (1,), 255.0, dtype=np.float32)
    return np.concatenate([arr, alpha], axis=2)
