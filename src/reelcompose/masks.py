"""Mask engine — clip an overlay buffer's alpha to a shape.

Shapes:
  - none: no-op.
  - circle: circle inscribed in the buffer, centered.
  - rectangle: rounded rect covering the buffer, corner radius
    min(w, h) * corner_radius / 100.
  - custom-vector: the SVG rendered by cairosvg (stretched to the buffer)
    multiplies the buffer alpha, i.e. destination is kept where the mask
    is opaque. Feather is ignored.

Feathering blurs the circle/rectangle coverage with a Gaussian of radius
``feather`` px, softening the boundary while the interior stays opaque.
Feathering is a preview-quality effect: the exporter renders feathered
shapes hard-edged unless mask parity is requested (see compositor.py).
"""

import io
import math
from dataclasses import dataclass, field

import cairosvg
import numpy as np
from PIL import Image, ImageDraw, ImageFilter

from .models import Mask


_RASTER_CACHE_SIZE = 8


# ── Vector masks ─────────────────────────────────────────────────


@dataclass
class VectorMask:
    """A decoded SVG mask, rendered by cairosvg at each requested size.

    The SVG is drawn at the box width and then stretched to the box, so
    the mask always fills the overlay buffer. Coverage is the rendered
    alpha channel.
    """

    data: bytes
    _rasters: dict[tuple[int, int], np.ndarray] = field(
        default_factory=dict, repr=False, compare=False,
    )

    def rasterize(self, width: int, height: int) -> np.ndarray:
        """Render coverage for a (width, height) box, values 0.0-1.0."""
        key = (width, height)
        coverage = self._rasters.get(key)
        if coverage is None:
            png = cairosvg.svg2png(bytestring=self.data, output_width=max(1, width))
            img = Image.open(io.BytesIO(png)).convert("RGBA")
            if img.size != key:
                img = img.resize(key, Image.Resampling.BILINEAR)
            coverage = np.asarray(img.getchannel("A"), dtype=np.float32) / 255.0
            if len(self._rasters) >= _RASTER_CACHE_SIZE:
                self._rasters.clear()
            self._rasters[key] = coverage
        return coverage


# ── Shape coverage ───────────────────────────────────────────────


def _circle_coverage(width: int, height: int) -> np.ndarray:
    radius = min(width, height) / 2
    ys = np.arange(height, dtype=np.float32)[:, None] + 0.5
    xs = np.arange(width, dtype=np.float32)[None, :] + 0.5
    inside = (xs - width / 2) ** 2 + (ys - height / 2) ** 2 <= radius * radius
    return inside.astype(np.float32)


def _rounded_rect_coverage(width: int, height: int, corner_radius: float) -> np.ndarray:
    radius = min(width, height) * corner_radius / 100
    img = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(img)
    if radius >= 1:
        draw.rounded_rectangle([0, 0, width - 1, height - 1], radius=radius, fill=255)
    else:
        draw.rectangle([0, 0, width - 1, height - 1], fill=255)
    return np.asarray(img, dtype=np.float32) / 255.0


def _feather(coverage: np.ndarray, radius: float) -> np.ndarray:
    # Pad with empty coverage so shapes touching the buffer edge fade there too.
    pad = int(math.ceil(radius * 3))
    padded = np.pad(coverage, pad)
    img = Image.fromarray(np.clip(np.rint(padded * 255), 0, 255).astype(np.uint8))
    blurred = np.asarray(img.filter(ImageFilter.GaussianBlur(radius)), dtype=np.float32)
    height, width = coverage.shape
    return blurred[pad:pad + height, pad:pad + width] / 255.0


def mask_coverage(
    mask: Mask,
    width: int,
    height: int,
    vector_mask: VectorMask | None = None,
    feathered: bool = True,
) -> np.ndarray | None:
    """Return (height, width) coverage in 0.0-1.0, or None for no mask."""
    if mask.shape == "none":
        return None
    if mask.shape == "custom-vector":
        if vector_mask is None:
            raise ValueError("custom-vector mask has not been decoded")
        return vector_mask.rasterize(width, height)

    if mask.shape == "circle":
        coverage = _circle_coverage(width, height)
    else:
        coverage = _rounded_rect_coverage(width, height, mask.corner_radius)
    if feathered and mask.feather > 0:
        coverage = _feather(coverage, mask.feather)
    return coverage


def apply_mask(
    layer: np.ndarray,
    mask: Mask,
    vector_mask: VectorMask | None = None,
    feathered: bool = True,
) -> np.ndarray:
    """Multiply an RGBA float layer's alpha by the mask coverage, in place.

    Returns the same layer for chaining.
    """
    height, width = layer.shape[:2]
    coverage = mask_coverage(mask, width, height, vector_mask, feathered)
    if coverage is not None:
        layer[:, :, 3] *= coverage
    return layer
