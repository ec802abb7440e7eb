"""Overlay asset decoding: SVG vector masks and overlay bitmaps.

Vector masks are rendered with cairosvg, so any SVG it can draw works as a
mask: paths with curves and arcs, group transforms, fill rules. Decoding
renders the mask once to reject unparseable or empty documents before the
first frame.
"""

import io
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import AssetDecodeFailure
from .masks import VectorMask
from .models import ImageOverlay, Mask, Overlay


_CHECK_WIDTH = 64


class AssetLoader:
    """Asset preload collaborator: turns raw mask/image data into handles."""

    def decode_vector_mask(self, data: str | bytes) -> VectorMask:
        if isinstance(data, str):
            data = data.encode("utf-8")
        vector = VectorMask(data)
        try:
            coverage = vector.rasterize(_CHECK_WIDTH, _CHECK_WIDTH)
        except Exception as exc:
            raise AssetDecodeFailure(f"Vector mask is not valid SVG: {exc}") from exc
        if not np.any(coverage):
            raise AssetDecodeFailure("SVG mask contains no drawable shapes")
        return vector

    def decode_image(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise AssetDecodeFailure(f"Cannot decode overlay image: {exc}") from exc
        return img.convert("RGBA")

    def load_image(self, path: str) -> Image.Image:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise AssetDecodeFailure(f"Cannot read overlay image '{path}': {exc}") from exc
        return self.decode_image(data)


class AssetCache:
    """Decoded masks and bitmaps, keyed by their source data.

    The preview decodes lazily on first use. The exporter calls
    ``preload`` so every asset is decoded before the first frame; any
    failure there aborts the export.
    """

    def __init__(self, loader: AssetLoader | None = None):
        self.loader = loader or AssetLoader()
        self._masks: dict[str, VectorMask] = {}
        self._images: dict[str, Image.Image] = {}

    def vector_mask(self, mask: Mask) -> VectorMask | None:
        if mask.shape != "custom-vector":
            return None
        key = mask.vector_data
        if key not in self._masks:
            self._masks[key] = self.loader.decode_vector_mask(key)
        return self._masks[key]

    def image(self, overlay: ImageOverlay) -> Image.Image:
        if overlay.image is not None:
            return overlay.image
        if overlay.src not in self._images:
            self._images[overlay.src] = self.loader.load_image(overlay.src)
        return self._images[overlay.src]

    def preload(self, overlays: list[Overlay]) -> None:
        """Decode every distinct asset the overlays reference.

        Raises:
            AssetDecodeFailure: The first asset that fails to decode.
        """
        for overlay in overlays:
            self.vector_mask(overlay.mask)
            if isinstance(overlay, ImageOverlay):
                self.image(overlay)

    def clear(self) -> None:
        self._masks.clear()
        self._images.clear()
