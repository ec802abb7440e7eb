"""Value objects for the timeline: clips, transition, overlays, masks, crop.

All entities are frozen dataclasses. The editor (timeline.py) replaces them
with ``dataclasses.replace`` on every edit, so a ``TimelineSnapshot`` taken
for an export can never change underneath the frame loop.

Units follow the editor conventions:
  - times in seconds (clip-local or global timeline time),
  - positions and sizes in percent of the output frame,
  - colors as (R, G, B) tuples, hex strings are accepted on construction.
"""

from dataclasses import dataclass, field

from PIL import Image

from .common import lerp, to_rgb


TRANSITION_TYPES = {"none", "crossfade", "wipe-left", "wipe-right", "wipe-up", "wipe-down"}

ANIMATION_KINDS = {
    "none", "fade",
    "slide-left", "slide-right", "slide-top", "slide-bottom", "slide-center",
}

MASK_SHAPES = {"none", "circle", "rectangle", "custom-vector"}

ADJUSTMENT_KINDS = {
    "grayscale", "sepia", "invert", "contrast", "saturate",
    "brightness", "blur", "hue-rotate",
}

MIN_CROP_SIZE = 5.0     # percent of the frame, per dimension
MAX_CLIPS = 2


# ── Clip settings ─────────────────────────────────────────────────


@dataclass(frozen=True)
class Transform:
    """Zoom and pan of the source sampling window.

    ``pan_x``/``pan_y`` offset the window center in percent of the source
    frame size; ``scale`` 2.0 samples a window half the source size.
    """

    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def __post_init__(self):
        if self.scale <= 0:
            raise ValueError(f"Transform scale must be > 0, got {self.scale}")

    def interpolate(self, other: "Transform", t: float) -> "Transform":
        return Transform(
            scale=lerp(self.scale, other.scale, t),
            pan_x=lerp(self.pan_x, other.pan_x, t),
            pan_y=lerp(self.pan_y, other.pan_y, t),
        )


@dataclass(frozen=True)
class ChromaKey:
    enabled: bool = False
    color: tuple[int, int, int] = (0, 255, 0)
    similarity: float = 0.15

    def __post_init__(self):
        object.__setattr__(self, "color", to_rgb(self.color))
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError(
                f"Chroma key similarity must be in [0, 1], got {self.similarity}"
            )


@dataclass(frozen=True)
class ColorGrading:
    """Brightness/saturation in percent around 100, hue rotation in degrees."""

    brightness: float = 100.0
    saturation: float = 100.0
    hue: float = 0.0

    def __post_init__(self):
        if self.brightness < 0 or self.saturation < 0:
            raise ValueError("Color grading brightness/saturation must be >= 0")

    @property
    def is_identity(self) -> bool:
        return self.brightness == 100 and self.saturation == 100 and self.hue == 0


@dataclass(frozen=True)
class Clip:
    """One trimmed source on the timeline.

    ``source`` is the decode handle (see sources.py). It is excluded from
    equality so two snapshots of the same edit compare equal.
    """

    source: object = field(compare=False, repr=False)
    duration: float
    trim_start: float = 0.0
    trim_end: float | None = None
    start_transform: Transform = Transform()
    end_transform: Transform = Transform()
    chroma_key: ChromaKey = ChromaKey()
    color_grading: ColorGrading = ColorGrading()
    blur: float = 0.0
    is_reversed: bool = False

    def __post_init__(self):
        if self.trim_end is None:
            object.__setattr__(self, "trim_end", float(self.duration))
        if not 0 <= self.trim_start < self.trim_end <= self.duration:
            raise ValueError(
                "Clip trim must satisfy 0 <= trim_start < trim_end <= duration, "
                f"got trim_start={self.trim_start}, trim_end={self.trim_end}, "
                f"duration={self.duration}"
            )
        if self.blur < 0:
            raise ValueError(f"Clip blur must be >= 0, got {self.blur}")

    @property
    def trimmed_duration(self) -> float:
        return self.trim_end - self.trim_start

    def source_time(self, local_time: float) -> float:
        """Map clip-local time to a time in the source media."""
        if self.is_reversed:
            return self.trim_end - local_time
        return self.trim_start + local_time

    def transform_at(self, local_time: float) -> Transform:
        """Linearly interpolate start/end transforms over the trimmed duration."""
        progress = local_time / self.trimmed_duration if self.trimmed_duration > 0 else 0.0
        if self.is_reversed:
            progress = 1.0 - progress
        return self.start_transform.interpolate(self.end_transform, progress)


@dataclass(frozen=True)
class Transition:
    type: str = "none"
    duration: float = 1.0

    def __post_init__(self):
        if self.type not in TRANSITION_TYPES:
            raise ValueError(
                f"Unknown transition type '{self.type}'. Valid: {sorted(TRANSITION_TYPES)}"
            )
        if self.duration < 0:
            raise ValueError(f"Transition duration must be >= 0, got {self.duration}")


# ── Overlays ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Mask:
    """Overlay mask.

    ``corner_radius`` is percent of the shorter side (rectangle only).
    ``feather`` is in pixels and ignored for custom-vector masks.
    ``vector_data`` holds SVG markup for custom-vector masks.
    """

    shape: str = "none"
    corner_radius: float = 0.0
    feather: float = 0.0
    vector_data: str | None = None

    def __post_init__(self):
        if self.shape not in MASK_SHAPES:
            raise ValueError(f"Unknown mask shape '{self.shape}'. Valid: {sorted(MASK_SHAPES)}")
        if self.feather < 0:
            raise ValueError(f"Mask feather must be >= 0, got {self.feather}")
        if not 0 <= self.corner_radius <= 50:
            raise ValueError(
                f"Mask corner_radius must be in [0, 50], got {self.corner_radius}"
            )
        if self.shape == "custom-vector" and not self.vector_data:
            raise ValueError("custom-vector mask requires vector_data")


@dataclass(frozen=True)
class Overlay:
    """Fields shared by text and image overlays."""

    id: str
    start_time: float
    end_time: float
    top: float = 50.0
    left: float = 50.0
    z_index: int = 0
    animation_in: str = "none"
    animation_out: str = "none"
    mask: Mask = Mask()

    def __post_init__(self):
        if not self.start_time < self.end_time:
            raise ValueError(
                f"Overlay '{self.id}': start_time must be < end_time, "
                f"got {self.start_time} >= {self.end_time}"
            )
        for name in ("animation_in", "animation_out"):
            kind = getattr(self, name)
            if kind not in ANIMATION_KINDS:
                raise ValueError(
                    f"Overlay '{self.id}': unknown {name} '{kind}'. "
                    f"Valid: {sorted(ANIMATION_KINDS)}"
                )

    def is_visible(self, t: float) -> bool:
        return self.start_time <= t <= self.end_time


@dataclass(frozen=True)
class TextOverlay(Overlay):
    text: str = ""
    color: tuple[int, int, int] = (255, 255, 255)
    font_size: int = 48

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "color", to_rgb(self.color))
        if self.font_size <= 0:
            raise ValueError(f"Overlay '{self.id}': font_size must be > 0")


@dataclass(frozen=True)
class ImageOverlay(Overlay):
    """Image overlay; ``width`` is percent of frame width, height follows
    the bitmap's aspect ratio.

    ``image`` is the decoded bitmap. When it is None the asset cache decodes
    ``src`` (a file path) before export begins.
    """

    src: str | None = None
    image: Image.Image | None = field(default=None, compare=False, repr=False)
    width: float = 25.0
    chroma_key: ChromaKey = ChromaKey()

    def __post_init__(self):
        super().__post_init__()
        if self.image is None and not self.src:
            raise ValueError(f"Overlay '{self.id}': image overlay needs an image or src")
        if self.width <= 0:
            raise ValueError(f"Overlay '{self.id}': width must be > 0")


# ── Frame-level settings ──────────────────────────────────────────


@dataclass(frozen=True)
class Crop:
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0

    def __post_init__(self):
        if self.x < 0 or self.y < 0:
            raise ValueError(f"Crop origin must be >= 0, got ({self.x}, {self.y})")
        if self.width < MIN_CROP_SIZE or self.height < MIN_CROP_SIZE:
            raise ValueError(
                f"Crop width/height must be >= {MIN_CROP_SIZE}%, "
                f"got {self.width}x{self.height}"
            )
        if self.x + self.width > 100 or self.y + self.height > 100:
            raise ValueError("Crop rectangle must stay inside the frame")

    def pixel_box(self, frame_w: int, frame_h: int) -> tuple[int, int, int, int]:
        """Return the (x0, y0, x1, y1) pixel box of this crop."""
        x0 = int(round(self.x / 100 * frame_w))
        y0 = int(round(self.y / 100 * frame_h))
        x1 = min(frame_w, x0 + max(1, int(round(self.width / 100 * frame_w))))
        y1 = min(frame_h, y0 + max(1, int(round(self.height / 100 * frame_h))))
        return x0, y0, x1, y1


@dataclass(frozen=True)
class Adjustment:
    """One CSS-filter-like step: amount 1.0 == 100%, blur amount in px,
    hue-rotate amount in degrees."""

    kind: str
    amount: float

    def __post_init__(self):
        if self.kind not in ADJUSTMENT_KINDS:
            raise ValueError(
                f"Unknown adjustment '{self.kind}'. Valid: {sorted(ADJUSTMENT_KINDS)}"
            )


@dataclass(frozen=True)
class NamedFilter:
    name: str
    adjustments: tuple[Adjustment, ...] = ()


def _chain(name: str, *steps: tuple[str, float]) -> NamedFilter:
    return NamedFilter(name, tuple(Adjustment(kind, amount) for kind, amount in steps))


FILTERS = {
    f.name: f for f in (
        _chain("None"),
        _chain("Grayscale", ("grayscale", 1.0)),
        _chain("Sepia", ("sepia", 1.0)),
        _chain("Invert", ("invert", 1.0)),
        _chain("Contrast", ("contrast", 2.0)),
        _chain("Saturate", ("saturate", 8.0)),
    )
}

EFFECTS = {
    f.name: f for f in (
        _chain("None"),
        _chain("Vintage", ("sepia", 0.6), ("contrast", 1.1), ("brightness", 0.9)),
        _chain("Dreamy", ("blur", 0.5), ("saturate", 1.5), ("contrast", 1.1)),
        _chain("Noir", ("grayscale", 1.0), ("contrast", 1.5)),
        _chain("Vivid", ("saturate", 1.75), ("contrast", 1.25)),
        _chain("Lomo", ("saturate", 1.5), ("contrast", 1.5)),
    )
}


@dataclass(frozen=True)
class TimelineSnapshot:
    """Immutable read of the editor state, passed to every render call."""

    clips: tuple[Clip, ...] = ()
    transition: Transition = Transition()
    overlays: tuple[Overlay, ...] = ()
    filter: NamedFilter = FILTERS["None"]
    effect: NamedFilter = EFFECTS["None"]
    crop: Crop = Crop()
    playback_speed: float = 1.0

    def __post_init__(self):
        if len(self.clips) > MAX_CLIPS:
            raise ValueError(f"Timeline holds at most {MAX_CLIPS} clips, got {len(self.clips)}")
        if self.playback_speed <= 0:
            raise ValueError(f"Playback speed must be > 0, got {self.playback_speed}")

    @property
    def clip_a(self) -> Clip | None:
        return self.clips[0] if self.clips else None

    @property
    def clip_b(self) -> Clip | None:
        return self.clips[1] if len(self.clips) > 1 else None

    @property
    def global_adjustments(self) -> tuple[Adjustment, ...]:
        return self.filter.adjustments + self.effect.adjustments
