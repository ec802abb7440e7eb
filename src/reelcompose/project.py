"""Project file loader: a YAML description of one two-clip timeline.

Project schema:
  video:
    fps: 30
    format: mp4                 # "mp4" or "webm"
    quality: high               # "low" or "high"
    playback_speed: 1.0
  paths:
    media: "/path/to/media"     # ${media} substitution in every path
  clips:                        # at most two, in timeline order
    - path: "${media}/a.mp4"
      trim: [0.0, 10.0]         # optional, defaults to the full source
      reversed: false
      start_transform: {scale: 1.0, pan_x: 0, pan_y: 0}
      end_transform: {scale: 1.2, pan_x: 5, pan_y: 0}
      chroma_key: {color: "#00ff00", similarity: 0.15}
      color_grading: {brightness: 100, saturation: 100, hue: 0}
      blur: 0
  transition: {type: crossfade, duration: 1.0}
  filter: Grayscale
  effect: Vintage
  crop: {x: 0, y: 0, width: 100, height: 100}
  overlays:
    - type: text                # or "image" with path, width, chroma_key
      text: "Hello"
      start: 0
      end: 3
      mask: {shape: custom-vector, path: "${media}/star.svg"}

Validation happens in two passes: ``load_project`` checks everything that
can be checked without media (enums, ranges, colors), ``build_timeline``
opens the sources and lets the value objects check trims against real
durations.
"""

from pathlib import Path

import yaml

from .common import parse_hex_color, resolve_path_vars
from .models import (
    ANIMATION_KINDS, EFFECTS, FILTERS, MASK_SHAPES, MAX_CLIPS, TRANSITION_TYPES,
    ChromaKey, ColorGrading, Crop, Mask, Transform,
)
from .sinks import BITRATES, CODECS
from .sources import VideoFileSource
from .timeline import Timeline


VALID_OVERLAY_TYPES = {"text", "image"}

# Long animation names used by the editor UI, mapped onto the kinds the
# animator understands. Direction is taken from the in/out slot.
ANIMATION_ALIASES = {
    "fade-in": "fade",
    "fade-out": "fade",
    **{
        f"slide-{way}-{side}": f"slide-{side}"
        for way in ("in", "out")
        for side in ("left", "right", "top", "bottom", "center")
    },
}


def normalize_animation(name: str | None, where: str) -> str:
    if name is None:
        return "none"
    kind = ANIMATION_ALIASES.get(name, name)
    if kind not in ANIMATION_KINDS:
        raise ValueError(
            f"{where}: unknown animation '{name}'. Valid: {sorted(ANIMATION_KINDS)}"
        )
    return kind


# ── Section parsers ───────────────────────────────────────────────


def _number(value, where: str, minimum: float | None = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{where} must be a number, got {value!r}")
    if minimum is not None and value < minimum:
        raise ValueError(f"{where} must be >= {minimum}, got {value!r}")
    return float(value)


def _parse_chroma_key(raw: dict, where: str) -> dict:
    chroma = dict(raw)
    chroma["color"] = parse_hex_color(chroma.get("color", "#00ff00"))
    chroma["similarity"] = _number(chroma.get("similarity", 0.15), f"{where}.similarity", 0)
    if chroma["similarity"] > 1:
        raise ValueError(f"{where}.similarity must be <= 1, got {chroma['similarity']}")
    chroma.setdefault("enabled", True)
    return chroma


def _parse_mask(raw: dict, paths: dict, where: str) -> dict:
    mask = dict(raw)
    shape = mask.get("shape", "none")
    if shape not in MASK_SHAPES:
        raise ValueError(f"{where}: invalid mask shape '{shape}'. Valid: {sorted(MASK_SHAPES)}")
    if shape == "custom-vector" and "path" not in mask and "vector_data" not in mask:
        raise ValueError(f"{where}: custom-vector mask needs 'path' or 'vector_data'")
    if "path" in mask:
        mask["path"] = resolve_path_vars(mask["path"], paths)
    return mask


def _parse_clip(raw: dict, paths: dict, i: int) -> dict:
    where = f"Clip {i}"
    if "path" not in raw:
        raise ValueError(f"{where}: missing required field 'path'")
    clip = dict(raw)
    clip["path"] = resolve_path_vars(clip["path"], paths)

    if "trim" in clip:
        trim = clip["trim"]
        if not isinstance(trim, (list, tuple)) or len(trim) != 2:
            raise ValueError(f"{where}: trim must be [start, end], got {trim!r}")
        start = _number(trim[0], f"{where}: trim start", 0)
        end = _number(trim[1], f"{where}: trim end")
        if not start < end:
            raise ValueError(f"{where}: trim_start must be < trim_end, got {start} >= {end}")
        clip["trim"] = (start, end)

    for key in ("start_transform", "end_transform"):
        if key in clip:
            transform = clip[key]
            if "scale" in transform:
                _number(transform["scale"], f"{where}: {key}.scale")
                if transform["scale"] <= 0:
                    raise ValueError(f"{where}: {key}.scale must be > 0")

    if "chroma_key" in clip:
        clip["chroma_key"] = _parse_chroma_key(clip["chroma_key"], f"{where}: chroma_key")
    if "blur" in clip:
        clip["blur"] = _number(clip["blur"], f"{where}: blur", 0)
    return clip


def _parse_overlay(raw: dict, paths: dict, i: int) -> dict:
    where = f"Overlay {i}"
    overlay = dict(raw)
    kind = overlay.get("type")
    if kind not in VALID_OVERLAY_TYPES:
        raise ValueError(
            f"{where}: invalid type '{kind}'. Valid: {sorted(VALID_OVERLAY_TYPES)}"
        )
    for key in ("start", "end"):
        if key not in overlay:
            raise ValueError(f"{where}: missing required field '{key}'")
        overlay[key] = _number(overlay[key], f"{where}: {key}", 0)
    if not overlay["start"] < overlay["end"]:
        raise ValueError(
            f"{where}: start must be < end, got {overlay['start']} >= {overlay['end']}"
        )

    if kind == "text":
        if "text" not in overlay:
            raise ValueError(f"{where}: text overlay requires 'text'")
        if "color" in overlay:
            overlay["color"] = parse_hex_color(overlay["color"])
    else:
        if "path" not in overlay:
            raise ValueError(f"{where}: image overlay requires 'path'")
        overlay["path"] = resolve_path_vars(overlay["path"], paths)
        if "chroma_key" in overlay:
            overlay["chroma_key"] = _parse_chroma_key(overlay["chroma_key"], f"{where}: chroma_key")

    overlay["animation_in"] = normalize_animation(overlay.get("animation_in"), where)
    overlay["animation_out"] = normalize_animation(overlay.get("animation_out"), where)
    if "mask" in overlay:
        overlay["mask"] = _parse_mask(overlay["mask"], paths, where)
    return overlay


# ── Project loading ───────────────────────────────────────────────


def load_project(project_path: str | Path) -> dict:
    """Load, validate, and normalize a timeline project file.

    Processing pipeline:
      1. Parse YAML.
      2. Apply video defaults and validate format, quality, fps and speed.
      3. Resolve ${path} variables in clip, overlay and mask paths.
      4. Parse hex colors to RGB tuples and normalize animation names.
      5. Validate transition, filter, effect and crop.

    Args:
        project_path: Path to the YAML project file.

    Returns:
        Normalized config dict ready for ``build_timeline``.

    Raises:
        ValueError: Missing/invalid fields.
        FileNotFoundError: Missing project file.
    """
    with open(project_path) as f:
        raw = yaml.safe_load(f) or {}

    video = {"fps": 30, "format": "mp4", "quality": "high", "playback_speed": 1.0}
    video.update(raw.get("video") or {})
    _number(video["fps"], "video.fps")
    if video["fps"] <= 0:
        raise ValueError(f"video.fps must be > 0, got {video['fps']}")
    _number(video["playback_speed"], "video.playback_speed")
    if video["playback_speed"] <= 0:
        raise ValueError(f"video.playback_speed must be > 0, got {video['playback_speed']}")
    if video["format"] not in CODECS:
        raise ValueError(f"Invalid video.format '{video['format']}'. Valid: {sorted(CODECS)}")
    if video["quality"] not in BITRATES:
        raise ValueError(
            f"Invalid video.quality '{video['quality']}'. Valid: {sorted(BITRATES)}"
        )
    config = {"video": video}

    paths = raw.get("paths", {})

    raw_clips = raw.get("clips") or []
    if len(raw_clips) > MAX_CLIPS:
        raise ValueError(f"Project holds at most {MAX_CLIPS} clips, got {len(raw_clips)}")
    config["clips"] = [_parse_clip(c, paths, i) for i, c in enumerate(raw_clips)]

    transition = {"type": "none", "duration": 1.0}
    transition.update(raw.get("transition") or {})
    if transition["type"] not in TRANSITION_TYPES:
        raise ValueError(
            f"Invalid transition.type '{transition['type']}'. "
            f"Valid: {sorted(TRANSITION_TYPES)}"
        )
    _number(transition["duration"], "transition.duration", 0)
    config["transition"] = transition

    config["filter"] = raw.get("filter", "None")
    if config["filter"] not in FILTERS:
        raise ValueError(f"Unknown filter '{config['filter']}'. Valid: {sorted(FILTERS)}")
    config["effect"] = raw.get("effect", "None")
    if config["effect"] not in EFFECTS:
        raise ValueError(f"Unknown effect '{config['effect']}'. Valid: {sorted(EFFECTS)}")

    # Crop is validated by constructing it.
    config["crop"] = Crop(**(raw.get("crop") or {}))

    config["overlays"] = [
        _parse_overlay(o, paths, i) for i, o in enumerate(raw.get("overlays") or [])
    ]
    return config


def validate_paths(config: dict) -> None:
    """Check that every clip, image and mask file exists on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    referenced = [clip["path"] for clip in config["clips"]]
    for overlay in config["overlays"]:
        if overlay["type"] == "image":
            referenced.append(overlay["path"])
        if "path" in overlay.get("mask", {}):
            referenced.append(overlay["mask"]["path"])

    missing = [p for p in referenced if not Path(p).exists()]
    if missing:
        msg = f"Missing {len(missing)} media file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)


# ── Timeline construction ─────────────────────────────────────────


def _build_mask(raw: dict | None) -> Mask:
    if not raw:
        return Mask()
    vector_data = raw.get("vector_data")
    if "path" in raw:
        vector_data = Path(raw["path"]).read_text()
    return Mask(
        shape=raw.get("shape", "none"),
        corner_radius=raw.get("corner_radius", 0.0),
        feather=raw.get("feather", 0.0),
        vector_data=vector_data,
    )


def _clip_settings(clip: dict) -> dict:
    settings = {"is_reversed": bool(clip.get("reversed", False))}
    if "trim" in clip:
        settings["trim_start"], settings["trim_end"] = clip["trim"]
    for key in ("start_transform", "end_transform"):
        if key in clip:
            settings[key] = Transform(**clip[key])
    if "chroma_key" in clip:
        settings["chroma_key"] = ChromaKey(**clip["chroma_key"])
    if "color_grading" in clip:
        settings["color_grading"] = ColorGrading(**clip["color_grading"])
    if "blur" in clip:
        settings["blur"] = clip["blur"]
    return settings


_OVERLAY_COMMON = ("top", "left", "z_index", "animation_in", "animation_out")


def build_timeline(config: dict, open_source=VideoFileSource) -> Timeline:
    """Open the project's sources and assemble an editor Timeline.

    Any failure closes the sources opened so far.

    Args:
        config: Output of ``load_project``.
        open_source: Callable taking a clip path and returning a frame
            source. Tests pass a factory for synthetic sources.

    Raises:
        ValueError: A trim falls outside its source's duration, or an
            overlay or mask field is out of range.
    """
    timeline = Timeline()
    try:
        for clip in config["clips"]:
            source = open_source(clip["path"])
            try:
                timeline.add_clip(source, **_clip_settings(clip))
            except ValueError:
                source.close()
                raise

        transition = config["transition"]
        timeline.set_transition(transition["type"], transition["duration"])
        timeline.set_filter(config["filter"])
        timeline.set_effect(config["effect"])
        timeline.set_crop(config["crop"])
        timeline.set_playback_speed(config["video"]["playback_speed"])

        for overlay in config["overlays"]:
            _add_overlay(timeline, overlay)
    except Exception:
        timeline.close()
        raise
    return timeline


def _add_overlay(timeline: Timeline, overlay: dict) -> None:
    fields = {k: overlay[k] for k in _OVERLAY_COMMON if k in overlay}
    fields["mask"] = _build_mask(overlay.get("mask"))
    if overlay["type"] == "text":
        for key in ("color", "font_size"):
            if key in overlay:
                fields[key] = overlay[key]
        timeline.add_text_overlay(
            overlay["text"], start_time=overlay["start"], end_time=overlay["end"], **fields,
        )
    else:
        if "width" in overlay:
            fields["width"] = overlay["width"]
        if "chroma_key" in overlay:
            fields["chroma_key"] = ChromaKey(**overlay["chroma_key"])
        timeline.add_image_overlay(
            src=overlay["path"], start_time=overlay["start"], end_time=overlay["end"],
            **fields,
        )
