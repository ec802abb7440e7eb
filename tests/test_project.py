"""Tests for the YAML project loader."""

import textwrap

import pytest
from PIL import Image

from conftest import RED, still

from reelcompose.models import Crop, ImageOverlay, TextOverlay
from reelcompose.project import (
    build_timeline,
    load_project,
    normalize_animation,
    validate_paths,
)


def _write(tmp_path, body, name="project.yaml"):
    path = tmp_path / name
    path.write_text(textwrap.dedent(body))
    return path


def _open_still(path):
    return still(RED, duration=10.0, name=str(path))


FULL_PROJECT = """\
    video:
      fps: 24
      format: webm
      quality: low
      playback_speed: 1.5
    paths:
      media: {media}
    clips:
      - path: ${{media}}/a.mp4
        trim: [1.0, 9.0]
        start_transform: {{scale: 1.0}}
        end_transform: {{scale: 1.5, pan_x: 10}}
        chroma_key: {{color: "#00ff00", similarity: 0.2}}
        color_grading: {{brightness: 120, saturation: 80, hue: 30}}
        blur: 2
      - path: ${{media}}/b.mp4
        reversed: true
    transition: {{type: wipe-left, duration: 2.0}}
    filter: Sepia
    effect: Lomo
    crop: {{x: 10, y: 10, width: 80, height: 80}}
    overlays:
      - type: text
        text: Hello
        start: 0
        end: 3
        color: "#ff0000"
        font_size: 32
        animation_in: fade-in
        animation_out: slide-out-left
        mask: {{shape: rectangle, corner_radius: 20, feather: 4}}
      - type: image
        path: ${{media}}/logo.png
        start: 1
        end: 6
        width: 30
        top: 20
        left: 80
        chroma_key: {{color: "#0000ff"}}
        mask: {{shape: custom-vector, path: "${{media}}/star.svg"}}
"""


@pytest.fixture
def media(tmp_path):
    root = tmp_path / "media"
    root.mkdir()
    (root / "a.mp4").write_bytes(b"")
    (root / "b.mp4").write_bytes(b"")
    Image.new("RGBA", (8, 4), (0, 0, 255, 255)).save(root / "logo.png")
    (root / "star.svg").write_text(
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">'
        '<polygon points="5,0 10,10 0,10"/></svg>'
    )
    return root


@pytest.fixture
def full_project(tmp_path, media):
    return _write(tmp_path, FULL_PROJECT.format(media=media))


class TestLoadProject:
    def test_full_project(self, full_project, media):
        config = load_project(full_project)
        assert config["video"]["fps"] == 24
        assert config["clips"][0]["path"] == f"{media}/a.mp4"
        assert config["clips"][0]["trim"] == (1.0, 9.0)
        assert config["clips"][0]["chroma_key"]["color"] == (0, 255, 0)
        assert config["crop"] == Crop(x=10, y=10, width=80, height=80)
        text, image = config["overlays"]
        assert text["color"] == (255, 0, 0)
        assert text["animation_in"] == "fade"
        assert text["animation_out"] == "slide-left"
        assert image["mask"]["path"] == f"{media}/star.svg"

    def test_defaults(self, tmp_path):
        config = load_project(_write(tmp_path, "clips: []\n"))
        assert config["video"] == {"fps": 30, "format": "mp4", "quality": "high", "playback_speed": 1.0}
        assert config["transition"] == {"type": "none", "duration": 1.0}
        assert config["filter"] == "None"
        assert config["overlays"] == []

    def test_too_many_clips(self, tmp_path):
        body = "clips:\n" + "".join(f"  - path: c{i}.mp4\n" for i in range(3))
        with pytest.raises(ValueError, match="at most 2 clips"):
            load_project(_write(tmp_path, body))

    def test_clip_requires_path(self, tmp_path):
        with pytest.raises(ValueError, match="Clip 0: missing required field 'path'"):
            load_project(_write(tmp_path, "clips:\n  - trim: [0, 1]\n"))

    def test_bad_trim(self, tmp_path):
        with pytest.raises(ValueError, match="trim_start must be < trim_end"):
            load_project(_write(tmp_path, "clips:\n  - path: a.mp4\n    trim: [3, 1]\n"))

    def test_bad_transition_type(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid transition.type"):
            load_project(_write(tmp_path, "transition: {type: dissolve}\n"))

    def test_bad_format(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid video.format"):
            load_project(_write(tmp_path, "video: {format: avi}\n"))

    def test_bad_filter(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown filter"):
            load_project(_write(tmp_path, "filter: Blurry\n"))

    def test_bad_crop(self, tmp_path):
        with pytest.raises(ValueError, match="Crop"):
            load_project(_write(tmp_path, "crop: {width: 2}\n"))

    def test_overlay_window(self, tmp_path):
        body = "overlays:\n  - {type: text, text: hi, start: 3, end: 2}\n"
        with pytest.raises(ValueError, match="Overlay 0: start must be < end"):
            load_project(_write(tmp_path, body))

    def test_overlay_type(self, tmp_path):
        body = "overlays:\n  - {type: video, start: 0, end: 2}\n"
        with pytest.raises(ValueError, match="invalid type 'video'"):
            load_project(_write(tmp_path, body))

    def test_custom_vector_needs_source(self, tmp_path):
        body = (
            "overlays:\n"
            "  - {type: text, text: hi, start: 0, end: 2, mask: {shape: custom-vector}}\n"
        )
        with pytest.raises(ValueError, match="custom-vector mask needs"):
            load_project(_write(tmp_path, body))


class TestNormalizeAnimation:
    @pytest.mark.parametrize("name,kind", [
        (None, "none"),
        ("fade", "fade"),
        ("fade-out", "fade"),
        ("slide-in-center", "slide-center"),
        ("slide-out-bottom", "slide-bottom"),
    ])
    def test_aliases(self, name, kind):
        assert normalize_animation(name, "Overlay 0") == kind

    def test_unknown(self):
        with pytest.raises(ValueError, match="Overlay 0: unknown animation 'spin'"):
            normalize_animation("spin", "Overlay 0")


class TestValidatePaths:
    def test_all_present(self, full_project):
        validate_paths(load_project(full_project))

    def test_lists_every_missing_file(self, full_project, media):
        (media / "b.mp4").unlink()
        (media / "star.svg").unlink()
        with pytest.raises(FileNotFoundError, match="Missing 2 media file") as exc_info:
            validate_paths(load_project(full_project))
        assert "b.mp4" in str(exc_info.value)
        assert "star.svg" in str(exc_info.value)


class TestBuildTimeline:
    def test_full_project(self, full_project):
        timeline = build_timeline(load_project(full_project), open_source=_open_still)
        a, b = timeline.clips
        assert (a.trim_start, a.trim_end) == (1.0, 9.0)
        assert a.end_transform.scale == 1.5
        assert a.chroma_key.enabled
        assert a.chroma_key.similarity == 0.2
        assert a.color_grading.hue == 30
        assert a.blur == 2
        assert b.is_reversed
        assert timeline.transition.type == "wipe-left"
        assert timeline.filter.name == "Sepia"
        assert timeline.effect.name == "Lomo"
        assert timeline.playback_speed == 1.5
        assert timeline.total_duration == pytest.approx(8.0 + 10.0 - 2.0)

    def test_overlays(self, full_project):
        timeline = build_timeline(load_project(full_project), open_source=_open_still)
        text, image = timeline.overlays
        assert isinstance(text, TextOverlay)
        assert text.font_size == 32
        assert text.mask.corner_radius == 20
        assert isinstance(image, ImageOverlay)
        assert image.src.endswith("logo.png")
        assert image.chroma_key.color == (0, 0, 255)
        assert "<polygon" in image.mask.vector_data
        assert image.z_index > text.z_index

    def test_trim_past_source_closes_sources(self, tmp_path):
        opened, closed = [], []

        def open_short(path):
            source = still(RED, duration=2.0, name=path)
            source.close = lambda: closed.append(path)
            opened.append(path)
            return source

        body = "clips:\n  - path: a.mp4\n  - path: b.mp4\n    trim: [0, 5]\n"
        with pytest.raises(ValueError, match="trim"):
            build_timeline(load_project(_write(tmp_path, body)), open_source=open_short)
        assert sorted(closed) == sorted(opened) == ["a.mp4", "b.mp4"]

    def test_bad_overlay_closes_sources(self, tmp_path):
        closed = []

        def open_tracked(path):
            source = still(RED, duration=4.0, name=path)
            source.close = lambda: closed.append(path)
            return source

        body = (
            "clips:\n  - path: a.mp4\n  - path: b.mp4\n"
            "overlays:\n"
            "  - {type: text, text: hi, start: 0, end: 2,"
            " mask: {shape: rectangle, corner_radius: 80}}\n"
        )
        with pytest.raises(ValueError, match="corner_radius"):
            build_timeline(load_project(_write(tmp_path, body)), open_source=open_tracked)
        assert sorted(closed) == ["a.mp4", "b.mp4"]
