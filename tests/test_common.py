"""Tests for reelcompose.common utilities."""

import numpy as np
import pytest

from reelcompose.common import (
    clamp,
    composite_layer,
    lerp,
    load_font,
    parse_hex_color,
    resolve_path_vars,
    to_rgb,
    to_rgba_float,
    to_uint8,
)


def _layer(color, alpha=255.0, size=(4, 4)):
    w, h = size
    layer = np.zeros((h, w, 4), dtype=np.float32)
    layer[:, :, :3] = color
    layer[:, :, 3] = alpha
    return layer


class TestParseHexColor:
    def test_with_hash(self):
        assert parse_hex_color("#e04c77") == (224, 76, 119)

    def test_without_hash(self):
        assert parse_hex_color("1A1A1A") == (26, 26, 26)

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="Invalid hex color"):
            parse_hex_color("#12345")


class TestToRgb:
    def test_hex_string(self):
        assert to_rgb("#00ff00") == (0, 255, 0)

    def test_sequence(self):
        assert to_rgb([10, 20, 30]) == (10, 20, 30)

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError, match="Invalid RGB color"):
            to_rgb((0, 0, 256))


class TestResolvePathVars:
    def test_single_var(self):
        result = resolve_path_vars("${media}/a.mp4", {"media": "/data/media"})
        assert result == "/data/media/a.mp4"

    def test_no_vars(self):
        assert resolve_path_vars("/plain/path", {}) == "/plain/path"

    def test_unknown_var_raises(self):
        with pytest.raises(ValueError, match="Unknown path variable"):
            resolve_path_vars("${missing}/x", {})


class TestLoadFont:
    def test_returns_font_object(self):
        font = load_font(size=24)
        left, top, right, bottom = font.getbbox("Hello")
        assert right > left


class TestInterpolation:
    def test_lerp(self):
        assert lerp(1.0, 2.0, 0.25) == pytest.approx(1.25)

    def test_clamp(self):
        assert clamp(1.5) == 1.0
        assert clamp(-0.5) == 0.0
        assert clamp(5, 0, 10) == 5


class TestCompositeLayer:
    def test_opaque_layer_replaces_canvas(self):
        canvas = np.zeros((4, 4, 3), dtype=np.float32)
        composite_layer(canvas, _layer((255, 0, 0)))
        assert np.all(canvas[:, :, 0] == 255)
        assert np.all(canvas[:, :, 1:] == 0)

    def test_transparent_layer_leaves_canvas(self):
        canvas = np.full((4, 4, 3), 100.0, dtype=np.float32)
        composite_layer(canvas, _layer((255, 0, 0), alpha=0.0))
        assert np.all(canvas == 100.0)

    def test_opacity_blends(self):
        canvas = np.zeros((4, 4, 3), dtype=np.float32)
        composite_layer(canvas, _layer((200, 0, 0)), opacity=0.5)
        assert canvas[0, 0, 0] == pytest.approx(100.0)

    def test_offset_layer_is_clipped_to_canvas(self):
        canvas = np.zeros((4, 4, 3), dtype=np.float32)
        composite_layer(canvas, _layer((255, 255, 255)), x=2, y=-2)
        # Only the top-right 2x2 region is covered.
        assert np.all(canvas[:2, 2:] == 255)
        assert np.all(canvas[:2, :2] == 0)
        assert np.all(canvas[2:] == 0)

    def test_fully_outside_is_noop(self):
        canvas = np.zeros((4, 4, 3), dtype=np.float32)
        composite_layer(canvas, _layer((255, 255, 255)), x=10, y=10)
        assert np.all(canvas == 0)

    def test_clip_rect_restricts_drawing(self):
        canvas = np.zeros((4, 4, 3), dtype=np.float32)
        composite_layer(canvas, _layer((255, 255, 255)), clip_rect=(0, 0, 1, 4))
        assert np.all(canvas[:, 0] == 255)
        assert np.all(canvas[:, 1:] == 0)


class TestConversions:
    def test_to_uint8_rounds_and_clips(self):
        out = to_uint8(np.array([[-5.0, 127.5, 300.0]], dtype=np.float32))
        assert out.dtype == np.uint8
        assert out.tolist() == [[0, 128, 255]]

    def test_to_rgba_float_adds_opaque_alpha(self):
        frame = np.zeros((2, 3, 3), dtype=np.uint8)
        layer = to_rgba_float(frame)
        assert layer.shape == (2, 3, 4)
        assert layer.dtype == np.float32
        assert np.all(layer[:, :, 3] == 255)

    def test_to_rgba_float_rejects_gray(self):
        with pytest.raises(ValueError, match="Expected an"):
            to_rgba_float(np.zeros((2, 2), dtype=np.uint8))
