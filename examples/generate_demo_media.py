#!/usr/bin/env python3
"""Generate synthetic media for the reelcompose demo project.

Creates, in examples/demo-media/:
  - clip-a.mp4, clip-b.mp4: solid-color clips with a white bar sweeping
    left to right, so trims, reversal and pan/zoom are easy to see.
  - clip-a has a pure green band at the bottom for trying the chroma key.
  - logo.png: a small two-tone badge for image overlays.
  - star.svg: a five-point star for the custom-vector mask.

Usage:
    python examples/generate_demo_media.py
    # Then render:
    reelcompose export --project examples/demo-project.yaml \
        --output examples/demo-renders/demo.mp4
"""

import math
from pathlib import Path

import numpy as np
from moviepy import VideoClip
from PIL import Image, ImageDraw

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-media"
SIZE = (320, 240)
FPS = 30

CLIPS = [
    ("clip-a", (180, 60, 60), 6.0, True),    # red, green key band
    ("clip-b", (60, 60, 180), 5.0, False),   # blue
]


def _sweep_clip(color, duration, key_band):
    """Solid color with a white bar that crosses the frame once."""
    w, h = SIZE
    bar_w = w // 10

    def make_frame(t):
        frame = np.empty((h, w, 3), dtype=np.uint8)
        frame[:, :] = color
        x = int((w - bar_w) * t / duration)
        frame[:, x:x + bar_w] = 255
        if key_band:
            frame[h - h // 6:, :] = (0, 255, 0)
        return frame

    return VideoClip(make_frame, duration=duration)


def _logo(path: Path):
    img = Image.new("RGBA", (120, 60), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle([0, 0, 119, 59], radius=12, fill=(240, 200, 60, 255))
    draw.rectangle([60, 0, 119, 59], fill=(40, 40, 40, 255))
    img.save(path)


def _star(path: Path):
    points = []
    for i in range(10):
        angle = math.pi / 2 + i * math.pi / 5
        radius = 50 if i % 2 == 0 else 20
        points.append(f"{50 + radius * math.cos(angle):.1f},{50 - radius * math.sin(angle):.1f}")
    path.write_text(
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
        f'<polygon points="{" ".join(points)}"/></svg>\n'
    )


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, duration, key_band in CLIPS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue
        _sweep_clip(color, duration, key_band).write_videofile(str(out), fps=FPS, logger=None)
        print(f"  wrote {name} ({duration}s)")

    _logo(OUTPUT_DIR / "logo.png")
    _star(OUTPUT_DIR / "star.svg")
    print(f"\nDone. Demo media in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
