"""CLI for stills: render single preview frames of a project to PNG.

Frames go through the preview path (masks feathered, no crop), which makes
this the quickest way to check overlay placement and animation timing
without encoding a video.

Usage:
    python -m reelcompose.still_cli \
        --project project.yaml \
        --time 2.5 --time 9.0 \
        --output stills/
"""

import argparse
from pathlib import Path

from PIL import Image

from .preview import PreviewPlayer
from .project import build_timeline, load_project, validate_paths


def render_stills(project_path: str, times: list[float], output_dir: str,
                  open_source=None) -> list[Path]:
    """Render one PNG per timeline time into ``output_dir``.

    Times past the end of the timeline are clamped to the last frame.

    Returns:
        Paths of the written PNG files, in the order of ``times``.
    """
    config = load_project(project_path)
    validate_paths(config)
    kwargs = {} if open_source is None else {"open_source": open_source}
    timeline = build_timeline(config, **kwargs)

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    try:
        player = PreviewPlayer(timeline)
        for t in times:
            player.seek(t)
            frame = player.render()
            if frame is None:
                print("Timeline has no clips, nothing to render.")
                break
            path = out / f"still_{player.current_time:08.3f}.png"
            Image.fromarray(frame).save(path)
            print(f"  t={player.current_time:.3f}s -> {path}")
            written.append(path)
    finally:
        timeline.close()
    return written


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Still CLI — render preview frames of a timeline project to PNG.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to YAML project file",
    )
    parser.add_argument(
        "--time", type=float, action="append", required=True,
        help="Timeline time in seconds (repeatable)",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output directory for PNG files",
    )
    args = parser.parse_args(args)

    written = render_stills(args.project, args.time, args.output)
    print(f"\nDone: {len(written)} still(s) in {args.output}")


if __name__ == "__main__":
    main()
