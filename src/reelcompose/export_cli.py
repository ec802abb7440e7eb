"""CLI for export: render a project timeline to mp4 or webm.

Frames are composited in Python and streamed into ffmpeg. The output is
written to ``<output>.partial`` and only renamed into place once the
encoder finishes, so an interrupted run never leaves a half-written file
under the final name.

Usage:
    python -m reelcompose.export_cli \
        --project project.yaml \
        --output final.mp4
"""

import argparse
import time

from .export import ExportConfig, Exporter, run_export
from .project import build_timeline, load_project, validate_paths


def _progress_printer(every: float = 0.05):
    """Print a progress line each time another ``every`` of the run is done."""
    state = {"next": 0.0}

    def _print(event):
        if event.progress >= state["next"]:
            print(
                f"  {event.progress * 100:5.1f}%  frame {event.frame_index:>6}"
                f"  t={event.time:.2f}s",
                flush=True,
            )
            state["next"] = event.progress + every

    return _print


def export_project(project_path: str, output_path: str, fmt: str | None = None,
                   quality: str | None = None, fps: float | None = None,
                   mask_parity: bool = False, open_source=None):
    """Load a project, validate its media and run one export.

    Args:
        project_path: Path to the YAML project file.
        output_path: Final video path.
        fmt, quality, fps: Override the project's video settings.
        mask_parity: Export feathered masks exactly like the preview.
        open_source: Source factory override (see ``build_timeline``).

    Returns:
        The terminal ExportResult.
    """
    config = load_project(project_path)
    validate_paths(config)
    video = config["video"]

    export_config = ExportConfig(
        output_path=output_path,
        fmt=fmt or video["format"],
        quality=quality or video["quality"],
        fps=fps or video["fps"],
        mask_parity=mask_parity,
    )

    kwargs = {} if open_source is None else {"open_source": open_source}
    timeline = build_timeline(config, **kwargs)
    try:
        snapshot = timeline.snapshot()
        print(
            f"START export: {len(snapshot.clips)} clip(s), {len(snapshot.overlays)} overlay(s), "
            f"{timeline.total_duration:.2f}s @ {export_config.fps} fps "
            f"-> {output_path} ({export_config.fmt}/{export_config.quality})",
            flush=True,
        )
        started = time.monotonic()
        result = run_export(
            Exporter(snapshot), export_config, on_progress=_progress_printer(),
        )
        elapsed = time.monotonic() - started
    finally:
        timeline.close()

    if result.ok:
        print(f"DONE: {output_path} ({result.frames} frames, {elapsed:.1f}s)", flush=True)
    else:
        print(f"{result.status.upper()}: {result.reason or 'no output written'}", flush=True)
    return result


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export CLI — render a two-clip timeline project to video.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to YAML project file",
    )
    parser.add_argument(
        "--output",
        help="Output video path (required unless --validate)",
    )
    parser.add_argument(
        "--format", choices=["mp4", "webm"],
        help="Container/codec (default: project video.format)",
    )
    parser.add_argument(
        "--quality", choices=["low", "high"],
        help="Bitrate preset (default: project video.quality)",
    )
    parser.add_argument(
        "--fps", type=float,
        help="Export frame rate (default: project video.fps)",
    )
    parser.add_argument(
        "--mask-parity", action="store_true",
        help="Render feathered masks in the export exactly like the preview",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate project only — check paths, don't render",
    )
    args = parser.parse_args(args)

    if args.validate:
        config = load_project(args.project)
        validate_paths(config)
        print(
            f"Project valid: {len(config['clips'])} clip(s), "
            f"{len(config['overlays'])} overlay(s)"
        )
        for i, clip in enumerate(config["clips"]):
            trim = clip.get("trim")
            span = f"[{trim[0]}s, {trim[1]}s]" if trim else "full"
            print(f"  clip {i}: {clip['path']} {span}")
        transition = config["transition"]
        print(f"  transition: {transition['type']} ({transition['duration']}s)")
        print("All paths verified.")
        return

    if not args.output:
        parser.error("--output is required (unless using --validate)")

    result = export_project(
        args.project, args.output,
        fmt=args.format, quality=args.quality, fps=args.fps,
        mask_parity=args.mask_parity,
    )
    if not result.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
