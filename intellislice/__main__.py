"""
intellislice CLI — Build 3MF slicer projects from STL meshes and settings.

Usage:
    intellislice <command> [options]
    python -m intellislice <command> [options]
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from intellislice import (
    ConversionPipeline,
    SourceError,
    decode_mesh,
    load_options,
    map_settings,
    render_settings_text,
)
from intellislice.config import default_output_dir
from intellislice.mesh import looks_like_stl
from intellislice.sources import load_settings_file, read_mesh_source

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="intellislice",
        description="Build OrcaSlicer-compatible 3MF projects from STL meshes and settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  intellislice convert benchy.stl --settings settings.json
  intellislice convert https://example.com/cube.stl --settings profile.ini -o out/
  intellislice map settings.json
  intellislice inspect benchy.stl --json

Environment variables:
  INTELLISLICE_PROFILE_NAME      Profile name in the settings header
  INTELLISLICE_INHERITS          Base profile the settings inherit from
  INTELLISLICE_OUTPUT_DIR        Default output directory (instead of ".")
  INTELLISLICE_DOWNLOAD_TIMEOUT  Mesh download timeout in seconds (default 60)
        """,
    )

    parser.add_argument(
        "--verbose", "-V", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Suppress non-error output (logging only)",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        required=True,
        metavar="<command>",
    )

    # --- convert ---
    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert an STL mesh and a settings file into a 3MF project",
    )
    convert_parser.add_argument("mesh", help="Path or http(s) URL of the STL file")
    convert_parser.add_argument(
        "--settings", "-s", type=Path, default=None,
        help="Settings file (.json, or .ini/.cfg/.config); default: no settings",
    )
    convert_parser.add_argument(
        "--output", "-o", type=Path, default=None,
        help="Output directory or .3mf file (default: $INTELLISLICE_OUTPUT_DIR or '.')",
    )
    convert_parser.add_argument(
        "--profile-name", default=None,
        help="Profile name written into the settings header",
    )
    convert_parser.add_argument(
        "--inherits", default=None,
        help="Base profile the written profile inherits from",
    )
    convert_parser.add_argument(
        "--json", action="store_true", help="Output a JSON summary"
    )
    convert_parser.set_defaults(func=run_convert)

    # --- map ---
    map_parser = subparsers.add_parser(
        "map",
        help="Print the OrcaSlicer settings text for a settings file",
    )
    map_parser.add_argument("settings", type=Path, help="Settings file (.json or .ini)")
    map_parser.add_argument(
        "--json", action="store_true", help="Output mapped pairs as JSON"
    )
    map_parser.set_defaults(func=run_map)

    # --- inspect ---
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Decode an STL file and print its triangle count and bounds",
    )
    inspect_parser.add_argument("mesh", help="Path or http(s) URL of the STL file")
    inspect_parser.add_argument(
        "--json", action="store_true", help="Output as JSON"
    )
    inspect_parser.set_defaults(func=run_inspect)

    return parser


def _make_reporter(quiet: bool):
    """Create the appropriate progress reporter."""
    from intellislice.progress import NullProgressReporter, RichProgressReporter
    return NullProgressReporter() if quiet else RichProgressReporter()


def _resolve_output(output: Path | None, filename: str) -> Path:
    target = output if output is not None else default_output_dir()
    if target.suffix.lower() == ".3mf":
        return target
    return target / filename


def _write_project(out_path: Path, data: bytes) -> None:
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(data)
    except OSError as e:
        raise SourceError(f"Cannot write project to {out_path}: {e}") from e


def run_convert(args: argparse.Namespace) -> int:
    """Execute the convert command."""
    use_json = getattr(args, "json", False)
    reporter = _make_reporter(use_json or args.quiet)

    options = load_options()
    overrides = {}
    if args.profile_name:
        overrides["profile_name"] = args.profile_name
    if args.inherits:
        overrides["inherits"] = args.inherits
    if overrides:
        options = options.model_copy(update=overrides)

    mesh_bytes, filename = read_mesh_source(args.mesh, reporter=reporter)
    if not looks_like_stl(filename):
        logger.warning("%s does not have an .stl extension, decoding anyway", filename)

    settings = load_settings_file(args.settings) if args.settings else {}

    reporter.update_status(f"Converting {filename}...")
    result = ConversionPipeline(options, reporter).run(mesh_bytes, settings, filename)

    out_path = _resolve_output(args.output, result.filename)
    _write_project(out_path, result.data)

    if use_json:
        print(json.dumps({
            "output": str(out_path),
            "size": result.size,
            "vertices": result.vertex_count,
            "triangles": result.triangle_count,
            "settings": result.settings_count,
            "mapped_keys": result.mapped_keys,
        }, indent=2))
    elif not args.quiet:
        print(f"\nProject written: {out_path}")
        print(f"  Triangles: {result.triangle_count}")
        print(f"  Settings:  {result.settings_count}")
        print(f"  Size:      {result.size / 1024:.1f} KB")

    return 0


def run_map(args: argparse.Namespace) -> int:
    """Execute the map command — print the translated settings."""
    settings = load_settings_file(args.settings)
    pairs = map_settings(settings)

    if getattr(args, "json", False):
        print(json.dumps([{"key": k, "value": v} for k, v in pairs], indent=2))
    else:
        options = load_options()
        sys.stdout.write(render_settings_text(pairs, options.profile_name, options.inherits))

    dropped = len(settings) - len(pairs)
    if dropped:
        logger.info("%d setting(s) had no OrcaSlicer mapping and were skipped", dropped)
    return 0


def run_inspect(args: argparse.Namespace) -> int:
    """Execute the inspect command."""
    data, filename = read_mesh_source(args.mesh)
    mesh = decode_mesh(data)
    low, high = mesh.bounds()
    size = mesh.size()

    if getattr(args, "json", False):
        print(json.dumps({
            "file": filename,
            "vertices": mesh.vertex_count,
            "triangles": mesh.triangle_count,
            "min": list(low),
            "max": list(high),
            "size": list(size),
        }, indent=2))
    else:
        print(f"{filename}")
        print(f"  Triangles: {mesh.triangle_count}")
        print(f"  Vertices:  {mesh.vertex_count}")
        print(f"  Size:      {size[0]:.2f} x {size[1]:.2f} x {size[2]:.2f} mm")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging
    if getattr(args, "verbose", False):
        log_level = logging.DEBUG
    elif getattr(args, "quiet", False):
        log_level = logging.ERROR
    else:
        log_level = logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 1
    except Exception as e:
        logger.error("%s", e)
        if getattr(args, "verbose", False):
            logger.debug("Traceback:", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
