"""Command-line interface for Color Separator."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from CS_Libs.ImageEditingLib.export_ops import save_color_report, save_layers, save_reconstructed
from CS_Libs.ImageEditingLib.image_io import ExportSettings
from CS_Libs.SessionLib.editor_session import EditorSession, EditorSettings
from CS_Libs.constants import (
    DEFAULT_EXPORT_SCALE,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_COLORS,
    DEFAULT_SAMPLE_STEP,
    DEFAULT_TOLERANCE,
)

logger = logging.getLogger("color_separator")


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Input image file path")
    parser.add_argument(
        "-o",
        "--output-dir",
        default=".",
        help="Directory for the exported files (default: current directory)",
    )
    parser.add_argument(
        "-c",
        "--colors",
        type=int,
        default=DEFAULT_MAX_COLORS,
        help=f"Maximum number of color layers (default: {DEFAULT_MAX_COLORS})",
    )
    parser.add_argument(
        "--sample-step",
        type=int,
        default=DEFAULT_SAMPLE_STEP,
        help=f"Pixel stride for dominant color sampling (default: {DEFAULT_SAMPLE_STEP})",
    )
    parser.add_argument(
        "-t",
        "--tolerance",
        type=float,
        default=DEFAULT_TOLERANCE,
        help=f"Color match tolerance 0-100 for every layer (default: {DEFAULT_TOLERANCE})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug logging")


def _add_image_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["png", "jpeg"],
        default="png",
        help="Output image format (default: png)",
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=DEFAULT_EXPORT_SCALE,
        help=f"Export scale in percent (default: {DEFAULT_EXPORT_SCALE})",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=DEFAULT_JPEG_QUALITY,
        help=f"JPEG quality 1-100 (default: {DEFAULT_JPEG_QUALITY})",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="color-separator",
        description="Split an image into color layers, recombine them or report color coverage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One PNG per dominant color
  color-separator split poster.png -o layers/

  # Recombine layers 1 and 3 (numbers as printed by split)
  color-separator reconstruct poster.png --layers 1,3 -o out/

  # CSV coverage report
  color-separator report poster.png --colors 8
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    split = subparsers.add_parser("split", help="Export every color layer as its own image")
    _add_common_arguments(split)
    _add_image_arguments(split)

    reconstruct = subparsers.add_parser("reconstruct", help="Export a composite of chosen layers")
    _add_common_arguments(reconstruct)
    _add_image_arguments(reconstruct)
    reconstruct.add_argument(
        "-l",
        "--layers",
        default=None,
        help="Comma separated layer numbers starting at 1 (default: all layers)",
    )

    report = subparsers.add_parser("report", help="Write the CSV color coverage report")
    _add_common_arguments(report)

    return parser


def parse_layer_numbers(value: str, layer_count: int) -> List[int]:
    """
    Parse "1,3,4" into zero-based indices.

    Raises:
        ValueError: For non-numeric entries or numbers outside 1..layer_count
    """
    indices = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        number = int(part)
        if not (1 <= number <= layer_count):
            raise ValueError(f"Layer number {number} is out of range 1-{layer_count}")
        indices.append(number - 1)
    return indices


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    output_dir = Path(parsed.output_dir)
    try:
        settings = EditorSettings(
            max_colors=parsed.colors,
            sample_step=parsed.sample_step,
            default_tolerance=parsed.tolerance,
        )
        session = EditorSession(settings)
        layers = session.load_file(parsed.input)
        print(f"Processing: {parsed.input}")
        print(f"  Layers: {len(layers)}")
        for number, layer in enumerate(layers, start=1):
            print(f"  {number}: {layer.display_name}")

        if parsed.command == "report":
            path = save_color_report(session.image, session.layers.layers, output_dir)
            print(f"  Report saved: {path}")
            return 0

        export_settings = ExportSettings(
            save_format=parsed.format,
            quality=parsed.quality,
            scale=parsed.scale,
        )

        if parsed.command == "split":
            paths = save_layers(session.image, session.layers.layers, output_dir, export_settings)
            print(f"  Saved {len(paths)} layer files to {output_dir}")
            return 0

        if parsed.layers is None:
            ids = session.layers.ids
        else:
            ids = [layers[i].id for i in parse_layer_numbers(parsed.layers, len(layers))]
        path = save_reconstructed(session.image, session.layers.layers, ids, output_dir, export_settings)
        if path is None:
            print("  No layers selected, nothing to reconstruct")
            return 0
        print(f"  Reconstructed image saved: {path}")
        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, OSError) as e:
        print(f"Error processing image: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
