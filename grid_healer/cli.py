#!/usr/bin/env python3
"""Command-line interface for grid removal healing."""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from . import __version__
from .config import GridRemovalConfig
from .image_utils import load_image, save_image
from .pipeline import export_regions, remove_grid_and_heal


def print_banner():
    """Print application banner."""
    print("""
╔═══════════════════════════════════════════════════════════╗
║          GRID-HEAL v{version}                              ║
║     Reconnect curves cut by grid line removal             ║
╚═══════════════════════════════════════════════════════════╝
""".format(version=__version__))


def print_summary(result, output_path, regions_path=None):
    """Print healing summary."""
    print("\n" + "="*60)
    print("HEALING SUMMARY")
    print("="*60)
    print(f"  Pixels erased: {result.pixels_erased}")
    print(f"  Regions found: {result.regions}")
    print(f"  Lines drawn:   {result.lines_drawn}")

    table = result.healer.region_table()
    if len(table):
        print(f"  Largest region: {int(table['size'].max())} pixels")

    print(f"\n✓ Healing complete!")
    print(f"  Output: {output_path}")
    if regions_path:
        print(f"  Regions: {regions_path}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='grid-heal',
        description='Erase grid lines from a plot image and reconnect the curves they cut',
        epilog='Example: grid-heal figure1.png --mask figure1_grid.png --close-distance 8'
    )

    parser.add_argument(
        'image',
        help='Path to the plot image (PNG, JPG, etc.)'
    )

    parser.add_argument(
        '-m', '--mask',
        required=True,
        help='Grid line mask image, same size as the plot (light pixels = grid)'
    )

    parser.add_argument(
        '-o', '--output',
        help='Output image path (default: <image_name>_healed.png)',
        default=None
    )

    parser.add_argument(
        '-d', '--close-distance',
        type=float,
        default=None,
        help='Maximum centroid distance in pixels for connecting regions (default: 10.0)'
    )

    parser.add_argument(
        '-t', '--threshold',
        type=int,
        default=None,
        help='Luminance above which a pixel is background (default: 128)'
    )

    parser.add_argument(
        '--regions-csv',
        default=None,
        help='Also write the detected regions to this CSV file'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress messages'
    )

    parser.add_argument(
        '-v', '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args()

    # Validate input
    image_path = Path(args.image)
    mask_path = Path(args.mask)
    for path in (image_path, mask_path):
        if not path.exists():
            print(f"Error: Image file not found: {path}", file=sys.stderr)
            sys.exit(1)

    output_path = args.output
    if output_path is None:
        output_path = image_path.parent / f"{image_path.stem}_healed.png"

    if not args.quiet:
        print_banner()

    try:
        overrides = {}
        if args.close_distance is not None:
            overrides["close_distance"] = args.close_distance
        if args.threshold is not None:
            overrides["foreground_threshold"] = args.threshold
        model = replace(GridRemovalConfig.from_environment(), **overrides)

        result = remove_grid_and_heal(
            load_image(image_path),
            load_image(mask_path),
            model=model,
            verbose=not args.quiet
        )

        output_path = save_image(result.image, output_path)
        regions_path = None
        if args.regions_csv:
            regions_path = export_regions(result.healer, args.regions_csv)

        if not args.quiet:
            print_summary(result, output_path, regions_path)

        sys.exit(0)

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
