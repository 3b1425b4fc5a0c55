"""Command-line interface for patternmap."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import NoReturn

from .classify import CATEGORY_DESCRIPTORS
from .config import ConfigError, load_config
from .data import DataError
from .render import MapRenderer


__all__ = ["cli", "create_parser", "main"]

logger = logging.getLogger(__name__)


def _print_examples() -> None:
    """Print usage examples."""
    print(
        """
Pattern Map Renderer
====================

Usage:
  patternmap PATTERN [options]

Examples:
  # Render with ./appsettings.json
  patternmap data/pattern/pattern_042.json

  # Explicit configuration and output folder
  patternmap pattern_042.json --config config/appsettings.json --output-dir out/

  # Labels in another language
  patternmap pattern_042.json --lang ja

  # Inspect configuration
  patternmap --list-categories
  patternmap --list-styles --config config/appsettings.json

Options:
  --config          Configuration file (default: ./appsettings.json or $PATTERNMAP_CONFIG)
  --output-dir, -o  Output folder (overrides OutputFolder)
  --lang            Label language (overrides I18nLang)
  --verbose         Debug logging
  --no-progress     Hide the progress bar
"""
    )


def _list_categories() -> None:
    """List the category groups and their subtypes."""
    print("\nCategories:")
    print("-" * 60)
    for descriptor in CATEGORY_DESCRIPTORS:
        passes = [name for name, on in (("icons", descriptor.draws_icons), ("labels", descriptor.draws_labels)) if on]
        print(f"  {descriptor.group} ({', '.join(passes)})")
        for subtype in descriptor.subtypes:
            marker = "" if descriptor.labels(subtype) or not descriptor.draws_labels else "  [no label]"
            print(f"    {subtype}{marker}")
        print()


def _list_styles(config_path: str | None) -> int:
    """List the text styles defined in the configuration."""
    from .styles import get_available_styles

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    styles = get_available_styles(config.tree)
    if not styles:
        print("No styles defined under Text.Styles.")
        return 0
    print("\nText Styles:")
    print("-" * 60)
    for name in styles:
        print(f"  {name}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="patternmap",
        description="Render the composite map image for one level pattern",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  patternmap pattern_042.json
  patternmap pattern_042.json --config config/appsettings.json --lang fr
  patternmap --list-categories
        """,
    )

    parser.add_argument(
        "pattern",
        nargs="?",
        type=str,
        help="Pattern JSON file",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Configuration file (default: ./appsettings.json or $PATTERNMAP_CONFIG)",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        dest="output_dir",
        type=str,
        help="Output folder (overrides OutputFolder)",
    )
    parser.add_argument(
        "--lang",
        type=str,
        help="Label language code (overrides I18nLang)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-progress",
        dest="no_progress",
        action="store_true",
        help="Hide the progress bar",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="List category groups and subtypes",
    )
    parser.add_argument(
        "--list-styles",
        action="store_true",
        help="List text styles defined in the configuration",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="store_true",
        help="Show version and exit",
    )

    return parser


def _handle_info_commands(parsed: argparse.Namespace) -> int | None:
    """Handle informational commands that exit early.

    Returns:
        Exit code if handled, None if not handled.
    """
    if parsed.version:
        from . import __version__

        print(f"patternmap {__version__}")
        return 0

    if parsed.list_categories:
        _list_categories()
        return 0

    if parsed.list_styles:
        return _list_styles(parsed.config)

    return None


def cli(args: list[str] | None = None) -> int:
    """Run the CLI with the given arguments.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    parser = create_parser()
    parsed = parser.parse_args(args)

    if (len(sys.argv) == 1 and args is None) or args == []:
        _print_examples()
        return 0

    info_result = _handle_info_commands(parsed)
    if info_result is not None:
        return info_result

    if not parsed.pattern:
        print("Error: a pattern file is required.\n")
        _print_examples()
        return 1

    try:
        config = load_config(parsed.config)
    except ConfigError as e:
        print(f"✗ Error: {e}")
        return 1

    if parsed.lang:
        config = replace(config, lang=parsed.lang.strip())
    if parsed.verbose or config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    print("=" * 50)
    print("Pattern Map Renderer")
    print("=" * 50)

    output_dir = Path(parsed.output_dir).expanduser() if parsed.output_dir else None
    try:
        result = MapRenderer(config).render(
            parsed.pattern,
            output_dir=output_dir,
            show_progress=not parsed.no_progress,
        )
    except (DataError, OSError) as e:
        print(f"\n✗ Error: {e}")
        logger.debug("Render failed", exc_info=True)
        return 1

    totals = result.totals
    print("\n" + "=" * 50)
    print(f"✓ Map saved: {result.output_path}")
    print(f"  Overlays: {len(result.overlays)}, labels/icons drawn: {totals.drawn}")
    if result.unclassified:
        print(f"  Unclassified POIs: {result.unclassified}")
    print("=" * 50)
    return 0


def main() -> NoReturn:
    """Main entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
