#!/usr/bin/env python3
"""
╔══════════════════════════════════════════════════════════════════╗
║              BST Animation Visualizer: Entry Point               ║
║                                                                  ║
║  Run     : python main.py                  (window)              ║
║            python main.py --export out.gif --ops insert:4,del:10 ║
║                                                                  ║
║  Architecture:                                                   ║
║    main.py ──► PlanCompiler (plan.py) ──► Sequencer (sequencer)  ║
║                      │                          │                ║
║                      ▼                          ▼                ║
║              BinarySearchTree (bst)     VisualizerWindow (app)   ║
║                                         GifExporter (export)     ║
║                                                                  ║
║  Input is validated here: only whole numbers reach the tree.     ║
╚══════════════════════════════════════════════════════════════════╝
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from plan import PlanCompiler
from settings import THEMES, Settings, configure_logging

logger = logging.getLogger(__name__)

DEFAULT_VALUES = "10,5,15,3,7,12,18"
OPS = {"insert": "insert", "ins": "insert", "i": "insert",
       "delete": "delete", "del": "delete", "d": "delete",
       "find": "find", "f": "find"}


# ══════════════════════════════════════════════════════════
#  INPUT VALIDATION
# ══════════════════════════════════════════════════════════

def parse_value(text: str) -> Optional[int]:
    """
    Parse one whole number typed by the user.

    Fractions ("3.5"), empty input and anything non-numeric are
    rejected with None.

    Examples:
        >>> parse_value(" 42 ")
        42
        >>> parse_value("4.0") is None
        True
    """
    text = text.strip()
    if not text or "." in text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_values(text: str) -> List[int]:
    """
    Parse comma/space separated whole numbers, skipping invalid tokens.

        >>> parse_values("7, 3, abc 18, 2.5")
        [7, 3, 18]
    """
    result = []
    for token in text.replace(",", " ").split():
        v = parse_value(token)
        if v is not None:
            result.append(v)
    return result


def parse_ops(text: str) -> List[Tuple[str, int]]:
    """
    Parse an operation list such as ``"insert:4, delete:10, find:7"``.

    Raises:
        argparse.ArgumentTypeError: On an unknown operation or a value
                                    that is not a whole number.
    """
    ops = []
    for token in text.replace(",", " ").split():
        name, sep, raw = token.partition(":")
        op = OPS.get(name.lower())
        value = parse_value(raw) if sep else None
        if op is None or value is None:
            raise argparse.ArgumentTypeError(
                f"bad operation {token!r} (expected e.g. insert:4)")
        ops.append((op, value))
    return ops


# ══════════════════════════════════════════════════════════
#  HEADLESS EXPORT
# ══════════════════════════════════════════════════════════

def export_gif(compiler, settings, ops, filename) -> int:
    """Play ``ops`` on a virtual clock and write them as a GIF."""
    from export import GifExporter, PlaybackRecorder

    recorder = PlaybackRecorder(compiler, settings)
    frames = recorder.run_ops(ops)
    try:
        GifExporter(settings).export(frames, filename)
    except (RuntimeError, OSError) as e:
        logger.error("export failed: %s", e)
        return 1
    print(f"Wrote {len(frames)} frames to {filename}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bst-visualizer",
        description="Animate binary search tree insert / delete / find.")
    parser.add_argument("--values", default=DEFAULT_VALUES,
                        help=f"initial tree values (default: {DEFAULT_VALUES})")
    parser.add_argument("--export", metavar="FILE",
                        help="write an animated GIF instead of opening a window")
    parser.add_argument("--ops", type=parse_ops, default=[],
                        help='operations to animate, e.g. "insert:4,delete:10"')
    parser.add_argument("--theme", choices=sorted(THEMES))
    parser.add_argument("--speed", type=int, metavar="MS",
                        help="base delay per animation step")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def main(argv=None) -> int:
    """
    Application entry point.

    Flow:
      1. Parse arguments, configure logging
      2. Load settings (CLI flags override them for this run only)
      3. Seed a PlanCompiler with the initial values
      4. --export → headless GIF;  otherwise → tkinter window
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    settings = Settings()
    settings.override(theme=args.theme, anim_speed=args.speed or None)

    compiler = PlanCompiler(parse_values(args.values))

    if args.export:
        return export_gif(compiler, settings, args.ops, args.export)

    from app import open_visualizer
    open_visualizer(compiler, settings, args.ops)
    return 0


if __name__ == "__main__":
    sys.exit(main())
