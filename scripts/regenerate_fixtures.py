#!/usr/bin/env python3
"""
Regenerate golden fixtures from the current underbar implementation.

Usage:
    python scripts/regenerate_fixtures.py [fixture_name]

Each fixture directory holds an input.json naming an operation and its
arguments. The operation is applied and its result written to
expected.json. If fixture_name is provided, only that fixture is
regenerated.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import underbar


FIXTURES_DIR = Path(__file__).parent.parent / "test" / "fixtures"

logger = underbar.setup_logger("underbar.fixtures")


def run_fixture(input_file: Path) -> object:
    """Apply the operation described by an input.json file."""
    call = json.loads(input_file.read_text())
    operation = getattr(underbar, call["operation"])
    return operation(*call["args"])


def regenerate_fixture(fixture_dir: Path) -> None:
    """Regenerate a single fixture (input.json -> expected.json)."""
    input_file = fixture_dir / "input.json"

    if not input_file.exists():
        logger.warning("Skipping %s: no input.json", fixture_dir.name)
        return

    result = run_fixture(input_file)
    # MISSING has no JSON form; it is stored as its repr, "MISSING".
    (fixture_dir / "expected.json").write_text(json.dumps(result, default=repr) + "\n")

    logger.info("%s: regenerated", fixture_dir.name)


def main() -> int:
    """Main entry point."""
    target = sys.argv[1] if len(sys.argv) > 1 else None

    logger.info("Regenerating fixtures...")

    for fixture_dir in sorted(FIXTURES_DIR.iterdir()):
        if not fixture_dir.is_dir():
            continue

        if target and fixture_dir.name != target:
            continue

        regenerate_fixture(fixture_dir)

    logger.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
