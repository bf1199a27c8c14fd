"""
======================================================================
 eznoprimes — Version v1.1.0 (Build 2026.10)
======================================================================

Configuration validation script.

Checks a config.json against the runtime schema and reports every problem,
plus whether the counter output file would load cleanly.

Usage:
    python scripts/validate_config.py [--config path/to/config.json]

Design rules:
- No runtime startup, no network I/O
- Validation only (no mutation)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from core.config_loader import resolve_config_path, validate_document
from core.subcount.classifier import parse_count


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate eznoprimes config.json")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file path (default: $EZNOPRIMES_CONFIG_PATH or ./config.json)",
    )
    return parser.parse_args(argv)


def validate_output_file(path: Path) -> bool:
    """Missing is fine (created at startup); unparsable content is reported."""

    if not path.exists():
        print(f"[CONFIG NOTE] {path} does not exist yet; it will be created with 0")
        return True

    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, ValueError) as e:
        _error(f"{path}: counter file is unreadable ({e}); runtime will start at 0")
        return False

    if parse_count(contents.strip()) is None:
        _error(f"{path}: counter file does not hold an integer ({contents!r}); runtime will start at 0")
        return False

    return True


def validate_config_file(path: Path) -> bool:
    if not path.exists():
        _error(f"{path}: config file not found")
        return False

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _error(f"{path.name}: invalid JSON ({e})")
        return False

    problems = validate_document(payload)
    for problem in problems:
        _error(f"{path.name}: {problem}")
    if problems:
        return False

    return validate_output_file(Path(payload["output_file"]))


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    path = resolve_config_path(args.config)

    if not validate_config_file(path):
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
