#!/usr/bin/env python3
"""Run a pricing update from a source checkout."""

from __future__ import annotations

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from pricing_atlas.cli import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main(["update", *sys.argv[1:]]))
