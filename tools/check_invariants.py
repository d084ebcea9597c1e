#!/usr/bin/env python3
"""Delayed-jobs invariant checks against the params file.

Usage:
    python3 tools/check_invariants.py
    python3 tools/check_invariants.py path/to/config_dir
"""

import json
import sys
from pathlib import Path

# Add src to path for delayedjobs imports
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from delayedjobs.config import DEFAULT_CONFIG_DIR, PARAMS_FILENAME, validate_params


def check(config_dir: Path = DEFAULT_CONFIG_DIR) -> int:
    params_path = config_dir / PARAMS_FILENAME
    with params_path.open("r", encoding="utf-8") as handle:
        params = json.load(handle)

    errors = validate_params(params)
    if errors:
        print("Invariant check failed:")
        for error in errors:
            print(f"  - {error}")
        return 1

    bounds = params["delay_bounds"]
    print(
        "Invariant check passed: delay bounds "
        f"[{bounds['MIN_DELAY_SECONDS']}, {bounds['MAX_DELAY_SECONDS']}]"
    )
    return 0


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CONFIG_DIR
    raise SystemExit(check(target))
