"""Delay bounds and defaults, loaded from config/delayed_jobs_params.json.

The bounds are fixed for the lifetime of a service instance. The delay
itself is mutable (see delayedjobs.access) but every write is checked
against these bounds.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
PARAMS_FILENAME = "delayed_jobs_params.json"

MIN_DELAY_SECONDS = 60 * 60
MAX_DELAY_SECONDS = 48 * 60 * 60


def validate_params(params: dict[str, Any]) -> list[str]:
    """Check a raw params document. Returns errors (empty = OK)."""
    errors: list[str] = []
    bounds = params.get("delay_bounds")
    if not isinstance(bounds, dict):
        return ["delay_bounds section missing"]

    values: dict[str, int] = {}
    for key in ("MIN_DELAY_SECONDS", "MAX_DELAY_SECONDS"):
        value = bounds.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"delay_bounds.{key} must be an integer, got {value!r}")
        elif value <= 0:
            errors.append(f"delay_bounds.{key} must be positive, got {value}")
        else:
            values[key] = value
    if errors:
        return errors

    min_delay = values["MIN_DELAY_SECONDS"]
    max_delay = values["MAX_DELAY_SECONDS"]
    if min_delay >= max_delay:
        errors.append(
            f"MIN_DELAY_SECONDS ({min_delay}) must be smaller than "
            f"MAX_DELAY_SECONDS ({max_delay})"
        )

    initial = params.get("defaults", {}).get("INITIAL_DELAY_SECONDS")
    if initial is not None:
        if isinstance(initial, bool) or not isinstance(initial, int):
            errors.append(f"defaults.INITIAL_DELAY_SECONDS must be an integer, got {initial!r}")
        elif not min_delay <= initial <= max_delay:
            errors.append(
                f"defaults.INITIAL_DELAY_SECONDS ({initial}) outside "
                f"[{min_delay}, {max_delay}]"
            )
    return errors


@dataclass(frozen=True)
class DelayBounds:
    """Inclusive bounds on the delay, in whole seconds."""

    min_delay: int = MIN_DELAY_SECONDS
    max_delay: int = MAX_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.min_delay <= 0:
            raise ValueError(f"min_delay must be positive, got {self.min_delay}")
        if self.min_delay >= self.max_delay:
            raise ValueError(
                f"min_delay ({self.min_delay}) must be smaller than "
                f"max_delay ({self.max_delay})"
            )

    def contains(self, delay: int) -> bool:
        return self.min_delay <= delay <= self.max_delay


@dataclass(frozen=True)
class DelayedJobsParams:
    """Everything read from the params file."""

    bounds: DelayBounds
    initial_delay: int

    def __post_init__(self) -> None:
        if not self.bounds.contains(self.initial_delay):
            raise ValueError(
                f"INITIAL_DELAY_SECONDS ({self.initial_delay}) outside "
                f"[{self.bounds.min_delay}, {self.bounds.max_delay}]"
            )

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> DelayedJobsParams:
        bounds = params["delay_bounds"]
        defaults = params.get("defaults", {})
        delay_bounds = DelayBounds(
            min_delay=int(bounds["MIN_DELAY_SECONDS"]),
            max_delay=int(bounds["MAX_DELAY_SECONDS"]),
        )
        return cls(
            bounds=delay_bounds,
            initial_delay=int(
                defaults.get("INITIAL_DELAY_SECONDS", delay_bounds.min_delay)
            ),
        )

    @classmethod
    def from_config_dir(cls, config_dir: Optional[Path] = None) -> DelayedJobsParams:
        """Load from <config_dir>/delayed_jobs_params.json."""
        path = (config_dir or DEFAULT_CONFIG_DIR) / PARAMS_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_params(json.load(handle))
