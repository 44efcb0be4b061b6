"""
Policy Loader (``exit_config.loader``).

Responsibility
--------------
Loads an exit policy YAML file and parses it into a frozen
``ExitPolicy``.  The public runtime entry point is
``exit_config.get_active_policy()``.

Invariants enforced
-------------------
* Numeric policy values are parsed to ``Decimal`` from their string form,
  never through float.
* Unknown keys are rejected so a typo cannot silently fall back to a
  default.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from exit_config.schema import ExitPolicy

_DECIMAL_FIELDS = frozenset(
    f.name for f in fields(ExitPolicy) if "Decimal" in str(f.type)
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(key: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, float):
        # YAML floats: go through repr so 0.4 stays 0.4
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key}: not a decimal: {value!r}") from exc


def parse_policy(data: dict[str, Any]) -> ExitPolicy:
    """Parse an ExitPolicy from a dict (a ``policy:`` mapping or the root)."""
    body = data.get("policy", data)
    known = {f.name for f in fields(ExitPolicy)}
    unknown = sorted(set(body) - known)
    if unknown:
        raise ValueError(f"Unknown exit policy keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key, value in body.items():
        if key in _DECIMAL_FIELDS:
            kwargs[key] = parse_decimal(key, value)
        elif key == "statutory_components":
            kwargs[key] = tuple(str(v) for v in (value or ()))
        else:
            kwargs[key] = value
    return ExitPolicy(**kwargs)


def load_policy(path: Path) -> ExitPolicy:
    """Load and validate a policy file."""
    return parse_policy(load_yaml_file(path))
