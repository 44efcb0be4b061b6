"""
Exit Policy Configuration (``exit_config``).

Responsibility
--------------
The single runtime entry point for organization policy.  Services receive
an ``ExitPolicy`` in their constructor; only ``get_active_policy`` reads
files or the environment.

Audit relevance
---------------
Every load emits an ``EXIT_POLICY_TRACE`` log record carrying the policy
checksum, and every settlement breakdown records the same checksum, so a
computed settlement can be tied to the exact policy that produced it.
"""

from __future__ import annotations

import os
from pathlib import Path

from exit_config.loader import load_policy, parse_policy
from exit_config.schema import ExitPolicy
from exit_kernel.logging_config import get_logger

logger = get_logger("config")

POLICY_PATH_ENV = "EXIT_POLICY_PATH"

_DEFAULT_POLICY_PATH = Path(__file__).parent / "default_policy.yaml"


def get_active_policy(path: Path | str | None = None) -> ExitPolicy:
    """
    Load the active exit policy.

    Resolution order: explicit ``path``, then the ``EXIT_POLICY_PATH``
    environment variable, then the packaged ``default_policy.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If the policy fails validation.
    """
    resolved = Path(path or os.environ.get(POLICY_PATH_ENV) or _DEFAULT_POLICY_PATH)
    policy = load_policy(resolved)

    logger.info(
        "EXIT_POLICY_TRACE",
        extra={
            "trace_type": "EXIT_POLICY_TRACE",
            "policy_name": policy.name,
            "policy_version": policy.version,
            "checksum": policy.checksum,
            "source": str(resolved),
        },
    )
    return policy


__all__ = ["ExitPolicy", "get_active_policy", "load_policy", "parse_policy"]
