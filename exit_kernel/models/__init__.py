"""Kernel ORM models."""

from exit_kernel.models.activity import ActivityAction, ExitActivity

__all__ = ["ActivityAction", "ExitActivity"]
