"""Kernel services. Flush-only: callers own the transaction boundary."""

from exit_kernel.services.activity_log import ActivityLogService, ExitActivityEntry

__all__ = ["ActivityLogService", "ExitActivityEntry"]
