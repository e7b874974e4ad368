"""Periodic feed refresh."""

from .refresh_scheduler import RefreshResult, RefreshScheduler

__all__ = ["RefreshResult", "RefreshScheduler"]
