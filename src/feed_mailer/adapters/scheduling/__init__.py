"""Scheduling adapters."""

from feed_mailer.adapters.scheduling.periodic import PeriodicScheduler

__all__ = ["PeriodicScheduler"]
