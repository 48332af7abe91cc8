"""Scheduled background jobs."""

from .claim_reminders import register_scheduler, run_reminders_once

__all__ = ["register_scheduler", "run_reminders_once"]
