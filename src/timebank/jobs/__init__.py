"""Background jobs."""

from .session_sweep import register_scheduler, run_session_sweep, run_sweep_once

__all__ = ["register_scheduler", "run_session_sweep", "run_sweep_once"]
