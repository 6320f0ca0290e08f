"""Programmatic entry points for scripted placement sessions."""

from .run import SessionResult, TickRecord, run_script

__all__ = ["SessionResult", "TickRecord", "run_script"]
