"""Application bootstrap helpers for the Scripture Study Agent project."""

from .runtime import build_workflow, run_bot
from .settings import AppSettings

__all__ = ["build_workflow", "run_bot", "AppSettings"]
