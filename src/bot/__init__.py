"""Telegram bot components for the Scripture Study Agent."""

from .agent import ScriptureStudyAgent
from .telegram import build_application

__all__ = ["ScriptureStudyAgent", "build_application"]
