from src.app import AppSettings, run_bot
from src.app.settings import SYSTEM_PROMPT
from src.bot.agent import ScriptureStudyAgent

__all__ = ["main", "ScriptureStudyAgent", "SYSTEM_PROMPT"]


def main() -> None:
    """Entry point for the application."""
    settings = AppSettings.from_env()
    run_bot(settings)


if __name__ == "__main__":
    main()
