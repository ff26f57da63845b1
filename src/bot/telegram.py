"""Telegram application wiring for the Scripture Study Agent."""

from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from .agent import ScriptureStudyAgent


def build_application(bot_token: str, agent: ScriptureStudyAgent) -> Application:
    """Configure the Telegram application instance."""
    application = ApplicationBuilder().token(bot_token).post_init(agent.on_startup).build()
    application.add_handler(CommandHandler("start", agent.handle_start))
    application.add_handler(CommandHandler("verse", agent.handle_verse))
    application.add_handler(CommandHandler("study", agent.handle_study))
    application.add_handler(CommandHandler("review", agent.handle_review))
    application.add_handler(CommandHandler("progress", agent.handle_progress))
    application.add_handler(CommandHandler("translation", agent.handle_translation))
    application.add_handler(CallbackQueryHandler(agent.handle_quiz_answer, pattern=r"^quiz:"))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, agent.handle_message))
    return application
