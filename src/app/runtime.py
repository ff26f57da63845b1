"""Bootstrap logic for running the Telegram bot."""

from __future__ import annotations

import asyncio
import logging

from src.app.settings import AppSettings, SYSTEM_PROMPT
from src.bot import ScriptureStudyAgent, build_application
from src.db import get_session_factory, run_migrations_if_needed
from src.services import BibleApiClient, OpenAITextGenerator, build_openai_client
from src.study.content_guard import load_content_guard
from src.study.workflow import StudyWorkflow


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def _ensure_event_loop() -> None:
    """Guarantee that an asyncio event loop exists for the current thread."""
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())


def build_workflow(settings: AppSettings) -> StudyWorkflow:
    """Wire the study workflow to the database, OpenAI and the verse API."""
    guard = load_content_guard(settings.content_policy_path)
    LOGGER.info("Loaded %d content policy phrases.", len(guard.phrases))

    openai_client = build_openai_client(settings.openai_api_key)
    generator = OpenAITextGenerator(openai_client, settings.openai_model, SYSTEM_PROMPT)
    return StudyWorkflow(
        get_session_factory(),
        generator,
        guard,
        BibleApiClient(settings.bible_api_url),
        default_translation=settings.default_translation,
        generation_timeout=settings.generation_timeout_seconds,
        generation_attempts=settings.generation_attempts,
        progress_update_attempts=settings.progress_update_attempts,
    )


def run_bot(settings: AppSettings) -> None:
    """Start the Telegram bot using the provided settings."""
    _configure_logging(settings.log_level)
    print(f"{settings.app_name} is running in {settings.app_env} mode.")

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    workflow = build_workflow(settings)
    agent = ScriptureStudyAgent(workflow)
    application = build_application(settings.telegram_bot_token, agent)

    _ensure_event_loop()

    LOGGER.info("Starting Telegram bot for %s in %s mode.", settings.app_name, settings.app_env)
    application.run_polling()
