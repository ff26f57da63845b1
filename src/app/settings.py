"""Configuration helpers for the Scripture Study Agent runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from src.services.verse_source import DEFAULT_BIBLE_API_URL
from src.study.workflow import DEFAULT_TRANSLATION


DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_GENERATION_TIMEOUT_SECONDS = 30.0
SYSTEM_PROMPT = (
    "You are a Bible scholar assistant for an app that helps Christians understand Scripture in context. "
    "Follow these theological boundaries at all times. God is one person, the Father alone. Jesus is the "
    "human Messiah, conceived and born as a man, chosen, anointed and empowered by God; he is not a "
    "pre-existent divine being. When explaining John 1, read the Word as God's saving purpose expressed in "
    "Jesus' human life. Immortality is conditional, a gift given through bodily resurrection. Humans are "
    "unified living beings, death is real until the resurrection, and final judgment is final death. "
    "Never use Nicene or Chalcedonian formulations. Emphasize bodily resurrection as the Christian hope. "
    "Keep the tone warm, pastoral, encouraging and clear, with mostly short sentences. When responding to "
    "a learner's interpretation, be specific about what they got right and gentle in corrections."
)


def _read_int(name: str, default: int, minimum: int, maximum: int) -> int:
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError as exc:  # pragma: no cover - defensive parsing
        raise RuntimeError(f"{name} must be an integer.") from exc
    if value < minimum or value > maximum:
        raise RuntimeError(f"{name} must be between {minimum} and {maximum}.")
    return value


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    telegram_bot_token: str
    openai_api_key: str
    openai_model: str
    generation_timeout_seconds: float
    generation_attempts: int
    progress_update_attempts: int
    default_translation: str
    bible_api_url: str
    content_policy_path: Optional[Path]

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Scripture Study Agent")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
        openai_api_key = os.getenv("OPENAI_API_KEY")
        openai_model = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)

        if not telegram_bot_token:
            raise RuntimeError(
                "TELEGRAM_BOT_TOKEN environment variable is required to start the Telegram bot."
            )

        if not openai_api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is required to generate study content.")

        try:
            generation_timeout_seconds = float(
                os.getenv("GENERATION_TIMEOUT_SECONDS", str(DEFAULT_GENERATION_TIMEOUT_SECONDS))
            )
        except ValueError as exc:  # pragma: no cover - defensive parsing
            raise RuntimeError("GENERATION_TIMEOUT_SECONDS must be a number.") from exc
        if generation_timeout_seconds <= 0:
            raise RuntimeError("GENERATION_TIMEOUT_SECONDS must be positive.")

        generation_attempts = _read_int("GENERATION_ATTEMPTS", 2, 1, 5)
        progress_update_attempts = _read_int("PROGRESS_UPDATE_ATTEMPTS", 3, 1, 10)

        policy_path_value = os.getenv("CONTENT_POLICY_PATH")
        content_policy_path = Path(policy_path_value) if policy_path_value else None
        if content_policy_path is not None and not content_policy_path.is_file():
            raise RuntimeError(f"CONTENT_POLICY_PATH {content_policy_path} does not exist.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            telegram_bot_token=telegram_bot_token,
            openai_api_key=openai_api_key,
            openai_model=openai_model,
            generation_timeout_seconds=generation_timeout_seconds,
            generation_attempts=generation_attempts,
            progress_update_attempts=progress_update_attempts,
            default_translation=os.getenv("DEFAULT_TRANSLATION", DEFAULT_TRANSLATION).upper(),
            bible_api_url=os.getenv("BIBLE_API_URL", DEFAULT_BIBLE_API_URL),
            content_policy_path=content_policy_path,
        )
