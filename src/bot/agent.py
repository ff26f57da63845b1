"""Telegram handlers that walk a learner through a verse study."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from html import escape
from typing import Dict, List, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Message, Update
from telegram.constants import ChatAction, ParseMode
from telegram.ext import Application, ContextTypes

from src.db import STATUS_COMPLETED
from src.study.content import (
    MULTIPLE_CHOICE,
    Answer,
    InterpretationFeedback,
    Quiz,
    QuizQuestion,
    ReviewComparison,
    StructuredExplanation,
)
from src.study.errors import (
    GenerationFailed,
    PolicyViolation,
    ProgressUpdateFailed,
    ReferenceParseError,
    StudyError,
    VerseUnavailable,
)
from src.study.progress import ProgressSnapshot
from src.study.workflow import QuizOutcome, StudyWorkflow


LOGGER = logging.getLogger(__name__)

INTERPRETATION = "interpretation"
REVIEW = "review"

_OPTION_LABELS = "ABCDEFGH"


@dataclass(slots=True)
class PendingStep:
    """What the next free-text message from a chat should be used for."""

    kind: str
    study_id: int
    citation: str


@dataclass(slots=True)
class QuizSession:
    study_id: int
    citation: str
    questions: List[QuizQuestion]
    answers: List[Optional[Answer]] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return len(self.answers) >= len(self.questions)


class ScriptureStudyAgent:
    """Handles Telegram updates by delegating to the study workflow."""

    def __init__(self, workflow: StudyWorkflow) -> None:
        self._workflow = workflow
        self._pending: Dict[int, PendingStep] = {}
        self._quizzes: Dict[int, QuizSession] = {}

    async def on_startup(self, application: Application) -> None:
        await self._workflow.initialize()

    @staticmethod
    def _command_argument(context: ContextTypes.DEFAULT_TYPE) -> str:
        return " ".join(getattr(context, "args", None) or []).strip()

    async def _typing_indicator(self, chat_id: int, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Continuously send a typing action so users see the bot working."""
        try:
            while True:
                await context.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            return

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Greet the learner and list the available commands."""
        if not update.message or update.effective_chat is None:
            return

        user = update.effective_user
        await self._workflow.remember_user(
            update.effective_chat.id,
            getattr(user, "first_name", None),
            getattr(user, "last_name", None),
        )

        greeting = (
            "Welcome! I help you study Scripture one verse at a time.\n\n"
            "/study <reference> - explain a verse in your own words, get feedback and a short quiz\n"
            "/verse <reference> - read a verse, e.g. /verse John 3:16\n"
            "/review - revisit verses that are due for review\n"
            "/progress - see your streak and scores\n"
            "/translation <code> - choose a translation such as KJV or WEB"
        )
        await update.message.reply_text(greeting)

    async def handle_verse(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message:
            return

        raw_reference = self._command_argument(context)
        if not raw_reference:
            await update.message.reply_text("Send a reference, for example: /verse Romans 6:23")
            return

        try:
            passage = await self._workflow.lookup_verse(raw_reference)
        except StudyError as exc:
            await update.message.reply_text(self._describe_error(exc))
            return

        await update.message.reply_text(
            f"<b>{escape(passage.reference.citation)}</b> ({escape(passage.translation)})\n{escape(passage.text)}",
            parse_mode=ParseMode.HTML,
        )

    async def handle_translation(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or update.effective_chat is None:
            return

        code = self._command_argument(context)
        if not code.isalnum() or len(code) > 16:
            await update.message.reply_text("Send a translation code, for example: /translation WEB")
            return

        translation = await self._workflow.set_translation(update.effective_chat.id, code)
        await update.message.reply_text(f"New studies will use the {translation} translation.")

    async def handle_study(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Start a study and ask the learner for their interpretation."""
        if not update.message or update.effective_chat is None:
            return

        chat_id = update.effective_chat.id
        raw_reference = self._command_argument(context)
        if not raw_reference:
            await update.message.reply_text("Which verse? For example: /study John 3:16")
            return

        try:
            study = await self._workflow.start_study(chat_id, raw_reference)
        except StudyError as exc:
            await update.message.reply_text(self._describe_error(exc))
            return

        self._quizzes.pop(chat_id, None)
        intro = (
            f"<b>{escape(study.verse_reference)}</b> ({escape(study.translation)})\n"
            f"{escape(study.verse_text)}\n\n"
        )
        if study.status == STATUS_COMPLETED:
            self._pending.pop(chat_id, None)
            await update.message.reply_text(
                intro + "You have already studied this verse. Use /review when it is due.",
                parse_mode=ParseMode.HTML,
            )
            return

        self._pending[chat_id] = PendingStep(INTERPRETATION, study.id, study.verse_reference)
        await update.message.reply_text(
            intro + "In your own words, what does this verse mean?",
            parse_mode=ParseMode.HTML,
        )

    async def handle_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or update.effective_chat is None:
            return

        chat_id = update.effective_chat.id
        due = await self._workflow.due_reviews(chat_id)
        if not due:
            await update.message.reply_text("Nothing is due for review right now. Well done!")
            return

        study = due[0]
        self._quizzes.pop(chat_id, None)
        self._pending[chat_id] = PendingStep(REVIEW, study.id, study.verse_reference)
        others = f"\n\n{len(due) - 1} more verse(s) are waiting after this one." if len(due) > 1 else ""
        await update.message.reply_text(
            f"Time to review <b>{escape(study.verse_reference)}</b>:\n{escape(study.verse_text)}\n\n"
            f"Explain it again in your own words.{others}",
            parse_mode=ParseMode.HTML,
        )

    async def handle_progress(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or update.effective_chat is None:
            return

        try:
            snapshot = await self._workflow.get_progress(update.effective_chat.id)
        except StudyError as exc:
            await update.message.reply_text(self._describe_error(exc))
            return

        await update.message.reply_text(self._format_progress(snapshot), parse_mode=ParseMode.HTML)

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Route free text to a short-answer question or the pending interpretation or review."""
        if not update.message or not update.message.text or update.effective_chat is None:
            return

        chat_id = update.effective_chat.id
        text = update.message.text.strip()

        quiz = self._quizzes.get(chat_id)
        if quiz is not None and quiz.questions[len(quiz.answers)].type != MULTIPLE_CHOICE:
            await self._record_answer(update.message, chat_id, quiz, text)
            return

        step = self._pending.get(chat_id)
        if step is None:
            await update.message.reply_text("Start with /study followed by a verse, e.g. /study John 3:16")
            return

        typing_task = asyncio.create_task(self._typing_indicator(chat_id, context))
        try:
            if step.kind == INTERPRETATION:
                await self._handle_interpretation(update.message, chat_id, step, text)
            else:
                await self._handle_review_answer(update.message, chat_id, step, text)
        finally:
            typing_task.cancel()
            with suppress(asyncio.CancelledError):
                await typing_task

    async def _handle_interpretation(self, message: Message, chat_id: int, step: PendingStep, text: str) -> None:
        try:
            content = await self._workflow.submit_interpretation(chat_id, step.study_id, text)
        except StudyError as exc:
            await message.reply_text(self._describe_error(exc))
            return

        self._pending.pop(chat_id, None)
        await message.reply_text(self._format_feedback(content.feedback), parse_mode=ParseMode.HTML)
        await message.reply_text(self._format_explanation(content.explanation), parse_mode=ParseMode.HTML)

        self._quizzes[chat_id] = QuizSession(step.study_id, step.citation, list(content.quiz.questions))
        await self._send_next_question(message, chat_id)

    async def _handle_review_answer(self, message: Message, chat_id: int, step: PendingStep, text: str) -> None:
        try:
            comparison = await self._workflow.submit_review(chat_id, step.study_id, text)
            study = await self._workflow.get_study(chat_id, step.study_id)
        except StudyError as exc:
            await message.reply_text(self._describe_error(exc))
            return

        self._pending.pop(chat_id, None)
        await message.reply_text(self._format_comparison(comparison), parse_mode=ParseMode.HTML)

        quiz = Quiz.from_stored(study.quiz_questions)
        self._quizzes[chat_id] = QuizSession(step.study_id, step.citation, list(quiz.questions))
        await message.reply_text("Now let's retake the quiz.")
        await self._send_next_question(message, chat_id)

    async def handle_quiz_answer(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Record an inline-keyboard answer and move on to the next question."""
        query = update.callback_query
        if query is None or query.data is None:
            return

        message = query.message
        if message is None or message.chat is None:
            await query.answer()
            return

        chat_id = message.chat.id
        parts = query.data.split(":")
        try:
            _, study_id, question_index, option_index = parts
            study_id_value = int(study_id)
            question_value = int(question_index)
            option_value = int(option_index)
        except ValueError:
            await query.answer("Unknown answer.", show_alert=True)
            return

        session = self._quizzes.get(chat_id)
        if session is None or session.study_id != study_id_value or question_value != len(session.answers):
            await query.answer("This question is no longer active.", show_alert=True)
            return

        await query.answer()
        with suppress(Exception):
            await query.edit_message_reply_markup(reply_markup=None)
        await self._record_answer(message, chat_id, session, option_value)

    async def _record_answer(self, message: Message, chat_id: int, session: QuizSession, answer: Answer) -> None:
        session.answers.append(answer)
        if not session.finished:
            await self._send_next_question(message, chat_id)
            return

        self._quizzes.pop(chat_id, None)
        try:
            outcome = await self._workflow.submit_quiz(chat_id, session.study_id, session.answers)
        except StudyError as exc:
            LOGGER.warning("Could not record quiz for chat %s: %s", chat_id, exc)
            await message.reply_text(self._describe_error(exc))
            return

        await message.reply_text(self._format_outcome(session, outcome), parse_mode=ParseMode.HTML)

    async def _send_next_question(self, message: Message, chat_id: int) -> None:
        session = self._quizzes[chat_id]
        index = len(session.answers)
        question = session.questions[index]

        lines = [f"<b>Question {index + 1}/{len(session.questions)}</b>", escape(question.question)]
        buttons: List[InlineKeyboardButton] = []
        if question.type == MULTIPLE_CHOICE:
            for option_index, option in enumerate(question.options):
                label = _OPTION_LABELS[option_index] if option_index < len(_OPTION_LABELS) else str(option_index + 1)
                lines.append(f"{label}. {escape(option)}")
                buttons.append(
                    InlineKeyboardButton(
                        label, callback_data=f"quiz:{session.study_id}:{index}:{option_index}"
                    )
                )
        else:
            lines.append("<i>Reply with your answer.</i>")

        await message.reply_text(
            "\n".join(lines),
            parse_mode=ParseMode.HTML,
            reply_markup=InlineKeyboardMarkup([buttons]) if buttons else None,
        )

    @staticmethod
    def _describe_error(exc: StudyError) -> str:
        if isinstance(exc, ReferenceParseError):
            return f"{exc} Try a reference like John 3:16 or 1 Cor 15:53."
        if isinstance(exc, VerseUnavailable):
            return f"{exc} Please try another translation or verse."
        if isinstance(exc, PolicyViolation):
            return "The generated study did not meet our content guidelines, so it was discarded. Please try again."
        if isinstance(exc, GenerationFailed):
            return "I couldn't prepare the study material right now. Please try again in a moment."
        if isinstance(exc, ProgressUpdateFailed):
            return "Your answers were received but progress could not be saved. Please try again."
        return str(exc)

    @staticmethod
    def _bullet_section(title: str, items: List[str]) -> List[str]:
        if not items:
            return []
        return [f"<b>{title}</b>", *(f"• {escape(item)}" for item in items), ""]

    def _format_feedback(self, feedback: InterpretationFeedback) -> str:
        lines = [
            *self._bullet_section("What you got right", feedback.affirmed),
            *self._bullet_section("Worth reconsidering", feedback.corrected),
            *self._bullet_section("What to add", feedback.gaps),
        ]
        return "\n".join(lines).strip()

    @staticmethod
    def _format_explanation(explanation: StructuredExplanation) -> str:
        lines = [f"<b>{escape(explanation.summary)}</b>", "", escape(explanation.paragraph)]
        if explanation.literary_context:
            lines += ["", "<b>Context</b>", escape(explanation.literary_context)]
        if explanation.original_words:
            lines += ["", "<b>Key words</b>"]
            lines += [f"• <i>{escape(word.original)}</i>: {escape(word.meaning)}" for word in explanation.original_words]
        if explanation.pastoral_application:
            lines += ["", "<b>For today</b>", escape(explanation.pastoral_application)]
        return "\n".join(lines)

    def _format_comparison(self, comparison: ReviewComparison) -> str:
        lines = [
            *self._bullet_section("Improvements", comparison.improvements),
            *self._bullet_section("Kept from last time", comparison.retained),
            *self._bullet_section("Still missing", comparison.still_missing),
        ]
        return "\n".join(lines).strip() or "Thanks, your review was saved."

    @staticmethod
    def _format_outcome(session: QuizSession, outcome: QuizOutcome) -> str:
        lines = [
            f"<b>{escape(session.citation)}</b>: {outcome.correct_count}/{outcome.total_questions} correct "
            f"({outcome.score:.0f}%).",
            f"Next review on {outcome.next_review_date:%d %b %Y} (in {outcome.interval_days} day(s)).",
        ]
        if not outcome.is_review:
            lines.append(f"🔥 Current streak: {outcome.progress.current_streak} day(s).")
        for question, answer in zip(session.questions, session.answers):
            if not question.is_correct(answer) and question.explanation:
                lines.append(f"\n<i>{escape(question.question)}</i>\n{escape(question.explanation)}")
        return "\n".join(lines)

    @staticmethod
    def _format_progress(snapshot: ProgressSnapshot) -> str:
        average = "n/a" if snapshot.average_quiz_score is None else f"{snapshot.average_quiz_score:.0f}%"
        lines = [
            "📊 <b>Your progress</b>",
            f"📖 <b>Verses studied:</b> {snapshot.total_studies}",
            f"🔁 <b>Reviews:</b> {snapshot.total_reviews}",
            f"✅ <b>Average quiz score:</b> {average}",
            f"🔥 <b>Current streak:</b> {snapshot.current_streak} day(s)",
            f"🏆 <b>Longest streak:</b> {snapshot.longest_streak} day(s)",
        ]
        if snapshot.books_studied:
            top = sorted(snapshot.books_studied.items(), key=lambda item: (-item[1], item[0]))[:3]
            lines.append("📚 <b>Top books:</b> " + ", ".join(f"{escape(name)} ({count})" for name, count in top))
        return "\n".join(lines)
