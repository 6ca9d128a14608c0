"""
telegram_bot.py — gmon.link "create project" Telegram conversation.

Conversation flow:
  /newproject or the "create-project" button
    → AWAIT_NAME        → AWAIT_DESCRIPTION
    → AWAIT_TWITTER     (handle, URL or "no")
    → AWAIT_GITHUB      (handle, URL or "no")
    → AWAIT_IMAGE       (photo)
    → PERSISTING        (upload image, insert project, notify)
    → DONE / ABORTED

Commands:
  /newproject — start creating a project
  /cancel     — drop the current draft
"""

from __future__ import annotations

import logging
from html import escape
from typing import Any, Dict, Optional

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    LinkPreviewOptions,
    Update,
)
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    TypeHandler,
    filters,
)

from .config import BotSettings
from .errors import InvalidProfileUrl, ProjectPersistenceError, UploadError
from .image_intake import ImageIntake
from .links import GITHUB, TWITTER, normalize_profile_link
from .project_draft import ProjectDraft
from .session_store import SessionStores
from .storage import ProjectRepository, create_repository

logger = logging.getLogger(__name__)

# ── Conversation states ───────────────────────────────────────────────────────

(
    AWAIT_NAME,
    AWAIT_DESCRIPTION,
    AWAIT_TWITTER,
    AWAIT_GITHUB,
    AWAIT_IMAGE,
) = range(5)

# PERSISTING runs inside step_image without waiting for input.
# Both terminal outcomes end the ConversationHandler; the outcome is logged.
DONE = ConversationHandler.END
ABORTED = ConversationHandler.END

STEPS = 5

# ── Copy ──────────────────────────────────────────────────────────────────────

TIP_TEXT = "💡 <i>Tip: type /cancel at any time to stop creating the project.</i>"

ERROR_MESSAGES = {
    AWAIT_NAME: "Please provide a valid project name.",
    AWAIT_DESCRIPTION: "Please provide a valid description.",
    AWAIT_TWITTER: "Please provide a valid input (Twitter handle/URL or 'no').",
    AWAIT_GITHUB: "Please provide a valid input (GitHub handle/URL or 'no').",
    AWAIT_IMAGE: "Please provide a valid image.",
}

INVALID_URL_MESSAGES = {
    TWITTER: "⚠️ The provided Twitter URL is invalid. Please try again or type 'no'.",
    GITHUB: "⚠️ The provided GitHub URL is invalid. Please try again or type 'no'.",
}

UPLOADING_TEXT = "⏳ We're uploading your image..."
UPLOAD_FAILED_TEXT = "❌ Sorry, there was an error uploading your image."
UPLOADED_TEXT = "🎉 Image uploaded successfully!"
CREATING_TEXT = "⏳ We're creating your project..."
CREATE_FAILED_TEXT = "An error occurred while creating the project. Please try again."
PROJECT_FAILED_TEXT = "❌ Sorry, the project could not be created."

# ── Keyboards ─────────────────────────────────────────────────────────────────

ADD_LINK_KEYBOARD = InlineKeyboardMarkup([
    [InlineKeyboardButton("Add a Link", callback_data="create-link")],
])

# ── Context keys ──────────────────────────────────────────────────────────────

SETTINGS_KEY = "settings"
REPOSITORY_KEY = "repository"
STORES_KEY = "stores"
DRAFT_KEY = "project_draft"
USER_KEY = "gmon_user"


# ── Helpers ───────────────────────────────────────────────────────────────────

def get_settings(context: ContextTypes.DEFAULT_TYPE) -> BotSettings:
    return context.bot_data[SETTINGS_KEY]


def get_repository(context: ContextTypes.DEFAULT_TYPE) -> ProjectRepository:
    return context.bot_data[REPOSITORY_KEY]


def get_stores(context: ContextTypes.DEFAULT_TYPE) -> SessionStores:
    return context.bot_data[STORES_KEY]


def get_draft(context: ContextTypes.DEFAULT_TYPE) -> ProjectDraft:
    if DRAFT_KEY not in context.user_data:
        context.user_data[DRAFT_KEY] = ProjectDraft()
    return context.user_data[DRAFT_KEY]


def reset_draft(context: ContextTypes.DEFAULT_TYPE) -> None:
    context.user_data[DRAFT_KEY] = ProjectDraft()


def step_label(step: int) -> str:
    return f"<code>[{step}/{STEPS}]</code>"


def project_link(settings: BotSettings, slug: str) -> str:
    """HTML anchor for a project page, e.g. gmon.link/acme."""
    label = f"{settings.public_base_url}/{slug}"
    href = label if label.startswith(("http://", "https://")) else f"https://{label}"
    return f'<a href="{escape(href)}">{escape(label)}</a>'


async def send_typing(update: Update) -> None:
    await update.effective_chat.send_action(ChatAction.TYPING)


async def safe_edit(
    context: ContextTypes.DEFAULT_TYPE,
    chat_id: int,
    msg_id: int,
    text: str,
    **kwargs: Any,
) -> None:
    """Edit a message, ignoring 'message is not modified' errors."""
    try:
        await context.bot.edit_message_text(
            chat_id=chat_id,
            message_id=msg_id,
            text=text,
            **kwargs,
        )
    except BadRequest as e:
        if "not modified" not in str(e).lower():
            raise


def _finish(update: Update, context: ContextTypes.DEFAULT_TYPE, outcome: str, reason: str = "") -> int:
    """Leave the conversation: drop the draft and clear the in-conversation flag."""
    user_id = update.effective_user.id
    get_stores(context).in_conversation.delete(user_id)
    context.user_data.pop(DRAFT_KEY, None)
    logger.info(f"Create-project flow for user {user_id} {outcome}" + (f": {reason}" if reason else ""))
    return DONE if outcome == "done" else ABORTED


def _display_name(update: Update, context: ContextTypes.DEFAULT_TYPE) -> str:
    record: Dict[str, Any] = context.user_data.get(USER_KEY) or {}
    user = update.effective_user
    return record.get("username") or user.username or user.full_name


# ── Entry ─────────────────────────────────────────────────────────────────────

async def cmd_new_project(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    user = update.effective_user
    record = await get_repository(context).get_user(user.id, user.username or user.full_name)
    context.user_data[USER_KEY] = record
    get_stores(context).in_conversation.set(user.id, True)
    reset_draft(context)

    if update.callback_query:
        await update.callback_query.answer()

    message = update.effective_message
    await message.reply_text(TIP_TEXT, parse_mode=ParseMode.HTML)
    await message.reply_text(
        f"{step_label(1)}\nSure! Let's create a new project. "
        "What's the name of the project or person you're creating a gmon.link for?",
        parse_mode=ParseMode.HTML,
    )
    return AWAIT_NAME


# ── /cancel ───────────────────────────────────────────────────────────────────

async def cmd_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    draft = get_draft(context)
    await update.effective_message.reply_text(
        f"👋 Project creation cancelled, this draft was discarded:\n\n{draft.summary_text()}\n\n"
        "Type /newproject to start again.",
        parse_mode=ParseMode.HTML,
    )
    return _finish(update, context, "aborted", "cancelled by user")


async def on_timeout(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    if update.effective_message:
        await update.effective_message.reply_text(
            "⌛ Project creation timed out. Type /newproject to start again.",
        )
    return _finish(update, context, "aborted", "timed out")


# ── Non-text answers ──────────────────────────────────────────────────────────

def _reprompt(state: int):
    """Handler for a non-text answer to a text step: explain and keep waiting."""

    async def handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
        await update.message.reply_text(ERROR_MESSAGES[state])
        return state

    handler.__name__ = f"reprompt_{state}"
    return handler


# ── Step 1: Name ──────────────────────────────────────────────────────────────

async def step_name(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    draft = get_draft(context)
    draft.name = update.message.text

    await send_typing(update)
    await update.message.reply_text(
        f"{step_label(2)}\nGreat! <code>{escape(draft.name)}</code> it is. "
        "Now, let's write a short description for the project.",
        parse_mode=ParseMode.HTML,
    )
    return AWAIT_DESCRIPTION


# ── Step 2: Description ───────────────────────────────────────────────────────

async def step_description(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    get_draft(context).description = update.message.text

    await send_typing(update)
    await update.message.reply_text(
        f"{step_label(3)}\nDo you have a Twitter handle or a Twitter URL? "
        "Please provide it. Type \"no\" if you don't want to add it.",
        parse_mode=ParseMode.HTML,
    )
    return AWAIT_TWITTER


# ── Steps 3–4: Social links ───────────────────────────────────────────────────

async def _read_profile_link(update: Update, platform: str) -> Optional[str]:
    """Normalize the answer; replies with a warning and re-raises on a bad URL."""
    try:
        return normalize_profile_link(update.message.text, platform)
    except InvalidProfileUrl:
        await update.message.reply_text(INVALID_URL_MESSAGES[platform])
        raise


async def step_twitter(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        twitter_url = await _read_profile_link(update, TWITTER)
    except InvalidProfileUrl as e:
        return _finish(update, context, "aborted", str(e))
    get_draft(context).twitter_url = twitter_url

    await send_typing(update)
    await update.message.reply_text(
        f"{step_label(4)}\nDo you have a GitHub ID or GitHub URL? "
        "Please provide it. Type \"no\" to skip.",
        parse_mode=ParseMode.HTML,
    )
    return AWAIT_GITHUB


async def step_github(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        github_url = await _read_profile_link(update, GITHUB)
    except InvalidProfileUrl as e:
        return _finish(update, context, "aborted", str(e))
    get_draft(context).github_url = github_url

    await send_typing(update)
    await update.message.reply_text(
        f"{step_label(5)}\nFab! Let's add an image for the project. "
        "Send a photo or an image of the project.",
        parse_mode=ParseMode.HTML,
    )
    return AWAIT_IMAGE


# ── Step 5: Image → persist → notify ──────────────────────────────────────────

async def step_image_invalid(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    await update.message.reply_text(ERROR_MESSAGES[AWAIT_IMAGE])
    return _finish(update, context, "aborted", "no photo at image step")


async def step_image(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    message = update.message
    if not message.photo:
        return await step_image_invalid(update, context)

    settings = get_settings(context)
    repository = get_repository(context)
    stores = get_stores(context)
    draft = get_draft(context)
    user_id = update.effective_user.id
    chat_id = update.effective_chat.id

    progress = await message.reply_text(UPLOADING_TEXT)
    try:
        draft.slug = await repository.create_slug(draft.name)
    except ProjectPersistenceError:
        logger.exception(f"Creating a slug for {draft.name!r} (user {user_id}) failed")
        await safe_edit(context, chat_id, progress.message_id, PROJECT_FAILED_TEXT)
        await message.reply_text(CREATE_FAILED_TEXT)
        return _finish(update, context, "aborted", "slug generation failed")

    intake = ImageIntake(context.bot, repository)
    try:
        uploaded = await intake.upload(message.photo, draft.slug)
    except UploadError as e:
        logger.error(f"Image upload failed for user {user_id}: {e}", exc_info=True)
        await safe_edit(context, chat_id, progress.message_id, UPLOAD_FAILED_TEXT)
        return _finish(update, context, "aborted", "image upload failed")

    draft.image_url = uploaded.storage_path
    await safe_edit(context, chat_id, progress.message_id, UPLOADED_TEXT)

    logger.info(f"User {user_id} → persisting project {draft.slug!r}")
    await safe_edit(context, chat_id, progress.message_id, CREATING_TEXT)
    try:
        project = await repository.insert_project(draft.to_row(user_id))
    except ProjectPersistenceError:
        logger.exception(f"Inserting project {draft.slug!r} for user {user_id} failed")
        await safe_edit(context, chat_id, progress.message_id, PROJECT_FAILED_TEXT)
        await message.reply_text(CREATE_FAILED_TEXT)
        return _finish(update, context, "aborted", "project insert failed")

    stores.project.set(user_id, project)
    stores.active_project.set(user_id, project["project_id"])

    slug = project.get("slug") or draft.slug
    link = project_link(settings, slug)
    await safe_edit(
        context, chat_id, progress.message_id,
        f"🎉 <b>Project created successfully!</b> Here's the link to the project: {link}",
        parse_mode=ParseMode.HTML,
        reply_markup=ADD_LINK_KEYBOARD,
    )

    try:
        await context.bot.send_message(
            chat_id=settings.alerts_channel_id,
            text=f"{escape(_display_name(update, context))} created a new project. {link}",
            parse_mode=ParseMode.HTML,
            link_preview_options=LinkPreviewOptions(is_disabled=True),
        )
    except TelegramError as e:
        logger.warning(f"Could not post new-project alert for {slug!r}: {e}")

    return _finish(update, context, "done", f"project {project['project_id']} ({slug})")


# ── Error handler ─────────────────────────────────────────────────────────────

async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Exception while handling update:", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(
            "⚠️ Something went wrong. Type /cancel and then /newproject to try again.",
        )


# ── App builder ───────────────────────────────────────────────────────────────

def build_conversation(settings: BotSettings) -> ConversationHandler:
    new_message = filters.UpdateType.MESSAGE
    text_answer = new_message & filters.TEXT & ~filters.COMMAND
    non_text = new_message & ~filters.TEXT

    return ConversationHandler(
        entry_points=[
            CommandHandler("newproject", cmd_new_project),
            CallbackQueryHandler(cmd_new_project, pattern="^create-project$"),
        ],
        states={
            AWAIT_NAME: [
                MessageHandler(text_answer, step_name),
                MessageHandler(non_text, _reprompt(AWAIT_NAME)),
            ],
            AWAIT_DESCRIPTION: [
                MessageHandler(text_answer, step_description),
                MessageHandler(non_text, _reprompt(AWAIT_DESCRIPTION)),
            ],
            AWAIT_TWITTER: [
                MessageHandler(text_answer, step_twitter),
                MessageHandler(non_text, _reprompt(AWAIT_TWITTER)),
            ],
            AWAIT_GITHUB: [
                MessageHandler(text_answer, step_github),
                MessageHandler(non_text, _reprompt(AWAIT_GITHUB)),
            ],
            AWAIT_IMAGE: [
                MessageHandler(new_message & filters.PHOTO, step_image),
                MessageHandler(new_message & ~filters.PHOTO & ~filters.COMMAND, step_image_invalid),
            ],
            ConversationHandler.TIMEOUT: [TypeHandler(Update, on_timeout)],
        },
        fallbacks=[CommandHandler("cancel", cmd_cancel)],
        allow_reentry=True,
        conversation_timeout=settings.conversation_timeout,
    )


def build_app(
    settings: BotSettings,
    repository: Optional[ProjectRepository] = None,
    stores: Optional[SessionStores] = None,
) -> Application:
    app = Application.builder().token(settings.bot_token).build()

    app.bot_data[SETTINGS_KEY] = settings
    app.bot_data[REPOSITORY_KEY] = repository or create_repository(settings)
    app.bot_data[STORES_KEY] = stores or SessionStores()

    app.add_handler(build_conversation(settings))
    app.add_error_handler(error_handler)
    return app
