"""Telegram transport using python-telegram-bot."""

import logging
import os
from datetime import datetime

from telegram import Update
from telegram.constants import ChatAction
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from cadence.channels.base import ChannelTransport, DisabledTransport, InboundMessage, MessageCallback

logger = logging.getLogger(__name__)


class TelegramTransport(ChannelTransport):
    """Long-polling Telegram bot.

    Text messages are converted to InboundMessage and handed to the
    registered callback. Replies longer than Telegram's limit are split.
    """

    name = "telegram"

    # Telegram maximum message length
    MAX_MESSAGE_LENGTH = 4096

    def __init__(self, token: str | None = None):
        """Initialize the transport.

        Args:
            token: Bot token (falls back to TELEGRAM_BOT_TOKEN env var).
        """
        resolved_token = token or os.environ.get("TELEGRAM_BOT_TOKEN")
        if not resolved_token:
            raise ValueError("Telegram bot token required (pass token or set TELEGRAM_BOT_TOKEN)")
        self.token: str = resolved_token
        self._app: Application | None = None  # type: ignore[type-arg]
        self._callback: MessageCallback | None = None

    async def start(self) -> None:
        """Start the bot and begin polling for updates."""
        self._app = Application.builder().token(self.token).build()
        self._app.add_handler(MessageHandler(filters.TEXT, self._handle_message))

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling()  # type: ignore[union-attr]

        logger.info("Telegram transport started")

    async def stop(self) -> None:
        """Stop the bot."""
        if self._app:
            await self._app.updater.stop()  # type: ignore[union-attr]
            await self._app.stop()
            await self._app.shutdown()
            self._app = None
            logger.info("Telegram transport stopped")

    def on_message(self, callback: MessageCallback) -> None:
        self._callback = callback

    async def send(self, chat_id: str, text: str) -> None:
        if not self._app:
            raise RuntimeError("Telegram transport not started")
        for chunk in self.split_message(text):
            await self._app.bot.send_message(chat_id=int(chat_id), text=chunk)

    async def set_typing(self, chat_id: str, typing: bool) -> None:
        # Telegram clears the indicator on its own after a few seconds or on send
        if not typing or not self._app:
            return
        await self._app.bot.send_chat_action(chat_id=int(chat_id), action=ChatAction.TYPING)

    @classmethod
    def split_message(cls, text: str) -> list[str]:
        """Split text into chunks that fit Telegram's message limit.

        Tries to break at paragraph boundaries (double newline), falls back
        to single newlines, then hard-splits as a last resort.
        """
        if len(text) <= cls.MAX_MESSAGE_LENGTH:
            return [text]

        chunks: list[str] = []
        remaining = text

        while remaining:
            if len(remaining) <= cls.MAX_MESSAGE_LENGTH:
                chunks.append(remaining)
                break

            split_at = remaining.rfind("\n\n", 0, cls.MAX_MESSAGE_LENGTH)
            if split_at == -1:
                split_at = remaining.rfind("\n", 0, cls.MAX_MESSAGE_LENGTH)
            if split_at == -1:
                split_at = cls.MAX_MESSAGE_LENGTH

            chunks.append(remaining[:split_at])
            remaining = remaining[split_at:].lstrip("\n")

        return chunks

    def to_inbound(self, update: Update) -> InboundMessage | None:
        """Convert a Telegram update to an InboundMessage."""
        if not update.message or not update.effective_chat:
            return None

        user = update.effective_user
        chat = update.effective_chat
        sender_name = None
        if user:
            sender_name = user.username or user.first_name

        return InboundMessage(
            channel=self.name,
            chat_id=str(chat.id),
            sender_id=str(user.id) if user else "",
            sender_name=sender_name,
            content=update.message.text or "",
            is_group=chat.type in ("group", "supergroup"),
            is_bot=bool(user and user.is_bot),
            sent_at=update.message.date.replace(tzinfo=None) if update.message.date else datetime.utcnow(),
        )

    async def _handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = self.to_inbound(update)
        if message and self._callback:
            await self._callback(message)


def create_telegram_transport(enabled: bool, token: str | None) -> ChannelTransport:
    """Build the Telegram transport, or a disabled stand-in if it cannot run."""
    if not enabled:
        return DisabledTransport("telegram")
    if not (token or os.environ.get("TELEGRAM_BOT_TOKEN")):
        logger.warning("Telegram enabled but no bot token configured; channel disabled")
        return DisabledTransport("telegram")
    return TelegramTransport(token)
