"""Channel poller: drains one channel's inbound queue into agent turns."""

import asyncio
import logging
import re

from cadence.agent.tools import TurnCapabilities
from cadence.channels.base import ChannelTransport, build_session_key
from cadence.channels.inbox import ChannelInbox
from cadence.core.prompts import GENERIC_FAILURE_MESSAGE
from cadence.db.database import DatabaseManager
from cadence.db.models import ChannelMessage
from cadence.db.repositories import ChannelMessageRepository
from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager

logger = logging.getLogger(__name__)


class ChannelPoller:
    """Processes each queued message of a channel exactly once.

    A message is claimed (marked processed with a guarded update) before its
    turn runs, so a crash or restart mid-turn never replays it. Group
    messages are only answered when they mention the bot. One message's
    failure is reported to its chat and never stops the loop.
    """

    def __init__(
        self,
        channel: str,
        transport: ChannelTransport,
        db: DatabaseManager,
        sessions: SessionManager,
        conversation: ConversationService,
        inbox: ChannelInbox,
        bot_name: str = "cadence",
        poll_interval: float = 2.0,
        history_window: int = 10,
    ):
        self.channel = channel
        self._transport = transport
        self._db = db
        self._sessions = sessions
        self._conversation = conversation
        self._inbox = inbox
        self._mention = re.compile(rf"@{re.escape(bot_name)}", re.IGNORECASE)
        self._poll_interval = poll_interval
        self._history_window = history_window
        self._running = False
        self._task: asyncio.Task[None] | None = None

    def mentions_bot(self, content: str) -> bool:
        return bool(self._mention.search(content))

    async def start(self) -> None:
        """Start the polling loop as a background task."""
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"poller:{self.channel}")
        logger.info(f"{self.channel} poller started ({self._poll_interval}s interval)")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info(f"{self.channel} poller stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"{self.channel} poller error: {e}", exc_info=True)
            await asyncio.sleep(self._poll_interval)

    async def poll_once(self) -> int:
        """Process every currently unprocessed message, oldest first.

        Returns:
            Number of messages that produced an agent turn.
        """
        async with self._db.session() as session:
            queued = await ChannelMessageRepository(session).list_unprocessed(self.channel)

        dispatched = 0
        for message in queued:
            if await self._process(message):
                dispatched += 1
        return dispatched

    async def _claim(self, message_id: int) -> bool:
        async with self._db.session() as session:
            return await ChannelMessageRepository(session).mark_processed(message_id)

    async def _process(self, message: ChannelMessage) -> bool:
        if message.is_bot:
            await self._claim(message.id)
            return False

        if message.is_group and not self.mentions_bot(message.content):
            await self._claim(message.id)
            return False

        if not await self._claim(message.id):
            logger.debug(f"Message {message.id} already claimed, skipping")
            return False

        session_key = build_session_key(self.channel, message.chat_id)
        capabilities = TurnCapabilities(
            channel=self.channel,
            chat_id=message.chat_id,
            session_key=session_key,
        )

        try:
            session_id = await self._sessions.get_or_create(self.channel, session_key)
            await self._set_typing(message.chat_id, True)
            try:
                outcome = await self._conversation.handle(
                    session_id,
                    message.content,
                    capabilities=capabilities,
                    history_window=self._history_window,
                )
            finally:
                await self._set_typing(message.chat_id, False)
        except Exception as e:
            logger.error(f"Agent error for {self.channel} message {message.id}: {e}", exc_info=True)
            await self._send(message.chat_id, GENERIC_FAILURE_MESSAGE)
            return True

        if outcome.reply_text:
            await self._send(message.chat_id, outcome.reply_text)
        return True

    async def _set_typing(self, chat_id: str, typing: bool) -> None:
        try:
            await self._transport.set_typing(chat_id, typing)
        except Exception as e:
            logger.debug(f"Failed to set typing in {self.channel}:{chat_id}: {e}")

    async def _send(self, chat_id: str, text: str) -> None:
        try:
            await self._transport.send(chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send reply to {self.channel}:{chat_id}: {e}")
            return
        try:
            await self._inbox.record_bot_reply(self.channel, chat_id, text)
        except Exception as e:
            logger.error(f"Failed to store bot reply for {self.channel}:{chat_id}: {e}")
