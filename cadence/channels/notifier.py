"""Routes outbound notifications to the chat a session key names."""

import logging
from collections.abc import Mapping

from cadence.channels.base import ChannelTransport, parse_session_key

logger = logging.getLogger(__name__)


class Notifier:
    """Sends text to ``<channel>:<chat_id>`` targets.

    Failures are logged and reported through the return value; they never
    raise, so callers such as the workflow executor are not affected.
    """

    def __init__(self, transports: Mapping[str, ChannelTransport]):
        self._transports = transports

    async def notify(self, target: str, text: str) -> bool:
        """Send text to target.

        Returns:
            True if the transport accepted the message.
        """
        try:
            channel, chat_id = parse_session_key(target)
        except ValueError:
            logger.warning(f"Cannot notify unrecognized target '{target}'")
            return False

        transport = self._transports.get(channel)
        if transport is None:
            logger.warning(f"No transport registered for '{channel}', skipping notification to {target}")
            return False

        try:
            await transport.send(chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send notification to {target}: {e}")
            return False
        return True
