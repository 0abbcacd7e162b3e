"""DAO Notifier — Telegram Bot Client.

Async Telegram bot client using python-telegram-bot v21+.
Performs single outbound sends and the admin lookups the command
handler needs. Retrying is the caller's job: a failed send raises.
"""

from __future__ import annotations

from typing import Optional

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ChatMemberStatus, ParseMode
from telegram.error import TelegramError
from telegram.request import HTTPXRequest

from dao_notifier.config import TelegramConfig
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_ADMIN_STATUSES = (ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.OWNER)


class TelegramNotifier:
    """Async Telegram bot used as the delivery client.

    Chat and topic IDs arrive as decimal strings and are converted to
    integers only here, at the Bot API boundary.

    Attributes:
        config: TelegramConfig with the bot token and timeouts.
    """

    def __init__(
        self,
        config: TelegramConfig,
        connection_pool_size: int = 10,
        bot: Optional[Bot] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            config: TelegramConfig from the app configuration.
            connection_pool_size: Concurrent HTTP connections; should be
                at least the fan-out batch size.
            bot: Pre-built Bot, mainly for tests.
        """
        self.config = config
        if bot is None:
            timeout = config.request_timeout_seconds
            bot = Bot(
                token=config.bot_token,
                request=HTTPXRequest(
                    connection_pool_size=connection_pool_size,
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    write_timeout=timeout,
                    pool_timeout=timeout,
                ),
            )
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """The underlying python-telegram-bot Bot."""
        return self._bot

    async def initialize(self) -> bool:
        """Test the bot connection.

        Calls getMe to verify the token is valid.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self._bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def close(self) -> None:
        """Release the bot's HTTP connections."""
        await self._bot.shutdown()
        logger.debug("Telegram bot shut down")

    async def send(
        self,
        chat_id: str,
        message_thread_id: Optional[str],
        text: str,
        disable_link_preview: bool = False,
    ) -> str:
        """Send one MarkdownV2 message to one chat or forum topic.

        Args:
            chat_id: Decimal string chat ID.
            message_thread_id: Decimal string topic ID, or None.
            text: MarkdownV2 message body.
            disable_link_preview: Whether to suppress the link preview.

        Returns:
            The sent message's ID as a string.

        Raises:
            TelegramError: On any Bot API or network failure.
            ValueError: If an ID is not a decimal integer.
        """
        msg = await self._bot.send_message(
            chat_id=int(chat_id),
            message_thread_id=int(message_thread_id) if message_thread_id else None,
            text=text,
            parse_mode=ParseMode.MARKDOWN_V2,
            link_preview_options=LinkPreviewOptions(is_disabled=disable_link_preview),
        )
        logger.debug(
            "Sent message %s to chat %s/%s", msg.message_id, chat_id, message_thread_id,
        )
        return str(msg.message_id)

    async def is_chat_admin(self, chat_id: int, user_id: int) -> bool:
        """Check whether a user administers or owns a chat.

        A failed lookup counts as "not an admin".

        Args:
            chat_id: Chat to check.
            user_id: User who sent the command.

        Returns:
            True if the user is an administrator or the owner.
        """
        try:
            admins = await self._bot.get_chat_administrators(chat_id=chat_id)
        except TelegramError as e:
            logger.warning("getChatAdministrators failed for chat %s: %s", chat_id, e)
            return False

        return any(
            admin.user.id == user_id and admin.status in _ADMIN_STATUSES
            for admin in admins
        )
